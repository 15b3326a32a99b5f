"""Tenant deliverability metrics, reputation, alerting and optimization."""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.config import settings
from domain_trust.exceptions import AlertNotFound, DNSLookupError
from domain_trust.models.deliverability_alert import DeliverabilityAlert
from domain_trust.models.enums import AlertSeverity, DeliverabilityAlertType
from domain_trust.models.reputation import (
    DeliverabilityMetricsHistory,
    DomainReputationRecord,
    TenantDeliverabilityScore,
)
from domain_trust.schemas.deliverability import (
    AlertSummary,
    AuthenticationCheck,
    AuthenticationResult,
    DashboardSummary,
    DeliverabilityMetrics,
    EmailContent,
    OptimizationResult,
    ReputationMetricFactor,
    ReputationMetrics,
    SpamScoreResult,
)
from domain_trust.services import domain_service, event_service
from domain_trust.services.dns_verifier import dns_verifier
from domain_trust.services.event_service import EventCounts
from domain_trust.services.spam_scorer import analyze_spam_score
from domain_trust.utils.dns_records import DKIM_PREFIX, DMARC_PREFIX, SPF_PREFIX

logger = logging.getLogger(__name__)

# Two-tier alert thresholds (percent, or 0-100 score)
THRESHOLDS = {
    "delivery_rate": {"warning": 95, "critical": 90},
    "bounce_rate": {"warning": 5, "critical": 10},
    "complaint_rate": {"warning": 0.1, "critical": 0.5},
    "spam_score": {"warning": 50, "critical": 70},
    "reputation_score": {"warning": 70, "critical": 50},
}

DEFAULT_AUTHENTICATION_SCORE = 50
DEFAULT_DOMAIN_SCORE = 75
BASE_IP_SCORE = 85
REPUTATION_HISTORY_DAYS = 30
MAX_ESTIMATED_IMPROVEMENT = 25

SHARED_DOMAIN_AUTHENTICATION = {
    "spf": AuthenticationCheck(is_valid=True, score=80, details="Using shared domain SPF"),
    "dkim": AuthenticationCheck(is_valid=True, score=80, details="Using shared domain DKIM"),
    "dmarc": AuthenticationCheck(is_valid=True, score=70, details="Using shared domain DMARC"),
}


@dataclass(frozen=True)
class AlertDraft:
    """A deliverability alert about to be raised."""

    type: DeliverabilityAlertType
    severity: AlertSeverity
    message: str
    metrics: dict[str, Any]
    recommendations: list[str] = field(default_factory=list)


def _fmt(value: float) -> str:
    return f"{value:g}"


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Pure scoring
# ---------------------------------------------------------------------------


def calculate_rates(counts: EventCounts) -> dict[str, float]:
    """
    Derive percentage rates from raw event counts.

    Delivery, bounce, open and click rates are whole percents; complaint,
    unsubscribe and spam rates keep two decimals. Open, click and
    unsubscribe rates are relative to delivered mail, the rest to sent
    mail. A zero denominator yields 0.
    """
    sent, delivered = counts.sent, counts.delivered

    def pct(part: int, whole: int, digits: int | None = None) -> float:
        if whole <= 0:
            return 0
        return round(part / whole * 100, digits) if digits is not None else round(part / whole * 100)

    spam_rate = (
        round((counts.complained + counts.bounced * 0.3) / sent * 100, 2) if sent > 0 else 0
    )

    return {
        "delivery_rate": pct(counts.delivered, sent),
        "bounce_rate": pct(counts.bounced, sent),
        "complaint_rate": pct(counts.complained, sent, 2),
        "open_rate": pct(counts.opened, delivered),
        "click_rate": pct(counts.clicked, delivered),
        "spam_rate": spam_rate,
        "unsubscribe_rate": pct(counts.unsubscribed, delivered, 2),
    }


def calculate_reputation_score(rates: dict[str, float]) -> int:
    """Start at 100, penalize bounces, complaints and low delivery, reward engagement."""
    score = 100.0

    if rates["bounce_rate"] > 5:
        score -= (rates["bounce_rate"] - 5) * 2
    if rates["complaint_rate"] > 0.1:
        score -= (rates["complaint_rate"] - 0.1) * 50
    if rates["delivery_rate"] < 95:
        score -= (95 - rates["delivery_rate"]) * 1.5

    if rates["open_rate"] > 20:
        score += min(10, (rates["open_rate"] - 20) * 0.2)
    if rates["click_rate"] > 2:
        score += min(5, (rates["click_rate"] - 2) * 0.5)

    return int(_clamp(round(score)))


def calculate_sender_score(metrics: DeliverabilityMetrics) -> int:
    """Multiplicative sender score from delivery, bounce, complaint and open rates."""
    score = 100.0
    score *= metrics.delivery_rate / 100
    score *= 1 - metrics.bounce_rate / 100
    score *= 1 - metrics.complaint_rate / 10

    if metrics.open_rate > 0:
        score *= 1 + min(0.2, metrics.open_rate / 100)

    return int(round(_clamp(score)))


def calculate_ip_score(bounce_rate: float, complaint_rate: float) -> int:
    """IP reputation proxy from the last day's bounce and complaint spikes."""
    score = BASE_IP_SCORE

    if bounce_rate > 10:
        score -= 20
    elif bounce_rate > 5:
        score -= 10

    if complaint_rate > 0.5:
        score -= 25
    elif complaint_rate > 0.1:
        score -= 10

    return int(_clamp(score))


def calculate_reputation_trend(history: list[float]) -> str:
    """
    Compare the mean of the latest seven reputation scores with the earliest seven.

    Args:
        history: Reputation scores, oldest first

    Returns:
        'improving' above +5, 'declining' below -5, otherwise 'stable'
    """
    if len(history) < 2:
        return "stable"

    recent = history[-7:]
    older = history[:7]
    difference = sum(recent) / len(recent) - sum(older) / len(older)

    if difference > 5:
        return "improving"
    if difference < -5:
        return "declining"
    return "stable"


def identify_reputation_factors(metrics: DeliverabilityMetrics) -> list[ReputationMetricFactor]:
    delivery = metrics.delivery_rate
    bounce = metrics.bounce_rate
    complaint = metrics.complaint_rate
    engagement = (metrics.open_rate + metrics.click_rate) / 2

    return [
        ReputationMetricFactor(
            name="Delivery Rate",
            impact=10 if delivery >= 95 else (95 - delivery) * -2,
            status="good" if delivery >= 95 else "warning" if delivery >= 90 else "critical",
            description=f"{_fmt(delivery)}% of emails are being delivered",
        ),
        ReputationMetricFactor(
            name="Bounce Rate",
            impact=5 if bounce <= 5 else (bounce - 5) * -3,
            status="good" if bounce <= 5 else "warning" if bounce <= 10 else "critical",
            description=f"{_fmt(bounce)}% bounce rate",
        ),
        ReputationMetricFactor(
            name="Complaint Rate",
            impact=5 if complaint <= 0.1 else (complaint - 0.1) * -20,
            status="good" if complaint <= 0.1 else "warning" if complaint <= 0.5 else "critical",
            description=f"{_fmt(complaint)}% complaint rate",
        ),
        ReputationMetricFactor(
            name="Engagement",
            impact=8 if engagement > 15 else 3 if engagement > 10 else -2,
            status="good" if engagement > 15 else "warning" if engagement > 10 else "critical",
            description=f"{engagement:.1f}% average engagement rate",
        ),
    ]


def calculate_estimated_improvement(
    metrics: DeliverabilityMetrics,
    authentication: AuthenticationResult,
    reputation: ReputationMetrics,
) -> int:
    """Percent improvement reachable by closing the auth, reputation and delivery gaps (max 25)."""
    improvement = 0.0

    if not authentication.is_valid:
        improvement += (100 - authentication.overall_score) * 0.3
    if reputation.overall_score < 80:
        improvement += (80 - reputation.overall_score) * 0.2
    if metrics.delivery_rate < 95:
        improvement += (95 - metrics.delivery_rate) * 0.5

    return min(MAX_ESTIMATED_IMPROVEMENT, round(improvement))


def build_optimization_plan(
    metrics: DeliverabilityMetrics,
    authentication: AuthenticationResult,
    reputation: ReputationMetrics,
) -> OptimizationResult:
    recommendations: list[str] = []
    actions: list[str] = []

    if metrics.delivery_rate < THRESHOLDS["delivery_rate"]["warning"]:
        recommendations.append("Improve email authentication setup")
        recommendations.append("Review content for spam indicators")
        recommendations.append("Clean email lists to remove invalid addresses")

        if not authentication.is_valid:
            actions.append("Fix SPF, DKIM, and DMARC records")
        if metrics.bounce_rate > THRESHOLDS["bounce_rate"]["warning"]:
            actions.append("Implement list hygiene practices")

    if reputation.overall_score < THRESHOLDS["reputation_score"]["warning"]:
        recommendations.append("Gradually increase sending volume")
        recommendations.append("Focus on engaged subscribers")
        recommendations.append("Implement double opt-in for new subscribers")

    return OptimizationResult(
        current_metrics=metrics,
        recommendations=recommendations,
        optimization_actions=actions,
        estimated_improvement=calculate_estimated_improvement(
            metrics, authentication, reputation
        ),
    )


def combine_authentication(
    domain: str,
    spf: AuthenticationCheck,
    dkim: AuthenticationCheck,
    dmarc: AuthenticationCheck,
) -> AuthenticationResult:
    overall = round(spf.score * 0.3 + dkim.score * 0.4 + dmarc.score * 0.3)
    return AuthenticationResult(
        domain=domain,
        spf=spf,
        dkim=dkim,
        dmarc=dmarc,
        overall_score=overall,
        is_valid=overall >= 70,
    )


# ---------------------------------------------------------------------------
# Threshold evaluation
# ---------------------------------------------------------------------------


def delivery_rate_alert(metrics: DeliverabilityMetrics) -> AlertDraft | None:
    rate = metrics.delivery_rate
    tiers = THRESHOLDS["delivery_rate"]

    if rate < tiers["critical"]:
        return AlertDraft(
            type=DeliverabilityAlertType.LOW_DELIVERY_RATE,
            severity=AlertSeverity.CRITICAL,
            message=f"Critical: Delivery rate is {_fmt(rate)}%",
            metrics={"delivery_rate": rate},
            recommendations=[
                "Check email authentication (SPF, DKIM, DMARC)",
                "Review content for spam indicators",
                "Clean email lists to remove invalid addresses",
                "Contact support for assistance",
            ],
        )
    if rate < tiers["warning"]:
        return AlertDraft(
            type=DeliverabilityAlertType.LOW_DELIVERY_RATE,
            severity=AlertSeverity.MEDIUM,
            message=f"Warning: Delivery rate is {_fmt(rate)}%",
            metrics={"delivery_rate": rate},
            recommendations=[
                "Monitor delivery rates closely",
                "Review recent campaign content",
                "Verify email list quality",
            ],
        )
    return None


def bounce_rate_alert(metrics: DeliverabilityMetrics) -> AlertDraft | None:
    rate = metrics.bounce_rate
    tiers = THRESHOLDS["bounce_rate"]

    if rate > tiers["critical"]:
        return AlertDraft(
            type=DeliverabilityAlertType.HIGH_BOUNCE_RATE,
            severity=AlertSeverity.CRITICAL,
            message=f"Critical: Bounce rate is {_fmt(rate)}%",
            metrics={"bounce_rate": rate},
            recommendations=[
                "Immediately clean email lists",
                "Implement email validation",
                "Remove hard bounces from future campaigns",
                "Review data collection practices",
            ],
        )
    if rate > tiers["warning"]:
        return AlertDraft(
            type=DeliverabilityAlertType.HIGH_BOUNCE_RATE,
            severity=AlertSeverity.MEDIUM,
            message=f"Warning: Bounce rate is {_fmt(rate)}%",
            metrics={"bounce_rate": rate},
            recommendations=[
                "Review and clean email lists",
                "Implement email validation for new subscribers",
                "Monitor bounce rates daily",
            ],
        )
    return None


def complaint_rate_alert(metrics: DeliverabilityMetrics) -> AlertDraft | None:
    rate = metrics.complaint_rate
    tiers = THRESHOLDS["complaint_rate"]

    if rate > tiers["critical"]:
        return AlertDraft(
            type=DeliverabilityAlertType.HIGH_COMPLAINT_RATE,
            severity=AlertSeverity.CRITICAL,
            message=f"Critical: Complaint rate is {_fmt(rate)}%",
            metrics={"complaint_rate": rate},
            recommendations=[
                "Immediately review email content and practices",
                "Ensure clear unsubscribe options",
                "Review subscriber consent and opt-in processes",
                "Consider pausing campaigns until resolved",
            ],
        )
    if rate > tiers["warning"]:
        return AlertDraft(
            type=DeliverabilityAlertType.HIGH_COMPLAINT_RATE,
            severity=AlertSeverity.MEDIUM,
            message=f"Warning: Complaint rate is {_fmt(rate)}%",
            metrics={"complaint_rate": rate},
            recommendations=[
                "Review email content for relevance",
                "Ensure clear sender identification",
                "Make unsubscribe process easier",
                "Segment lists for better targeting",
            ],
        )
    return None


def reputation_score_alert(metrics: DeliverabilityMetrics) -> AlertDraft | None:
    score = metrics.reputation_score
    tiers = THRESHOLDS["reputation_score"]

    if score < tiers["critical"]:
        return AlertDraft(
            type=DeliverabilityAlertType.REPUTATION_DECLINE,
            severity=AlertSeverity.CRITICAL,
            message=f"Critical: Sender reputation score is {score}",
            metrics={"reputation_score": score},
            recommendations=[
                "Immediately review all email practices",
                "Reduce sending volume temporarily",
                "Focus on highly engaged subscribers only",
                "Contact support for reputation recovery plan",
            ],
        )
    if score < tiers["warning"]:
        return AlertDraft(
            type=DeliverabilityAlertType.REPUTATION_DECLINE,
            severity=AlertSeverity.MEDIUM,
            message=f"Warning: Sender reputation declining ({score})",
            metrics={"reputation_score": score},
            recommendations=[
                "Monitor reputation closely",
                "Review recent campaign performance",
                "Implement list hygiene practices",
                "Focus on engagement quality",
            ],
        )
    return None


def spam_content_alert(result: SpamScoreResult) -> AlertDraft | None:
    tiers = THRESHOLDS["spam_score"]

    if result.score > tiers["critical"]:
        severity = AlertSeverity.CRITICAL
    elif result.score > tiers["warning"]:
        severity = AlertSeverity.MEDIUM
    else:
        return None

    return AlertDraft(
        type=DeliverabilityAlertType.SPAM_CONTENT_DETECTED,
        severity=severity,
        message=f"Spam-like content detected (score {result.score:.0f})",
        metrics={
            "spam_score": result.score,
            "factors": [factor.name for factor in result.factors],
        },
        recommendations=list(result.recommendations),
    )


# ---------------------------------------------------------------------------
# Metrics and authentication
# ---------------------------------------------------------------------------


async def get_tenant_authentication_score(db: AsyncSession, tenant_id: UUID) -> int:
    """
    Mean DNS authentication score over the tenant's verified domains.

    Tenants without a verified custom domain send from the shared domain
    and get the default score of 50.
    """
    domains = await domain_service.list_verified_domains(db, tenant_id)
    if not domains:
        return DEFAULT_AUTHENTICATION_SCORE

    scores = [await domain_service.get_authentication_score(db, d) for d in domains]
    return round(sum(scores) / len(scores))


async def get_deliverability_metrics(
    db: AsyncSession,
    tenant_id: UUID,
    days: int = 7,
) -> DeliverabilityMetrics:
    """
    Compute a tenant's deliverability metrics over a window.

    Args:
        db: Database session
        tenant_id: Tenant to evaluate
        days: Window size in days

    Returns:
        Rates, reputation score and authentication score
    """
    counts = await event_service.count_tenant_events(db, tenant_id, days=days)
    rates = calculate_rates(counts)

    return DeliverabilityMetrics(
        **rates,
        reputation_score=calculate_reputation_score(rates),
        authentication_score=await get_tenant_authentication_score(db, tenant_id),
    )


async def _txt_or_empty(name: str) -> tuple[list[str], str | None]:
    try:
        return await dns_verifier.lookup_txt(name), None
    except DNSLookupError as e:
        return [], e.reason


def evaluate_spf(values: list[str]) -> AuthenticationCheck:
    records = [v for v in values if v.lower().startswith(SPF_PREFIX)]
    recommendations = [
        "Add SPF record to DNS",
        "Include your email service provider in SPF record",
        "Use ~all or -all mechanism for strict policy",
    ]

    if not records:
        return AuthenticationCheck(
            is_valid=False,
            score=0,
            details="No SPF record found",
            recommendations=recommendations,
        )

    record = records[0]
    terms = record.split()
    is_valid = (
        len(records) == 1
        and f"include:{settings.SPF_INCLUDE}" in terms
        and any(t in ("~all", "-all") for t in terms)
    )
    if is_valid:
        return AuthenticationCheck(
            is_valid=True, score=100, details="SPF record is properly configured"
        )
    return AuthenticationCheck(
        is_valid=False,
        score=50,
        details="SPF record found but has issues",
        recommendations=recommendations,
    )


def _tags(record: str) -> dict[str, str]:
    tags = {}
    for part in record.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep:
            tags[key.strip().lower()] = value.strip()
    return tags


def evaluate_dkim(values: list[str]) -> AuthenticationCheck:
    records = [v for v in values if v.startswith(DKIM_PREFIX) or "p=" in v]
    recommendations = [
        "Configure DKIM signing for your domain",
        "Ensure DKIM private key is properly configured",
        "Verify DKIM public key in DNS",
    ]

    if not records:
        return AuthenticationCheck(
            is_valid=False,
            score=0,
            details="No DKIM record found",
            recommendations=recommendations,
        )

    public_key = _tags(records[0]).get("p", "")
    try:
        is_valid = bool(public_key) and bool(base64.b64decode(public_key, validate=True))
    except (binascii.Error, ValueError):
        is_valid = False

    if is_valid:
        return AuthenticationCheck(
            is_valid=True, score=100, details="DKIM signature is properly configured"
        )
    return AuthenticationCheck(
        is_valid=False,
        score=60,
        details="DKIM record found but signature validation failed",
        recommendations=recommendations,
    )


def evaluate_dmarc(values: list[str]) -> AuthenticationCheck:
    records = [v for v in values if v.startswith(DMARC_PREFIX)]
    recommendations = [
        "Add DMARC record to DNS",
        "Start with p=none policy for monitoring",
        "Gradually move to p=quarantine then p=reject",
        "Set up DMARC reporting",
    ]

    if not records:
        return AuthenticationCheck(
            is_valid=False,
            score=0,
            details="No DMARC record found",
            recommendations=recommendations,
        )

    policy = _tags(records[0]).get("p", "").lower()
    if policy in ("quarantine", "reject"):
        return AuthenticationCheck(
            is_valid=True, score=100, details="DMARC policy is properly configured"
        )
    return AuthenticationCheck(
        is_valid=False,
        score=40,
        details="DMARC record found but policy needs adjustment",
        recommendations=recommendations,
    )


async def validate_email_authentication(domain_name: str) -> AuthenticationResult:
    """
    Check the live SPF, DKIM and DMARC records of a domain.

    Lookup failures count as a missing record; the reason is added to the
    check details.
    """
    (spf_txt, spf_err), (dkim_txt, dkim_err), (dmarc_txt, dmarc_err) = await asyncio.gather(
        _txt_or_empty(domain_name),
        _txt_or_empty(f"{settings.DKIM_SELECTOR}._domainkey.{domain_name}"),
        _txt_or_empty(f"_dmarc.{domain_name}"),
    )

    checks = []
    for check, error in (
        (evaluate_spf(spf_txt), spf_err),
        (evaluate_dkim(dkim_txt), dkim_err),
        (evaluate_dmarc(dmarc_txt), dmarc_err),
    ):
        if error:
            check = check.model_copy(update={"details": f"{check.details} ({error})"})
        checks.append(check)

    result = combine_authentication(domain_name, *checks)
    logger.info(f"Authentication for {domain_name}: {result.overall_score}")
    return result


async def validate_tenant_authentication(db: AsyncSession, tenant_id: UUID) -> AuthenticationResult:
    """Authenticate the tenant's most recently verified domain, or report shared-domain defaults."""
    domains = await domain_service.list_verified_domains(db, tenant_id)
    if not domains:
        return AuthenticationResult(
            domain="shared",
            **SHARED_DOMAIN_AUTHENTICATION,
            overall_score=77,
            is_valid=True,
        )
    return await validate_email_authentication(domains[0].domain)


# ---------------------------------------------------------------------------
# Reputation and optimization
# ---------------------------------------------------------------------------


async def get_domain_reputation_score(db: AsyncSession, tenant_id: UUID) -> int:
    """Mean stored reputation of the tenant's verified domains (75 for shared domains)."""
    domains = await domain_service.list_verified_domains(db, tenant_id)
    if not domains:
        return DEFAULT_DOMAIN_SCORE

    scores = []
    for domain in domains:
        snapshot = await db.get(DomainReputationRecord, domain.id)
        if snapshot is not None:
            scores.append(snapshot.score)
        else:
            scores.append(await domain_service.get_authentication_score(db, domain))
    return round(sum(scores) / len(scores))


async def get_historical_scores(
    db: AsyncSession,
    tenant_id: UUID,
    days: int = REPUTATION_HISTORY_DAYS,
) -> list[float]:
    """Daily reputation scores of a tenant, oldest first."""
    since = datetime.now(timezone.utc).date() - timedelta(days=days)
    result = await db.execute(
        select(DeliverabilityMetricsHistory.reputation_score)
        .where(
            DeliverabilityMetricsHistory.tenant_id == tenant_id,
            DeliverabilityMetricsHistory.date >= since,
        )
        .order_by(DeliverabilityMetricsHistory.date.asc())
    )
    return [float(score) for score in result.scalars().all()]


async def monitor_sender_reputation(db: AsyncSession, tenant_id: UUID) -> ReputationMetrics:
    """
    Combine sender, domain and IP reputation for a tenant.

    Args:
        db: Database session
        tenant_id: Tenant to evaluate

    Returns:
        Component scores, weighted overall score, factors and 30-day trend
    """
    metrics = await get_deliverability_metrics(db, tenant_id)
    history = await get_historical_scores(db, tenant_id)

    sender_score = calculate_sender_score(metrics)
    domain_score = await get_domain_reputation_score(db, tenant_id)

    last_day = calculate_rates(await event_service.count_tenant_events(db, tenant_id, days=1))
    ip_score = calculate_ip_score(last_day["bounce_rate"], last_day["complaint_rate"])

    overall = round(sender_score * 0.4 + domain_score * 0.4 + ip_score * 0.2)

    return ReputationMetrics(
        sender_score=sender_score,
        domain_score=domain_score,
        ip_score=ip_score,
        overall_score=overall,
        factors=identify_reputation_factors(metrics),
        trend=calculate_reputation_trend(history),
    )


async def optimize_delivery_rates(db: AsyncSession, tenant_id: UUID) -> OptimizationResult:
    """Current metrics with recommendations and an estimated improvement."""
    metrics = await get_deliverability_metrics(db, tenant_id)
    authentication = await validate_tenant_authentication(db, tenant_id)
    reputation = await monitor_sender_reputation(db, tenant_id)
    return build_optimization_plan(metrics, authentication, reputation)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


async def create_deliverability_alert(
    db: AsyncSession,
    tenant_id: UUID,
    draft: AlertDraft,
) -> DeliverabilityAlert | None:
    """
    Insert a deliverability alert in a savepoint.

    Returns:
        The alert, or None if the insert failed (logged, not raised)
    """
    alert = DeliverabilityAlert(
        id=uuid4(),
        tenant_id=tenant_id,
        type=draft.type.value,
        severity=draft.severity.value,
        message=draft.message,
        metrics=draft.metrics,
        recommendations=draft.recommendations,
        is_resolved=False,
        created_at=datetime.now(timezone.utc),
    )

    try:
        async with db.begin_nested():
            db.add(alert)
    except SQLAlchemyError as e:
        logger.error(f"Failed to store {alert.type} alert for tenant {tenant_id}: {e}")
        return None

    logger.warning(f"Tenant {tenant_id}: {draft.message}")
    return alert


async def _raise_if(
    db: AsyncSession, tenant_id: UUID, draft: AlertDraft | None
) -> DeliverabilityAlert | None:
    if draft is None:
        return None
    return await create_deliverability_alert(db, tenant_id, draft)


async def check_delivery_rate(db: AsyncSession, tenant_id: UUID, metrics: DeliverabilityMetrics):
    return await _raise_if(db, tenant_id, delivery_rate_alert(metrics))


async def check_bounce_rate(db: AsyncSession, tenant_id: UUID, metrics: DeliverabilityMetrics):
    return await _raise_if(db, tenant_id, bounce_rate_alert(metrics))


async def check_complaint_rate(db: AsyncSession, tenant_id: UUID, metrics: DeliverabilityMetrics):
    return await _raise_if(db, tenant_id, complaint_rate_alert(metrics))


async def check_reputation_score(db: AsyncSession, tenant_id: UUID, metrics: DeliverabilityMetrics):
    return await _raise_if(db, tenant_id, reputation_score_alert(metrics))


async def get_deliverability_alerts(
    db: AsyncSession,
    tenant_id: UUID,
    include_resolved: bool = False,
    limit: int = 50,
) -> list[DeliverabilityAlert]:
    """Tenant alerts, newest first."""
    query = select(DeliverabilityAlert).where(DeliverabilityAlert.tenant_id == tenant_id)
    if not include_resolved:
        query = query.where(DeliverabilityAlert.is_resolved.is_(False))

    result = await db.execute(
        query.order_by(DeliverabilityAlert.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def resolve_deliverability_alert(
    db: AsyncSession,
    tenant_id: UUID,
    alert_id: UUID,
) -> DeliverabilityAlert:
    """
    Resolve a tenant's alert.

    Raises:
        AlertNotFound: If the alert does not exist or belongs to another tenant
    """
    alert = await db.get(DeliverabilityAlert, alert_id)
    if alert is None or alert.tenant_id != tenant_id:
        raise AlertNotFound(alert_id)

    if not alert.is_resolved:
        alert.is_resolved = True
        alert.resolved_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info(f"Deliverability alert {alert_id} resolved")

    return alert


# ---------------------------------------------------------------------------
# Monitoring entry points
# ---------------------------------------------------------------------------


async def update_tenant_deliverability_score(
    db: AsyncSession,
    tenant_id: UUID,
    metrics: DeliverabilityMetrics,
) -> None:
    """Upsert the tenant's current score and today's history row."""
    score = await db.get(TenantDeliverabilityScore, tenant_id)
    if score is None:
        score = TenantDeliverabilityScore(tenant_id=tenant_id)
        db.add(score)
    score.delivery_rate = metrics.delivery_rate
    score.bounce_rate = metrics.bounce_rate
    score.complaint_rate = metrics.complaint_rate
    score.reputation_score = metrics.reputation_score
    score.authentication_score = metrics.authentication_score
    score.updated_at = datetime.now(timezone.utc)

    today: date = datetime.now(timezone.utc).date()
    result = await db.execute(
        select(DeliverabilityMetricsHistory).where(
            DeliverabilityMetricsHistory.tenant_id == tenant_id,
            DeliverabilityMetricsHistory.date == today,
        )
    )
    history = result.scalar_one_or_none()
    if history is None:
        history = DeliverabilityMetricsHistory(id=uuid4(), tenant_id=tenant_id, date=today)
        db.add(history)
    for name, value in metrics.model_dump().items():
        setattr(history, name, value)

    await db.flush()


async def monitor_tenant_deliverability(
    db: AsyncSession,
    tenant_id: UUID,
) -> DeliverabilityMetrics:
    """
    Evaluate a tenant: compute metrics, raise threshold alerts, store scores.

    Returns:
        The metrics that were evaluated
    """
    metrics = await get_deliverability_metrics(db, tenant_id)

    await check_delivery_rate(db, tenant_id, metrics)
    await check_bounce_rate(db, tenant_id, metrics)
    await check_complaint_rate(db, tenant_id, metrics)
    await check_reputation_score(db, tenant_id, metrics)

    await update_tenant_deliverability_score(db, tenant_id, metrics)
    logger.info(
        f"Tenant {tenant_id} deliverability: delivery={_fmt(metrics.delivery_rate)}% "
        f"reputation={metrics.reputation_score}"
    )
    return metrics


async def analyze_tenant_content(
    db: AsyncSession,
    tenant_id: UUID,
    content: EmailContent,
) -> SpamScoreResult:
    """Score content for spam and raise an alert above the warning threshold."""
    result = analyze_spam_score(content)
    await _raise_if(db, tenant_id, spam_content_alert(result))
    return result


async def get_active_tenants(db: AsyncSession) -> list[UUID]:
    return await event_service.get_active_tenants(db, days=7)


async def summarize_alerts(db: AsyncSession, tenant_id: UUID, since: datetime) -> AlertSummary:
    result = await db.execute(
        select(
            DeliverabilityAlert.severity,
            DeliverabilityAlert.is_resolved,
            func.count(),
        )
        .where(
            DeliverabilityAlert.tenant_id == tenant_id,
            DeliverabilityAlert.created_at >= since,
        )
        .group_by(DeliverabilityAlert.severity, DeliverabilityAlert.is_resolved)
    )

    total = critical = high = unresolved = 0
    for severity, is_resolved, count in result.all():
        total += count
        if severity == AlertSeverity.CRITICAL.value:
            critical += count
        elif severity == AlertSeverity.HIGH.value:
            high += count
        if not is_resolved:
            unresolved += count

    return AlertSummary(total=total, critical=critical, high=high, unresolved=unresolved)


async def get_dashboard_summary(
    db: AsyncSession,
    tenant_id: UUID,
    days: int = 7,
) -> DashboardSummary:
    """
    Build the deliverability dashboard for a tenant.

    Args:
        db: Database session
        tenant_id: Tenant to summarize
        days: Window for metrics and alert counts

    Returns:
        Metrics, alert counts, reputation and the top three recommendations
    """
    now = datetime.now(timezone.utc)
    metrics = await get_deliverability_metrics(db, tenant_id, days=days)
    reputation = await monitor_sender_reputation(db, tenant_id)
    authentication = await validate_tenant_authentication(db, tenant_id)
    plan = build_optimization_plan(metrics, authentication, reputation)
    alerts = await summarize_alerts(db, tenant_id, now - timedelta(days=days))

    return DashboardSummary(
        tenant_id=tenant_id,
        period_days=days,
        metrics=metrics,
        alerts=alerts,
        reputation=reputation,
        estimated_improvement=plan.estimated_improvement,
        top_recommendations=(plan.recommendations + plan.optimization_actions)[:3],
        generated_at=now,
    )
