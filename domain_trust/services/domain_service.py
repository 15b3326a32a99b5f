"""Domain registry: lifecycle, DNS verification, reputation and alerts."""

import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.exceptions import (
    AlertNotFound,
    DomainNotFound,
    DuplicateDomain,
    InvalidRecordFormat,
    InvalidStatusTransition,
    StorageError,
)
from domain_trust.models.domain import Domain
from domain_trust.models.domain_alert import DomainAlert, DomainMonitoringLog
from domain_trust.models.enums import (
    AlertSeverity,
    DomainAlertType,
    DomainStatus,
)
from domain_trust.models.reputation import DomainReputationRecord
from domain_trust.schemas.domain import (
    DnsRecord,
    DomainReputation,
    DomainVerificationResult,
    ReputationFactor,
    SetupStep,
    SetupWizard,
    normalize_domain_name,
)
from domain_trust.services import event_service
from domain_trust.services.dns_verifier import dns_verifier
from domain_trust.services.event_service import EventCounts
from domain_trust.services.key_provider import key_provider
from domain_trust.utils.dns_records import classify_record, generate_verification_records

logger = logging.getLogger(__name__)

DNS_AUTHENTICATION_FACTOR = "DNS Authentication"
SENDING_HISTORY_FACTOR = "Sending History"
COMPLAINT_RATE_FACTOR = "Complaint Rate"

DEFAULT_SENDING_HISTORY_SCORE = 85
DEFAULT_COMPLAINT_SCORE = 95
REPUTATION_HISTORY_DAYS = 30
REPUTATION_RECOMMENDATION_THRESHOLD = 70

# Allowed status changes; Suspended is reachable from every other status.
_TRANSITIONS: dict[DomainStatus, set[DomainStatus]] = {
    DomainStatus.PENDING: {DomainStatus.VERIFYING, DomainStatus.SUSPENDED},
    DomainStatus.VERIFYING: {
        DomainStatus.VERIFYING,
        DomainStatus.VERIFIED,
        DomainStatus.FAILED,
        DomainStatus.SUSPENDED,
    },
    DomainStatus.VERIFIED: {
        DomainStatus.VERIFYING,
        DomainStatus.FAILED,
        DomainStatus.SUSPENDED,
    },
    DomainStatus.FAILED: {DomainStatus.VERIFYING, DomainStatus.SUSPENDED},
    DomainStatus.SUSPENDED: {DomainStatus.PENDING},
}

_SETUP_STEPS = {
    "spf": (
        "Add SPF Record",
        "Add this TXT record to authorize email sending from your domain",
    ),
    "dkim": (
        "Add DKIM Record",
        "Add this TXT record to enable DKIM signing for your emails",
    ),
    "dmarc": (
        "Add DMARC Record",
        "Add this TXT record to set your DMARC policy",
    ),
    "verification": (
        "Add Verification Record",
        "Add this TXT record to verify domain ownership",
    ),
}


def _storage_errors(func_):
    """Re-raise database failures as StorageError."""

    @functools.wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Storage error in {func_.__name__}: {e}")
            raise StorageError(str(e)) from e

    return wrapper


def _now() -> datetime:
    return datetime.now(timezone.utc)


def transition(domain: Domain, new_status: DomainStatus) -> None:
    """
    Move a domain to a new status.

    Raises:
        InvalidStatusTransition: If the state machine forbids the change
    """
    current = DomainStatus(domain.status)
    if new_status not in _TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, new_status.value)
    domain.status = new_status.value


def domain_records(domain: Domain) -> list[DnsRecord]:
    """Expected DNS records of a domain as value objects."""
    return [DnsRecord.model_validate(r) for r in domain.verification_records]


@_storage_errors
async def create_domain(db: AsyncSession, tenant_id: UUID, domain_name: str) -> Domain:
    """
    Register a sending domain for a tenant.

    Generates a DKIM key pair and the four authentication records; the
    domain starts in Pending.

    Args:
        db: Database session
        tenant_id: Owning tenant
        domain_name: Domain to register

    Returns:
        The new domain

    Raises:
        DuplicateDomain: If the tenant already registered this domain
        InvalidRecordFormat: If the domain name is malformed
    """
    domain_name = normalize_domain_name(domain_name)

    existing = await db.execute(
        select(Domain.id).where(
            Domain.tenant_id == tenant_id,
            Domain.domain == domain_name,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateDomain(tenant_id, domain_name)

    key_pair = await asyncio.to_thread(key_provider.generate_key_pair)
    records = generate_verification_records(domain_name, key_pair.public_key)

    domain = Domain(
        id=uuid4(),
        tenant_id=tenant_id,
        domain=domain_name,
        status=DomainStatus.PENDING.value,
        dkim_public_key=key_pair.public_key,
        dkim_private_key=key_pair.private_key_pem,
        verification_records=[r.model_dump(mode="json") for r in records],
    )

    try:
        async with db.begin_nested():
            db.add(domain)
    except IntegrityError:
        # Concurrent registration of the same domain
        raise DuplicateDomain(tenant_id, domain_name)

    logger.info(f"Domain {domain_name} registered for tenant {tenant_id}")
    return domain


async def get_domain(db: AsyncSession, domain_id: UUID) -> Domain | None:
    """
    Get domain record from DB.

    Args:
        db: Database session
        domain_id: Domain to look up

    Returns:
        Domain if found, None otherwise
    """
    return await db.get(Domain, domain_id)


async def get_domain_or_raise(db: AsyncSession, domain_id: UUID) -> Domain:
    domain = await get_domain(db, domain_id)
    if domain is None:
        raise DomainNotFound(domain_id)
    return domain


async def list_domains(
    db: AsyncSession,
    tenant_id: UUID | None = None,
) -> tuple[list[Domain], int]:
    """
    List domains, newest first.

    Args:
        db: Database session
        tenant_id: Restrict to one tenant when given

    Returns:
        Tuple of (domain list, total count)
    """
    query = select(Domain)
    count_query = select(func.count()).select_from(Domain)
    if tenant_id is not None:
        query = query.where(Domain.tenant_id == tenant_id)
        count_query = count_query.where(Domain.tenant_id == tenant_id)

    total = await db.scalar(count_query) or 0
    result = await db.execute(query.order_by(Domain.created_at.desc()))
    return list(result.scalars().all()), total


async def list_verified_domains(
    db: AsyncSession,
    tenant_id: UUID | None = None,
) -> list[Domain]:
    """Domains currently in Verified status, most recently verified first."""
    query = select(Domain).where(Domain.status == DomainStatus.VERIFIED.value)
    if tenant_id is not None:
        query = query.where(Domain.tenant_id == tenant_id)
    result = await db.execute(query.order_by(Domain.verified_at.desc()))
    return list(result.scalars().all())


@_storage_errors
async def verify_domain(db: AsyncSession, domain_id: UUID) -> DomainVerificationResult:
    """
    Check every expected record of a domain against live DNS.

    Moves the domain to Verifying, then to Verified when all four records
    are present or to Failed otherwise (raising a high-severity
    verification_failed alert that names the missing records). Safe to call
    repeatedly; DNS failures are reported per record, never raised.

    Args:
        db: Database session
        domain_id: Domain to verify

    Returns:
        Per-record verification result

    Raises:
        DomainNotFound: If the domain does not exist
        InvalidStatusTransition: If the domain is suspended
    """
    domain = await get_domain_or_raise(db, domain_id)

    transition(domain, DomainStatus.VERIFYING)
    await db.flush()

    records = domain_records(domain)
    checks = await dns_verifier.verify_records(records)

    errors: list[str] = []
    for check in checks:
        if check.is_present:
            continue
        record = check.record
        if check.error:
            errors.append(
                f"Failed to verify {record.type.value} record {record.name}: {check.error}"
            )
        else:
            errors.append(f"{record.type.value} record not found: {record.name}")

    is_verified = bool(checks) and all(check.is_present for check in checks)

    if is_verified:
        transition(domain, DomainStatus.VERIFIED)
        domain.verified_at = _now()
    else:
        transition(domain, DomainStatus.FAILED)
    await db.flush()

    if is_verified:
        logger.info(f"Domain {domain.domain} verified")
    else:
        logger.warning(f"Domain {domain.domain} failed verification: {errors}")
        await create_alert(
            db,
            domain.id,
            DomainAlertType.VERIFICATION_FAILED,
            AlertSeverity.HIGH,
            f"Domain verification failed: {', '.join(errors)}",
            {
                "errors": errors,
                "missing_records": [c.record.name for c in checks if not c.is_present],
            },
        )

    return DomainVerificationResult(
        domain=domain.domain,
        is_verified=is_verified,
        records=checks,
        errors=errors,
    )


async def create_setup_wizard(db: AsyncSession, domain_id: UUID) -> SetupWizard:
    """
    Pair each expected record with setup instructions (SPF, DKIM, DMARC, Verification).

    Raises:
        DomainNotFound: If the domain does not exist
        InvalidRecordFormat: If a stored record set is incomplete
    """
    domain = await get_domain_or_raise(db, domain_id)

    by_kind = {classify_record(r): r for r in domain_records(domain)}
    missing = [kind for kind in _SETUP_STEPS if kind not in by_kind]
    if missing:
        raise InvalidRecordFormat(
            f"Domain {domain.domain} is missing records: {', '.join(missing)}"
        )

    steps = [
        SetupStep(title=title, description=description, record=by_kind[kind])
        for kind, (title, description) in _SETUP_STEPS.items()
    ]

    return SetupWizard(
        domain=domain.domain,
        spf_record=by_kind["spf"],
        dkim_record=by_kind["dkim"],
        dmarc_record=by_kind["dmarc"],
        verification_record=by_kind["verification"],
        steps=steps,
        estimated_time="15-30 minutes",
    )


def _factor_status(score: float) -> str:
    if score >= 80:
        return "good"
    if score >= 50:
        return "warning"
    return "critical"


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def sending_history_score(counts: EventCounts) -> float:
    """Score sending history from delivery and bounce behaviour (85 without history)."""
    if not counts.has_history:
        return DEFAULT_SENDING_HISTORY_SCORE
    delivery_rate = counts.delivered / counts.sent * 100
    bounce_rate = counts.bounced / counts.sent * 100
    return round(_clamp(delivery_rate - max(0, bounce_rate - 2) * 2))


def complaint_score(counts: EventCounts) -> float:
    """Score complaint and unsubscribe behaviour (95 without history)."""
    if not counts.has_history:
        return DEFAULT_COMPLAINT_SCORE
    complaint_rate = counts.complained / counts.sent * 100
    unsubscribe_rate = (
        counts.unsubscribed / counts.delivered * 100 if counts.delivered else 0
    )
    return round(_clamp(100 - complaint_rate * 100 - unsubscribe_rate * 2))


def build_reputation_factors(status: str, counts: EventCounts) -> list[ReputationFactor]:
    """The three weighted factors of a domain reputation."""
    verified = status == DomainStatus.VERIFIED.value
    history = sending_history_score(counts)
    complaints = complaint_score(counts)

    return [
        ReputationFactor(
            name=DNS_AUTHENTICATION_FACTOR,
            score=100 if verified else 0,
            weight=0.3,
            description="SPF, DKIM, and DMARC records are properly configured",
            status="good" if verified else "critical",
        ),
        ReputationFactor(
            name=SENDING_HISTORY_FACTOR,
            score=history,
            weight=0.4,
            description="Historical email sending patterns and engagement",
            status=_factor_status(history),
        ),
        ReputationFactor(
            name=COMPLAINT_RATE_FACTOR,
            score=complaints,
            weight=0.3,
            description="Rate of spam complaints and unsubscribes",
            status=_factor_status(complaints),
        ),
    ]


def score_factors(factors: list[ReputationFactor]) -> int:
    """Weighted sum of factor scores, rounded and clamped to [0, 100]."""
    return int(_clamp(round(sum(f.score * f.weight for f in factors))))


def reputation_recommendations(score: int, status: str) -> list[str]:
    recommendations = []
    if score < REPUTATION_RECOMMENDATION_THRESHOLD:
        recommendations.append("Consider reviewing your email content and targeting")
        recommendations.append("Monitor bounce and complaint rates closely")
    if status != DomainStatus.VERIFIED.value:
        recommendations.append("Complete domain verification to improve reputation")
    return recommendations


@_storage_errors
async def update_domain_reputation(db: AsyncSession, domain_id: UUID) -> DomainReputation:
    """
    Recompute and store the reputation snapshot of a domain.

    Args:
        db: Database session
        domain_id: Domain to score

    Returns:
        The new reputation snapshot

    Raises:
        DomainNotFound: If the domain does not exist
    """
    domain = await get_domain_or_raise(db, domain_id)

    counts = await event_service.count_tenant_events(
        db, domain.tenant_id, days=REPUTATION_HISTORY_DAYS
    )
    factors = build_reputation_factors(domain.status, counts)
    score = score_factors(factors)
    recommendations = reputation_recommendations(score, domain.status)
    now = _now()

    # Upsert: one snapshot per domain
    snapshot = await db.get(DomainReputationRecord, domain.id)
    if snapshot is None:
        snapshot = DomainReputationRecord(domain_id=domain.id)
        db.add(snapshot)
    snapshot.score = score
    snapshot.factors = [f.model_dump() for f in factors]
    snapshot.recommendations = recommendations
    snapshot.last_updated = now
    await db.flush()

    logger.info(f"Domain {domain.domain} reputation updated: {score}")
    return DomainReputation(
        domain=domain.domain,
        score=score,
        factors=factors,
        last_updated=now,
        recommendations=recommendations,
    )


async def get_domain_reputation(db: AsyncSession, domain_id: UUID) -> DomainReputation | None:
    """
    Latest stored reputation snapshot, or None if never computed.

    Raises:
        DomainNotFound: If the domain does not exist
    """
    domain = await get_domain_or_raise(db, domain_id)
    snapshot = await db.get(DomainReputationRecord, domain.id)
    if snapshot is None:
        return None

    return DomainReputation(
        domain=domain.domain,
        score=snapshot.score,
        factors=[ReputationFactor.model_validate(f) for f in snapshot.factors],
        last_updated=snapshot.last_updated,
        recommendations=list(snapshot.recommendations),
    )


async def get_authentication_score(db: AsyncSession, domain: Domain) -> float:
    """DNS Authentication factor of the stored snapshot, or the live status when none."""
    snapshot = await db.get(DomainReputationRecord, domain.id)
    if snapshot is not None:
        for factor in snapshot.factors:
            if factor.get("name") == DNS_AUTHENTICATION_FACTOR:
                return float(factor["score"])
    return 100.0 if domain.status == DomainStatus.VERIFIED.value else 0.0


async def create_alert(
    db: AsyncSession,
    domain_id: UUID,
    alert_type: DomainAlertType,
    severity: AlertSeverity,
    message: str,
    details: dict[str, Any] | None = None,
) -> DomainAlert | None:
    """
    Insert a domain alert.

    Every call inserts a new row; open alerts of the same type are not
    merged. The insert runs in a savepoint so a failure is logged and
    leaves the caller's other writes intact.

    Returns:
        The alert, or None if it could not be stored
    """
    alert = DomainAlert(
        id=uuid4(),
        domain_id=domain_id,
        type=DomainAlertType(alert_type).value,
        severity=AlertSeverity(severity).value,
        message=message,
        details=details or {},
        is_resolved=False,
        created_at=_now(),
    )

    try:
        async with db.begin_nested():
            db.add(alert)
    except SQLAlchemyError as e:
        logger.error(f"Failed to store {alert.type} alert for domain {domain_id}: {e}")
        return None

    logger.info(f"Alert {alert.type} ({alert.severity}) raised for domain {domain_id}")
    return alert


async def get_domain_alerts(
    db: AsyncSession,
    domain_id: UUID,
    include_resolved: bool = False,
) -> list[DomainAlert]:
    """Alerts of a domain, newest first (open ones only unless include_resolved)."""
    query = select(DomainAlert).where(DomainAlert.domain_id == domain_id)
    if not include_resolved:
        query = query.where(DomainAlert.is_resolved.is_(False))

    result = await db.execute(query.order_by(DomainAlert.created_at.desc()))
    return list(result.scalars().all())


async def resolve_alert(
    db: AsyncSession,
    alert_id: UUID,
    domain_id: UUID | None = None,
) -> DomainAlert:
    """
    Mark an alert resolved. Resolving twice keeps the first resolution time.

    Raises:
        AlertNotFound: If the alert does not exist (or belongs to another
            domain when domain_id is given)
    """
    alert = await db.get(DomainAlert, alert_id)
    if alert is None or (domain_id is not None and alert.domain_id != domain_id):
        raise AlertNotFound(alert_id)

    if not alert.is_resolved:
        alert.is_resolved = True
        alert.resolved_at = _now()
        await db.flush()
        logger.info(f"Alert {alert_id} resolved")

    return alert


async def suspend_domain(db: AsyncSession, domain_id: UUID) -> Domain:
    """Administratively suspend a domain (excluded from monitoring)."""
    domain = await get_domain_or_raise(db, domain_id)
    transition(domain, DomainStatus.SUSPENDED)
    await db.flush()
    logger.info(f"Domain {domain.domain} suspended")
    return domain


async def reactivate_domain(db: AsyncSession, domain_id: UUID) -> Domain:
    """Return a suspended domain to Pending; it must be verified again."""
    domain = await get_domain_or_raise(db, domain_id)
    transition(domain, DomainStatus.PENDING)
    domain.verified_at = None
    await db.flush()
    logger.info(f"Domain {domain.domain} reactivated")
    return domain


async def sign_with_domain_key(db: AsyncSession, domain_id: UUID, data: bytes) -> bytes:
    """Sign bytes with the domain's DKIM private key."""
    domain = await get_domain_or_raise(db, domain_id)
    return await asyncio.to_thread(key_provider.sign, domain.dkim_private_key, data)


async def log_monitoring_check(
    db: AsyncSession,
    domain_id: UUID,
    check_type: str,
    status: str,
    results: dict[str, Any],
) -> None:
    """Record that a monitoring check ran."""
    db.add(
        DomainMonitoringLog(
            id=uuid4(),
            domain_id=domain_id,
            check_type=check_type,
            status=status,
            results=results,
        )
    )
    await db.flush()
