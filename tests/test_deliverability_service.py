"""Tests for tenant deliverability metrics, reputation and alerting."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.exceptions import AlertNotFound
from domain_trust.models.deliverability_alert import DeliverabilityAlert
from domain_trust.models.enums import AlertSeverity, DeliverabilityAlertType, EmailEventType
from domain_trust.models.reputation import DeliverabilityMetricsHistory, TenantDeliverabilityScore
from domain_trust.schemas.deliverability import (
    AuthenticationCheck,
    DeliverabilityMetrics,
    EmailContent,
    ReputationMetrics,
    SpamScoreResult,
)
from domain_trust.services import deliverability_service as svc
from domain_trust.services import domain_service
from domain_trust.services.event_service import EventCounts, record_event


def _metrics(**overrides) -> DeliverabilityMetrics:
    values = dict(
        delivery_rate=98,
        bounce_rate=1,
        complaint_rate=0.05,
        open_rate=30,
        click_rate=3,
        reputation_score=95,
        authentication_score=100,
    )
    values.update(overrides)
    return DeliverabilityMetrics(**values)


def _reputation(overall: int) -> ReputationMetrics:
    return ReputationMetrics(
        sender_score=overall,
        domain_score=overall,
        ip_score=overall,
        overall_score=overall,
        factors=[],
        trend="stable",
    )


def _auth(overall: int):
    check = AuthenticationCheck(is_valid=True, score=overall, details="")
    return svc.combine_authentication("example.com", check, check, check)


async def _record(db: AsyncSession, tenant_id, event_type: EmailEventType, count: int, **kwargs):
    for _ in range(count):
        await record_event(db, tenant_id, event_type, **kwargs)


async def _record_window(db: AsyncSession, tenant_id, **counts):
    for name, count in counts.items():
        await _record(db, tenant_id, EmailEventType(name), count)


class TestCalculateRates:
    def test_example_window(self):
        counts = EventCounts(
            sent=100, delivered=95, bounced=5, opened=20, clicked=5, unsubscribed=1
        )

        rates = svc.calculate_rates(counts)

        assert rates == {
            "delivery_rate": 95,
            "bounce_rate": 5,
            "complaint_rate": 0,
            "open_rate": 21,
            "click_rate": 5,
            "spam_rate": 1.5,
            "unsubscribe_rate": 1.05,
        }
        assert svc.calculate_reputation_score(rates) == 100

    def test_zero_denominators(self):
        rates = svc.calculate_rates(EventCounts())
        assert all(value == 0 for value in rates.values())

    def test_complaint_rate_keeps_two_decimals(self):
        rates = svc.calculate_rates(EventCounts(sent=300, delivered=300, complained=1))
        assert rates["complaint_rate"] == 0.33


class TestReputationScore:
    def test_penalties(self):
        rates = {
            "delivery_rate": 85,
            "bounce_rate": 15,
            "complaint_rate": 0.3,
            "open_rate": 0,
            "click_rate": 0,
        }
        # 100 - 10 * 2 - 0.2 * 50 - 10 * 1.5
        assert svc.calculate_reputation_score(rates) == 55

    def test_clamped_at_zero(self):
        rates = {
            "delivery_rate": 10,
            "bounce_rate": 90,
            "complaint_rate": 5,
            "open_rate": 0,
            "click_rate": 0,
        }
        assert svc.calculate_reputation_score(rates) == 0

    def test_engagement_bonus_capped(self):
        rates = {
            "delivery_rate": 90,
            "bounce_rate": 5,
            "complaint_rate": 0,
            "open_rate": 100,
            "click_rate": 100,
        }
        # 100 - 7.5 + 10 + 5
        assert svc.calculate_reputation_score(rates) == 100

    def test_sender_score(self):
        metrics = _metrics(delivery_rate=90, bounce_rate=10, complaint_rate=1, open_rate=0)
        # 100 * 0.9 * 0.9 * 0.9
        assert svc.calculate_sender_score(metrics) == 73

    @pytest.mark.parametrize(
        "bounce,complaint,expected",
        [(0, 0, 85), (6, 0, 75), (11, 0, 65), (0, 0.2, 75), (11, 0.6, 40)],
    )
    def test_ip_score(self, bounce, complaint, expected):
        assert svc.calculate_ip_score(bounce, complaint) == expected


class TestReputationTrend:
    def test_not_enough_history(self):
        assert svc.calculate_reputation_trend([]) == "stable"
        assert svc.calculate_reputation_trend([50]) == "stable"

    def test_improving(self):
        assert svc.calculate_reputation_trend([60] * 7 + [80] * 7) == "improving"

    def test_declining(self):
        assert svc.calculate_reputation_trend([90] * 7 + [70] * 7) == "declining"

    def test_small_change_is_stable(self):
        assert svc.calculate_reputation_trend([80] * 7 + [84] * 7) == "stable"


class TestReputationFactors:
    def test_healthy_metrics(self):
        factors = svc.identify_reputation_factors(_metrics())

        assert [f.name for f in factors] == [
            "Delivery Rate",
            "Bounce Rate",
            "Complaint Rate",
            "Engagement",
        ]
        assert all(f.status == "good" for f in factors)

    def test_poor_delivery(self):
        delivery = svc.identify_reputation_factors(_metrics(delivery_rate=85))[0]

        assert delivery.status == "critical"
        assert delivery.impact == -20
        assert delivery.description == "85% of emails are being delivered"


class TestThresholdAlerts:
    @pytest.mark.parametrize(
        "rate,severity",
        [(0.6, AlertSeverity.CRITICAL), (0.5, AlertSeverity.MEDIUM), (0.3, AlertSeverity.MEDIUM)],
    )
    def test_complaint_tiers(self, rate, severity):
        draft = svc.complaint_rate_alert(_metrics(complaint_rate=rate))

        assert draft.type == DeliverabilityAlertType.HIGH_COMPLAINT_RATE
        assert draft.severity == severity

    def test_complaint_below_warning(self):
        assert svc.complaint_rate_alert(_metrics(complaint_rate=0.1)) is None

    @pytest.mark.parametrize(
        "rate,severity",
        [(89, AlertSeverity.CRITICAL), (90, AlertSeverity.MEDIUM), (94, AlertSeverity.MEDIUM)],
    )
    def test_delivery_tiers(self, rate, severity):
        assert svc.delivery_rate_alert(_metrics(delivery_rate=rate)).severity == severity

    def test_delivery_at_warning_threshold(self):
        assert svc.delivery_rate_alert(_metrics(delivery_rate=95)) is None

    def test_bounce_tiers(self):
        assert svc.bounce_rate_alert(_metrics(bounce_rate=11)).severity == AlertSeverity.CRITICAL
        assert svc.bounce_rate_alert(_metrics(bounce_rate=10)).severity == AlertSeverity.MEDIUM
        assert svc.bounce_rate_alert(_metrics(bounce_rate=5)) is None

    def test_reputation_tiers(self):
        critical = svc.reputation_score_alert(_metrics(reputation_score=40))
        warning = svc.reputation_score_alert(_metrics(reputation_score=60))

        assert critical.severity == AlertSeverity.CRITICAL
        assert critical.message == "Critical: Sender reputation score is 40"
        assert warning.severity == AlertSeverity.MEDIUM
        assert svc.reputation_score_alert(_metrics(reputation_score=70)) is None

    def test_message_formats_whole_numbers(self):
        draft = svc.delivery_rate_alert(_metrics(delivery_rate=89.0))
        assert draft.message == "Critical: Delivery rate is 89%"

    @pytest.mark.parametrize(
        "score,severity",
        [(71, AlertSeverity.CRITICAL), (70, AlertSeverity.MEDIUM), (51, AlertSeverity.MEDIUM)],
    )
    def test_spam_tiers(self, score, severity):
        result = SpamScoreResult(score=score, factors=[], recommendations=[], is_likely_spam=True)
        assert svc.spam_content_alert(result).severity == severity

    def test_spam_at_warning_threshold(self):
        result = SpamScoreResult(score=50, factors=[], recommendations=[], is_likely_spam=False)
        assert svc.spam_content_alert(result) is None


class TestOptimizationPlan:
    def test_healthy_tenant(self):
        plan = svc.build_optimization_plan(_metrics(), _auth(100), _reputation(90))

        assert plan.recommendations == []
        assert plan.optimization_actions == []
        assert plan.estimated_improvement == 0

    def test_breached_thresholds(self):
        plan = svc.build_optimization_plan(
            _metrics(delivery_rate=90, bounce_rate=8), _auth(40), _reputation(60)
        )

        assert plan.recommendations[0] == "Improve email authentication setup"
        assert "Gradually increase sending volume" in plan.recommendations
        assert plan.optimization_actions == [
            "Fix SPF, DKIM, and DMARC records",
            "Implement list hygiene practices",
        ]

    def test_estimated_improvement(self):
        # (100 - 40) * 0.3 + (80 - 70) * 0.2 + (95 - 93) * 0.5
        assert (
            svc.calculate_estimated_improvement(
                _metrics(delivery_rate=93), _auth(40), _reputation(70)
            )
            == 21
        )

    def test_estimated_improvement_capped(self):
        assert (
            svc.calculate_estimated_improvement(
                _metrics(delivery_rate=10), _auth(0), _reputation(0)
            )
            == 25
        )


class TestAuthenticationChecks:
    def test_spf(self):
        good = svc.evaluate_spf(["v=spf1 include:spf.test-platform.com ~all"])
        missing_include = svc.evaluate_spf(["v=spf1 include:other.net ~all"])
        two_records = svc.evaluate_spf(
            ["v=spf1 include:spf.test-platform.com ~all", "v=spf1 -all"]
        )

        assert (good.is_valid, good.score) == (True, 100)
        assert (missing_include.is_valid, missing_include.score) == (False, 50)
        assert two_records.score == 50
        assert svc.evaluate_spf(["unrelated"]).score == 0

    def test_dkim(self):
        assert svc.evaluate_dkim(["v=DKIM1; k=rsa; p=TUlHZk1BMEc="]).score == 100
        assert svc.evaluate_dkim(["v=DKIM1; k=rsa; p=not base64!"]).score == 60
        assert svc.evaluate_dkim([]).score == 0

    def test_dmarc(self):
        assert svc.evaluate_dmarc(["v=DMARC1; p=reject"]).score == 100
        assert svc.evaluate_dmarc(["v=DMARC1; p=none"]).score == 40
        assert svc.evaluate_dmarc([]).score == 0

    def test_combined_score(self):
        result = svc.combine_authentication(
            "example.com",
            svc.evaluate_spf([]),
            svc.evaluate_dkim(["v=DKIM1; p=TUlHZk1BMEc="]),
            svc.evaluate_dmarc(["v=DMARC1; p=none"]),
        )
        # 0 * 0.3 + 100 * 0.4 + 40 * 0.3
        assert result.overall_score == 52
        assert not result.is_valid


class TestValidateEmailAuthentication:
    async def test_generated_records_pass(self, db: AsyncSession, fake_dns):
        domain = await domain_service.create_domain(db, uuid4(), "auth.example.com")
        fake_dns.publish(domain_service.domain_records(domain))

        result = await svc.validate_email_authentication("auth.example.com")

        assert result.is_valid
        assert result.overall_score == 100

    async def test_missing_records(self, fake_dns):
        result = await svc.validate_email_authentication("nothing.example.com")

        assert result.overall_score == 0
        assert not result.is_valid
        assert "domain does not exist" in result.spf.details

    async def test_shared_domain_defaults(self, db: AsyncSession, tenant_id):
        result = await svc.validate_tenant_authentication(db, tenant_id)

        assert result.domain == "shared"
        assert (result.spf.score, result.dkim.score, result.dmarc.score) == (80, 80, 70)
        assert result.overall_score == 77
        assert result.is_valid


class TestGetDeliverabilityMetrics:
    async def test_from_recorded_events(self, db: AsyncSession, tenant_id):
        await _record_window(
            db, tenant_id, sent=100, delivered=95, bounced=5, opened=20, clicked=5, unsubscribed=1
        )

        metrics = await svc.get_deliverability_metrics(db, tenant_id)

        assert metrics.delivery_rate == 95
        assert metrics.bounce_rate == 5
        assert metrics.open_rate == 21
        assert metrics.click_rate == 5
        assert metrics.unsubscribe_rate == 1.05
        assert metrics.spam_rate == 1.5
        assert metrics.reputation_score == 100
        assert metrics.authentication_score == 50

    async def test_other_tenants_ignored(self, db: AsyncSession, tenant_id):
        await _record(db, uuid4(), EmailEventType.SENT, 3)

        metrics = await svc.get_deliverability_metrics(db, tenant_id)

        assert metrics.delivery_rate == 0

    async def test_window_excludes_old_events(self, db: AsyncSession, tenant_id):
        old = datetime.now(timezone.utc) - timedelta(days=10)
        await _record(db, tenant_id, EmailEventType.SENT, 2, timestamp=old)
        await _record(db, tenant_id, EmailEventType.SENT, 2)
        await _record(db, tenant_id, EmailEventType.DELIVERED, 1)

        assert (await svc.get_deliverability_metrics(db, tenant_id, days=7)).delivery_rate == 50
        assert (await svc.get_deliverability_metrics(db, tenant_id, days=30)).delivery_rate == 25

    async def test_authentication_from_verified_domains(self, db: AsyncSession, tenant_id, fake_dns):
        domain = await domain_service.create_domain(db, tenant_id, "verified.example.com")
        fake_dns.publish(domain_service.domain_records(domain))
        await domain_service.verify_domain(db, domain.id)

        metrics = await svc.get_deliverability_metrics(db, tenant_id)

        assert metrics.authentication_score == 100


class TestMonitorSenderReputation:
    async def test_new_tenant(self, db: AsyncSession, tenant_id):
        reputation = await svc.monitor_sender_reputation(db, tenant_id)

        assert reputation.sender_score == 0
        assert reputation.domain_score == 75
        assert reputation.ip_score == 85
        # 0 * 0.4 + 75 * 0.4 + 85 * 0.2
        assert reputation.overall_score == 47
        assert reputation.trend == "stable"

    async def test_trend_from_history(self, db: AsyncSession, tenant_id):
        today = datetime.now(timezone.utc).date()
        for offset, score in enumerate([60] * 7 + [90] * 7):
            db.add(
                DeliverabilityMetricsHistory(
                    id=uuid4(),
                    tenant_id=tenant_id,
                    date=today - timedelta(days=14 - offset),
                    reputation_score=score,
                )
            )
        await db.flush()

        reputation = await svc.monitor_sender_reputation(db, tenant_id)

        assert reputation.trend == "improving"


class TestAlertStorage:
    async def test_monitor_tenant_raises_alerts_and_upserts(self, db: AsyncSession, tenant_id):
        await _record_window(db, tenant_id, sent=100, delivered=80, bounced=20)

        await svc.monitor_tenant_deliverability(db, tenant_id)
        await svc.monitor_tenant_deliverability(db, tenant_id)

        alerts = await svc.get_deliverability_alerts(db, tenant_id)
        types = {a.type for a in alerts}
        assert DeliverabilityAlertType.LOW_DELIVERY_RATE.value in types
        assert DeliverabilityAlertType.HIGH_BOUNCE_RATE.value in types
        # Three alerts per run, not deduplicated
        assert len(alerts) == 6

        score = await db.get(TenantDeliverabilityScore, tenant_id)
        assert score.delivery_rate == 80

        history = await db.execute(
            select(DeliverabilityMetricsHistory).where(
                DeliverabilityMetricsHistory.tenant_id == tenant_id
            )
        )
        assert len(history.scalars().all()) == 1

    async def test_healthy_tenant_no_alerts(self, db: AsyncSession, tenant_id):
        await _record_window(db, tenant_id, sent=10, delivered=10, opened=5)

        await svc.monitor_tenant_deliverability(db, tenant_id)

        assert await svc.get_deliverability_alerts(db, tenant_id) == []

    async def test_resolve(self, db: AsyncSession, tenant_id):
        await svc.check_delivery_rate(db, tenant_id, _metrics(delivery_rate=50))
        (alert,) = await svc.get_deliverability_alerts(db, tenant_id)

        resolved = await svc.resolve_deliverability_alert(db, tenant_id, alert.id)

        assert resolved.is_resolved
        assert resolved.resolved_at >= resolved.created_at
        assert await svc.get_deliverability_alerts(db, tenant_id) == []
        assert len(await svc.get_deliverability_alerts(db, tenant_id, include_resolved=True)) == 1

    async def test_resolve_other_tenant(self, db: AsyncSession, tenant_id):
        alert = await svc.check_bounce_rate(db, tenant_id, _metrics(bounce_rate=20))

        with pytest.raises(AlertNotFound):
            await svc.resolve_deliverability_alert(db, uuid4(), alert.id)

    async def test_spam_content_alert(self, db: AsyncSession, tenant_id):
        content = EmailContent(subject="FREE FREE ACT NOW!!!", from_email="news@acme.com")

        result = await svc.analyze_tenant_content(db, tenant_id, content)

        assert result.is_likely_spam
        stored = await db.execute(
            select(DeliverabilityAlert).where(DeliverabilityAlert.tenant_id == tenant_id)
        )
        alert = stored.scalar_one()
        assert alert.type == DeliverabilityAlertType.SPAM_CONTENT_DETECTED.value
        assert alert.severity == AlertSeverity.MEDIUM.value


class TestDashboard:
    async def test_summary(self, db: AsyncSession, tenant_id):
        await _record_window(db, tenant_id, sent=100, delivered=85, bounced=15)
        await svc.monitor_tenant_deliverability(db, tenant_id)

        summary = await svc.get_dashboard_summary(db, tenant_id)

        assert summary.tenant_id == tenant_id
        assert summary.metrics.delivery_rate == 85
        assert summary.alerts.total >= 2
        assert summary.alerts.critical >= 2
        assert summary.alerts.unresolved == summary.alerts.total
        assert len(summary.top_recommendations) == 3
        assert summary.top_recommendations[0] == "Improve email authentication setup"

    async def test_active_tenants(self, db: AsyncSession, tenant_id):
        await _record(db, tenant_id, EmailEventType.SENT, 1)

        assert await svc.get_active_tenants(db) == [tenant_id]
