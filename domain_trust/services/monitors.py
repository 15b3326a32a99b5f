"""Scheduled domain and tenant deliverability monitors."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.config import settings
from domain_trust.database import async_session_factory
from domain_trust.models.enums import AlertSeverity, DomainAlertType, DomainStatus
from domain_trust.schemas.monitoring import AlertThresholds, CycleReport, MonitorConfig
from domain_trust.services import deliverability_service, domain_service, event_service
from domain_trust.services.scheduler import PeriodicMonitor

logger = logging.getLogger(__name__)


def default_monitor_config() -> MonitorConfig:
    """Domain monitor configuration from settings."""
    return MonitorConfig(
        check_interval_minutes=settings.MONITOR_INTERVAL_MINUTES,
        alert_thresholds=AlertThresholds(
            reputation_score=settings.ALERT_REPUTATION_SCORE,
            delivery_rate=settings.ALERT_DELIVERY_RATE,
            bounce_rate=settings.ALERT_BOUNCE_RATE,
        ),
    )


async def _in_session(session_factory: Callable[[], Any], work) -> Any:
    """Run ``work(db)`` in its own session, committing on success."""
    async with session_factory() as db:
        try:
            result = await work(db)
            await db.commit()
            return result
        except Exception:
            await db.rollback()
            raise


class DomainMonitor(PeriodicMonitor):
    """Re-validates every Verified domain on a schedule."""

    name = "domain monitor"

    def __init__(
        self,
        config: MonitorConfig | None = None,
        session_factory: Callable[[], Any] = async_session_factory,
    ):
        config = config or default_monitor_config()
        super().__init__(config.check_interval_minutes)
        self.config = config
        self.session_factory = session_factory

    def update_config(self, config: MonitorConfig) -> None:
        """Replace the configuration; a new interval applies from the next wait."""
        self.config = config
        self.interval_minutes = config.check_interval_minutes
        logger.info(f"Domain monitor configuration updated: {config.model_dump()}")

    async def _run_cycle(self, report: CycleReport) -> CycleReport:
        async with self.session_factory() as db:
            domains = await domain_service.list_verified_domains(db)
            domain_ids = [d.id for d in domains]
        logger.info(f"Found {len(domain_ids)} verified domains to monitor")

        outcomes = await asyncio.gather(
            *(self.check_domain(domain_id) for domain_id in domain_ids),
            return_exceptions=True,
        )

        for domain_id, outcome in zip(domain_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Error monitoring domain {domain_id}: {outcome!r}")
                report.failures[str(domain_id)] = str(outcome) or type(outcome).__name__
            else:
                report.checked.append(domain_id)

        return report

    async def check_domain(self, domain_id: UUID) -> bool:
        """Monitor one domain in its own session."""
        return await _in_session(
            self.session_factory,
            lambda db: self.monitor_single_domain(db, domain_id),
        )

    async def monitor_single_domain(self, db: AsyncSession, domain_id: UUID) -> bool:
        """
        Run the enabled checks against one domain, in order.

        DNS re-verification runs before the reputation refresh since the
        reputation depends on the resulting status. Domains that are not
        Verified are skipped.

        Args:
            db: Database session
            domain_id: Domain to check

        Returns:
            True if the domain was checked, False if skipped
        """
        domain = await domain_service.get_domain(db, domain_id)
        if domain is None or domain.status != DomainStatus.VERIFIED.value:
            return False

        logger.info(f"Monitoring domain: {domain.domain}")
        checks = self.config.enabled_checks
        thresholds = self.config.alert_thresholds
        results: dict[str, Any] = {}
        healthy = True

        if checks.dns_records:
            verification = await domain_service.verify_domain(db, domain_id)
            results["dns_records"] = {
                "is_verified": verification.is_verified,
                "errors": verification.errors,
            }
            if not verification.is_verified:
                healthy = False
                missing = [c.record.name for c in verification.records if not c.is_present]
                await domain_service.create_alert(
                    db,
                    domain_id,
                    DomainAlertType.DNS_RECORD_MISSING,
                    AlertSeverity.HIGH,
                    f"DNS records missing for verified domain {domain.domain}: {', '.join(missing)}",
                    {"missing_records": missing},
                )

        if checks.reputation:
            reputation = await domain_service.update_domain_reputation(db, domain_id)
            results["reputation"] = {"score": reputation.score}
            if reputation.score < thresholds.reputation_score:
                healthy = False
                await domain_service.create_alert(
                    db,
                    domain_id,
                    DomainAlertType.REPUTATION_DECLINE,
                    AlertSeverity.MEDIUM,
                    f"Domain reputation score ({reputation.score}) is below threshold "
                    f"({thresholds.reputation_score:g})",
                    {"score": reputation.score, "threshold": thresholds.reputation_score},
                )

        if checks.deliverability:
            counts = await event_service.count_tenant_events(db, domain.tenant_id, days=7)
            # No sends in the window means nothing to evaluate
            if counts.has_history:
                rates = deliverability_service.calculate_rates(counts)
                results["deliverability"] = rates

                if rates["delivery_rate"] < thresholds.delivery_rate:
                    healthy = False
                    await domain_service.create_alert(
                        db,
                        domain_id,
                        DomainAlertType.DELIVERY_ISSUES,
                        AlertSeverity.HIGH,
                        f"Low delivery rate detected: {rates['delivery_rate']}%",
                        rates,
                    )
                if rates["bounce_rate"] > thresholds.bounce_rate:
                    healthy = False
                    await domain_service.create_alert(
                        db,
                        domain_id,
                        DomainAlertType.DELIVERY_ISSUES,
                        AlertSeverity.MEDIUM,
                        f"High bounce rate detected: {rates['bounce_rate']}%",
                        rates,
                    )

        await domain_service.log_monitoring_check(
            db,
            domain_id,
            check_type="scheduled",
            status="healthy" if healthy else "issues",
            results=results,
        )
        return True


class DeliverabilityMonitor(PeriodicMonitor):
    """Evaluates every tenant with recent sending activity on a schedule."""

    name = "deliverability monitor"

    def __init__(
        self,
        interval_minutes: float | None = None,
        session_factory: Callable[[], Any] = async_session_factory,
    ):
        super().__init__(interval_minutes or settings.DELIVERABILITY_INTERVAL_MINUTES)
        self.session_factory = session_factory

    async def _run_cycle(self, report: CycleReport) -> CycleReport:
        async with self.session_factory() as db:
            tenant_ids = await deliverability_service.get_active_tenants(db)
        logger.info(f"Found {len(tenant_ids)} active tenants to monitor")

        for tenant_id in tenant_ids:
            try:
                await self.check_tenant(tenant_id)
            except Exception as e:
                logger.error(f"Error monitoring tenant {tenant_id}: {e!r}")
                report.failures[str(tenant_id)] = str(e) or type(e).__name__
            else:
                report.checked.append(tenant_id)

        return report

    async def check_tenant(self, tenant_id: UUID):
        """Evaluate one tenant in its own session."""
        return await _in_session(
            self.session_factory,
            lambda db: deliverability_service.monitor_tenant_deliverability(db, tenant_id),
        )
