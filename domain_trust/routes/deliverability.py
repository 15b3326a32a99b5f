"""Tenant deliverability API routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.database import get_session
from domain_trust.dependencies import get_deliverability_monitor, require_tenant_access
from domain_trust.exceptions import AlertNotFound
from domain_trust.schemas.common import MonitorActionResponse, raise_api_error
from domain_trust.schemas.deliverability import (
    AuthenticationResult,
    DashboardSummary,
    DeliverabilityAlertItem,
    DeliverabilityAlertListResponse,
    DeliverabilityMetrics,
    EmailContent,
    EmailEventCreate,
    EmailEventItem,
    OptimizationResult,
    ReputationMetrics,
    SpamScoreResult,
)
from domain_trust.schemas.monitoring import MonitorStatus
from domain_trust.services import deliverability_service, event_service
from domain_trust.services.monitors import DeliverabilityMonitor

logger = logging.getLogger(__name__)

router = APIRouter()

TENANT_PREFIX = "/tenants/{tenant_id}/deliverability"


@router.get(f"{TENANT_PREFIX}/metrics", response_model=DeliverabilityMetrics)
async def get_metrics(
    days: int = Query(7, ge=1, le=90, description="Window size in days"),
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> DeliverabilityMetrics:
    """
    Deliverability rates for the tenant over the last `days` days.

    Rates are percentages; `reputation_score` and `authentication_score`
    are 0-100.
    """
    return await deliverability_service.get_deliverability_metrics(db, tenant_id, days)


@router.get(f"{TENANT_PREFIX}/authentication", response_model=AuthenticationResult)
async def get_authentication(
    domain: str | None = Query(None, description="Check this domain instead of the tenant's"),
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> AuthenticationResult:
    """Live SPF, DKIM and DMARC validation."""
    if domain:
        return await deliverability_service.validate_email_authentication(domain)
    return await deliverability_service.validate_tenant_authentication(db, tenant_id)


@router.post(f"{TENANT_PREFIX}/spam-score", response_model=SpamScoreResult)
async def analyze_content(
    content: EmailContent,
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> SpamScoreResult:
    """
    Score message content for spam risk before sending.

    Scores above 50 are likely spam and raise a tenant alert.
    """
    return await deliverability_service.analyze_tenant_content(db, tenant_id, content)


@router.get(f"{TENANT_PREFIX}/reputation", response_model=ReputationMetrics)
async def get_reputation(
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> ReputationMetrics:
    return await deliverability_service.monitor_sender_reputation(db, tenant_id)


@router.get(f"{TENANT_PREFIX}/optimization", response_model=OptimizationResult)
async def get_optimization(
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> OptimizationResult:
    """Recommendations and estimated improvement (capped at 25%)."""
    return await deliverability_service.optimize_delivery_rates(db, tenant_id)


@router.get(f"{TENANT_PREFIX}/alerts", response_model=DeliverabilityAlertListResponse)
async def list_alerts(
    include_resolved: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> DeliverabilityAlertListResponse:
    alerts = await deliverability_service.get_deliverability_alerts(
        db, tenant_id, include_resolved=include_resolved, limit=limit
    )
    return DeliverabilityAlertListResponse(items=alerts, total=len(alerts))


@router.post(
    f"{TENANT_PREFIX}/alerts/{{alert_id}}/resolve",
    response_model=DeliverabilityAlertItem,
)
async def resolve_alert(
    alert_id: UUID,
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await deliverability_service.resolve_deliverability_alert(db, tenant_id, alert_id)
    except AlertNotFound as e:
        raise_api_error(
            code="ALERT_NOT_FOUND",
            message=str(e),
            status_code=status.HTTP_404_NOT_FOUND,
        )


@router.get(f"{TENANT_PREFIX}/dashboard", response_model=DashboardSummary)
async def get_dashboard(
    days: int = Query(7, ge=1, le=90),
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> DashboardSummary:
    """Metrics, alert counts, reputation and top recommendations."""
    return await deliverability_service.get_dashboard_summary(db, tenant_id, days)


@router.post(f"{TENANT_PREFIX}/check", response_model=DeliverabilityMetrics)
async def check_tenant(
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
) -> DeliverabilityMetrics:
    """Evaluate thresholds now, raising alerts and storing the score."""
    return await deliverability_service.monitor_tenant_deliverability(db, tenant_id)


@router.get("/deliverability/monitoring/status", response_model=MonitorStatus)
async def get_monitor_status(
    monitor: DeliverabilityMonitor = Depends(get_deliverability_monitor),
) -> MonitorStatus:
    return monitor.status()


@router.post("/deliverability/monitoring/start", response_model=MonitorActionResponse)
async def start_monitoring(
    monitor: DeliverabilityMonitor = Depends(get_deliverability_monitor),
) -> MonitorActionResponse:
    changed = monitor.start()
    return MonitorActionResponse(name=monitor.name, changed=changed, is_running=monitor.is_running)


@router.post("/deliverability/monitoring/stop", response_model=MonitorActionResponse)
async def stop_monitoring(
    monitor: DeliverabilityMonitor = Depends(get_deliverability_monitor),
) -> MonitorActionResponse:
    changed = await monitor.stop()
    return MonitorActionResponse(name=monitor.name, changed=changed, is_running=monitor.is_running)


@router.post(
    "/tenants/{tenant_id}/events",
    response_model=EmailEventItem,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_event(
    event: EmailEventCreate,
    tenant_id: UUID = Depends(require_tenant_access),
    db: AsyncSession = Depends(get_session),
):
    """Record one send-lifecycle event; metrics and monitors read these."""
    return await event_service.record_event(
        db,
        tenant_id,
        event.event_type,
        campaign_id=event.campaign_id,
        timestamp=event.timestamp,
    )
