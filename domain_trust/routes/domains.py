"""Domain registry, verification and monitoring API routes."""

import base64
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.database import get_session
from domain_trust.dependencies import get_domain_monitor, get_tenant_domain, get_tenant_id
from domain_trust.exceptions import (
    AlertNotFound,
    DuplicateDomain,
    InvalidRecordFormat,
    InvalidStatusTransition,
)
from domain_trust.models.domain import Domain
from domain_trust.schemas.common import MonitorActionResponse, raise_api_error
from domain_trust.schemas.domain import (
    CreateDomainRequest,
    DomainAlertItem,
    DomainAlertListResponse,
    DomainItem,
    DomainListResponse,
    DomainReputation,
    DomainVerificationResult,
    SetupWizard,
    SignRequest,
    SignResponse,
)
from domain_trust.schemas.monitoring import MonitorConfig, MonitorStatus
from domain_trust.services import domain_service
from domain_trust.services.monitors import DomainMonitor

logger = logging.getLogger(__name__)

router = APIRouter()


def _transition_conflict(e: InvalidStatusTransition) -> None:
    raise_api_error(
        code="INVALID_STATUS_TRANSITION",
        message=str(e),
        status_code=status.HTTP_409_CONFLICT,
        details={"current": e.current, "requested": e.requested},
    )


# Monitoring routes come first so "monitoring" is not parsed as a domain id.


@router.get("/domains/monitoring/status", response_model=MonitorStatus)
async def get_monitor_status(
    monitor: DomainMonitor = Depends(get_domain_monitor),
) -> MonitorStatus:
    """Domain monitor state and the report of its last cycle."""
    return monitor.status()


@router.post("/domains/monitoring/start", response_model=MonitorActionResponse)
async def start_monitoring(
    monitor: DomainMonitor = Depends(get_domain_monitor),
) -> MonitorActionResponse:
    """Start the domain monitor (runs one cycle immediately)."""
    changed = monitor.start()
    return MonitorActionResponse(name=monitor.name, changed=changed, is_running=monitor.is_running)


@router.post("/domains/monitoring/stop", response_model=MonitorActionResponse)
async def stop_monitoring(
    monitor: DomainMonitor = Depends(get_domain_monitor),
) -> MonitorActionResponse:
    """Stop the domain monitor after any in-flight cycle."""
    changed = await monitor.stop()
    return MonitorActionResponse(name=monitor.name, changed=changed, is_running=monitor.is_running)


@router.put("/domains/monitoring/config", response_model=MonitorConfig)
async def update_monitor_config(
    config: MonitorConfig,
    monitor: DomainMonitor = Depends(get_domain_monitor),
) -> MonitorConfig:
    """Replace interval, alert thresholds and enabled checks."""
    monitor.update_config(config)
    return monitor.config


@router.post(
    "/domains",
    response_model=DomainItem,
    status_code=status.HTTP_201_CREATED,
)
async def create_domain(
    request: CreateDomainRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_session),
) -> Domain:
    """
    Register a sending domain for the calling tenant.

    Generates a DKIM key pair and the four DNS records the tenant must
    publish: SPF, DKIM, DMARC and the ownership verification record.

    **Request Body:**
    ```json
    { "domain": "example.com" }
    ```

    **Response:**
    - The domain in `Pending` status with its `verification_records`
    - 409 if the tenant already registered the domain
    """
    try:
        return await domain_service.create_domain(db, tenant_id, request.domain)
    except DuplicateDomain as e:
        raise_api_error(
            code="DUPLICATE_DOMAIN",
            message=str(e),
            status_code=status.HTTP_409_CONFLICT,
        )
    except InvalidRecordFormat as e:
        raise_api_error(code="INVALID_DOMAIN", message=str(e))


@router.get("/domains", response_model=DomainListResponse)
async def list_domains(
    tenant_id: UUID = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_session),
) -> DomainListResponse:
    """List the calling tenant's domains, newest first."""
    domains, total = await domain_service.list_domains(db, tenant_id)
    return DomainListResponse(items=domains, total=total)


@router.get("/domains/{domain_id}", response_model=DomainItem)
async def get_domain(domain: Domain = Depends(get_tenant_domain)) -> Domain:
    return domain


@router.get("/domains/{domain_id}/setup-wizard", response_model=SetupWizard)
async def get_setup_wizard(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> SetupWizard:
    """
    Step-by-step DNS setup instructions.

    Steps are returned in order: SPF, DKIM, DMARC, Verification.
    """
    try:
        return await domain_service.create_setup_wizard(db, domain.id)
    except InvalidRecordFormat as e:
        raise_api_error(
            code="INVALID_RECORDS",
            message=str(e),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


@router.post("/domains/{domain_id}/verify", response_model=DomainVerificationResult)
async def verify_domain(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> DomainVerificationResult:
    """
    Check the domain's records against live DNS.

    Moves the domain to `Verified` when every record is published, or to
    `Failed` (with an alert) otherwise. Can be called again at any time,
    except while the domain is suspended.
    """
    try:
        return await domain_service.verify_domain(db, domain.id)
    except InvalidStatusTransition as e:
        _transition_conflict(e)


@router.get("/domains/{domain_id}/reputation", response_model=DomainReputation)
async def get_reputation(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> DomainReputation:
    """Latest stored reputation snapshot."""
    reputation = await domain_service.get_domain_reputation(db, domain.id)
    if reputation is None:
        raise_api_error(
            code="REPUTATION_NOT_FOUND",
            message=f"No reputation computed yet for {domain.domain}",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return reputation


@router.post("/domains/{domain_id}/reputation/refresh", response_model=DomainReputation)
async def refresh_reputation(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> DomainReputation:
    """Recompute and store the reputation snapshot."""
    return await domain_service.update_domain_reputation(db, domain.id)


@router.get("/domains/{domain_id}/alerts", response_model=DomainAlertListResponse)
async def list_alerts(
    include_resolved: bool = Query(False),
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> DomainAlertListResponse:
    alerts = await domain_service.get_domain_alerts(db, domain.id, include_resolved)
    return DomainAlertListResponse(items=alerts, total=len(alerts))


@router.post("/domains/{domain_id}/alerts/{alert_id}/resolve", response_model=DomainAlertItem)
async def resolve_alert(
    alert_id: UUID,
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
):
    """Mark one of the domain's alerts resolved."""
    try:
        return await domain_service.resolve_alert(db, alert_id, domain_id=domain.id)
    except AlertNotFound as e:
        raise_api_error(
            code="ALERT_NOT_FOUND",
            message=str(e),
            status_code=status.HTTP_404_NOT_FOUND,
        )


@router.post("/domains/{domain_id}/suspend", response_model=DomainItem)
async def suspend_domain(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> Domain:
    """Suspend a domain; suspended domains are not monitored."""
    try:
        return await domain_service.suspend_domain(db, domain.id)
    except InvalidStatusTransition as e:
        _transition_conflict(e)


@router.post("/domains/{domain_id}/reactivate", response_model=DomainItem)
async def reactivate_domain(
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> Domain:
    """Return a suspended domain to `Pending`; it must be verified again."""
    try:
        return await domain_service.reactivate_domain(db, domain.id)
    except InvalidStatusTransition as e:
        _transition_conflict(e)


@router.post("/domains/{domain_id}/sign", response_model=SignResponse)
async def sign_data(
    request: SignRequest,
    domain: Domain = Depends(get_tenant_domain),
    db: AsyncSession = Depends(get_session),
) -> SignResponse:
    """Sign data with the domain's DKIM private key."""
    signature = await domain_service.sign_with_domain_key(db, domain.id, request.data.encode())
    return SignResponse(signature=base64.b64encode(signature).decode())


@router.post("/domains/{domain_id}/monitor")
async def monitor_domain(
    domain: Domain = Depends(get_tenant_domain),
    monitor: DomainMonitor = Depends(get_domain_monitor),
) -> dict[str, bool]:
    """
    Run the monitoring checks for one domain now.

    Returns `checked: false` when the domain is not `Verified`.
    """
    checked = await monitor.check_domain(domain.id)
    return {"checked": checked}
