"""Shared FastAPI dependencies."""

from uuid import UUID

from fastapi import Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.database import get_session
from domain_trust.models.domain import Domain
from domain_trust.schemas.common import raise_api_error
from domain_trust.services import domain_service
from domain_trust.services.monitors import DeliverabilityMonitor, DomainMonitor


def get_tenant_id(x_tenant_id: UUID = Header(..., alias="X-Tenant-ID")) -> UUID:
    """Tenant identity set by the authenticating gateway."""
    return x_tenant_id


def require_tenant_access(
    tenant_id: UUID,
    caller_tenant_id: UUID = Depends(get_tenant_id),
) -> UUID:
    """Reject access to another tenant's path."""
    if tenant_id != caller_tenant_id:
        raise_api_error(
            code="TENANT_MISMATCH",
            message="X-Tenant-ID does not match the requested tenant",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return tenant_id


async def get_tenant_domain(
    domain_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_session),
) -> Domain:
    """Load a domain owned by the calling tenant, 404 otherwise."""
    domain = await domain_service.get_domain(db, domain_id)
    if domain is None or domain.tenant_id != tenant_id:
        raise_api_error(
            code="DOMAIN_NOT_FOUND",
            message=f"Domain {domain_id} not found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return domain


def get_domain_monitor(request: Request) -> DomainMonitor:
    return request.app.state.domain_monitor


def get_deliverability_monitor(request: Request) -> DeliverabilityMonitor:
    return request.app.state.deliverability_monitor
