"""Aggregation over the normalized email event history."""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain_trust.models.email_event import EmailEvent
from domain_trust.models.enums import EmailEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventCounts:
    """Per-type event counts for a tenant over a window."""

    sent: int = 0
    delivered: int = 0
    bounced: int = 0
    complained: int = 0
    opened: int = 0
    clicked: int = 0
    unsubscribed: int = 0

    @property
    def has_history(self) -> bool:
        return self.sent > 0


async def count_tenant_events(
    db: AsyncSession,
    tenant_id: UUID,
    days: int = 7,
    now: datetime | None = None,
) -> EventCounts:
    """
    Count a tenant's events by type within the last ``days`` days.

    Args:
        db: Database session
        tenant_id: Tenant to aggregate
        days: Window size in days
        now: End of the window (defaults to the current time)

    Returns:
        Event counts (zero for types with no rows)
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)

    result = await db.execute(
        select(EmailEvent.event_type, func.count())
        .where(
            EmailEvent.tenant_id == tenant_id,
            EmailEvent.timestamp >= since,
            EmailEvent.timestamp <= now,
        )
        .group_by(EmailEvent.event_type)
    )
    by_type = {event_type: count for event_type, count in result.all()}

    return EventCounts(**{f.name: by_type.get(f.name, 0) for f in fields(EventCounts)})


async def get_active_tenants(db: AsyncSession, days: int = 7) -> list[UUID]:
    """Tenants with at least one event in the last ``days`` days."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(
        select(EmailEvent.tenant_id).where(EmailEvent.timestamp >= since).distinct()
    )
    return list(result.scalars().all())


async def record_event(
    db: AsyncSession,
    tenant_id: UUID,
    event_type: EmailEventType | str,
    campaign_id: UUID | None = None,
    timestamp: datetime | None = None,
) -> EmailEvent:
    """Insert one normalized event (used by ingestion adapters and fixtures)."""
    event = EmailEvent(
        id=uuid4(),
        tenant_id=tenant_id,
        campaign_id=campaign_id,
        event_type=EmailEventType(event_type).value,
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    db.add(event)
    await db.flush()
    return event
