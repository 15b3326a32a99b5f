"""Normalized send-lifecycle event history."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from domain_trust.database import Base, utcnow


class EmailEvent(Base):
    """
    One send-lifecycle event (sent, delivered, bounced, opened, ...).

    Rows are written by the external ingestion pipeline; this service only
    aggregates them.
    """

    __tablename__ = "email_events"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    tenant_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    campaign_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_email_events_tenant_timestamp", "tenant_id", "timestamp"),
        Index("ix_email_events_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<EmailEvent(tenant={self.tenant_id}, type={self.event_type})>"
