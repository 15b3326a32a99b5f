"""Tenant-scoped deliverability alert model."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from domain_trust.database import Base, JSONType, utcnow


class DeliverabilityAlert(Base):
    """A tenant-level threshold breach with the metrics that triggered it."""

    __tablename__ = "deliverability_alerts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    tenant_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metrics: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    recommendations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_deliverability_alerts_tenant_resolved", "tenant_id", "is_resolved"),
    )

    def __repr__(self) -> str:
        return f"<DeliverabilityAlert(type={self.type}, severity={self.severity})>"
