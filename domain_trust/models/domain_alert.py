"""Domain alert and monitoring log models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from domain_trust.database import Base, JSONType, utcnow


class DomainAlert(Base):
    """A detected problem with a domain (verification, DNS, reputation, delivery)."""

    __tablename__ = "domain_alerts"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    domain_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("domains.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Resolution
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    # Relationships
    domain: Mapped["Domain"] = relationship("Domain", back_populates="alerts")

    __table_args__ = (
        Index("ix_domain_alerts_domain_resolved", "domain_id", "is_resolved"),
    )

    def __repr__(self) -> str:
        return f"<DomainAlert(type={self.type}, severity={self.severity}, resolved={self.is_resolved})>"


class DomainMonitoringLog(Base):
    """One row per monitoring check run against a domain."""

    __tablename__ = "domain_monitoring_logs"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    domain_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("domains.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    check_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    results: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
