"""Reputation snapshot models (per domain and per tenant)."""

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from domain_trust.database import Base, JSONType, utcnow


class DomainReputationRecord(Base):
    """Latest reputation snapshot for a domain (one row per domain, upserted)."""

    __tablename__ = "domain_reputation"

    domain_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("domains.id", ondelete="CASCADE"),
        primary_key=True,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    factors: Mapped[list] = mapped_column(JSONType, nullable=False)
    recommendations: Mapped[list] = mapped_column(JSONType, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


class TenantDeliverabilityScore(Base):
    """Current deliverability metrics for a tenant (one row per tenant, upserted)."""

    __tablename__ = "tenant_deliverability_scores"

    tenant_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    delivery_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    bounce_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    complaint_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    reputation_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    authentication_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class DeliverabilityMetricsHistory(Base):
    """Daily metrics snapshot per tenant, used to derive reputation trends."""

    __tablename__ = "deliverability_metrics_history"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    tenant_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), index=True, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)

    delivery_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    bounce_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    complaint_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    open_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    click_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    spam_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    unsubscribe_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    reputation_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    authentication_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "date", name="uq_metrics_history_tenant_date"),
    )
