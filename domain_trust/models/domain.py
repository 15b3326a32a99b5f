"""Domain model for tenant-owned sending domains."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from domain_trust.database import Base, JSONType, utcnow
from domain_trust.models.enums import DomainStatus


class Domain(Base):
    """Represents a sending domain registered by a tenant."""

    __tablename__ = "domains"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    # Owning tenant (tenants live in an external service)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        index=True,
        nullable=False,
    )

    # Domain name, unique per tenant
    domain: Mapped[str] = mapped_column(String(255), nullable=False)

    # Lifecycle status
    status: Mapped[str] = mapped_column(
        String(50),
        index=True,
        nullable=False,
        default=DomainStatus.PENDING.value,
    )

    # DKIM key material (public key is published, private key never leaves the service)
    dkim_public_key: Mapped[str] = mapped_column(Text, nullable=False)
    dkim_private_key: Mapped[str] = mapped_column(Text, nullable=False)

    # The four expected authentication records, generated once at creation
    verification_records: Mapped[list] = mapped_column(JSONType, nullable=False)

    # Timestamps
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    alerts: Mapped[list["DomainAlert"]] = relationship(
        "DomainAlert",
        back_populates="domain",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "domain", name="uq_domains_tenant_domain"),
        Index("ix_domains_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Domain(domain={self.domain}, status={self.status})>"
