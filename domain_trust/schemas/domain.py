"""Domain-related Pydantic schemas."""

import re
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain_trust.models.enums import DNSRecordType

DOMAIN_REGEX = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$"
)

FactorStatus = Literal["good", "warning", "critical"]


def normalize_domain_name(value: str) -> str:
    """Lowercase, strip and drop a trailing dot."""
    return value.strip().lower().rstrip(".")


class CreateDomainRequest(BaseModel):
    """Request schema for registering a sending domain."""

    domain: str = Field(..., description="Domain name to register (e.g., example.com)")

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        """Validate domain format."""
        v = normalize_domain_name(v)
        if "@" in v:
            raise ValueError("Provide a domain, not an email address")
        if not DOMAIN_REGEX.match(v):
            raise ValueError("Invalid domain format")
        return v


class DnsRecord(BaseModel):
    """A single DNS record required for domain authentication."""

    model_config = ConfigDict(frozen=True)

    type: DNSRecordType = Field(..., description="DNS record type")
    name: str = Field(..., description="DNS record name/host")
    value: str = Field(..., description="DNS record value")
    ttl: int = Field(300, description="Time to live in seconds")
    priority: int | None = Field(None, description="Priority (MX only)")


class DomainItem(BaseModel):
    """Domain list item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    domain: str
    status: str
    dkim_public_key: str
    verification_records: list[DnsRecord]
    verified_at: datetime | None
    created_at: datetime
    updated_at: datetime


class DomainListResponse(BaseModel):
    """Response for domain list endpoint."""

    items: list[DomainItem]
    total: int


class RecordCheck(BaseModel):
    """Observed state of one expected record."""

    record: DnsRecord
    is_present: bool
    current_value: str | None = None
    error: str | None = None


class DomainVerificationResult(BaseModel):
    """Outcome of checking every expected record of a domain."""

    domain: str
    is_verified: bool
    records: list[RecordCheck]
    errors: list[str]


class SetupStep(BaseModel):
    """One human-readable DNS setup step."""

    title: str
    description: str
    record: DnsRecord
    is_completed: bool = False


class SetupWizard(BaseModel):
    """Step-by-step instructions for publishing the domain's records."""

    domain: str
    spf_record: DnsRecord
    dkim_record: DnsRecord
    dmarc_record: DnsRecord
    verification_record: DnsRecord
    steps: list[SetupStep]
    estimated_time: str


class ReputationFactor(BaseModel):
    """Weighted input to a domain reputation score."""

    name: str
    score: float
    weight: float
    description: str
    status: FactorStatus


class DomainReputation(BaseModel):
    """Reputation snapshot of a domain."""

    domain: str
    score: int = Field(..., ge=0, le=100)
    factors: list[ReputationFactor]
    last_updated: datetime
    recommendations: list[str]


class DomainAlertItem(BaseModel):
    """Domain alert list item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    domain_id: UUID
    type: str
    severity: str
    message: str
    details: dict[str, Any]
    is_resolved: bool
    created_at: datetime
    resolved_at: datetime | None


class DomainAlertListResponse(BaseModel):
    """Response for domain alert list endpoint."""

    items: list[DomainAlertItem]
    total: int


class SignRequest(BaseModel):
    """Data to sign with the domain's DKIM key."""

    data: str = Field(..., min_length=1, description="Canonicalized header or body to sign")


class SignResponse(BaseModel):
    signature: str = Field(..., description="Base64 RSA-SHA256 signature")
