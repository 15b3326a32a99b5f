"""Deliverability and content-analysis Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain_trust.models.enums import EmailEventType

Severity = Literal["low", "medium", "high", "critical"]
FactorStatus = Literal["good", "warning", "critical"]
Trend = Literal["improving", "stable", "declining"]


class DeliverabilityMetrics(BaseModel):
    """Rate metrics (percent) plus reputation/authentication scores (0-100)."""

    delivery_rate: float = 0
    bounce_rate: float = 0
    complaint_rate: float = 0
    open_rate: float = 0
    click_rate: float = 0
    spam_rate: float = 0
    unsubscribe_rate: float = 0
    reputation_score: int = 100
    authentication_score: int = 50


class AuthenticationCheck(BaseModel):
    """Result of one SPF/DKIM/DMARC check."""

    is_valid: bool
    score: int
    details: str
    recommendations: list[str] = Field(default_factory=list)


class AuthenticationResult(BaseModel):
    """Combined SPF/DKIM/DMARC validation of a domain."""

    domain: str
    spf: AuthenticationCheck
    dkim: AuthenticationCheck
    dmarc: AuthenticationCheck
    overall_score: int
    is_valid: bool


class ReputationMetricFactor(BaseModel):
    """A signed contribution to a tenant's sender reputation."""

    name: str
    impact: float
    status: FactorStatus
    description: str


class ReputationMetrics(BaseModel):
    """Composite sender reputation for a tenant."""

    sender_score: int
    domain_score: int
    ip_score: int
    overall_score: int
    factors: list[ReputationMetricFactor]
    trend: Trend


class OptimizationResult(BaseModel):
    """Current metrics with ranked recommendations."""

    current_metrics: DeliverabilityMetrics
    recommendations: list[str]
    optimization_actions: list[str]
    estimated_improvement: int = Field(..., ge=0, le=25)


class EmailContent(BaseModel):
    """Message parts submitted for spam analysis."""

    subject: str = ""
    html_body: str = ""
    text_body: str | None = None
    from_email: str
    from_name: str | None = None

    @field_validator("from_email")
    @classmethod
    def validate_from_email(cls, v: str) -> str:
        """Require a sender address with a domain."""
        v = v.strip()
        if "@" not in v:
            raise ValueError("Invalid sender email address")
        return v


class SpamFactor(BaseModel):
    """One triggered spam heuristic."""

    name: str
    score: float
    weight: float
    description: str
    severity: Severity


class SpamScoreResult(BaseModel):
    """Weighted spam-risk assessment of a message."""

    score: float = Field(..., ge=0, le=100)
    factors: list[SpamFactor]
    recommendations: list[str]
    is_likely_spam: bool


class EmailEventCreate(BaseModel):
    """A send-lifecycle event reported by the sending pipeline."""

    event_type: EmailEventType
    campaign_id: UUID | None = None
    timestamp: datetime | None = None


class EmailEventItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    campaign_id: UUID | None
    event_type: str
    timestamp: datetime


class DeliverabilityAlertItem(BaseModel):
    """Deliverability alert list item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    type: str
    severity: str
    message: str
    metrics: dict[str, Any]
    recommendations: list[str]
    is_resolved: bool
    created_at: datetime
    resolved_at: datetime | None


class DeliverabilityAlertListResponse(BaseModel):
    """Response for deliverability alert list endpoint."""

    items: list[DeliverabilityAlertItem]
    total: int


class AlertSummary(BaseModel):
    total: int
    critical: int
    high: int
    unresolved: int


class DashboardSummary(BaseModel):
    """Everything the deliverability dashboard shows for a tenant."""

    tenant_id: UUID
    period_days: int
    metrics: DeliverabilityMetrics
    alerts: AlertSummary
    reputation: ReputationMetrics
    estimated_improvement: int
    top_recommendations: list[str]
    generated_at: datetime
