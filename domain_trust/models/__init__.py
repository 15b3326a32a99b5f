"""SQLAlchemy models."""

from domain_trust.models.deliverability_alert import DeliverabilityAlert
from domain_trust.models.domain import Domain
from domain_trust.models.domain_alert import DomainAlert, DomainMonitoringLog
from domain_trust.models.email_event import EmailEvent
from domain_trust.models.reputation import (
    DeliverabilityMetricsHistory,
    DomainReputationRecord,
    TenantDeliverabilityScore,
)

__all__ = [
    "Domain",
    "DomainAlert",
    "DomainMonitoringLog",
    "DomainReputationRecord",
    "DeliverabilityAlert",
    "DeliverabilityMetricsHistory",
    "TenantDeliverabilityScore",
    "EmailEvent",
]
