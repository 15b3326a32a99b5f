"""String enums shared by models, schemas and services."""

from enum import Enum


class DomainStatus(str, Enum):
    PENDING = "Pending"
    VERIFYING = "Verifying"
    VERIFIED = "Verified"
    FAILED = "Failed"
    SUSPENDED = "Suspended"


class DNSRecordType(str, Enum):
    TXT = "TXT"
    CNAME = "CNAME"
    MX = "MX"
    A = "A"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DomainAlertType(str, Enum):
    VERIFICATION_FAILED = "verification_failed"
    DNS_RECORD_MISSING = "dns_record_missing"
    REPUTATION_DECLINE = "reputation_decline"
    AUTHENTICATION_FAILURE = "authentication_failure"
    DELIVERY_ISSUES = "delivery_issues"


class DeliverabilityAlertType(str, Enum):
    HIGH_BOUNCE_RATE = "high_bounce_rate"
    HIGH_COMPLAINT_RATE = "high_complaint_rate"
    LOW_DELIVERY_RATE = "low_delivery_rate"
    AUTHENTICATION_FAILURE = "authentication_failure"
    REPUTATION_DECLINE = "reputation_decline"
    SPAM_CONTENT_DETECTED = "spam_content_detected"
    BLACKLIST_DETECTION = "blacklist_detection"


class EmailEventType(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    BOUNCED = "bounced"
    OPENED = "opened"
    CLICKED = "clicked"
    COMPLAINED = "complained"
    UNSUBSCRIBED = "unsubscribed"
