"""Exception hierarchy for domain trust and deliverability operations."""


class DomainTrustError(Exception):
    """Base exception for domain trust operations."""

    pass


class DomainNotFound(DomainTrustError):
    """Raised when a domain id does not exist."""

    def __init__(self, domain_id):
        self.domain_id = domain_id
        super().__init__(f"Domain {domain_id} not found")


class DuplicateDomain(DomainTrustError):
    """Raised when a tenant registers the same domain twice."""

    def __init__(self, tenant_id, domain_name: str):
        self.tenant_id = tenant_id
        self.domain_name = domain_name
        super().__init__(f"Domain {domain_name} already exists for tenant {tenant_id}")


class AlertNotFound(DomainTrustError):
    """Raised when an alert id does not exist."""

    def __init__(self, alert_id):
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")


class DNSLookupError(DomainTrustError):
    """A single DNS query failed (NXDOMAIN, timeout, no answer...)."""

    def __init__(self, name: str, record_type: str, reason: str):
        self.name = name
        self.record_type = record_type
        self.reason = reason
        super().__init__(f"{record_type} lookup for {name} failed: {reason}")


class InvalidRecordFormat(DomainTrustError):
    """Raised when a domain name or record value cannot be published."""

    pass


class InvalidStatusTransition(DomainTrustError):
    """Raised when a domain status change is not allowed."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move domain from {current} to {requested}")


class StorageError(DomainTrustError):
    """Database failure. Fatal for the operation that hit it."""

    pass


class ConfigurationError(DomainTrustError):
    """Required configuration is missing or malformed."""

    pass
