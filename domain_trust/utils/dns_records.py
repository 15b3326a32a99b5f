"""Generation of the DNS records a sending domain must publish."""

import secrets

from domain_trust.config import settings
from domain_trust.exceptions import InvalidRecordFormat
from domain_trust.models.enums import DNSRecordType
from domain_trust.schemas.domain import DOMAIN_REGEX, DnsRecord, normalize_domain_name

SPF_PREFIX = "v=spf1"
DKIM_PREFIX = "v=DKIM1"
DMARC_PREFIX = "v=DMARC1"
VERIFICATION_SUFFIX = "-verification="


def generate_verification_token() -> str:
    """128-bit random token for the ownership record."""
    return secrets.token_hex(16)


def generate_verification_records(
    domain_name: str,
    dkim_public_key: str,
    *,
    token: str | None = None,
    spf_include: str | None = None,
    dmarc_report_address: str | None = None,
    platform_id: str | None = None,
    selector: str | None = None,
    ttl: int | None = None,
) -> list[DnsRecord]:
    """
    Build the four authentication records for a domain.

    Records are returned in setup order: SPF, DKIM, DMARC, ownership
    verification. Only the verification token is random; pass ``token``
    to make the output fully deterministic.

    Args:
        domain_name: Domain the records are published under
        dkim_public_key: Base64 public key for the DKIM ``p=`` tag

    Returns:
        Exactly four DNS records

    Raises:
        InvalidRecordFormat: If the domain or key cannot be published
    """
    domain_name = normalize_domain_name(domain_name)
    if not DOMAIN_REGEX.match(domain_name):
        raise InvalidRecordFormat(f"Invalid domain name: {domain_name!r}")

    dkim_public_key = "".join(dkim_public_key.split())
    if not dkim_public_key:
        raise InvalidRecordFormat("DKIM public key is empty")

    spf_include = spf_include or settings.SPF_INCLUDE
    dmarc_report_address = dmarc_report_address or settings.DMARC_REPORT_ADDRESS
    platform_id = platform_id or settings.PLATFORM_ID
    selector = selector or settings.DKIM_SELECTOR
    ttl = ttl or settings.DNS_RECORD_TTL
    token = token or generate_verification_token()

    return [
        DnsRecord(
            type=DNSRecordType.TXT,
            name=domain_name,
            value=f"{SPF_PREFIX} include:{spf_include} ~all",
            ttl=ttl,
        ),
        DnsRecord(
            type=DNSRecordType.TXT,
            name=f"{selector}._domainkey.{domain_name}",
            value=f"{DKIM_PREFIX}; k=rsa; p={dkim_public_key}",
            ttl=ttl,
        ),
        DnsRecord(
            type=DNSRecordType.TXT,
            name=f"_dmarc.{domain_name}",
            value=f"{DMARC_PREFIX}; p=quarantine; rua=mailto:{dmarc_report_address}",
            ttl=ttl,
        ),
        DnsRecord(
            type=DNSRecordType.TXT,
            name=f"_verification.{domain_name}",
            value=f"{platform_id}{VERIFICATION_SUFFIX}{token}",
            ttl=ttl,
        ),
    ]


def classify_record(record: DnsRecord) -> str | None:
    """Return 'spf', 'dkim', 'dmarc' or 'verification' for a generated record."""
    if record.value.startswith(SPF_PREFIX):
        return "spf"
    if record.value.startswith(DKIM_PREFIX):
        return "dkim"
    if record.value.startswith(DMARC_PREFIX):
        return "dmarc"
    if VERIFICATION_SUFFIX in record.value:
        return "verification"
    return None
