"""Async DNS lookups and matching of expected authentication records."""

import asyncio
import logging
from typing import Any

import dns.asyncresolver
import dns.exception
import dns.resolver
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from domain_trust.config import settings
from domain_trust.exceptions import DNSLookupError
from domain_trust.models.enums import DNSRecordType
from domain_trust.schemas.domain import DnsRecord, RecordCheck

logger = logging.getLogger(__name__)


def _strip_dot(name: str) -> str:
    return name.rstrip(".").lower()


def match_txt(expected: str, observed: list[str]) -> str | None:
    """
    Find the observed TXT string matching an expected value.

    Matching is loose and bidirectional: an observed string matches when it
    contains the expected value or is contained in it. Blank strings never
    match.

    Returns:
        The matching observed string, or None
    """
    expected = expected.strip()
    for txt in observed:
        candidate = txt.strip()
        if not candidate:
            continue
        if expected in candidate or candidate in expected:
            return candidate
    return None


class DNSVerifier:
    """Resolve TXT/CNAME/MX records and compare them with expected records."""

    def __init__(
        self,
        resolver: Any | None = None,
        timeout: float | None = None,
        nameservers: list[str] | None = None,
    ):
        """
        Args:
            resolver: Object with an async ``resolve(name, rdtype)`` method;
                defaults to a dnspython async resolver created on first use
            timeout: Per-query lifetime in seconds
            nameservers: Explicit nameserver IPs (system config when empty)
        """
        self._resolver = resolver
        self.timeout = timeout or settings.DNS_TIMEOUT_SECONDS
        self.nameservers = (
            nameservers if nameservers is not None else settings.nameservers_list
        )

    @property
    def resolver(self) -> Any:
        if self._resolver is None:
            if self.nameservers:
                resolver = dns.asyncresolver.Resolver(configure=False)
                resolver.nameservers = self.nameservers
            else:
                resolver = dns.asyncresolver.Resolver()
            resolver.timeout = self.timeout
            resolver.lifetime = self.timeout
            self._resolver = resolver
        return self._resolver

    @retry(
        retry=retry_if_exception_type(dns.exception.Timeout),
        stop=stop_after_attempt(settings.DNS_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _resolve(self, name: str, rdtype: str) -> Any:
        return await self.resolver.resolve(name, rdtype)

    async def _query(self, name: str, rdtype: str) -> Any:
        """Run one query, translating resolver failures into DNSLookupError."""
        try:
            return await self._resolve(name, rdtype)
        except dns.resolver.NXDOMAIN:
            raise DNSLookupError(name, rdtype, "domain does not exist")
        except dns.resolver.NoAnswer:
            raise DNSLookupError(name, rdtype, f"no {rdtype} records")
        except dns.exception.Timeout:
            raise DNSLookupError(name, rdtype, "query timed out")
        except dns.exception.DNSException as e:
            raise DNSLookupError(name, rdtype, str(e) or e.__class__.__name__)
        except OSError as e:
            raise DNSLookupError(name, rdtype, f"network error: {e}")

    async def lookup_txt(self, name: str) -> list[str]:
        """Return every TXT string at name, multi-part strings joined."""
        answer = await self._query(name, "TXT")
        values = []
        for rdata in answer:
            values.append(
                "".join(part.decode("utf-8", errors="replace") for part in rdata.strings)
            )
        return values

    async def lookup_cname(self, name: str) -> str:
        """Return the canonical name that name points to."""
        answer = await self._query(name, "CNAME")
        for rdata in answer:
            return _strip_dot(str(rdata.target))
        raise DNSLookupError(name, "CNAME", "empty answer")

    async def lookup_mx(self, name: str) -> list[str]:
        """Return the exchanges of every MX record at name."""
        answer = await self._query(name, "MX")
        return [_strip_dot(str(rdata.exchange)) for rdata in answer]

    async def verify_record(self, record: DnsRecord) -> RecordCheck:
        """
        Check one expected record against live DNS.

        Never raises: lookup failures are reported in ``error``.
        """
        try:
            if record.type == DNSRecordType.TXT:
                observed = await self.lookup_txt(record.name)
                current = match_txt(record.value, observed)
                return RecordCheck(
                    record=record,
                    is_present=current is not None,
                    current_value=current,
                )

            if record.type == DNSRecordType.CNAME:
                current = await self.lookup_cname(record.name)
                return RecordCheck(
                    record=record,
                    is_present=current == _strip_dot(record.value),
                    current_value=current,
                )

            if record.type == DNSRecordType.MX:
                exchanges = await self.lookup_mx(record.name)
                return RecordCheck(
                    record=record,
                    is_present=_strip_dot(record.value) in exchanges,
                    current_value=", ".join(exchanges),
                )

            return RecordCheck(
                record=record,
                is_present=False,
                error=f"Unsupported record type: {record.type.value}",
            )

        except DNSLookupError as e:
            logger.debug(f"DNS lookup failed: {e}")
            return RecordCheck(record=record, is_present=False, error=e.reason)

    async def verify_records(self, records: list[DnsRecord]) -> list[RecordCheck]:
        """Check records concurrently, preserving input order."""
        return list(await asyncio.gather(*(self.verify_record(r) for r in records)))


# Global DNS verifier instance
dns_verifier = DNSVerifier()
