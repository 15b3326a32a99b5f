"""Tests for DNS record generation."""

import pytest

from domain_trust.exceptions import InvalidRecordFormat
from domain_trust.models.enums import DNSRecordType
from domain_trust.utils.dns_records import (
    classify_record,
    generate_verification_records,
    generate_verification_token,
)

PUBLIC_KEY = "MIGfMA0GCSqGSIb3DQEBAQUAA4GNADCBiQKBgQC1"


class TestGenerateVerificationRecords:
    @pytest.mark.parametrize(
        "domain_name",
        ["example.com", "mail.example.co.uk", "a-b.example.io", "x1.y2.example.org"],
    )
    def test_four_complete_records(self, domain_name):
        records = generate_verification_records(domain_name, PUBLIC_KEY)

        assert len(records) == 4
        for record in records:
            assert record.type == DNSRecordType.TXT
            assert record.name
            assert record.value
            assert record.ttl == 300

    def test_record_order_and_content(self):
        spf, dkim, dmarc, verification = generate_verification_records(
            "example.com", PUBLIC_KEY, token="abc123"
        )

        assert spf.name == "example.com"
        assert spf.value == "v=spf1 include:spf.test-platform.com ~all"

        assert dkim.name == "mail._domainkey.example.com"
        assert dkim.value == f"v=DKIM1; k=rsa; p={PUBLIC_KEY}"

        assert dmarc.name == "_dmarc.example.com"
        assert dmarc.value == "v=DMARC1; p=quarantine; rua=mailto:dmarc@test-platform.com"

        assert verification.name == "_verification.example.com"
        assert verification.value == "test-platform-verification=abc123"

    def test_deterministic_with_fixed_token(self):
        first = generate_verification_records("example.com", PUBLIC_KEY, token="t")
        second = generate_verification_records("example.com", PUBLIC_KEY, token="t")
        assert first == second

    def test_random_token_differs(self):
        first = generate_verification_records("example.com", PUBLIC_KEY)
        second = generate_verification_records("example.com", PUBLIC_KEY)
        assert first[3].value != second[3].value
        assert first[:3] == second[:3]

    def test_normalizes_domain(self):
        records = generate_verification_records("  Example.COM. ", PUBLIC_KEY)
        assert records[0].name == "example.com"

    def test_strips_whitespace_from_key(self):
        records = generate_verification_records("example.com", "MIGf\nMA0G CSq")
        assert records[1].value.endswith("p=MIGfMA0GCSq")

    def test_overrides(self):
        records = generate_verification_records(
            "example.com",
            PUBLIC_KEY,
            spf_include="other.net",
            selector="s1",
            ttl=600,
        )
        assert records[0].value == "v=spf1 include:other.net ~all"
        assert records[1].name == "s1._domainkey.example.com"
        assert all(r.ttl == 600 for r in records)

    @pytest.mark.parametrize("domain_name", ["", "localhost", "bad_domain.com", "-x.com"])
    def test_invalid_domain(self, domain_name):
        with pytest.raises(InvalidRecordFormat):
            generate_verification_records(domain_name, PUBLIC_KEY)

    def test_empty_key(self):
        with pytest.raises(InvalidRecordFormat):
            generate_verification_records("example.com", "  ")


class TestVerificationToken:
    def test_128_bit_hex(self):
        token = generate_verification_token()
        assert len(token) == 32
        int(token, 16)


class TestClassifyRecord:
    def test_classifies_generated_records(self):
        records = generate_verification_records("example.com", PUBLIC_KEY)
        assert [classify_record(r) for r in records] == ["spf", "dkim", "dmarc", "verification"]
