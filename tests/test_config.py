"""Tests for settings validation."""

import pytest

from domain_trust.config import Settings
from domain_trust.exceptions import ConfigurationError


class TestValidateRequired:
    def test_valid(self):
        Settings(SPF_INCLUDE="spf.example.net").validate_required()

    @pytest.mark.parametrize("field", ["PLATFORM_ID", "SPF_INCLUDE", "DKIM_SELECTOR"])
    def test_blank_field(self, field):
        with pytest.raises(ConfigurationError, match=field):
            Settings(**{field: "  "}).validate_required()

    def test_dmarc_address_must_be_email(self):
        with pytest.raises(ConfigurationError, match="DMARC_REPORT_ADDRESS"):
            Settings(DMARC_REPORT_ADDRESS="reports").validate_required()


class TestNameservers:
    def test_parsed_list(self):
        settings = Settings(DNS_NAMESERVERS=" 1.1.1.1, ,8.8.8.8")
        assert settings.nameservers_list == ["1.1.1.1", "8.8.8.8"]

    def test_empty_uses_system_resolver(self):
        assert Settings(DNS_NAMESERVERS="").nameservers_list == []
