"""
Tests for the registration request schema.

Tests cover both valid and invalid inputs for:
- MAC address normalization and deduplication
- IP address validation
- Taxonomy label coercion (brand, model, device_type)
- Name handling
- Pass-through (extra) attributes
- Response schema defaults
"""

import pytest
from pydantic import ValidationError

from schemas import (
    CORE_ATTRIBUTE_KEYS,
    DeviceResponse,
    RegistrationRequest,
    normalize_mac,
)


# ============================================================================
# MAC addresses
# ============================================================================

class TestNormalizeMac:
    """Test MAC address normalization."""

    def test_colon_form_lowercased(self):
        assert normalize_mac("AA:BB:CC:DD:EE:01") == "aa:bb:cc:dd:ee:01"

    def test_dash_form(self):
        assert normalize_mac("aa-bb-cc-dd-ee-01") == "aa:bb:cc:dd:ee:01"

    def test_cisco_dotted_form(self):
        assert normalize_mac("aabb.ccdd.ee01") == "aa:bb:cc:dd:ee:01"

    def test_surrounding_whitespace(self):
        assert normalize_mac("  aa:bb:cc:dd:ee:01 ") == "aa:bb:cc:dd:ee:01"

    @pytest.mark.parametrize("value", ["", "aa:bb:cc", "zz:bb:cc:dd:ee:01", "aabbccddee01"])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            normalize_mac(value)


class TestRequestMacs:
    """Test the macs field of RegistrationRequest."""

    def test_macs_normalized(self):
        request = RegistrationRequest(macs=["AA-BB-CC-DD-EE-01", "aabb.ccdd.ee02"])
        assert request.macs == ["aa:bb:cc:dd:ee:01", "aa:bb:cc:dd:ee:02"]

    def test_duplicates_removed_preserving_order(self):
        """The same NIC reported twice (in different notations) is kept once."""
        request = RegistrationRequest(
            macs=["aa:bb:cc:dd:ee:02", "AA:BB:CC:DD:EE:01", "aa-bb-cc-dd-ee-02"]
        )
        assert request.macs == ["aa:bb:cc:dd:ee:02", "aa:bb:cc:dd:ee:01"]

    def test_single_string_accepted(self):
        request = RegistrationRequest(macs="aa:bb:cc:dd:ee:01")
        assert request.macs == ["aa:bb:cc:dd:ee:01"]

    def test_none_means_no_macs(self):
        assert RegistrationRequest(macs=None).macs == []

    def test_invalid_mac_reports_index(self):
        with pytest.raises(ValidationError) as exc_info:
            RegistrationRequest(macs=["aa:bb:cc:dd:ee:01", "not-a-mac"])
        assert "index 1" in str(exc_info.value)


# ============================================================================
# IP addresses
# ============================================================================

class TestRequestIps:
    """Test the ips field of RegistrationRequest."""

    def test_valid_ipv4_and_ipv6(self):
        request = RegistrationRequest(ips=["192.168.1.10", "2001:DB8::1"])
        assert request.ips == ["192.168.1.10", "2001:db8::1"]

    def test_duplicates_removed(self):
        request = RegistrationRequest(ips=["10.0.0.1", "10.0.0.1"])
        assert request.ips == ["10.0.0.1"]

    def test_invalid_ip_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RegistrationRequest(ips=["999.1.1.1"])
        assert "Invalid IP address" in str(exc_info.value)


# ============================================================================
# Taxonomy labels and names
# ============================================================================

class TestTaxonomyLabels:
    """Test brand/model/device_type coercion."""

    def test_numbers_become_strings(self):
        request = RegistrationRequest(brand=3, model=2, device_type="generic")
        assert request.brand == "3"
        assert request.model == "2"

    def test_labels_are_stripped(self):
        request = RegistrationRequest(brand="  Acme ", model="X1 ")
        assert request.brand == "Acme"
        assert request.model == "X1"

    def test_blank_label_is_unset(self):
        request = RegistrationRequest(device_type="   ", brand="")
        assert request.device_type is None
        assert request.brand is None

    def test_boolean_label_rejected(self):
        with pytest.raises(ValidationError):
            RegistrationRequest(model=True)

    def test_name_kept_verbatim(self):
        request = RegistrationRequest(name="  Core switch ")
        assert request.name == "  Core switch "

    def test_blank_name_is_unset(self):
        assert RegistrationRequest(name="   ").name is None


# ============================================================================
# Pass-through attributes
# ============================================================================

class TestPassThroughAttributes:
    """Unknown keys are kept for the identification plugin."""

    def test_extra_keys_preserved(self):
        request = RegistrationRequest(
            device_type="generic", extra_data_one="Data one", extra_data_two=2
        )
        attrs = request.attributes()
        assert attrs["extra_data_one"] == "Data one"
        assert attrs["extra_data_two"] == 2

    def test_attributes_include_core_keys(self):
        attrs = RegistrationRequest(macs=["aa:bb:cc:dd:ee:01"]).attributes()
        assert CORE_ATTRIBUTE_KEYS <= set(attrs)
        assert attrs["macs"] == ["aa:bb:cc:dd:ee:01"]

    def test_group_ids_deduplicated(self):
        assert RegistrationRequest(group_ids=[2, 1, 2]).group_ids == [2, 1]

    def test_non_integer_id_rejected(self):
        with pytest.raises(ValidationError):
            RegistrationRequest(id="not-a-number")


# ============================================================================
# Response schemas
# ============================================================================

class TestDeviceResponse:
    """Response schemas are lenient and carry defaults."""

    def test_defaults(self):
        response = DeviceResponse(id=1)
        assert response.status == "unknown"
        assert response.macs == []
        assert response.details == {}
        assert response.device_type is None
