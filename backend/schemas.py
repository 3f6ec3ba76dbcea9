"""
Pydantic v2 schemas with strict input validation and lenient output serialization.

Architecture:
  - RegistrationRequest: the open attribute mapping an agent reports.  The
    core keys are typed and validated; any other key is kept verbatim
    (``extra="allow"``) and handed to the identification plugin.
  - *Response classes: plain serialization, no validators, so anything
    already stored renders without crashing.

Validation runs before the registration engine touches the database, so a
rejected request never leaves partial rows behind.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from ipaddress import ip_address as parse_ip
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Reusable validators ──────────────────────────────────────────────

MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:\-]){5}[0-9A-Fa-f]{2}$")
MAC_DOTTED_RE = re.compile(r"^[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}$")

# Attribute keys the engine itself interprets.  Everything else is
# passed through to plugins.
CORE_ATTRIBUTE_KEYS = frozenset({
    "id", "name", "device_type", "brand", "model", "macs", "ips", "group_ids",
})


def normalize_mac(value: str) -> str:
    """
    Normalize a MAC address to lowercase colon-separated form.

    Accepts XX:XX:XX:XX:XX:XX, XX-XX-XX-XX-XX-XX and Cisco-style
    xxxx.xxxx.xxxx.

    Raises:
        ValueError: if the value is not a MAC address
    """
    value = value.strip()
    if not (MAC_RE.match(value) or MAC_DOTTED_RE.match(value)):
        raise ValueError(
            f"Invalid MAC address '{value}'. "
            "Expected format XX:XX:XX:XX:XX:XX or XX-XX-XX-XX-XX-XX "
            "(6 pairs of hex digits)"
        )
    mac_hex = re.sub(r"[:\-.]", "", value).lower()
    return ":".join(mac_hex[i:i + 2] for i in range(0, 12, 2))


def _validate_ip(value: str, field_name: str = "IP address") -> str:
    """Validate an IPv4 or IPv6 address string and return its compressed form."""
    try:
        addr = parse_ip(value.strip())
    except ValueError:
        raise ValueError(
            f"Invalid {field_name} '{value}'. "
            "Expected IPv4 (e.g. 192.168.1.1) or IPv6 (e.g. 2001:db8::1)"
        )
    return str(addr)


def _dedupe(values: list) -> list:
    seen = set()
    result = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


# ═══════════════════════════════════════════════════════════════════════
# REGISTRATION SCHEMAS
# ═══════════════════════════════════════════════════════════════════════

class RegistrationRequest(BaseModel):
    """
    Attributes reported by an agent for one device.

    Core keys are validated here.  Unknown keys are kept as extras and
    reach the identification plugin untouched.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    name: Optional[str] = Field(None, max_length=255)
    device_type: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=255)
    model: Optional[str] = Field(None, max_length=255)
    macs: List[str] = Field(default_factory=list)
    ips: List[str] = Field(default_factory=list)
    group_ids: List[int] = Field(default_factory=list)

    @field_validator("device_type", "brand", "model", mode="before")
    @classmethod
    def coerce_label(cls, v: Any) -> Optional[str]:
        # Agents send symbols and numbers for these (e.g. model: 2)
        if v is None:
            return v
        if isinstance(v, bool):
            raise ValueError(f"Expected a string, got boolean {v}")
        if isinstance(v, (int, float)):
            v = str(v)
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("name", mode="before")
    @classmethod
    def blank_name_is_unset(cls, v: Any) -> Any:
        # An explicit name is used verbatim; only a blank one counts as absent
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("macs", "ips", mode="before")
    @classmethod
    def coerce_address_list(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("macs")
    @classmethod
    def validate_mac_list(cls, v: List[str]) -> List[str]:
        normalized = []
        for i, mac in enumerate(v):
            try:
                normalized.append(normalize_mac(mac))
            except ValueError:
                raise ValueError(
                    f"Invalid MAC address at index {i}: '{mac}'. "
                    "Expected format XX:XX:XX:XX:XX:XX"
                )
        return _dedupe(normalized)

    @field_validator("ips")
    @classmethod
    def validate_ip_list(cls, v: List[str]) -> List[str]:
        normalized = []
        for i, ip in enumerate(v):
            try:
                normalized.append(_validate_ip(ip))
            except ValueError:
                raise ValueError(
                    f"Invalid IP address at index {i}: '{ip}'. "
                    "Expected valid IPv4 or IPv6 address"
                )
        return _dedupe(normalized)

    @field_validator("group_ids")
    @classmethod
    def dedupe_group_ids(cls, v: List[int]) -> List[int]:
        return _dedupe(v)

    def attributes(self) -> Dict[str, Any]:
        """All reported attributes, core and pass-through, as a plain dict."""
        return self.model_dump()


# ═══════════════════════════════════════════════════════════════════════
# RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════════════════

class DeviceResponse(BaseModel):
    """Schema for device responses. No validators, just serialization."""

    id: int
    name: Optional[str] = None
    status: str = "unknown"
    brand: Optional[str] = None
    model: Optional[str] = None
    device_type: Optional[str] = None
    plugin_type: Optional[str] = None
    macs: List[str] = Field(default_factory=list)
    ips: List[str] = Field(default_factory=list)
    groups: List[int] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class RegistrationResponse(BaseModel):
    """Outcome of a registration: ``matched`` or ``created``."""

    outcome: str
    device: DeviceResponse


class RegistrationErrorResponse(BaseModel):
    """Body returned for a rejected registration."""

    detail: str
    reason: str
    errors: List[Dict[str, Any]] = Field(default_factory=list)
