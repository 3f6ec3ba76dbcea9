"""Base class for device identification plugins.

A plugin is the type-specific strategy the registration engine consults
for one device-type tag.  Every capability is optional; the engine checks
for it with ``plugin_supports`` before calling it:

``async identify_existing(db, attributes) -> Device | None``
    Recognise an already-registered device from type-specific attributes
    (serial number, licence key, ...).  Takes precedence over MAC matching.

``details(attributes) -> dict[str, str]``
    Extract the type-specific data stored in the plugin's detail record.

``default_name(attributes) -> str | None``
    Suggest a name when the agent did not send one.
"""

from __future__ import annotations

from typing import Any, Optional


IDENTIFY_EXISTING = "identify_existing"
DETAILS = "details"
DEFAULT_NAME = "default_name"


class IdentificationPlugin:
    """Base class that all identification plugins extend.

    Class attributes:
        kind:             Stored in ``Device.plugin_type`` and on the detail
                          record.  ``None`` for the fallback strategy.
        persists_details: Whether registering a device writes a detail
                          record for it.
    """

    kind: Optional[str] = None
    persists_details: bool = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind!r}>"


class GenericPlugin(IdentificationPlugin):
    """Fallback used for absent, unknown, or unregistered device types.

    It never identifies a device, extracts no details and writes no
    detail record.
    """

    def details(self, attributes: dict[str, Any]) -> dict[str, str]:
        return {}


def plugin_supports(plugin: Any, capability: str) -> bool:
    """Return ``True`` if *plugin* implements *capability*."""
    return callable(getattr(plugin, capability, None))
