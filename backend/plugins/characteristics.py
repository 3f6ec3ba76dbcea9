"""Built-in plugin that keeps agent attributes as characteristics.

Every attribute the engine does not interpret itself (``serial``,
``os_version``, ...) is stored as a string key/value pair on the
device's detail record.  Subclasses can recognise returning devices by a
unique characteristic through ``find_device_by_characteristic``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import Device
from plugins.base import IdentificationPlugin
from schemas import CORE_ATTRIBUTE_KEYS
from services.details import find_device_by_characteristic


def stringify(value: Any) -> str:
    """Render an attribute value the way it is stored in a characteristic."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, list, dict)) or value is None:
        return json.dumps(value)
    return str(value)


class CharacteristicPlugin(IdentificationPlugin):
    """Store pass-through attributes and name devices after their taxonomy."""

    kind: Optional[str] = "generic"
    persists_details = True

    def __init__(self, kind: Optional[str] = None) -> None:
        if kind is not None:
            self.kind = kind

    def details(self, attributes: dict[str, Any]) -> dict[str, str]:
        return {
            str(key): stringify(value)
            for key, value in attributes.items()
            if key not in CORE_ATTRIBUTE_KEYS and value is not None
        }

    def default_name(self, attributes: dict[str, Any]) -> Optional[str]:
        label = " ".join(
            str(attributes[key]) for key in ("brand", "model") if attributes.get(key)
        )
        if not label:
            label = str(attributes.get("device_type") or self.kind or "device")

        # Disambiguate with the NIC-specific half of the first MAC, else the first IP
        macs = attributes.get("macs") or []
        ips = attributes.get("ips") or []
        if macs:
            return f"{label} {macs[0].replace(':', '')[-6:]}"
        if ips:
            return f"{label} {ips[0]}"
        return label

    async def find_device_by_characteristic(
        self, db: AsyncSession, key: str, value: Any
    ) -> Optional[Device]:
        """Return the device of this kind whose characteristic *key* is *value*."""
        if value is None:
            return None
        return await find_device_by_characteristic(db, self.kind, key, stringify(value))
