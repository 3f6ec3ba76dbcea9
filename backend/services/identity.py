"""
Identity resolution: is a reported device one we already know?

Resolution order (first match wins):
  1. Explicit device id sent by an agent that already registered
  2. The device type's plugin ``identify_existing``
  3. Any reported MAC already attached to a device (in reported order)

A type-specific identifier (serial, licence key) outranks MACs because a
device keeps it across NIC replacements.  MACs are the universal fallback.
Every step is read-only and "not found" is a plain ``None``.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Device, Mac
from plugins.base import IDENTIFY_EXISTING, plugin_supports
from plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Find the existing device described by a set of registration attributes."""

    def __init__(self, registry: PluginRegistry):
        self._registry = registry

    async def resolve(
        self, db: AsyncSession, attributes: Dict[str, Any]
    ) -> Optional[Device]:
        device = await self.by_id(db, attributes.get("id"))
        if device is not None:
            logger.debug(f"Identified device {device.id} by explicit id")
            return device

        device = await self.by_plugin(db, attributes)
        if device is not None:
            logger.debug(f"Identified device {device.id} via {attributes.get('device_type')!r} plugin")
            return device

        device = await self.by_macs(db, attributes.get("macs") or [])
        if device is not None:
            logger.debug(f"Identified device {device.id} by MAC")
        return device

    async def by_id(self, db: AsyncSession, device_id: Any) -> Optional[Device]:
        if device_id is None:
            return None
        return await db.get(Device, device_id)

    async def by_plugin(
        self, db: AsyncSession, attributes: Dict[str, Any]
    ) -> Optional[Device]:
        """
        Ask the device type's plugin to recognise the device.

        A plugin that raises is logged and treated as "no match" so the
        registration falls back to MAC matching instead of failing.
        """
        device_type = attributes.get("device_type")
        if not device_type:
            return None

        plugin = self._registry.lookup(device_type)
        if not plugin_supports(plugin, IDENTIFY_EXISTING):
            return None

        try:
            return await plugin.identify_existing(db, attributes)
        except Exception as e:
            logger.warning(
                f"Plugin {plugin!r} failed to identify device, falling back to MAC: {e}",
                exc_info=True,
            )
            return None

    async def by_macs(
        self, db: AsyncSession, macs: Iterable[str]
    ) -> Optional[Device]:
        for address in macs:
            result = await db.execute(select(Mac).where(Mac.address == address))
            mac = result.scalars().first()
            if mac is not None and mac.device_id is not None:
                device = await db.get(Device, mac.device_id)
                if device is not None:
                    return device
        return None
