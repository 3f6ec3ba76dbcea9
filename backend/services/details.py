"""
Persistence of plugin-owned detail records.

Devices reference their detail record polymorphically through
``(plugin_type, plugin_id)``.  At the domain level that pair is a
``DetailRef`` or ``None``; this module is the only place that turns a
reference into rows.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from models import Device, DetailRecord, Characteristic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetailRef:
    """Reference to a plugin detail record of a given kind."""

    kind: str
    id: int

    @classmethod
    def from_device(cls, device: Device) -> Optional["DetailRef"]:
        if device.plugin_type and device.plugin_id is not None:
            return cls(kind=device.plugin_type, id=device.plugin_id)
        return None


async def save_details(
    db: AsyncSession,
    kind: str,
    details: Mapping[str, str],
) -> DetailRef:
    """Write a detail record of *kind* holding *details* and return its reference."""
    record = DetailRecord(kind=kind)
    db.add(record)
    await db.flush()

    for key, value in details.items():
        db.add(
            Characteristic(
                record_id=record.id,
                key=str(key),
                value=None if value is None else str(value),
            )
        )
    await db.flush()

    logger.debug(f"Saved {kind} detail record {record.id} with {len(details)} characteristics")
    return DetailRef(kind=kind, id=record.id)


async def load_details(db: AsyncSession, ref: Optional[DetailRef]) -> Dict[str, str]:
    """Return the characteristics of the record *ref* points at ({} for None)."""
    if ref is None:
        return {}

    result = await db.execute(
        select(Characteristic.key, Characteristic.value)
        .join(DetailRecord, Characteristic.record_id == DetailRecord.id)
        .where(DetailRecord.id == ref.id, DetailRecord.kind == ref.kind)
        .order_by(Characteristic.id)
    )
    return {key: value for key, value in result.all()}


async def find_device_by_characteristic(
    db: AsyncSession,
    kind: str,
    key: str,
    value: str,
) -> Optional[Device]:
    """Find the oldest device whose *kind* detail record has ``key == value``."""
    result = await db.execute(
        select(Device)
        .join(
            DetailRecord,
            and_(
                Device.plugin_type == DetailRecord.kind,
                Device.plugin_id == DetailRecord.id,
            ),
        )
        .join(Characteristic, Characteristic.record_id == DetailRecord.id)
        .where(
            DetailRecord.kind == kind,
            Characteristic.key == key,
            Characteristic.value == value,
        )
        .order_by(Device.id)
        .limit(1)
    )
    return result.scalars().first()
