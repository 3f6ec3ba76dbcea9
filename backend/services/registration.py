"""
Device registration orchestrator.

Pipeline stages:
1. Validate the reported attributes (no writes before this succeeds)
2. Resolve identity; a known device is returned untouched
3. Inside one SAVEPOINT: re-check identity, resolve taxonomy, create the
   device, its plugin detail record, MAC/IP rows and group links
4. Commit and describe the device

Registration is match-or-create, never match-and-update.  A unique MAC
inserted concurrently by another request rolls back the savepoint and the
attempt is retried, at which point the identity re-check finds the
winner's device.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Brand, Model, DeviceType, Device, Mac, Ip, Group, device_groups
from plugins.base import (
    DEFAULT_NAME,
    DETAILS,
    IdentificationPlugin,
    plugin_supports,
)
from plugins.registry import PluginRegistry
from schemas import DeviceResponse, RegistrationRequest
from services.details import DetailRef, load_details, save_details
from services.errors import (
    RegistrationConflict,
    RegistrationError,
    RegistrationFailed,
    RegistrationRejected,
)
from services.identity import IdentityResolver
from services.taxonomy import TaxonomyResolver
from utils.audit import audit
from utils.logging_utils import LogTimer

logger = logging.getLogger(__name__)

MATCHED = "matched"
CREATED = "created"


@dataclass
class RegistrationResult:
    """Outcome of a registration plus the resolved device's view."""

    outcome: str
    device: Device
    view: DeviceResponse

    @property
    def created(self) -> bool:
        return self.outcome == CREATED

    def to_dict(self) -> Dict[str, Any]:
        return {"outcome": self.outcome, "device": self.view.model_dump(mode="json")}


def _validation_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    errors = []
    for error in exc.errors():
        loc_parts = [str(x) for x in error.get("loc", [])]
        msg = error.get("msg", "Validation error")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        errors.append({
            "field": ".".join(loc_parts) if loc_parts else "unknown",
            "message": msg,
            "type": error.get("type", "unknown"),
        })
    return errors


async def describe_device(db: AsyncSession, device: Device) -> DeviceResponse:
    """
    Build the outward view of a device.

    ``details`` always carries ``macs`` and ``ips``; the plugin's own
    details are merged on top and win on key collisions.
    """
    brand_name = model_name = device_type = None
    if device.device_type_id is not None:
        row = (await db.execute(
            select(Brand.name, Model.name, DeviceType.classification)
            .select_from(DeviceType)
            .join(Model, DeviceType.model_id == Model.id)
            .join(Brand, Model.brand_id == Brand.id)
            .where(DeviceType.id == device.device_type_id)
        )).first()
        if row is not None:
            brand_name, model_name, device_type = row

    macs = list((await db.execute(
        select(Mac.address).where(Mac.device_id == device.id).order_by(Mac.id)
    )).scalars().all())
    ips = list((await db.execute(
        select(Ip.address).where(Ip.device_id == device.id).order_by(Ip.id)
    )).scalars().all())
    groups = list((await db.execute(
        select(device_groups.c.group_id)
        .where(device_groups.c.device_id == device.id)
        .order_by(device_groups.c.group_id)
    )).scalars().all())

    plugin_details = await load_details(db, DetailRef.from_device(device))
    details: Dict[str, Any] = {"macs": macs, "ips": ips}
    details.update(plugin_details)

    return DeviceResponse(
        id=device.id,
        name=device.name,
        brand=brand_name,
        model=model_name,
        device_type=device_type,
        plugin_type=device.plugin_type,
        macs=macs,
        ips=ips,
        groups=groups,
        details=details,
        first_seen=device.first_seen,
        last_seen=device.last_seen,
    )


class RegistrationOrchestrator:
    """
    Entry point of the registration engine.

    Parameters
    ----------
    registry:
        Plugin registry built at startup.
    max_attempts:
        Creation attempts before a persistent MAC conflict is surfaced.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        identity: Optional[IdentityResolver] = None,
        taxonomy: Optional[TaxonomyResolver] = None,
        max_attempts: Optional[int] = None,
    ):
        self.registry = registry
        self.identity = identity or IdentityResolver(registry)
        self.taxonomy = taxonomy or TaxonomyResolver()
        self.max_attempts = max_attempts or settings.REGISTRATION_MAX_ATTEMPTS

    async def register(
        self, db: AsyncSession, attributes: Mapping[str, Any]
    ) -> RegistrationResult:
        """
        Register the device described by *attributes*.

        Returns:
            RegistrationResult with outcome "matched" or "created"

        Raises:
            RegistrationRejected: invalid attributes, nothing written
            RegistrationConflict: MAC conflicts outlasted the retry budget
            RegistrationFailed: creation raised and was rolled back
        """
        try:
            request = self.validate(attributes)
            await self._check_groups(db, request.group_ids)
        except RegistrationRejected as e:
            await db.rollback()
            logger.info(f"Rejected registration ({e.reason}): {e.message}")
            audit.log_registration("rejected", reason=e.reason)
            raise

        attrs = request.attributes()
        plugin = self.registry.lookup(request.device_type)

        with LogTimer(logger, "Registering device", level=logging.DEBUG) as timer:
            existing = await self.identity.resolve(db, attrs)
            if existing is not None:
                timer.add_info("device_id", existing.id)
                timer.add_info("outcome", MATCHED)
                return await self._finish(db, MATCHED, existing, request)

            device = None
            for attempt in range(1, self.max_attempts + 1):
                try:
                    async with db.begin_nested():
                        existing = await self.identity.resolve(db, attrs)
                        if existing is None:
                            device = await self._create_device(db, request, attrs, plugin)
                except IntegrityError as e:
                    logger.warning(
                        f"Registration conflicted with a concurrent writer, retrying: {e.orig}",
                        extra={"attempt": attempt},
                    )
                    continue
                except RegistrationError as e:
                    await db.rollback()
                    audit.log_registration(
                        "failed", device_type=request.device_type, reason=e.reason
                    )
                    raise
                except Exception as e:
                    await db.rollback()
                    logger.error(f"Device creation failed: {e}", exc_info=True)
                    audit.log_registration(
                        "failed",
                        device_type=request.device_type,
                        reason=RegistrationFailed.reason,
                    )
                    raise RegistrationFailed(f"Device creation failed: {e}") from e

                if existing is not None:
                    timer.add_info("device_id", existing.id)
                    timer.add_info("outcome", MATCHED)
                    return await self._finish(db, MATCHED, existing, request)

                await db.commit()
                timer.add_info("device_id", device.id)
                timer.add_info("outcome", CREATED)
                return await self._finish(db, CREATED, device, request)

        await db.rollback()
        audit.log_registration(
            "failed", device_type=request.device_type, reason=RegistrationConflict.reason
        )
        raise RegistrationConflict(
            f"Registration kept conflicting after {self.max_attempts} attempts"
        )

    def validate(self, attributes: Mapping[str, Any]) -> RegistrationRequest:
        """Parse *attributes* and apply the taxonomy policy.  Performs no I/O."""
        try:
            request = RegistrationRequest.model_validate(dict(attributes))
        except ValidationError as e:
            raise RegistrationRejected(
                "Invalid registration attributes",
                reason="invalid_attributes",
                errors=_validation_errors(e),
            ) from e
        self.taxonomy.check_policy(request)
        return request

    async def _check_groups(self, db: AsyncSession, group_ids: List[int]) -> None:
        if not group_ids:
            return
        result = await db.execute(select(Group.id).where(Group.id.in_(group_ids)))
        missing = sorted(set(group_ids) - set(result.scalars().all()))
        if missing:
            raise RegistrationRejected(
                f"Unknown group ids: {missing}",
                reason="unknown_group",
                errors=[{"field": "group_ids", "message": f"Unknown group ids: {missing}", "type": "not_found"}],
            )

    async def _create_device(
        self,
        db: AsyncSession,
        request: RegistrationRequest,
        attrs: Dict[str, Any],
        plugin: IdentificationPlugin,
    ) -> Device:
        device_type = await self.taxonomy.resolve(
            db, request.brand, request.model, request.device_type
        )

        device = Device(
            name=self._device_name(request, attrs, plugin),
            model_id=device_type.model_id if device_type is not None else None,
            device_type_id=device_type.id if device_type is not None else None,
        )

        if plugin.persists_details and plugin.kind and plugin_supports(plugin, DETAILS):
            ref = await save_details(db, plugin.kind, dict(plugin.details(attrs) or {}))
            device.plugin_type = ref.kind
            device.plugin_id = ref.id

        db.add(device)
        await db.flush()

        for address in request.macs:
            db.add(Mac(address=address, device_id=device.id))
        for address in request.ips:
            db.add(Ip(address=address, device_id=device.id))
        if request.group_ids:
            await db.execute(
                insert(device_groups),
                [{"device_id": device.id, "group_id": gid} for gid in request.group_ids],
            )
        await db.flush()

        logger.info(
            f"Created device {device.id} ({device.name or 'unnamed'}): "
            f"{len(request.macs)} MACs, {len(request.ips)} IPs, "
            f"type={device_type.classification if device_type is not None else None}"
        )
        return device

    def _device_name(
        self,
        request: RegistrationRequest,
        attrs: Dict[str, Any],
        plugin: IdentificationPlugin,
    ) -> Optional[str]:
        # Explicit name always wins over the plugin's suggestion
        if request.name:
            return request.name
        if plugin_supports(plugin, DEFAULT_NAME):
            return plugin.default_name(attrs) or None
        return None

    async def _finish(
        self,
        db: AsyncSession,
        outcome: str,
        device: Device,
        request: RegistrationRequest,
    ) -> RegistrationResult:
        audit.log_registration(
            outcome,
            device_id=device.id,
            device_name=device.name,
            device_type=request.device_type,
        )
        view = await describe_device(db, device)
        # Ends the read transaction so the SQLite write lock is released
        await db.commit()
        return RegistrationResult(outcome=outcome, device=device, view=view)
