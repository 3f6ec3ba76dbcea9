"""
Taxonomy resolution: Brand -> Model -> DeviceType.

Handles:
- Atomic find-or-create of a row by its natural key
- Resolving the three-level hierarchy for a registration
- The brand-required policy for partially specified taxonomies

Find-or-create inserts inside a SAVEPOINT.  When a concurrent writer has
already inserted the same natural key, the unique constraint fires, only
the savepoint is rolled back and the winner's row is selected instead.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Brand, Model, DeviceType
from plugins.registry import normalize_tag
from schemas import RegistrationRequest
from services.errors import RegistrationConflict, RegistrationRejected

logger = logging.getLogger(__name__)

FIND_OR_CREATE_ATTEMPTS = 3


async def _select_one(db: AsyncSession, model_cls: Type, natural_key: Dict[str, Any]):
    result = await db.execute(select(model_cls).filter_by(**natural_key))
    return result.scalars().first()


async def find_or_create(
    db: AsyncSession,
    model_cls: Type,
    defaults: Optional[Dict[str, Any]] = None,
    **natural_key: Any,
) -> Tuple[Any, bool]:
    """
    Return the row of *model_cls* matching *natural_key*, creating it if absent.

    Args:
        db: Session; the caller owns the surrounding transaction
        model_cls: Mapped class with a unique constraint over *natural_key*
        defaults: Extra column values used only when creating

    Returns:
        (row, created)

    Raises:
        RegistrationConflict: if the row could neither be inserted nor
            found after FIND_OR_CREATE_ATTEMPTS rounds
    """
    for attempt in range(1, FIND_OR_CREATE_ATTEMPTS + 1):
        row = await _select_one(db, model_cls, natural_key)
        if row is not None:
            return row, False

        try:
            async with db.begin_nested():
                row = model_cls(**natural_key, **(defaults or {}))
                db.add(row)
                await db.flush()
        except IntegrityError:
            logger.info(
                f"{model_cls.__name__} {natural_key} created concurrently, "
                f"re-selecting (attempt {attempt}/{FIND_OR_CREATE_ATTEMPTS})"
            )
            continue

        logger.info(f"Created {model_cls.__name__} {row.id}: {natural_key}")
        return row, True

    raise RegistrationConflict(
        f"Could not find or create {model_cls.__name__} {natural_key}"
    )


class TaxonomyResolver:
    """
    Resolve (brand, model, device_type) names to a DeviceType row.

    Policy for partial input:
    - no device_type: no taxonomy work, the device is type-less
    - device_type without model: no taxonomy work, the device is type-less
    - model without brand: rejected before any write (``check_policy``)
    """

    def check_policy(self, request: RegistrationRequest) -> None:
        """Reject attribute combinations the resolver cannot place."""
        if request.model and not request.brand:
            raise RegistrationRejected(
                "A brand is required when a model is supplied",
                reason="brand_required",
                errors=[{
                    "field": "brand",
                    "message": "Required when 'model' is given",
                    "type": "missing",
                }],
            )

    async def resolve(
        self,
        db: AsyncSession,
        brand_name: Optional[str],
        model_name: Optional[str],
        device_type_name: Optional[str],
    ) -> Optional[DeviceType]:
        """Find or create Brand, then Model, then DeviceType.  None if type-less."""
        if not device_type_name:
            return None
        if not model_name:
            logger.debug(
                f"Device type {device_type_name!r} reported without a model, "
                "leaving device type-less"
            )
            return None
        if not brand_name:
            raise RegistrationRejected(
                "A brand is required when a model is supplied",
                reason="brand_required",
            )

        # Type names are keyed case-insensitively, like plugin lookup
        classification = normalize_tag(device_type_name)

        brand, _ = await find_or_create(db, Brand, name=brand_name)
        model, _ = await find_or_create(db, Model, brand_id=brand.id, name=model_name)
        device_type, _ = await find_or_create(
            db,
            DeviceType,
            defaults={"classification": classification},
            model_id=model.id,
            name=classification,
        )
        return device_type
