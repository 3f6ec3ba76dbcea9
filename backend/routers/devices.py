"""
API endpoints for agent device registration.

Handles:
- Registering a reported device (match-or-create)
- Showing a registered device with its taxonomy, addresses and details

Registration errors (rejections, conflicts, failed creations) are raised
by the engine and rendered by the handlers installed in ``main``.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import Device
from schemas import DeviceResponse, RegistrationResponse
from services.registration import RegistrationOrchestrator, describe_device

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


def get_orchestrator(request: Request) -> RegistrationOrchestrator:
    """Dependency returning the orchestrator built at app creation."""
    return request.app.state.orchestrator


def _unwrap(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Agents post either the bare attributes or {"device": {...}}
    device = payload.get("device")
    if len(payload) == 1 and isinstance(device, dict):
        return device
    return payload


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_device(
    payload: Dict[str, Any] = Body(...),
    orchestrator: RegistrationOrchestrator = Depends(get_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    """
    Register a device reported by an agent.

    Returns 201 when a new device was created and 200 when the report
    matched a known device (which is returned unchanged).
    """
    result = await orchestrator.register(db, _unwrap(payload))
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content=result.to_dict(),
    )


@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(
    device_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a registered device by ID."""
    device = await db.get(Device, device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return await describe_device(db, device)
