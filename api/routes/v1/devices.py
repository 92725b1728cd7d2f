"""
api/routes/v1/devices.py -- Classified device routes.

Routes:
  GET   /devices                       -- filtered device rows
  GET   /devices/{device_id}           -- full device with reasons, value, vulnerabilities
  PATCH /devices/{device_id}/retired   -- toggle the retired flag

Query params for GET /devices:
  view            -- named view (default "attention"); 400 for an unknown name
  search          -- case-insensitive substring over name, owner, serial, model...
  user            -- case-insensitive owner / owner email match
  include_retired -- include devices flagged retired (default false)
  limit           -- max rows returned (1-5000)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.fleet import find_device, load_fleet
from api.limiter import limiter
from api.models import DeviceDetail, DeviceRow, ErrorDetail, RetiredResponse, RetiredUpdate
from auth.dependencies import get_current_user
from cmdb.store import FleetStore
from core.views import DEFAULT_VIEW, filter_devices

logger = logging.getLogger("fleetadvisor.api.devices")

router = APIRouter(dependencies=[Depends(get_current_user)])


def _not_found(device_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(
            code="not_found",
            message=f"Device {device_id} not found.",
        ).model_dump(),
    )


@limiter.limit("60/minute")
@router.get("/devices", response_model=list[DeviceRow])
def list_devices(
    request: Request,
    view: str = DEFAULT_VIEW,
    search: Optional[str] = Query(default=None, max_length=200),
    user: Optional[str] = Query(default=None, max_length=200),
    include_retired: bool = False,
    limit: int = Query(default=1000, ge=1, le=5000),
) -> list[DeviceRow]:
    """Return classified devices matching the view and filters."""
    try:
        devices = filter_devices(load_fleet(request), view, search, user, include_retired)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="invalid_view", message=str(exc)).model_dump(),
        )
    return [DeviceRow.from_device(d) for d in devices[:limit]]


@limiter.limit("60/minute")
@router.get("/devices/{device_id}", response_model=DeviceDetail)
def get_device(request: Request, device_id: str) -> DeviceDetail:
    """Return one device by id or serial number, retired or not."""
    device = find_device(load_fleet(request), device_id)
    if device is None:
        raise _not_found(device_id)
    return DeviceDetail.from_device(device)


@limiter.limit("30/minute")
@router.patch("/devices/{device_id}/retired", response_model=RetiredResponse)
def set_retired(request: Request, device_id: str, body: RetiredUpdate) -> RetiredResponse:
    """Mark or unmark a device as retired.

    The flag is stored against the serial number when the device has one, so
    it survives re-uploads that renumber device ids; otherwise against the id.
    """
    device = find_device(load_fleet(request), device_id)
    if device is None:
        raise _not_found(device_id)

    store: FleetStore = request.app.state.store
    if device.serial_number:
        # Clear any flag stored under the id so un-retiring always takes effect.
        store.set_retired(device.id, False)
    store.set_retired(device.serial_number or device.id, body.is_retired)
    logger.info("Device %s retired=%s", device.id, body.is_retired)
    return RetiredResponse(id=device.id, is_retired=body.is_retired)
