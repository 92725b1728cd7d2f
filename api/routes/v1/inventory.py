"""
api/routes/v1/inventory.py -- Manual equipment inventory routes.

Routes:
  GET    /inventory               -- items, filterable by search, category and status
  GET    /inventory/summary       -- counts, total value, warranties expiring, recent additions
  POST   /inventory               -- add an item
  GET    /inventory/{item_id}     -- one item
  PATCH  /inventory/{item_id}     -- edit an item
  DELETE /inventory/{item_id}     -- remove an item
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.limiter import limiter
from api.models import (
    ErrorDetail,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    InventorySummaryModel,
)
from auth.dependencies import get_current_user
from cmdb.store import FleetStore
from core.inventory import calculate_inventory_summary, filter_inventory
from core.models import InventoryItem

logger = logging.getLogger("fleetadvisor.api.inventory")

router = APIRouter(dependencies=[Depends(get_current_user)])

_REQUIRED_FIELDS = ("name", "category", "status")


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _get_or_404(store: FleetStore, item_id: int) -> InventoryItem:
    item = store.get_inventory_item(item_id)
    if item is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="not_found", message=f"Inventory item {item_id} not found.").model_dump(),
        )
    return item


def _plain(fields: dict) -> dict:
    """Enum members to their string values."""
    return {name: getattr(value, "value", value) for name, value in fields.items()}


@limiter.limit("60/minute")
@router.get("/inventory", response_model=list[InventoryItemResponse])
def list_inventory(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=200),
    category: Optional[str] = Query(default=None, max_length=30),
    status: Optional[str] = Query(default=None, max_length=20),
) -> list[InventoryItemResponse]:
    store: FleetStore = request.app.state.store
    try:
        items = filter_inventory(store.list_inventory(), search, category, status)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="invalid_filter", message=str(exc)).model_dump(),
        )
    today = _today()
    return [InventoryItemResponse.from_item(item, today) for item in items]


@limiter.limit("60/minute")
@router.get("/inventory/summary", response_model=InventorySummaryModel)
def inventory_summary(request: Request) -> InventorySummaryModel:
    store: FleetStore = request.app.state.store
    return InventorySummaryModel.from_summary(calculate_inventory_summary(store.list_inventory(), _today()))


@limiter.limit("30/minute")
@router.post("/inventory", response_model=InventoryItemResponse, status_code=201)
def create_item(request: Request, body: InventoryItemCreate) -> InventoryItemResponse:
    store: FleetStore = request.app.state.store
    item_id = store.create_inventory_item(InventoryItem(**_plain(body.model_dump())))
    logger.info("Added inventory item %d (%s)", item_id, body.name)
    return InventoryItemResponse.from_item(store.get_inventory_item(item_id), _today())


@limiter.limit("60/minute")
@router.get("/inventory/{item_id}", response_model=InventoryItemResponse)
def get_item(request: Request, item_id: int) -> InventoryItemResponse:
    store: FleetStore = request.app.state.store
    return InventoryItemResponse.from_item(_get_or_404(store, item_id), _today())


@limiter.limit("30/minute")
@router.patch("/inventory/{item_id}", response_model=InventoryItemResponse)
def update_item(request: Request, item_id: int, body: InventoryItemUpdate) -> InventoryItemResponse:
    """Fields omitted from the body are left unchanged; null clears an optional field."""
    store: FleetStore = request.app.state.store
    item = _get_or_404(store, item_id)
    changes = {
        name: value
        for name, value in _plain(body.model_dump(exclude_unset=True)).items()
        if value is not None or name not in _REQUIRED_FIELDS
    }
    store.update_inventory_item(replace(item, **changes))
    return InventoryItemResponse.from_item(store.get_inventory_item(item_id), _today())


@limiter.limit("30/minute")
@router.delete("/inventory/{item_id}", status_code=204)
def delete_item(request: Request, item_id: int) -> None:
    store: FleetStore = request.app.state.store
    _get_or_404(store, item_id)
    store.delete_inventory_item(item_id)
    logger.info("Deleted inventory item %d", item_id)
