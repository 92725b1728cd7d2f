"""
api/routes/v1/loaners.py -- Loaner laptop pool routes.

Routes (summary registered before /{loaner_id} so it is not captured):
  GET    /loaners                          -- loaners, filterable by search and status
  GET    /loaners/summary                  -- counts per status plus overdue count
  POST   /loaners                          -- add a loaner
  GET    /loaners/{loaner_id}              -- one loaner
  PATCH  /loaners/{loaner_id}              -- edit details or status
  DELETE /loaners/{loaner_id}              -- remove a loaner and its history
  POST   /loaners/{loaner_id}/checkout     -- lend it out (opens a loan)
  POST   /loaners/{loaner_id}/return       -- take it back (closes the loan)
  GET    /loaners/{loaner_id}/history      -- loans, most recent first

Transitions that the loaner's status does not allow (checking out a loaner
that is not available, returning one that is not checked out, deleting or
re-statusing one that is out) return 409.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    CheckoutRequest,
    ErrorDetail,
    LoanerCreate,
    LoanerResponse,
    LoanerSummaryModel,
    LoanerUpdate,
    LoanRecordResponse,
    ReturnRequest,
)
from auth.dependencies import get_current_user
from cmdb.store import FleetStore
from core.loaners import (
    CHECKED_OUT,
    LoanerStateError,
    calculate_loaner_summary,
    check_out,
    filter_loaners,
    return_loaner,
    set_status,
    sort_history,
)
from core.models import LoanerLaptop

logger = logging.getLogger("fleetadvisor.api.loaners")

router = APIRouter(dependencies=[Depends(get_current_user)])

# Columns that may not be cleared by an explicit null in a PATCH body.
_REQUIRED_FIELDS = ("asset_tag", "name", "status")


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=ErrorDetail(code=code, message=message).model_dump())


def _get_or_404(store: FleetStore, loaner_id: int) -> LoanerLaptop:
    loaner = store.get_loaner(loaner_id)
    if loaner is None:
        raise _error(404, "not_found", f"Loaner {loaner_id} not found.")
    return loaner


def _duplicate_tag(asset_tag: str) -> HTTPException:
    return _error(409, "duplicate_asset_tag", f"Asset tag {asset_tag} is already in use.")


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/loaners", response_model=list[LoanerResponse])
def list_loaners(
    request: Request,
    search: Optional[str] = Query(default=None, max_length=200),
    status: Optional[str] = Query(default=None, max_length=20),
) -> list[LoanerResponse]:
    store: FleetStore = request.app.state.store
    try:
        loaners = filter_loaners(store.list_loaners(), search, status)
    except ValueError as exc:
        raise _error(400, "invalid_status", str(exc))
    today = _today()
    return [LoanerResponse.from_loaner(loaner, today) for loaner in loaners]


@limiter.limit("60/minute")
@router.get("/loaners/summary", response_model=LoanerSummaryModel)
def loaner_summary(request: Request) -> LoanerSummaryModel:
    store: FleetStore = request.app.state.store
    return LoanerSummaryModel.from_summary(calculate_loaner_summary(store.list_loaners(), _today()))


@limiter.limit("30/minute")
@router.post("/loaners", response_model=LoanerResponse, status_code=201)
def create_loaner(request: Request, body: LoanerCreate) -> LoanerResponse:
    store: FleetStore = request.app.state.store
    fields = body.model_dump()
    fields["status"] = body.status.value
    try:
        loaner_id = store.create_loaner(LoanerLaptop(**fields))
    except IntegrityError:
        raise _duplicate_tag(body.asset_tag)
    return LoanerResponse.from_loaner(store.get_loaner(loaner_id), _today())


# ---------------------------------------------------------------------------
# Single loaner
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/loaners/{loaner_id}", response_model=LoanerResponse)
def get_loaner(request: Request, loaner_id: int) -> LoanerResponse:
    store: FleetStore = request.app.state.store
    return LoanerResponse.from_loaner(_get_or_404(store, loaner_id), _today())


@limiter.limit("30/minute")
@router.patch("/loaners/{loaner_id}", response_model=LoanerResponse)
def update_loaner(request: Request, loaner_id: int, body: LoanerUpdate) -> LoanerResponse:
    """Edit descriptive fields, or move between available, maintenance and retired."""
    store: FleetStore = request.app.state.store
    loaner = _get_or_404(store, loaner_id)

    changes = {
        name: value
        for name, value in body.model_dump(exclude_unset=True).items()
        if value is not None or name not in _REQUIRED_FIELDS
    }
    status = changes.pop("status", None)
    if status is not None:
        try:
            loaner = set_status(loaner, status.value)
        except LoanerStateError as exc:
            raise _error(409, "invalid_transition", str(exc))
    loaner = replace(loaner, **changes)

    try:
        store.update_loaner(loaner)
    except IntegrityError:
        raise _duplicate_tag(loaner.asset_tag)
    return LoanerResponse.from_loaner(store.get_loaner(loaner_id), _today())


@limiter.limit("30/minute")
@router.delete("/loaners/{loaner_id}", status_code=204)
def delete_loaner(request: Request, loaner_id: int) -> None:
    store: FleetStore = request.app.state.store
    loaner = _get_or_404(store, loaner_id)
    if loaner.status == CHECKED_OUT:
        raise _error(409, "invalid_transition", f"Loaner {loaner.asset_tag} is checked out; return it first")
    store.delete_loaner(loaner_id)
    logger.info("Deleted loaner %s", loaner.asset_tag)


# ---------------------------------------------------------------------------
# Checkout, return and history
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/loaners/{loaner_id}/checkout", response_model=LoanerResponse)
def checkout_loaner(request: Request, loaner_id: int, body: CheckoutRequest) -> LoanerResponse:
    store: FleetStore = request.app.state.store
    today = _today()
    try:
        loaner, loan = check_out(
            _get_or_404(store, loaner_id),
            body.borrower_name,
            today,
            borrower_email=body.borrower_email,
            borrower_department=body.borrower_department,
            checkout_date=body.checkout_date,
            expected_return_date=body.expected_return_date,
            notes=body.notes,
        )
    except LoanerStateError as exc:
        raise _error(409, "invalid_transition", str(exc))
    except ValueError as exc:
        raise _error(400, "invalid_request", str(exc))

    store.record_checkout(loaner, loan)
    return LoanerResponse.from_loaner(store.get_loaner(loaner_id), today)


@limiter.limit("30/minute")
@router.post("/loaners/{loaner_id}/return", response_model=LoanerResponse)
def return_loaner_route(request: Request, loaner_id: int, body: ReturnRequest) -> LoanerResponse:
    store: FleetStore = request.app.state.store
    today = _today()
    try:
        loaner, closed = return_loaner(
            _get_or_404(store, loaner_id),
            store.get_open_loan(loaner_id),
            today,
            condition=body.condition,
            notes=body.notes,
        )
    except LoanerStateError as exc:
        raise _error(409, "invalid_transition", str(exc))

    store.record_return(loaner, closed)
    return LoanerResponse.from_loaner(store.get_loaner(loaner_id), today)


@limiter.limit("60/minute")
@router.get("/loaners/{loaner_id}/history", response_model=list[LoanRecordResponse])
def loan_history(request: Request, loaner_id: int) -> list[LoanRecordResponse]:
    store: FleetStore = request.app.state.store
    _get_or_404(store, loaner_id)
    today = _today()
    return [LoanRecordResponse.from_record(r, today) for r in sort_history(store.get_loan_history(loaner_id))]
