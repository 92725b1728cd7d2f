"""
loaners.py -- Loaner laptop pool: checkout and return, overdue rule, summary.

A loaner moves between four states:

    available --check_out--> checked-out --return_loaner--> available
    available <--> maintenance <--> retired      (plain status edits)

Checkout opens a LoanRecord and return closes it, so the loan history of a
laptop survives after the borrower fields on the laptop itself are cleared.

Everything here is pure: `today` is always passed in, and transitions return
new objects rather than mutating their arguments.
"""

from dataclasses import replace
from datetime import date
from typing import Optional

from .models import LOANER_STATUSES, LoanerLaptop, LoanerSummary, LoanRecord

AVAILABLE = "available"
CHECKED_OUT = "checked-out"
MAINTENANCE = "maintenance"
RETIRED = "retired"

STATUS_LABELS = {
    AVAILABLE: "Available",
    CHECKED_OUT: "Checked Out",
    MAINTENANCE: "In Maintenance",
    RETIRED: "Retired",
}


class LoanerStateError(ValueError):
    """The requested transition is not allowed from the loaner's current status."""


def is_overdue(loaner: LoanerLaptop, today: date) -> bool:
    """Checked out with an expected return date strictly before today."""
    if loaner.status != CHECKED_OUT or loaner.expected_return_date is None:
        return False
    return loaner.expected_return_date < today


def returned_late(record: LoanRecord, today: date) -> bool:
    """A closed loan returned after its due date, or an open one already past it."""
    if record.expected_return_date is None:
        return False
    returned = record.actual_return_date or today
    return returned > record.expected_return_date


def calculate_loaner_summary(loaners: list[LoanerLaptop], today: date) -> LoanerSummary:
    return LoanerSummary(
        total_loaners=len(loaners),
        available=sum(1 for loaner in loaners if loaner.status == AVAILABLE),
        checked_out=sum(1 for loaner in loaners if loaner.status == CHECKED_OUT),
        in_maintenance=sum(1 for loaner in loaners if loaner.status == MAINTENANCE),
        retired=sum(1 for loaner in loaners if loaner.status == RETIRED),
        overdue_count=sum(1 for loaner in loaners if is_overdue(loaner, today)),
    )


def matches_loaner_search(loaner: LoanerLaptop, term: str) -> bool:
    """Case-insensitive substring over asset tag, name, borrower, serial and model."""
    needle = term.strip().lower()
    if not needle:
        return True
    return any(
        value is not None and needle in value.lower()
        for value in (loaner.asset_tag, loaner.name, loaner.borrower_name, loaner.serial_number, loaner.model)
    )


def filter_loaners(
    loaners: list[LoanerLaptop],
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> list[LoanerLaptop]:
    """Raises ValueError for a status outside LOANER_STATUSES."""
    if status is not None and status not in LOANER_STATUSES:
        raise ValueError(f"Unknown loaner status {status!r}. Expected one of: {', '.join(LOANER_STATUSES)}")
    result = [loaner for loaner in loaners if status is None or loaner.status == status]
    if search:
        result = [loaner for loaner in result if matches_loaner_search(loaner, search)]
    return result


def check_out(
    loaner: LoanerLaptop,
    borrower_name: str,
    today: date,
    borrower_email: Optional[str] = None,
    borrower_department: Optional[str] = None,
    checkout_date: Optional[date] = None,
    expected_return_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> tuple[LoanerLaptop, LoanRecord]:
    """Lend an available loaner. Returns the updated loaner and the new open loan.

    checkout_date defaults to today. Raises LoanerStateError unless the
    loaner is available, and ValueError for a blank borrower or a return date
    before the checkout date.
    """
    if loaner.status != AVAILABLE:
        raise LoanerStateError(f"Loaner {loaner.asset_tag} is {STATUS_LABELS.get(loaner.status, loaner.status)}")
    name = (borrower_name or "").strip()
    if not name:
        raise ValueError("borrower_name must not be empty")
    start = checkout_date or today
    if expected_return_date is not None and expected_return_date < start:
        raise ValueError("expected_return_date is before checkout_date")

    updated = replace(
        loaner,
        status=CHECKED_OUT,
        borrower_name=name,
        borrower_email=borrower_email,
        borrower_department=borrower_department,
        checkout_date=start,
        expected_return_date=expected_return_date,
    )
    loan = LoanRecord(
        loaner_id=loaner.id,
        borrower_name=name,
        borrower_email=borrower_email,
        borrower_department=borrower_department,
        checkout_date=start,
        expected_return_date=expected_return_date,
        notes=notes,
    )
    return updated, loan


def return_loaner(
    loaner: LoanerLaptop,
    open_loan: Optional[LoanRecord],
    today: date,
    condition: Optional[str] = None,
    notes: Optional[str] = None,
) -> tuple[LoanerLaptop, Optional[LoanRecord]]:
    """Take a loaner back. Borrower fields are cleared and the open loan is closed today.

    open_loan may be None for loaners checked out before history was kept.
    Raises LoanerStateError unless the loaner is checked out.
    """
    if loaner.status != CHECKED_OUT:
        raise LoanerStateError(f"Loaner {loaner.asset_tag} is not checked out")

    updated = replace(
        loaner,
        status=AVAILABLE,
        borrower_name=None,
        borrower_email=None,
        borrower_department=None,
        checkout_date=None,
        expected_return_date=None,
        condition=condition or loaner.condition,
    )
    closed = None
    if open_loan is not None:
        closed = replace(open_loan, actual_return_date=today, notes=notes or open_loan.notes)
    return updated, closed


def set_status(loaner: LoanerLaptop, status: str) -> LoanerLaptop:
    """Plain status edit between available, maintenance and retired.

    checked-out is reachable only through check_out, and a checked-out loaner
    must be returned first.
    """
    if status not in LOANER_STATUSES:
        raise ValueError(f"Unknown loaner status {status!r}")
    if status == loaner.status:
        return loaner
    if status == CHECKED_OUT:
        raise LoanerStateError("Use checkout to lend a loaner")
    if loaner.status == CHECKED_OUT:
        raise LoanerStateError(f"Loaner {loaner.asset_tag} is checked out; return it first")
    return replace(loaner, status=status)


def sort_history(records: list[LoanRecord]) -> list[LoanRecord]:
    """Most recent checkout first."""
    return sorted(records, key=lambda r: (r.checkout_date, r.id), reverse=True)
