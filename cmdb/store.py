"""
cmdb/store.py -- SQLAlchemy-backed persistence for uploads, retired flags,
the loaner pool and the manual inventory.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in cmdb/models.py
and core/models.py remain the authoritative representation. Swapping SQLite
for PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. FleetStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Tables:
  csv_uploads      one row per source type; a new upload replaces the old one
  retired_devices  device identities (serial number, or device id) marked retired
  loaners          loaner laptops with their current borrower, if any
  loan_history     one row per checkout; actual_return_date NULL while open
  inventory_items  hand-entered equipment

Dates are stored as YYYY-MM-DD text, timestamps as ISO 8601 text.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = FleetStore()                               # SQLite default
    store = FleetStore("postgresql://user:pw@host/db") # PostgreSQL
    store.save_csv("jamf", content, filename="jamf.csv")
    blobs = store.get_all_csv()
    store.set_retired("C02XYZ123", True)
    loaner_id = store.create_loaner(LoanerLaptop(asset_tag="LN-01", name="Loaner 1"))
    store.close()
"""

import csv
import io
import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from cmdb.models import CSV_SOURCES, CsvUpload
from core.config import now_iso
from core.models import InventoryItem, LoanerLaptop, LoanRecord

logger = logging.getLogger("fleetadvisor.store")

_DEFAULT_DB_URL = "sqlite:///fleetadvisor.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_uploads = Table(
    "csv_uploads",
    metadata,
    Column("source", String(20), primary_key=True),
    Column("filename", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("rows", Integer, nullable=False, server_default="0"),
    Column("size_bytes", Integer, nullable=False, server_default="0"),
    Column("uploaded_at", String(32), nullable=False),
)

_retired = Table(
    "retired_devices",
    metadata,
    Column("device_id", String(255), primary_key=True),
    Column("retired_at", String(32), nullable=False),
)

_loaners = Table(
    "loaners",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("asset_tag", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("status", String(20), nullable=False, server_default="available"),
    Column("manufacturer", String(100)),
    Column("model", String(100)),
    Column("serial_number", String(100)),
    Column("borrower_name", String(255)),
    Column("borrower_email", String(255)),
    Column("borrower_department", String(255)),
    Column("checkout_date", String(10)),  # YYYY-MM-DD
    Column("expected_return_date", String(10)),
    Column("specs", Text),
    Column("condition", String(100)),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("asset_tag", name="uq_loaner_asset_tag"),
)

_loan_history = Table(
    "loan_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("loaner_id", Integer, nullable=False),
    Column("borrower_name", String(255), nullable=False),
    Column("borrower_email", String(255)),
    Column("borrower_department", String(255)),
    Column("checkout_date", String(10), nullable=False),
    Column("expected_return_date", String(10)),
    Column("actual_return_date", String(10)),  # NULL while the loan is open
    Column("notes", Text),
)

_inventory = Table(
    "inventory_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("category", String(30), nullable=False),
    Column("status", String(20), nullable=False, server_default="active"),
    Column("manufacturer", String(100)),
    Column("model", String(100)),
    Column("serial_number", String(100)),
    Column("asset_tag", String(64)),
    Column("purchase_date", String(10)),
    Column("purchase_price", Float),
    Column("warranty_expiration", String(10)),
    Column("assigned_to", String(255)),
    Column("location", String(255)),
    Column("department", String(255)),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_source(source: str) -> str:
    normalized = (source or "").strip().lower()
    if normalized not in CSV_SOURCES:
        raise ValueError(f"Invalid source {source!r}. Must be one of: {', '.join(CSV_SOURCES)}")
    return normalized


def count_csv_rows(content: str) -> int:
    """Count data rows (header excluded, blank lines ignored)."""
    try:
        rows = list(csv.reader(io.StringIO(content)))
    except csv.Error:
        return 0
    return max(0, sum(1 for row in rows if any(cell.strip() for cell in row)) - 1)


def _date_text(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _text_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class FleetStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # The ASGI server may touch a pooled connection from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Uploaded exports
    # ------------------------------------------------------------------

    def save_csv(self, source: str, content: str, filename: Optional[str] = None) -> CsvUpload:
        """Store the export for a source, replacing any previous one.

        Raises ValueError for an unknown source type.
        """
        source = _validate_source(source)
        upload = CsvUpload(
            source=source,
            filename=filename or f"{source}.csv",
            rows=count_csv_rows(content),
            size_bytes=len(content.encode("utf-8")),
            uploaded_at=now_iso(),
        )
        with self.engine.connect() as conn:
            conn.execute(delete(_uploads).where(_uploads.c.source == source))
            conn.execute(
                _uploads.insert().values(
                    source=source,
                    filename=upload.filename,
                    content=content,
                    rows=upload.rows,
                    size_bytes=upload.size_bytes,
                    uploaded_at=upload.uploaded_at,
                )
            )
            conn.commit()
        logger.info("Stored %s export %s (%d rows)", source, upload.filename, upload.rows)
        return upload

    def get_csv(self, source: str) -> Optional[str]:
        """Return the stored CSV text for a source, or None if never uploaded."""
        source = _validate_source(source)
        with self.engine.connect() as conn:
            row = conn.execute(select(_uploads.c.content).where(_uploads.c.source == source)).fetchone()
        return row.content if row is not None else None

    def get_all_csv(self) -> dict[str, str]:
        """Return {source: csv_text} for every source that has an upload."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(_uploads.c.source, _uploads.c.content)).fetchall()
        return {row.source: row.content for row in rows}

    def list_uploads(self) -> list[CsvUpload]:
        """Upload metadata (no content), in CSV_SOURCES order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(
                    _uploads.c.source,
                    _uploads.c.filename,
                    _uploads.c.rows,
                    _uploads.c.size_bytes,
                    _uploads.c.uploaded_at,
                )
            ).fetchall()
        uploads = [_row_to_upload(row) for row in rows]
        return sorted(uploads, key=lambda u: CSV_SOURCES.index(u.source) if u.source in CSV_SOURCES else 99)

    def delete_csv(self, source: str) -> bool:
        """Remove the stored export for a source. Returns False if there was none."""
        source = _validate_source(source)
        with self.engine.connect() as conn:
            result = conn.execute(delete(_uploads).where(_uploads.c.source == source))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Retired flags
    # ------------------------------------------------------------------

    def set_retired(self, device_id: str, retired: bool) -> None:
        """Mark or unmark a device identity as retired. Idempotent."""
        key = device_id.strip()
        if not key:
            raise ValueError("device_id must not be empty")
        with self.engine.connect() as conn:
            conn.execute(delete(_retired).where(_retired.c.device_id == key))
            if retired:
                conn.execute(_retired.insert().values(device_id=key, retired_at=now_iso()))
            conn.commit()

    def get_retired_ids(self) -> set[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(_retired.c.device_id)).fetchall()
        return {row.device_id for row in rows}

    # ------------------------------------------------------------------
    # Loaner pool
    # ------------------------------------------------------------------

    def create_loaner(self, loaner: LoanerLaptop) -> int:
        """Insert a loaner and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the asset tag is already in
        use -- callers report it as a conflict.
        """
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _loaners.insert().values(**_loaner_values(loaner), created_at=now, updated_at=now)
            )
            conn.commit()
        logger.info("Added loaner %s", loaner.asset_tag)
        return result.inserted_primary_key[0]

    def update_loaner(self, loaner: LoanerLaptop) -> bool:
        """Write every mutable field of a stored loaner. False if the ID is unknown."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _loaners.update()
                .where(_loaners.c.id == loaner.id)
                .values(**_loaner_values(loaner), updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def get_loaner(self, loaner_id: int) -> Optional[LoanerLaptop]:
        with self.engine.connect() as conn:
            row = conn.execute(_loaners.select().where(_loaners.c.id == loaner_id)).fetchone()
        return _row_to_loaner(row) if row is not None else None

    def list_loaners(self) -> list[LoanerLaptop]:
        """Return all loaners ordered by asset tag."""
        with self.engine.connect() as conn:
            rows = conn.execute(_loaners.select().order_by(_loaners.c.asset_tag)).fetchall()
        return [_row_to_loaner(r) for r in rows]

    def delete_loaner(self, loaner_id: int) -> bool:
        """Remove a loaner and its loan history. False if the ID is unknown."""
        with self.engine.connect() as conn:
            conn.execute(delete(_loan_history).where(_loan_history.c.loaner_id == loaner_id))
            result = conn.execute(delete(_loaners).where(_loaners.c.id == loaner_id))
            conn.commit()
        return result.rowcount > 0

    def record_checkout(self, loaner: LoanerLaptop, loan: LoanRecord) -> LoanRecord:
        """Persist a checkout: the loaner's new state and the opened loan, in one transaction."""
        with self.engine.connect() as conn:
            conn.execute(
                _loaners.update()
                .where(_loaners.c.id == loaner.id)
                .values(**_loaner_values(loaner), updated_at=now_iso())
            )
            result = conn.execute(
                _loan_history.insert().values(
                    loaner_id=loan.loaner_id,
                    borrower_name=loan.borrower_name,
                    borrower_email=loan.borrower_email,
                    borrower_department=loan.borrower_department,
                    checkout_date=_date_text(loan.checkout_date),
                    expected_return_date=_date_text(loan.expected_return_date),
                    notes=loan.notes,
                )
            )
            conn.commit()
        logger.info("Loaner %s checked out to %s", loaner.asset_tag, loan.borrower_name)
        return replace(loan, id=result.inserted_primary_key[0])

    def record_return(self, loaner: LoanerLaptop, closed_loan: Optional[LoanRecord]) -> None:
        """Persist a return: the loaner's cleared state and, if any, the closed loan."""
        with self.engine.connect() as conn:
            conn.execute(
                _loaners.update()
                .where(_loaners.c.id == loaner.id)
                .values(**_loaner_values(loaner), updated_at=now_iso())
            )
            if closed_loan is not None:
                conn.execute(
                    _loan_history.update()
                    .where(_loan_history.c.id == closed_loan.id)
                    .values(
                        actual_return_date=_date_text(closed_loan.actual_return_date),
                        notes=closed_loan.notes,
                    )
                )
            conn.commit()
        logger.info("Loaner %s returned", loaner.asset_tag)

    def get_open_loan(self, loaner_id: int) -> Optional[LoanRecord]:
        """The loan not yet returned, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _loan_history.select()
                .where((_loan_history.c.loaner_id == loaner_id) & (_loan_history.c.actual_return_date.is_(None)))
                .order_by(_loan_history.c.id.desc())
            ).fetchone()
        return _row_to_loan(row) if row is not None else None

    def get_loan_history(self, loaner_id: int) -> list[LoanRecord]:
        """All loans of one loaner, in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _loan_history.select().where(_loan_history.c.loaner_id == loaner_id).order_by(_loan_history.c.id)
            ).fetchall()
        return [_row_to_loan(r) for r in rows]

    # ------------------------------------------------------------------
    # Manual inventory
    # ------------------------------------------------------------------

    def create_inventory_item(self, item: InventoryItem) -> int:
        """Insert an item and return its assigned ID."""
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _inventory.insert().values(**_inventory_values(item), created_at=now, updated_at=now)
            )
            conn.commit()
        return result.inserted_primary_key[0]

    def update_inventory_item(self, item: InventoryItem) -> bool:
        """Write every mutable field of a stored item. False if the ID is unknown."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _inventory.update()
                .where(_inventory.c.id == item.id)
                .values(**_inventory_values(item), updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def get_inventory_item(self, item_id: int) -> Optional[InventoryItem]:
        with self.engine.connect() as conn:
            row = conn.execute(_inventory.select().where(_inventory.c.id == item_id)).fetchone()
        return _row_to_inventory(row) if row is not None else None

    def list_inventory(self) -> list[InventoryItem]:
        """Return all items ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(_inventory.select().order_by(_inventory.c.name, _inventory.c.id)).fetchall()
        return [_row_to_inventory(r) for r in rows]

    def delete_inventory_item(self, item_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(delete(_inventory).where(_inventory.c.id == item_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_upload(row) -> CsvUpload:
    return CsvUpload(
        source=row.source,
        filename=row.filename,
        rows=row.rows,
        size_bytes=row.size_bytes,
        uploaded_at=row.uploaded_at,
    )


def _loaner_values(loaner: LoanerLaptop) -> dict:
    return {
        "asset_tag": loaner.asset_tag,
        "name": loaner.name,
        "status": loaner.status,
        "manufacturer": loaner.manufacturer,
        "model": loaner.model,
        "serial_number": loaner.serial_number,
        "borrower_name": loaner.borrower_name,
        "borrower_email": loaner.borrower_email,
        "borrower_department": loaner.borrower_department,
        "checkout_date": _date_text(loaner.checkout_date),
        "expected_return_date": _date_text(loaner.expected_return_date),
        "specs": loaner.specs,
        "condition": loaner.condition,
        "notes": loaner.notes,
    }


def _row_to_loaner(row) -> LoanerLaptop:
    return LoanerLaptop(
        id=row.id,
        asset_tag=row.asset_tag,
        name=row.name,
        status=row.status,
        manufacturer=row.manufacturer,
        model=row.model,
        serial_number=row.serial_number,
        borrower_name=row.borrower_name,
        borrower_email=row.borrower_email,
        borrower_department=row.borrower_department,
        checkout_date=_text_date(row.checkout_date),
        expected_return_date=_text_date(row.expected_return_date),
        specs=row.specs,
        condition=row.condition,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_loan(row) -> LoanRecord:
    return LoanRecord(
        id=row.id,
        loaner_id=row.loaner_id,
        borrower_name=row.borrower_name,
        borrower_email=row.borrower_email,
        borrower_department=row.borrower_department,
        checkout_date=_text_date(row.checkout_date),
        expected_return_date=_text_date(row.expected_return_date),
        actual_return_date=_text_date(row.actual_return_date),
        notes=row.notes,
    )


def _inventory_values(item: InventoryItem) -> dict:
    return {
        "name": item.name,
        "category": item.category,
        "status": item.status,
        "manufacturer": item.manufacturer,
        "model": item.model,
        "serial_number": item.serial_number,
        "asset_tag": item.asset_tag,
        "purchase_date": _date_text(item.purchase_date),
        "purchase_price": item.purchase_price,
        "warranty_expiration": _date_text(item.warranty_expiration),
        "assigned_to": item.assigned_to,
        "location": item.location,
        "department": item.department,
        "notes": item.notes,
    }


def _row_to_inventory(row) -> InventoryItem:
    return InventoryItem(
        id=row.id,
        name=row.name,
        category=row.category,
        status=row.status,
        manufacturer=row.manufacturer,
        model=row.model,
        serial_number=row.serial_number,
        asset_tag=row.asset_tag,
        purchase_date=_text_date(row.purchase_date),
        purchase_price=row.purchase_price,
        warranty_expiration=_text_date(row.warranty_expiration),
        assigned_to=row.assigned_to,
        location=row.location,
        department=row.department,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
