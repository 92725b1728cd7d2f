"""
api/routes/v1/uploads.py -- CSV export upload routes.

Routes:
  POST   /uploads/{source}   -- store the export for one source (replaces the previous one)
  GET    /uploads            -- list stored exports (metadata only)
  DELETE /uploads/{source}   -- remove the stored export for one source

Sources: jamf, intune, users, coreview, qualys.

File uploads:
  multipart/form-data, field name "file". Size is capped at 5 MB and the
  filename must end in .csv. Content is decoded as UTF-8 (a byte-order mark
  is tolerated by the parsers).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile

from api.limiter import UPLOAD_LIMIT, limiter
from api.models import ErrorDetail, UploadResponse, UploadRow
from auth.dependencies import get_current_user
from cmdb.models import CSV_SOURCES
from cmdb.store import FleetStore

logger = logging.getLogger("fleetadvisor.api.uploads")

router = APIRouter(dependencies=[Depends(get_current_user)])

_MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB


def _check_source(source: str) -> str:
    normalized = source.strip().lower()
    if normalized not in CSV_SOURCES:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="invalid_source",
                message=f"source must be one of: {', '.join(CSV_SOURCES)}",
            ).model_dump(),
        )
    return normalized


# ---------------------------------------------------------------------------
# POST /uploads/{source}
# ---------------------------------------------------------------------------


@limiter.limit(UPLOAD_LIMIT)
@router.post("/uploads/{source}", response_model=UploadResponse, status_code=201)
async def upload_csv(request: Request, source: str, file: UploadFile) -> UploadResponse:
    """Store an exported CSV for one source.

    The previous export for the same source is replaced, not merged.
    """
    source = _check_source(source)

    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=415,
            detail=ErrorDetail(
                code="unsupported_format",
                message="File must have a .csv extension.",
            ).model_dump(),
        )

    # Size guard -- read up to the limit + 1 byte; reject if over
    raw = await file.read(_MAX_UPLOAD_BYTES + 1)
    if len(raw) > _MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=ErrorDetail(
                code="file_too_large",
                message="Upload must be 5 MB or smaller.",
            ).model_dump(),
        )

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="invalid_encoding",
                message="CSV must be UTF-8 encoded.",
            ).model_dump(),
        )

    store: FleetStore = request.app.state.store
    upload = store.save_csv(source, content, filename=filename)
    return UploadResponse(source=upload.source, filename=upload.filename, rows=upload.rows)


# ---------------------------------------------------------------------------
# GET /uploads
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/uploads", response_model=list[UploadRow])
def list_uploads(request: Request) -> list[UploadRow]:
    """Return metadata for every stored export, in source order."""
    store: FleetStore = request.app.state.store
    return [
        UploadRow(
            source=u.source,
            filename=u.filename,
            rows=u.rows,
            size_bytes=u.size_bytes,
            uploaded_at=u.uploaded_at,
        )
        for u in store.list_uploads()
    ]


# ---------------------------------------------------------------------------
# DELETE /uploads/{source}
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.delete("/uploads/{source}", status_code=204)
def delete_upload(request: Request, source: str) -> None:
    """Remove the stored export for a source. 404 if none was stored."""
    source = _check_source(source)
    store: FleetStore = request.app.state.store
    if not store.delete_csv(source):
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="not_found",
                message=f"No {source} export has been uploaded.",
            ).model_dump(),
        )
    logger.info("Deleted %s export", source)
