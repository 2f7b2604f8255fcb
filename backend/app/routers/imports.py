"""Router for bulk imports, their history and downloadable templates."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..models import ImportType
from ..security import CallerIdentity, get_current_caller
from ..services import (
    ImportAuditLogService,
    ImportCallerNotFoundError,
    ImportFileError,
    ImportLogNotFoundError,
    ImportService,
    TabularDecoder,
)
from ..settings import get_import_settings

router = APIRouter()


@router.post("", response_model=schemas.ImportResult, status_code=status.HTTP_201_CREATED)
def create_import(
    payload: schemas.ImportRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.ImportResult:
    """Run an import for the authenticated caller and return the row-level outcome."""

    try:
        content = payload.raw_bytes()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    settings = get_import_settings()
    try:
        TabularDecoder(settings.max_file_bytes).ensure_within_limit(content)
    except ImportFileError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc

    try:
        return ImportService.process_import(
            db,
            content=content,
            file_name=payload.file_name,
            file_kind=payload.file_kind,
            import_type=payload.import_type,
            caller_id=caller.user_id,
            tenant_id=caller.company_id,
            options=payload.options,
            settings=settings,
        )
    except ImportCallerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.get("/history", response_model=schemas.ImportLogListResponse)
def list_import_history(
    skip: int = Query(0, ge=0, description="Number of entries to skip"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Maximum number of entries"),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.ImportLogListResponse:
    """Return the caller's company import history, newest first."""

    effective_limit = limit or get_import_settings().history_limit or 10
    items, total = ImportAuditLogService.history(
        db, caller.company_id, limit=effective_limit, skip=skip
    )
    return schemas.ImportLogListResponse(
        items=items, total=total, limit=effective_limit, skip=skip
    )


@router.get("/template/{import_type}", response_class=StreamingResponse)
def download_import_template(import_type: ImportType) -> StreamingResponse:
    """Provide a CSV template with the expected columns for ``import_type``."""

    csv_content = ImportService.build_import_template(import_type)
    headers = {
        "Content-Disposition": f"attachment; filename=plantilla_{import_type.value}.csv",
        "Cache-Control": "no-store",
    }
    return StreamingResponse(iter([csv_content]), media_type="text/csv", headers=headers)


@router.get("/{log_id}", response_model=schemas.ImportLogRead)
def get_import_log(
    log_id: str,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.ImportLogRead:
    """Retrieve a single import log entry of the caller's company."""

    try:
        return ImportAuditLogService.get(db, caller.company_id, log_id)
    except ImportLogNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
