"""Pydantic schemas for bulk imports and their audit log."""

from __future__ import annotations

import base64
import binascii
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.import_log import CommitPolicy, ImportFileType, ImportStatus, ImportType
from .common import PaginatedResponse


class ImportOptions(BaseModel):
    """Caller-selected knobs for a single import."""

    preview_mode: bool = False
    commit_policy: Optional[CommitPolicy] = None
    department_mapping: dict[str, str] = Field(default_factory=dict)
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    @model_validator(mode="after")
    def _check_period(self) -> "ImportOptions":
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValueError("period_end no puede ser anterior a period_start")
        return self


class ImportRequest(BaseModel):
    """Upload payload: text content for CSV, base64 for any file kind."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_kind: ImportFileType
    import_type: ImportType
    content: Optional[str] = None
    content_base64: Optional[str] = None
    options: ImportOptions = Field(default_factory=ImportOptions)

    @model_validator(mode="after")
    def _check_content(self) -> "ImportRequest":
        if self.content is None and self.content_base64 is None:
            raise ValueError("Debe enviar content o content_base64")
        if self.content is not None and self.content_base64 is not None:
            raise ValueError("Envíe solo uno de content o content_base64")
        return self

    def raw_bytes(self) -> bytes:
        if self.content_base64 is not None:
            try:
                return base64.b64decode(self.content_base64, validate=True)
            except (ValueError, binascii.Error) as exc:
                raise ValueError("content_base64 no es base64 válido") from exc
        return (self.content or "").encode("utf-8")


class ImportRowError(BaseModel):
    """A row-level problem; ``row_number`` 0 marks file or type-level errors."""

    row_number: int = Field(..., ge=0)
    field: Optional[str] = None
    message: str
    value: Optional[str] = None
    sheet: Optional[str] = None


class ImportResult(BaseModel):
    """Outcome of a bulk import."""

    success: bool
    total_records: int = Field(..., ge=0)
    successful_records: int = Field(..., ge=0)
    failed_records: int = Field(..., ge=0)
    errors: list[ImportRowError] = Field(default_factory=list)
    preview: Optional[list[dict[str, Any]]] = None
    import_log_id: Optional[str] = None
    commit_policy: CommitPolicy = CommitPolicy.BEST_EFFORT
    rolled_back: bool = False


class ImportLogRead(BaseModel):
    """Audit log entry as returned by the history endpoints."""

    id: str
    user_id: Optional[str] = None
    uploaded_by_name: Optional[str] = None
    file_name: str
    file_type: ImportFileType
    import_type: ImportType
    commit_policy: CommitPolicy
    preview: bool
    status: ImportStatus
    total_records: int
    successful_records: int
    failed_records: int
    error_details: Optional[list[dict[str, Any]]] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ImportLogListResponse(PaginatedResponse[ImportLogRead]):
    """Paginated import history."""

    pass
