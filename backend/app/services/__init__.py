"""Service layer encapsulating business logic for API routers."""

from .import_audit import ImportAuditLogService
from .import_decoder import DecodedRow, TabularDecoder
from .import_errors import (
    ImportCallerNotFoundError,
    ImportFileError,
    ImportLogNotFoundError,
    ImportPermissionError,
    ImportServiceError,
    RowIssue,
    RowProcessingError,
)
from .import_fields import EntityType, FieldNormalizer
from .import_permissions import PermissionGate
from .import_references import ReferenceResolver, ResolvedParent
from .import_tracking import CreatedRecordTracker
from .import_validation import RecordValidator, parse_date
from .imports import ImportService
from .observability import ObservabilityService

__all__ = [
    "CreatedRecordTracker",
    "DecodedRow",
    "EntityType",
    "FieldNormalizer",
    "ImportAuditLogService",
    "ImportCallerNotFoundError",
    "ImportFileError",
    "ImportLogNotFoundError",
    "ImportPermissionError",
    "ImportService",
    "ImportServiceError",
    "ObservabilityService",
    "PermissionGate",
    "RecordValidator",
    "ReferenceResolver",
    "ResolvedParent",
    "RowIssue",
    "RowProcessingError",
    "TabularDecoder",
    "parse_date",
]
