"""Expose Pydantic schemas for convenient imports."""

from .common import PaginatedResponse
from .imports import (
    ImportLogListResponse,
    ImportLogRead,
    ImportOptions,
    ImportRequest,
    ImportResult,
    ImportRowError,
)

__all__ = [
    "ImportLogListResponse",
    "ImportLogRead",
    "ImportOptions",
    "ImportRequest",
    "ImportResult",
    "ImportRowError",
    "PaginatedResponse",
]
