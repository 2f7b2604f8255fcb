"""Exceptions raised by the import pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class ImportServiceError(Exception):
    """Base class for failures that abort an import before rows are processed."""


class ImportFileError(ImportServiceError):
    """The payload could not be decoded; reported as a single row-0 ``file`` error."""

    def __init__(self, message: str, *, too_large: bool = False) -> None:
        super().__init__(message)
        self.too_large = too_large


class ImportPermissionError(ImportServiceError):
    """The caller's role does not allow the requested import type."""


class ImportCallerNotFoundError(ImportServiceError):
    """The caller id does not match an active profile of the tenant."""


class ImportLogNotFoundError(ImportServiceError):
    """No audit log entry with the given id exists for the tenant."""


@dataclass(frozen=True)
class RowIssue:
    """One problem found in a row; a rejected row may carry several."""

    message: str
    field: Optional[str] = None
    value: object = None


class RowProcessingError(Exception):
    """Raised when an import row cannot be processed; never escapes the orchestrator."""

    def __init__(
        self,
        message: str = "",
        *,
        field: Optional[str] = None,
        value: object = None,
        issues: Optional[list[RowIssue]] = None,
    ) -> None:
        self.issues = list(issues) if issues else [RowIssue(message, field, value)]
        super().__init__(self.issues[0].message)
