"""Environment-driven settings for the import pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from .database import read_int_env
from .models import CommitPolicy

MAX_FILE_BYTES_ENV = "IMPORT_MAX_FILE_BYTES"
MAX_RECORDS_ENV = "IMPORT_MAX_RECORDS"
PREVIEW_LIMIT_ENV = "IMPORT_PREVIEW_LIMIT"
HISTORY_LIMIT_ENV = "IMPORT_HISTORY_LIMIT"
DEFAULT_COMMIT_POLICY_ENV = "IMPORT_DEFAULT_COMMIT_POLICY"

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_RECORDS = 1000
DEFAULT_PREVIEW_LIMIT = 10
DEFAULT_HISTORY_LIMIT = 10


@dataclass(frozen=True)
class ImportSettings:
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_records: int = DEFAULT_MAX_RECORDS
    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    history_limit: int = DEFAULT_HISTORY_LIMIT
    default_commit_policy: CommitPolicy = CommitPolicy.BEST_EFFORT


def _read_commit_policy_env(name: str, default: CommitPolicy) -> CommitPolicy:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return CommitPolicy(raw.strip().lower().replace("-", "_"))
    except ValueError as exc:
        valid = ", ".join(policy.value for policy in CommitPolicy)
        raise ValueError(f"{name} must be one of: {valid}") from exc


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """Load the import settings once per process."""

    return ImportSettings(
        max_file_bytes=read_int_env(MAX_FILE_BYTES_ENV, DEFAULT_MAX_FILE_BYTES),
        max_records=read_int_env(MAX_RECORDS_ENV, DEFAULT_MAX_RECORDS),
        preview_limit=read_int_env(PREVIEW_LIMIT_ENV, DEFAULT_PREVIEW_LIMIT),
        history_limit=read_int_env(HISTORY_LIMIT_ENV, DEFAULT_HISTORY_LIMIT),
        default_commit_policy=_read_commit_policy_env(
            DEFAULT_COMMIT_POLICY_ENV, CommitPolicy.BEST_EFFORT
        ),
    )
