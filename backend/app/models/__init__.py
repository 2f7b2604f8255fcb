"""Expose SQLAlchemy models for convenient imports."""

from .import_log import CommitPolicy, ImportFileType, ImportLog, ImportStatus, ImportType
from .operational_metric import OperationalMetricEvent
from .organization import Company, Profile, UserRole
from .planning import (
    Activity,
    ActivityStatus,
    Initiative,
    InitiativeStatus,
    Objective,
    ObjectiveStatus,
)

__all__ = [
    "Activity",
    "ActivityStatus",
    "CommitPolicy",
    "Company",
    "ImportFileType",
    "ImportLog",
    "ImportStatus",
    "ImportType",
    "Initiative",
    "InitiativeStatus",
    "Objective",
    "ObjectiveStatus",
    "OperationalMetricEvent",
    "Profile",
    "UserRole",
]
