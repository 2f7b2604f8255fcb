"""Audit trail for bulk imports."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    String,
    func,
)
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_guid, utcnow


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ImportStatus(str, enum.Enum):
    """Lifecycle of an import: ``processing`` until finalized exactly once."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportFileType(str, enum.Enum):
    CSV = "csv"
    XLSX = "xlsx"


class ImportType(str, enum.Enum):
    OBJECTIVES = "objectives"
    INITIATIVES = "initiatives"
    ACTIVITIES = "activities"
    USERS = "users"


class CommitPolicy(str, enum.Enum):
    """How the pipeline reacts to row failures."""

    BEST_EFFORT = "best_effort"
    ALL_OR_NOTHING = "all_or_nothing"


class ImportLog(Base):
    """Durable record of one import invocation, owned by the tenant."""

    __tablename__ = "import_logs"

    id = Column("import_log_id", GUID(), primary_key=True, default=new_guid)
    company_id = Column(
        GUID(),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        GUID(),
        ForeignKey("profiles.profile_id", ondelete="SET NULL"),
        nullable=True,
    )
    file_name = Column(String(255), nullable=False)
    file_type = Column(
        Enum(ImportFileType, name="import_file_type_enum", values_callable=_enum_values),
        nullable=False,
    )
    import_type = Column(
        Enum(ImportType, name="import_type_enum", values_callable=_enum_values),
        nullable=False,
    )
    commit_policy = Column(
        Enum(CommitPolicy, name="import_commit_policy_enum", values_callable=_enum_values),
        nullable=False,
        default=CommitPolicy.BEST_EFFORT,
    )
    preview = Column(Boolean, nullable=False, default=False)
    status = Column(
        Enum(ImportStatus, name="import_status_enum", values_callable=_enum_values),
        nullable=False,
        default=ImportStatus.PROCESSING,
    )
    total_records = Column(Integer, nullable=False, default=0)
    successful_records = Column(Integer, nullable=False, default=0)
    failed_records = Column(Integer, nullable=False, default=0)
    error_details = Column(JSON().with_variant(SQLiteJSON(), "sqlite"), nullable=True)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)

    uploaded_by = relationship("Profile")

    @property
    def uploaded_by_name(self):
        return self.uploaded_by.full_name if self.uploaded_by else None
