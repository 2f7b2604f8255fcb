"""SQLAlchemy models for the objective → initiative → activity hierarchy."""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_guid, utcnow


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ObjectiveStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InitiativeStatus(str, enum.Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActivityStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Objective(Base):
    """Top tier of the planning hierarchy."""

    __tablename__ = "objectives"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_objectives_progress_range"),
        CheckConstraint("end_date >= start_date", name="ck_objectives_date_range"),
    )

    id = Column("objective_id", GUID(), primary_key=True, default=new_guid)
    company_id = Column(
        GUID(),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    department = Column(String(100), nullable=True)
    owner_id = Column(
        GUID(),
        ForeignKey("profiles.profile_id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(
        Enum(ObjectiveStatus, name="objective_status_enum", values_callable=_enum_values),
        nullable=False,
        default=ObjectiveStatus.DRAFT,
    )
    progress = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_by_import_id = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    owner = relationship("Profile")
    initiatives = relationship("Initiative", back_populates="objective")


class Initiative(Base):
    """Second tier; always hangs from an objective of the same company."""

    __tablename__ = "initiatives"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_initiatives_progress_range"),
        CheckConstraint("end_date >= start_date", name="ck_initiatives_date_range"),
    )

    id = Column("initiative_id", GUID(), primary_key=True, default=new_guid)
    company_id = Column(
        GUID(),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    objective_id = Column(
        GUID(),
        ForeignKey("objectives.objective_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(
        GUID(),
        ForeignKey("profiles.profile_id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(
        Enum(InitiativeStatus, name="initiative_status_enum", values_callable=_enum_values),
        nullable=False,
        default=InitiativeStatus.PLANNING,
    )
    progress = Column(Integer, nullable=False, default=0)
    budget = Column(Numeric(14, 2), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_by_import_id = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    objective = relationship("Objective", back_populates="initiatives")
    owner = relationship("Profile")
    activities = relationship("Activity", back_populates="initiative")

    @property
    def department(self):
        """Initiatives inherit the department of their objective."""

        return self.objective.department if self.objective else None


class Activity(Base):
    """Third tier; always hangs from an initiative of the same company."""

    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_activities_progress_range"),
    )

    id = Column("activity_id", GUID(), primary_key=True, default=new_guid)
    company_id = Column(
        GUID(),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    initiative_id = Column(
        GUID(),
        ForeignKey("initiatives.initiative_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(
        GUID(),
        ForeignKey("profiles.profile_id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(
        Enum(ActivityStatus, name="activity_status_enum", values_callable=_enum_values),
        nullable=False,
        default=ActivityStatus.TODO,
    )
    progress = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=False)
    created_by_import_id = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    initiative = relationship("Initiative", back_populates="activities")
    owner = relationship("Profile")


Index("objectives_company_title_idx", Objective.company_id, func.lower(Objective.title))
Index("initiatives_company_title_idx", Initiative.company_id, func.lower(Initiative.title))
Index("activities_company_idx", Activity.company_id)
