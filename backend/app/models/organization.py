"""Tenant and identity models."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_guid, utcnow


class UserRole(str, enum.Enum):
    """Roles recognised by the planning platform."""

    CORPORATIVO = "corporativo"
    GERENTE = "gerente"
    EMPLEADO = "empleado"


class Company(Base):
    """A tenant. Every planning record and profile belongs to exactly one company."""

    __tablename__ = "companies"

    id = Column("company_id", GUID(), primary_key=True, default=new_guid)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    profiles = relationship("Profile", back_populates="company")


class Profile(Base):
    """A user identity scoped to a company."""

    __tablename__ = "profiles"

    id = Column("profile_id", GUID(), primary_key=True, default=new_guid)
    company_id = Column(
        GUID(),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    role = Column(
        Enum(
            UserRole,
            name="user_role_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=UserRole.EMPLEADO,
    )
    department = Column(String(100), nullable=True)
    manager_id = Column(
        GUID(),
        ForeignKey("profiles.profile_id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_by_import_id = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    company = relationship("Company", back_populates="profiles")
    manager = relationship("Profile", remote_side=[id])


Index("profiles_email_lower_idx", func.lower(Profile.email))
