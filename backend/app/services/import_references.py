"""Tenant-scoped resolution of owners, managers and parent records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from .import_errors import RowProcessingError
from .import_fields import EntityType


@dataclass(frozen=True)
class ResolvedParent:
    """A parent record as seen by its children: identity plus inherited department."""

    id: str
    title: str
    department: Optional[str] = None


def _is_guid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _title_key(title: str) -> str:
    return title.strip().lower()


class ReferenceResolver:
    """Resolves cross-row references for one import, never leaving ``tenant_id``.

    Records created earlier in the same batch are registered with
    :meth:`register_parent` / :meth:`register_profile`; they win over stored
    records with the same title because they are the most recent ones. Preview
    runs register placeholder ids so child rows resolve without persisting.
    """

    def __init__(self, db: Session, tenant_id: str, caller_id: str) -> None:
        self.db = db
        self.tenant_id = str(tenant_id)
        self.caller_id = str(caller_id)
        self._owner_cache: dict[str, tuple[Optional[str], bool]] = {}
        self._staged_titles: dict[EntityType, dict[str, ResolvedParent]] = {
            EntityType.OBJECTIVE: {},
            EntityType.INITIATIVE: {},
        }
        self._staged_ids: dict[EntityType, dict[str, ResolvedParent]] = {
            EntityType.OBJECTIVE: {},
            EntityType.INITIATIVE: {},
        }
        self._staged_profiles: dict[str, str] = {}

    # Owners and managers -------------------------------------------------

    def _lookup_profile(self, email: str) -> tuple[Optional[str], bool]:
        """Return ``(profile id or None, belongs to another tenant)`` for an email."""

        key = email.strip().lower()
        if key in self._owner_cache:
            return self._owner_cache[key]
        if key in self._staged_profiles:
            return self._staged_profiles[key], False

        profile = (
            self.db.query(models.Profile)
            .filter(func.lower(models.Profile.email) == key)
            .first()
        )
        if profile is None:
            resolved: tuple[Optional[str], bool] = (None, False)
        elif str(profile.company_id) != self.tenant_id:
            resolved = (None, True)
        elif not profile.is_active:
            resolved = (None, False)
        else:
            resolved = (str(profile.id), False)
        self._owner_cache[key] = resolved
        return resolved

    def resolve_owner(self, email: Optional[str]) -> str:
        """Owner id for a row; unknown or inactive emails fall back to the caller."""

        if not email:
            return self.caller_id
        profile_id, foreign = self._lookup_profile(email)
        if foreign:
            raise RowProcessingError(
                f"El responsable {email} no pertenece a la misma empresa",
                field="owner_email",
                value=email,
            )
        return profile_id or self.caller_id

    def resolve_manager(self, email: Optional[str]) -> Optional[str]:
        if not email:
            return None
        profile_id, foreign = self._lookup_profile(email)
        if foreign:
            raise RowProcessingError(
                f"El manager {email} no pertenece a la misma empresa",
                field="manager_email",
                value=email,
            )
        return profile_id

    def email_exists(self, email: str) -> bool:
        """Profiles are unique by email across every tenant."""

        key = email.strip().lower()
        if key in self._staged_profiles:
            return True
        return (
            self.db.query(models.Profile.id)
            .filter(func.lower(models.Profile.email) == key)
            .first()
            is not None
        )

    def register_profile(self, email: str, profile_id: str) -> None:
        key = email.strip().lower()
        self._staged_profiles[key] = str(profile_id)
        self._owner_cache.pop(key, None)

    # Parents --------------------------------------------------------------

    def register_parent(self, entity: EntityType, parent: ResolvedParent) -> None:
        self._staged_titles[entity][_title_key(parent.title)] = parent
        self._staged_ids[entity][parent.id] = parent

    def resolve_objective(
        self, title: Optional[str], objective_id: Optional[str] = None
    ) -> ResolvedParent:
        if objective_id:
            parent = self._staged_ids[EntityType.OBJECTIVE].get(objective_id)
            if parent is None and _is_guid(objective_id):
                objective = (
                    self.db.query(models.Objective)
                    .filter(
                        models.Objective.id == objective_id,
                        models.Objective.company_id == self.tenant_id,
                    )
                    .first()
                )
                if objective is not None:
                    parent = self._objective_parent(objective)
            if parent is None:
                raise RowProcessingError(
                    f"Objetivo no encontrado: {objective_id}",
                    field="parent_id",
                    value=objective_id,
                )
            return parent

        parent = self._staged_titles[EntityType.OBJECTIVE].get(_title_key(title or ""))
        if parent is not None:
            return parent
        objective = (
            self.db.query(models.Objective)
            .filter(
                models.Objective.company_id == self.tenant_id,
                func.lower(models.Objective.title) == _title_key(title or ""),
            )
            .order_by(models.Objective.created_at.desc())
            .first()
        )
        if objective is None:
            raise RowProcessingError(
                f"Objetivo no encontrado: {title}", field="parent_title", value=title
            )
        return self._objective_parent(objective)

    def resolve_initiative(
        self, title: Optional[str], initiative_id: Optional[str] = None
    ) -> ResolvedParent:
        query = (
            self.db.query(models.Initiative, models.Objective.department)
            .join(models.Objective, models.Initiative.objective_id == models.Objective.id)
            .filter(models.Initiative.company_id == self.tenant_id)
        )

        if initiative_id:
            parent = self._staged_ids[EntityType.INITIATIVE].get(initiative_id)
            if parent is None and _is_guid(initiative_id):
                found = query.filter(models.Initiative.id == initiative_id).first()
                if found is not None:
                    parent = self._initiative_parent(*found)
            if parent is None:
                raise RowProcessingError(
                    f"Iniciativa no encontrada: {initiative_id}",
                    field="parent_id",
                    value=initiative_id,
                )
            return parent

        parent = self._staged_titles[EntityType.INITIATIVE].get(_title_key(title or ""))
        if parent is not None:
            return parent
        found = (
            query.filter(func.lower(models.Initiative.title) == _title_key(title or ""))
            .order_by(models.Initiative.created_at.desc())
            .first()
        )
        if found is None:
            raise RowProcessingError(
                f"Iniciativa no encontrada: {title}", field="parent_title", value=title
            )
        return self._initiative_parent(*found)

    @staticmethod
    def _objective_parent(objective: models.Objective) -> ResolvedParent:
        return ResolvedParent(
            id=str(objective.id), title=objective.title, department=objective.department
        )

    @staticmethod
    def _initiative_parent(
        initiative: models.Initiative, department: Optional[str]
    ) -> ResolvedParent:
        return ResolvedParent(id=str(initiative.id), title=initiative.title, department=department)
