"""Role and department authorization for imports."""

from __future__ import annotations

from typing import Iterable, Optional

from .. import models
from .import_errors import ImportPermissionError, RowProcessingError
from .import_fields import EntityType, normalize_label

_PLANNING_ENTITIES = frozenset(
    {EntityType.OBJECTIVE, EntityType.INITIATIVE, EntityType.ACTIVITY}
)

_ALLOWED_ENTITIES: dict[models.UserRole, frozenset[EntityType]] = {
    models.UserRole.CORPORATIVO: frozenset(EntityType),
    models.UserRole.GERENTE: _PLANNING_ENTITIES,
    models.UserRole.EMPLEADO: frozenset(),
}

_ENTITY_LABELS = {
    EntityType.OBJECTIVE: "objetivos",
    EntityType.INITIATIVE: "iniciativas",
    EntityType.ACTIVITY: "actividades",
    EntityType.USER: "usuarios",
}


class PermissionGate:
    """Decides what a caller may import and into which departments."""

    @staticmethod
    def ensure_can_import(caller: models.Profile, entity_types: Iterable[EntityType]) -> None:
        role = models.UserRole(caller.role)
        allowed = _ALLOWED_ENTITIES.get(role, frozenset())
        for entity in entity_types:
            if entity in allowed:
                continue
            if entity == EntityType.USER:
                raise ImportPermissionError(
                    "Solo usuarios corporativos pueden importar usuarios"
                )
            raise ImportPermissionError(
                f"No tiene permisos para importar {_ENTITY_LABELS[entity]}"
            )

    @staticmethod
    def is_department_scoped(caller: models.Profile) -> bool:
        return models.UserRole(caller.role) == models.UserRole.GERENTE

    @staticmethod
    def check_row_department(caller: models.Profile, department: Optional[str]) -> None:
        """Department managers may only write rows that belong to their department."""

        if not PermissionGate.is_department_scoped(caller):
            return
        if department is None or normalize_label(department) != normalize_label(
            caller.department or ""
        ):
            raise RowProcessingError(
                f"No tiene permisos para importar registros del departamento {department or 'sin departamento'}",
                field="department",
                value=department,
            )
