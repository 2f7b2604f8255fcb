"""Map locale-variant headers and enumerated values onto the canonical schema."""

from __future__ import annotations

import enum
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from .. import models


class EntityType(str, enum.Enum):
    """Kinds of rows an import file can carry, in tier order."""

    OBJECTIVE = "objective"
    INITIATIVE = "initiative"
    ACTIVITY = "activity"
    USER = "user"


TIER_ORDER = (EntityType.OBJECTIVE, EntityType.INITIATIVE, EntityType.ACTIVITY)

IMPORT_TYPE_ENTITIES = {
    models.ImportType.OBJECTIVES: EntityType.OBJECTIVE,
    models.ImportType.INITIATIVES: EntityType.INITIATIVE,
    models.ImportType.ACTIVITIES: EntityType.ACTIVITY,
    models.ImportType.USERS: EntityType.USER,
}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NUMERIC_DECORATION_RE = re.compile(r"[^0-9,.\-]")
_THOUSANDS_COMMA_RE = re.compile(r"^-?\d{1,3}(,\d{3})+$")


def normalize_label(value: object) -> str:
    """Lowercase, strip accents and drop everything but letters and digits."""

    text = unicodedata.normalize("NFKD", str(value).strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub("", text)


def _build_lookup(table: Mapping[str, tuple[str, ...]]) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for canonical, synonyms in table.items():
        for synonym in (canonical, *synonyms):
            lookup[normalize_label(synonym)] = canonical
    return lookup


_COMMON_PLANNING_FIELDS: dict[str, tuple[str, ...]] = {
    "entity_type": ("tipo", "type", "tipo de registro", "nivel"),
    "title": ("título", "titulo", "nombre", "name"),
    "description": ("descripción", "descripcion", "detalle"),
    "department": ("departamento", "área", "area", "department"),
    "start_date": ("fecha inicio", "fecha_inicio", "fecha de inicio", "inicio", "start date", "start"),
    "end_date": ("fecha fin", "fecha_fin", "fecha de fin", "fin", "end date", "end"),
    "owner_email": (
        "email responsable",
        "responsable_email",
        "email_responsable",
        "correo responsable",
        "responsable",
        "owner",
        "owner email",
    ),
    "status": ("estado", "estatus", "status"),
    "progress": ("progreso (%)", "progreso", "avance", "progress"),
}

_FIELD_SYNONYMS: dict[EntityType, dict[str, tuple[str, ...]]] = {
    EntityType.OBJECTIVE: dict(_COMMON_PLANNING_FIELDS),
    EntityType.INITIATIVE: {
        **_COMMON_PLANNING_FIELDS,
        "parent_title": (
            "título del objetivo",
            "objetivo_titulo",
            "objetivo",
            "objective",
            "objective title",
            "parent title",
        ),
        "parent_id": ("id del objetivo", "objetivo_id", "objective_id", "parent id"),
        "budget": ("presupuesto", "budget"),
    },
    EntityType.ACTIVITY: {
        **_COMMON_PLANNING_FIELDS,
        "end_date": (
            *_COMMON_PLANNING_FIELDS["end_date"],
            "fecha límite",
            "fecha_limite",
            "fecha de vencimiento",
            "due date",
        ),
        "parent_title": (
            "título de la iniciativa",
            "iniciativa_titulo",
            "iniciativa",
            "initiative",
            "initiative title",
            "parent title",
        ),
        "parent_id": ("id de la iniciativa", "iniciativa_id", "initiative_id", "parent id"),
    },
    EntityType.USER: {
        "full_name": ("nombre completo", "nombre_completo", "nombre", "name"),
        "email": ("email", "correo", "correo electrónico", "e-mail"),
        "department": ("departamento", "área", "area"),
        "role": ("rol", "role", "perfil"),
        "manager_email": ("email del manager", "manager_email", "email jefe", "jefe", "manager"),
    },
}

_NOT_STARTED = ("no_iniciado", "no iniciado", "not_started", "not started", "pendiente", "pending")
_IN_PROGRESS = ("en_progreso", "en progreso", "en curso", "in progress", "activo", "active")
_COMPLETED = ("completo", "completado", "terminado", "finalizado", "done")
_CANCELLED = ("cancelado", "canceled", "pausado", "paused")

_STATUS_SYNONYMS: dict[EntityType, dict[str, tuple[str, ...]]] = {
    EntityType.OBJECTIVE: {
        models.ObjectiveStatus.DRAFT.value: (*_NOT_STARTED, "borrador"),
        models.ObjectiveStatus.IN_PROGRESS.value: _IN_PROGRESS,
        models.ObjectiveStatus.COMPLETED.value: _COMPLETED,
        models.ObjectiveStatus.CANCELLED.value: _CANCELLED,
    },
    EntityType.INITIATIVE: {
        models.InitiativeStatus.PLANNING.value: (
            *_NOT_STARTED,
            "planificacion",
            "planificación",
            "borrador",
            "draft",
        ),
        models.InitiativeStatus.IN_PROGRESS.value: _IN_PROGRESS,
        models.InitiativeStatus.COMPLETED.value: _COMPLETED,
        models.InitiativeStatus.CANCELLED.value: _CANCELLED,
    },
    EntityType.ACTIVITY: {
        models.ActivityStatus.TODO.value: (*_NOT_STARTED, "por hacer", "to do", "borrador", "draft"),
        models.ActivityStatus.IN_PROGRESS.value: _IN_PROGRESS,
        models.ActivityStatus.COMPLETED.value: _COMPLETED,
        models.ActivityStatus.CANCELLED.value: _CANCELLED,
    },
}

_DEFAULT_STATUS = {
    EntityType.OBJECTIVE: models.ObjectiveStatus.DRAFT.value,
    EntityType.INITIATIVE: models.InitiativeStatus.PLANNING.value,
    EntityType.ACTIVITY: models.ActivityStatus.TODO.value,
}

_ROLE_SYNONYMS: dict[str, tuple[str, ...]] = {
    models.UserRole.CORPORATIVO.value: ("corporate", "admin", "administrador"),
    models.UserRole.GERENTE.value: ("manager", "jefe"),
    models.UserRole.EMPLEADO.value: ("employee", "colaborador"),
}

_ENTITY_SYNONYMS: dict[str, tuple[str, ...]] = {
    EntityType.OBJECTIVE.value: ("objetivo", "objectives", "objetivos", "okr"),
    EntityType.INITIATIVE.value: ("iniciativa", "initiatives", "iniciativas"),
    EntityType.ACTIVITY.value: ("actividad", "activities", "actividades", "tarea", "task"),
}


class FieldNormalizer:
    """Static lookup tables from accepted synonyms to canonical names."""

    FIELD_LOOKUPS = {entity: _build_lookup(table) for entity, table in _FIELD_SYNONYMS.items()}
    STATUS_LOOKUPS = {entity: _build_lookup(table) for entity, table in _STATUS_SYNONYMS.items()}
    ROLE_LOOKUP = _build_lookup(_ROLE_SYNONYMS)
    ENTITY_LOOKUP = _build_lookup(_ENTITY_SYNONYMS)

    @staticmethod
    def canonical_field(header: object, entity: EntityType) -> Optional[str]:
        """Return the canonical field for a header, or ``None`` if unrecognised."""

        if header is None:
            return None
        return FieldNormalizer.FIELD_LOOKUPS[entity].get(normalize_label(header))

    @staticmethod
    def normalize_row(values: Mapping[str, object], entity: EntityType) -> dict[str, object]:
        """Rename recognised headers; the first non-empty value wins on clashes."""

        normalized: dict[str, object] = {}
        for header, value in values.items():
            field_name = FieldNormalizer.canonical_field(header, entity)
            if field_name is None:
                continue
            if normalized.get(field_name) is None:
                normalized[field_name] = value
        return normalized

    @staticmethod
    def detect_entity_type(
        values: Mapping[str, object], default: EntityType
    ) -> Optional[EntityType]:
        """Read the optional ``tipo``/``type`` column; ``None`` if the value is unknown."""

        for header, value in values.items():
            if FieldNormalizer.canonical_field(header, EntityType.OBJECTIVE) != "entity_type":
                continue
            if value is None:
                return default
            canonical = FieldNormalizer.ENTITY_LOOKUP.get(normalize_label(value))
            return EntityType(canonical) if canonical else None
        return default

    @staticmethod
    def normalize_status(value: object, entity: EntityType) -> str:
        default = _DEFAULT_STATUS[entity]
        if value is None:
            return default
        return FieldNormalizer.STATUS_LOOKUPS[entity].get(normalize_label(value), default)

    @staticmethod
    def normalize_role(value: object) -> models.UserRole:
        if value is None:
            return models.UserRole.EMPLEADO
        canonical = FieldNormalizer.ROLE_LOOKUP.get(normalize_label(value))
        return models.UserRole(canonical) if canonical else models.UserRole.EMPLEADO

    @staticmethod
    def parse_progress(value: object) -> int:
        """Progress as an integer percentage clamped to 0–100; unparsable → 0."""

        if value is None or isinstance(value, bool):
            return 0
        if isinstance(value, (int, float, Decimal)):
            number = float(value)
        else:
            candidate = str(value).replace("%", "").replace(",", ".").strip()
            try:
                number = float(candidate)
            except ValueError:
                return 0
        if number != number:  # NaN
            return 0
        return int(round(min(max(number, 0.0), 100.0)))

    @staticmethod
    def parse_budget(value: object) -> Decimal:
        """Budget without currency decoration; unparsable → 0."""

        if value is None or isinstance(value, bool):
            return Decimal("0")
        if isinstance(value, (int, float, Decimal)):
            try:
                number = Decimal(str(value))
            except InvalidOperation:
                return Decimal("0")
            return number if number.is_finite() else Decimal("0")

        candidate = _NUMERIC_DECORATION_RE.sub("", str(value))
        if "," in candidate and "." in candidate:
            if candidate.rfind(",") > candidate.rfind("."):
                candidate = candidate.replace(".", "").replace(",", ".")
            else:
                candidate = candidate.replace(",", "")
        elif "," in candidate:
            if _THOUSANDS_COMMA_RE.match(candidate):
                candidate = candidate.replace(",", "")
            else:
                candidate = candidate.replace(",", ".")
        try:
            return Decimal(candidate)
        except InvalidOperation:
            return Decimal("0")

    @staticmethod
    def map_department(
        department: Optional[str], mapping: Optional[Mapping[str, str]]
    ) -> Optional[str]:
        """Rewrite a department name using the caller-supplied mapping."""

        if department is None or not mapping:
            return department
        key = normalize_label(department)
        for source, target in mapping.items():
            if normalize_label(source) == key:
                return target
        return department
