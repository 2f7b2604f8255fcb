"""Row-level validation and the typed records produced from accepted rows."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import ClassVar, Optional, Union

from .. import models
from .import_errors import RowIssue, RowProcessingError
from .import_fields import EntityType, FieldNormalizer

_DMY_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_MAX_SERIAL = 2958465
TITLE_MAX_LENGTH = 255

INVALID_DATE_MESSAGE = "Formato de fecha inválido. Use DD/MM/AAAA"

FIELD_LABELS = {
    "title": "título",
    "start_date": "fecha_inicio",
    "end_date": "fecha_fin",
    "full_name": "nombre_completo",
    "email": "email",
    "role": "rol",
}


def parse_date(value: object) -> Optional[date]:
    """Parse ``DD/MM/YYYY`` first, then ISO-8601, then Excel serial numbers."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        serial = int(value)
        if 1 <= serial <= _EXCEL_MAX_SERIAL:
            return _EXCEL_EPOCH + timedelta(days=serial)
        return None

    text = str(value).strip()
    if not text:
        return None

    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _text(value: object) -> Optional[str]:
    if value is None:
        return None
    candidate = str(value).strip()
    return candidate or None


@dataclass
class _PlanningRecord:
    row_number: int
    sheet: Optional[str]
    title: str
    start_date: date
    end_date: date
    status: str
    progress: int = 0
    description: Optional[str] = None
    owner_email: Optional[str] = None
    department: Optional[str] = None

    def to_preview(self) -> dict[str, object]:
        payload = asdict(self)
        payload["entity_type"] = self.entity_type.value
        return payload


@dataclass
class ObjectiveRecord(_PlanningRecord):
    entity_type: ClassVar[EntityType] = EntityType.OBJECTIVE


@dataclass
class InitiativeRecord(_PlanningRecord):
    entity_type: ClassVar[EntityType] = EntityType.INITIATIVE

    parent_title: Optional[str] = None
    parent_id: Optional[str] = None
    budget: Optional[Decimal] = None


@dataclass
class ActivityRecord(_PlanningRecord):
    """``end_date`` is persisted as the activity's due date."""

    entity_type: ClassVar[EntityType] = EntityType.ACTIVITY

    parent_title: Optional[str] = None
    parent_id: Optional[str] = None


@dataclass
class UserRecord:
    entity_type: ClassVar[EntityType] = EntityType.USER

    row_number: int
    sheet: Optional[str]
    full_name: str
    email: str
    role: models.UserRole
    department: Optional[str] = None
    manager_email: Optional[str] = None

    def to_preview(self) -> dict[str, object]:
        payload = asdict(self)
        payload["role"] = self.role.value
        payload["entity_type"] = self.entity_type.value
        return payload


ImportRecord = Union[ObjectiveRecord, InitiativeRecord, ActivityRecord, UserRecord]


class RecordValidator:
    """Checks one normalized row and builds its typed record.

    Order: required fields, dates, date range, structure. The first failing
    group stops further checks; every issue of that group is reported.
    """

    PLANNING_REQUIRED = ("title", "start_date", "end_date")
    USER_REQUIRED = ("full_name", "email", "role")

    @staticmethod
    def validate(
        entity: EntityType,
        row: dict[str, object],
        row_number: int,
        sheet: Optional[str] = None,
    ) -> ImportRecord:
        if entity == EntityType.USER:
            return RecordValidator._validate_user(row, row_number, sheet)
        return RecordValidator._validate_planning(entity, row, row_number, sheet)

    @staticmethod
    def _require(row: dict[str, object], fields: tuple[str, ...]) -> None:
        missing = [field for field in fields if _text(row.get(field)) is None]
        if missing:
            raise RowProcessingError(
                issues=[
                    RowIssue(
                        f"Campo requerido faltante: {FIELD_LABELS.get(field, field)}",
                        field=field,
                    )
                    for field in missing
                ]
            )

    @staticmethod
    def _validate_planning(
        entity: EntityType,
        row: dict[str, object],
        row_number: int,
        sheet: Optional[str],
    ) -> ImportRecord:
        RecordValidator._require(row, RecordValidator.PLANNING_REQUIRED)

        title = _text(row["title"])
        if len(title) > TITLE_MAX_LENGTH:
            raise RowProcessingError(
                f"El título no puede exceder {TITLE_MAX_LENGTH} caracteres",
                field="title",
            )

        start_date = parse_date(row.get("start_date"))
        end_date = parse_date(row.get("end_date"))
        if start_date is None or end_date is None:
            failed_field = "start_date" if start_date is None else "end_date"
            raise RowProcessingError(
                INVALID_DATE_MESSAGE,
                field=failed_field,
                value=_text(row.get(failed_field)),
            )
        if end_date < start_date:
            raise RowProcessingError(
                "La fecha de fin no puede ser anterior a la fecha de inicio",
                field="end_date",
                value=end_date.isoformat(),
            )

        owner_email = _text(row.get("owner_email"))
        common = {
            "row_number": row_number,
            "sheet": sheet,
            "title": title,
            "start_date": start_date,
            "end_date": end_date,
            "status": FieldNormalizer.normalize_status(row.get("status"), entity),
            "progress": FieldNormalizer.parse_progress(row.get("progress")),
            "description": _text(row.get("description")),
            "owner_email": owner_email.lower() if owner_email else None,
            "department": _text(row.get("department")),
        }

        if entity == EntityType.OBJECTIVE:
            return ObjectiveRecord(**common)

        parent_title = _text(row.get("parent_title"))
        parent_id = _text(row.get("parent_id"))
        if parent_title is None and parent_id is None:
            message = (
                "Debe especificar objetivo_id u objetivo_titulo"
                if entity == EntityType.INITIATIVE
                else "Debe especificar iniciativa_id o iniciativa_titulo"
            )
            raise RowProcessingError(message, field="parent_title")

        if entity == EntityType.INITIATIVE:
            budget_raw = row.get("budget")
            return InitiativeRecord(
                **common,
                parent_title=parent_title,
                parent_id=parent_id,
                budget=FieldNormalizer.parse_budget(budget_raw) if budget_raw is not None else None,
            )
        return ActivityRecord(**common, parent_title=parent_title, parent_id=parent_id)

    @staticmethod
    def _validate_user(
        row: dict[str, object], row_number: int, sheet: Optional[str]
    ) -> UserRecord:
        RecordValidator._require(row, RecordValidator.USER_REQUIRED)

        email = _text(row["email"]).lower()
        if not _EMAIL_RE.match(email):
            raise RowProcessingError("Formato de email inválido", field="email", value=email)

        manager_email = _text(row.get("manager_email"))
        return UserRecord(
            row_number=row_number,
            sheet=sheet,
            full_name=_text(row["full_name"]),
            email=email,
            role=FieldNormalizer.normalize_role(row.get("role")),
            department=_text(row.get("department")),
            manager_email=manager_email.lower() if manager_email else None,
        )
