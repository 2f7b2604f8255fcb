from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from backend.app import models
from backend.app.services.import_errors import RowProcessingError
from backend.app.services.import_fields import EntityType
from backend.app.services.import_validation import (
    INVALID_DATE_MESSAGE,
    InitiativeRecord,
    ObjectiveRecord,
    RecordValidator,
    UserRecord,
    parse_date,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("15/03/2025", date(2025, 3, 15)),
        ("5-3-2025", date(2025, 3, 5)),
        ("2025-03-15", date(2025, 3, 15)),
        ("2025-03-15T10:30:00Z", date(2025, 3, 15)),
        (45000, date(2023, 3, 15)),
        (datetime(2025, 1, 2, 8, 0), date(2025, 1, 2)),
        (date(2024, 12, 31), date(2024, 12, 31)),
        ("31/02/2025", None),
        ("mañana", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(value, expected):
    assert parse_date(value) == expected


def _objective_row(**overrides):
    row = {
        "title": "Aumentar ventas",
        "start_date": "01/01/2025",
        "end_date": "31/12/2025",
        "status": "en progreso",
        "progress": "30%",
        "owner_email": "Gerente@Empresa.com",
    }
    row.update(overrides)
    return row


def test_valid_objective_row_builds_record():
    record = RecordValidator.validate(EntityType.OBJECTIVE, _objective_row(), 2)

    assert isinstance(record, ObjectiveRecord)
    assert record.row_number == 2
    assert record.start_date == date(2025, 1, 1)
    assert record.end_date == date(2025, 12, 31)
    assert record.status == models.ObjectiveStatus.IN_PROGRESS.value
    assert record.progress == 30
    assert record.owner_email == "gerente@empresa.com"


def test_missing_required_fields_report_one_issue_each():
    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(
            EntityType.OBJECTIVE, _objective_row(title=None, start_date=""), 5
        )

    issues = excinfo.value.issues
    assert [issue.field for issue in issues] == ["title", "start_date"]
    assert issues[0].message == "Campo requerido faltante: título"


def test_unparsable_date_is_a_single_error():
    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(
            EntityType.OBJECTIVE, _objective_row(start_date="ayer", end_date="luego"), 3
        )

    issues = excinfo.value.issues
    assert len(issues) == 1
    assert issues[0].message == INVALID_DATE_MESSAGE


def test_end_before_start_is_rejected_on_end_date():
    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(
            EntityType.OBJECTIVE, _objective_row(start_date="10/05/2025", end_date="01/05/2025"), 4
        )

    assert excinfo.value.issues[0].field == "end_date"


def test_initiative_requires_parent_reference():
    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(EntityType.INITIATIVE, _objective_row(), 2)

    assert excinfo.value.issues[0].field == "parent_title"


def test_initiative_record_carries_parent_and_budget():
    record = RecordValidator.validate(
        EntityType.INITIATIVE,
        _objective_row(parent_title="Aumentar ventas", budget="$10,000.00", status="raro"),
        7,
        "Ventas",
    )

    assert isinstance(record, InitiativeRecord)
    assert record.parent_title == "Aumentar ventas"
    assert record.budget == Decimal("10000.00")
    assert record.status == models.InitiativeStatus.PLANNING.value
    assert record.sheet == "Ventas"


def test_title_longer_than_limit_is_rejected():
    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(EntityType.OBJECTIVE, _objective_row(title="x" * 256), 2)

    assert excinfo.value.issues[0].field == "title"


def test_user_rows():
    record = RecordValidator.validate(
        EntityType.USER,
        {"full_name": "Ana Pérez", "email": "Ana@Empresa.com", "role": "manager"},
        2,
    )
    assert isinstance(record, UserRecord)
    assert record.email == "ana@empresa.com"
    assert record.role is models.UserRole.GERENTE

    with pytest.raises(RowProcessingError) as excinfo:
        RecordValidator.validate(
            EntityType.USER,
            {"full_name": "Ana", "email": "no-es-email", "role": "empleado"},
            3,
        )
    assert excinfo.value.issues[0].field == "email"
