from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app import models
from backend.app.services.import_fields import EntityType, FieldNormalizer


@pytest.mark.parametrize(
    "header, entity, expected",
    [
        ("Título", EntityType.OBJECTIVE, "title"),
        ("FECHA_INICIO", EntityType.OBJECTIVE, "start_date"),
        ("Fecha de Fin", EntityType.INITIATIVE, "end_date"),
        ("fecha límite", EntityType.ACTIVITY, "end_date"),
        ("Email Responsable", EntityType.ACTIVITY, "owner_email"),
        ("objetivo_titulo", EntityType.INITIATIVE, "parent_title"),
        ("Iniciativa", EntityType.ACTIVITY, "parent_title"),
        ("Presupuesto", EntityType.INITIATIVE, "budget"),
        ("Progreso (%)", EntityType.OBJECTIVE, "progress"),
        ("Nombre completo", EntityType.USER, "full_name"),
        ("Rol", EntityType.USER, "role"),
        ("columna rara", EntityType.OBJECTIVE, None),
        ("presupuesto", EntityType.OBJECTIVE, None),
    ],
)
def test_canonical_field(header, entity, expected):
    assert FieldNormalizer.canonical_field(header, entity) == expected


def test_normalize_row_drops_unknown_headers_and_keeps_first_value():
    row = {"Título": "Meta", "Nombre": "Otro", "Extra": "x", "Estado": "Completado"}

    normalized = FieldNormalizer.normalize_row(row, EntityType.OBJECTIVE)

    assert normalized == {"title": "Meta", "status": "Completado"}


@pytest.mark.parametrize(
    "value, entity, expected",
    [
        ("En Progreso", EntityType.OBJECTIVE, "in_progress"),
        ("completado", EntityType.INITIATIVE, "completed"),
        ("Cancelado", EntityType.ACTIVITY, "cancelled"),
        ("algo raro", EntityType.OBJECTIVE, "draft"),
        ("algo raro", EntityType.INITIATIVE, "planning"),
        (None, EntityType.ACTIVITY, "todo"),
    ],
)
def test_normalize_status(value, entity, expected):
    assert FieldNormalizer.normalize_status(value, entity) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Corporativo", models.UserRole.CORPORATIVO),
        ("admin", models.UserRole.CORPORATIVO),
        ("Manager", models.UserRole.GERENTE),
        ("employee", models.UserRole.EMPLEADO),
        ("desconocido", models.UserRole.EMPLEADO),
    ],
)
def test_normalize_role(value, expected):
    assert FieldNormalizer.normalize_role(value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [("75%", 75), ("150", 100), ("-3", 0), ("12,6", 13), (42, 42), ("abc", 0), (None, 0)],
)
def test_parse_progress(value, expected):
    assert FieldNormalizer.parse_progress(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("$1,234.50", Decimal("1234.50")),
        ("1.234,50 €", Decimal("1234.50")),
        ("50000", Decimal("50000")),
        ("12,5", Decimal("12.5")),
        (2500, Decimal("2500")),
        ("n/a", Decimal("0")),
    ],
)
def test_parse_budget(value, expected):
    assert FieldNormalizer.parse_budget(value) == expected


def test_detect_entity_type():
    default = EntityType.OBJECTIVE

    assert FieldNormalizer.detect_entity_type({"Título": "x"}, default) is default
    assert (
        FieldNormalizer.detect_entity_type({"Tipo": "Iniciativa"}, default)
        is EntityType.INITIATIVE
    )
    assert FieldNormalizer.detect_entity_type({"type": "task"}, default) is EntityType.ACTIVITY
    assert FieldNormalizer.detect_entity_type({"tipo": "proyecto"}, default) is None


def test_map_department_is_accent_and_case_insensitive():
    mapping = {"Producción": "Operaciones"}

    assert FieldNormalizer.map_department("produccion", mapping) == "Operaciones"
    assert FieldNormalizer.map_department("Ventas", mapping) == "Ventas"
    assert FieldNormalizer.map_department(None, mapping) is None
