from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from backend.app import models
from backend.app.services.import_errors import RowProcessingError
from backend.app.services.import_fields import EntityType
from backend.app.services.import_references import ReferenceResolver, ResolvedParent


def _objective(db_session, company, owner, title, *, department="Ventas", created_at=None):
    objective = models.Objective(
        company_id=company.id,
        title=title,
        department=department,
        owner_id=owner.id,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
    )
    if created_at is not None:
        objective.created_at = created_at
    db_session.add(objective)
    db_session.commit()
    return objective


@pytest.fixture
def resolver(db_session, company, corporate_user) -> ReferenceResolver:
    return ReferenceResolver(db_session, str(company.id), str(corporate_user.id))


def test_owner_resolution_within_tenant(resolver, make_profile, company, corporate_user):
    colleague = make_profile(company, "colega@empresa.com")
    inactive = make_profile(company, "baja@empresa.com", is_active=False)

    assert resolver.resolve_owner("COLEGA@empresa.com") == str(colleague.id)
    assert resolver.resolve_owner("baja@empresa.com") == str(corporate_user.id)
    assert resolver.resolve_owner("nadie@empresa.com") == str(corporate_user.id)
    assert resolver.resolve_owner(None) == str(corporate_user.id)
    assert inactive.id is not None


def test_owner_from_another_tenant_is_rejected(resolver, make_profile, other_company):
    make_profile(other_company, "externo@otra.com")

    with pytest.raises(RowProcessingError) as excinfo:
        resolver.resolve_owner("externo@otra.com")

    assert "no pertenece a la misma empresa" in str(excinfo.value)
    assert excinfo.value.issues[0].field == "owner_email"


def test_objective_by_title_prefers_most_recent(resolver, db_session, company, corporate_user):
    now = datetime.now(timezone.utc)
    _objective(db_session, company, corporate_user, "Q3 Growth", created_at=now - timedelta(days=2))
    newest = _objective(
        db_session, company, corporate_user, "q3 growth", department="Marketing", created_at=now
    )

    parent = resolver.resolve_objective("Q3 GROWTH")

    assert parent.id == str(newest.id)
    assert parent.department == "Marketing"


def test_objective_lookup_never_crosses_tenants(
    resolver, db_session, other_company, make_profile
):
    outsider = make_profile(other_company, "dueno@otra.com")
    foreign = _objective(db_session, other_company, outsider, "Compartido")

    with pytest.raises(RowProcessingError) as by_title:
        resolver.resolve_objective("Compartido")
    assert str(by_title.value) == "Objetivo no encontrado: Compartido"

    with pytest.raises(RowProcessingError):
        resolver.resolve_objective(None, str(foreign.id))


def test_staged_parents_resolve_before_stored_ones(resolver, db_session, company, corporate_user):
    _objective(db_session, company, corporate_user, "Plan Anual")
    staged = ResolvedParent(id="preview-objective-1", title="Plan Anual", department="Finanzas")
    resolver.register_parent(EntityType.OBJECTIVE, staged)

    assert resolver.resolve_objective("plan anual") == staged
    assert resolver.resolve_objective(None, "preview-objective-1") == staged


def test_initiative_inherits_department_from_objective(
    resolver, db_session, company, corporate_user
):
    objective = _objective(db_session, company, corporate_user, "Meta", department="Operaciones")
    initiative = models.Initiative(
        company_id=company.id,
        objective_id=objective.id,
        title="Automatizar",
        owner_id=corporate_user.id,
        start_date=date(2025, 2, 1),
        end_date=date(2025, 3, 1),
    )
    db_session.add(initiative)
    db_session.commit()

    parent = resolver.resolve_initiative("automatizar")

    assert parent.id == str(initiative.id)
    assert parent.department == "Operaciones"

    with pytest.raises(RowProcessingError) as excinfo:
        resolver.resolve_initiative("Inexistente")
    assert str(excinfo.value) == "Iniciativa no encontrada: Inexistente"


def test_manager_and_email_lookups(resolver, make_profile, company, other_company):
    boss = make_profile(company, "jefa@empresa.com", role=models.UserRole.GERENTE)
    make_profile(other_company, "ajeno@otra.com")

    assert resolver.resolve_manager("jefa@empresa.com") == str(boss.id)
    assert resolver.resolve_manager("desconocido@empresa.com") is None
    with pytest.raises(RowProcessingError):
        resolver.resolve_manager("ajeno@otra.com")

    assert resolver.email_exists("AJENO@otra.com") is True
    assert resolver.email_exists("nuevo@empresa.com") is False
    resolver.register_profile("nuevo@empresa.com", "preview-user-1")
    assert resolver.email_exists("nuevo@empresa.com") is True
