from __future__ import annotations

import pytest

from backend.app import models, schemas
from backend.app.services import ImportAuditLogService, ImportLogNotFoundError


def _start(db_session, caller, file_name="objetivos.csv"):
    return ImportAuditLogService.start(
        db_session,
        tenant_id=str(caller.company_id),
        user_id=str(caller.id),
        file_name=file_name,
        file_kind=models.ImportFileType.CSV,
        import_type=models.ImportType.OBJECTIVES,
        commit_policy=models.CommitPolicy.BEST_EFFORT,
        preview=False,
    )


def test_log_lifecycle(db_session, corporate_user):
    log = _start(db_session, corporate_user)
    assert log.status == models.ImportStatus.PROCESSING
    assert log.completed_at is None

    result = schemas.ImportResult(
        success=False,
        total_records=2,
        successful_records=1,
        failed_records=1,
        errors=[schemas.ImportRowError(row_number=3, field="title", message="Campo requerido faltante: título")],
    )
    finalized = ImportAuditLogService.finalize(db_session, log, result)

    assert finalized.status == models.ImportStatus.FAILED
    assert (finalized.total_records, finalized.successful_records, finalized.failed_records) == (2, 1, 1)
    assert finalized.error_details[0]["field"] == "title"
    assert finalized.completed_at is not None

    with pytest.raises(ValueError):
        ImportAuditLogService.finalize(db_session, log, result)


def test_clean_imports_store_no_error_details(db_session, corporate_user):
    log = _start(db_session, corporate_user)
    result = schemas.ImportResult(
        success=True, total_records=1, successful_records=1, failed_records=0
    )

    finalized = ImportAuditLogService.finalize(db_session, log, result)

    assert finalized.status == models.ImportStatus.COMPLETED
    assert finalized.error_details is None


def test_history_is_tenant_scoped_and_paginated(
    db_session, corporate_user, make_profile, other_company
):
    for index in range(3):
        _start(db_session, corporate_user, file_name=f"carga-{index}.csv")
    outsider = make_profile(other_company, "otro@otra.com", role=models.UserRole.CORPORATIVO)
    foreign = _start(db_session, outsider)

    items, total = ImportAuditLogService.history(
        db_session, str(corporate_user.company_id), limit=2, skip=0
    )

    assert total == 3
    assert [item.file_name for item in items] == ["carga-2.csv", "carga-1.csv"]
    assert items[0].uploaded_by_name == "Admin Corporativo"

    with pytest.raises(ImportLogNotFoundError):
        ImportAuditLogService.get(db_session, str(corporate_user.company_id), str(foreign.id))
    with pytest.raises(ImportLogNotFoundError):
        ImportAuditLogService.get(db_session, str(corporate_user.company_id), "no-es-un-id")
