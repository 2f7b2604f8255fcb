"""Durable audit trail for every import invocation."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..db_types import utcnow
from .import_errors import ImportLogNotFoundError

LOGGER = logging.getLogger(__name__)


class ImportAuditLogService:
    """Creates, finalizes and lists :class:`models.ImportLog` entries."""

    @staticmethod
    def start(
        db: Session,
        *,
        tenant_id: str,
        user_id: str,
        file_name: str,
        file_kind: models.ImportFileType,
        import_type: models.ImportType,
        commit_policy: models.CommitPolicy,
        preview: bool,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> models.ImportLog:
        """Persist a ``processing`` entry before any row is touched."""

        log = models.ImportLog(
            company_id=tenant_id,
            user_id=user_id,
            file_name=file_name,
            file_type=file_kind,
            import_type=import_type,
            commit_policy=commit_policy,
            preview=preview,
            status=models.ImportStatus.PROCESSING,
            period_start=period_start,
            period_end=period_end,
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def finalize(db: Session, log: models.ImportLog, result: schemas.ImportResult) -> models.ImportLog:
        if log.status != models.ImportStatus.PROCESSING:
            raise ValueError(f"Import log {log.id} was already finalized")

        log.status = (
            models.ImportStatus.COMPLETED if not result.errors else models.ImportStatus.FAILED
        )
        log.total_records = result.total_records
        log.successful_records = result.successful_records
        log.failed_records = result.failed_records
        log.error_details = (
            [error.model_dump() for error in result.errors] if result.errors else None
        )
        log.completed_at = utcnow()
        db.add(log)
        db.commit()
        db.refresh(log)
        LOGGER.info(
            "Import %s finalized as %s (%s/%s rows ok)",
            log.id,
            log.status.value,
            log.successful_records,
            log.total_records,
        )
        return log

    @staticmethod
    def history(
        db: Session, tenant_id: str, *, limit: int = 10, skip: int = 0
    ) -> tuple[list[models.ImportLog], int]:
        query = db.query(models.ImportLog).filter(models.ImportLog.company_id == tenant_id)
        total = query.count()
        items = (
            query.options(selectinload(models.ImportLog.uploaded_by))
            .order_by(models.ImportLog.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def get(db: Session, tenant_id: str, log_id: str) -> models.ImportLog:
        try:
            uuid.UUID(str(log_id))
        except ValueError as exc:
            raise ImportLogNotFoundError(f"Importación {log_id} no encontrada") from exc
        log = (
            db.query(models.ImportLog)
            .filter(
                models.ImportLog.id == log_id,
                models.ImportLog.company_id == tenant_id,
            )
            .first()
        )
        if log is None:
            raise ImportLogNotFoundError(f"Importación {log_id} no encontrada")
        return log
