"""Helpers to persist structured operational metrics about imports."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from .. import models, schemas

LOGGER = logging.getLogger(__name__)

IMPORT_EVENT_TYPE = "imports.processed"


class MetricOutcome(str):
    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


class ObservabilityService:
    """Centralizes recording of operational metrics for dashboards and alerts."""

    @staticmethod
    def record_event(
        db: Session,
        event_type: str,
        outcome: str,
        *,
        duration_ms: float | None = None,
        tags: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        payload = models.OperationalMetricEvent(
            event_type=event_type,
            outcome=outcome,
            duration_ms=Decimal(str(round(duration_ms, 3))) if duration_ms is not None else None,
            tags=tags or {},
            details=metadata or None,
        )
        ObservabilityService._persist(db, payload)

    @staticmethod
    def record_import(
        db: Session,
        result: schemas.ImportResult,
        *,
        import_type: models.ImportType,
        duration_ms: float,
        preview: bool,
    ) -> None:
        if result.success:
            outcome = MetricOutcome.SUCCESS
        elif result.successful_records or result.total_records:
            outcome = MetricOutcome.REJECTED
        else:
            outcome = MetricOutcome.ERROR
        ObservabilityService.record_event(
            db,
            IMPORT_EVENT_TYPE,
            outcome,
            duration_ms=duration_ms,
            tags={
                "import_type": import_type.value,
                "commit_policy": result.commit_policy.value,
                "preview": preview,
                "total": result.total_records,
                "successful": result.successful_records,
                "failed": result.failed_records,
            },
            metadata={"import_log_id": result.import_log_id, "rolled_back": result.rolled_back},
        )

    @staticmethod
    def _persist(db: Session, event: models.OperationalMetricEvent) -> None:
        try:
            engine = db.get_bind()
            with Session(bind=engine) as metrics_session:
                metrics_session.add(event)
                metrics_session.commit()
        except Exception:  # pragma: no cover - metrics failures should not break flows
            LOGGER.exception("Failed to persist operational metric event")
