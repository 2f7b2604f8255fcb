"""Compensating deletes for records created by an all-or-nothing import."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from .import_fields import EntityType

LOGGER = logging.getLogger(__name__)

_ENTITY_MODELS = {
    EntityType.OBJECTIVE: models.Objective,
    EntityType.INITIATIVE: models.Initiative,
    EntityType.ACTIVITY: models.Activity,
    EntityType.USER: models.Profile,
}


class CreatedRecordTracker:
    """Ordered log of ``(entity, id)`` pairs created during one import."""

    def __init__(self) -> None:
        self._created: list[tuple[EntityType, str]] = []

    def track(self, entity: EntityType, record_id: str) -> None:
        self._created.append((entity, str(record_id)))

    def __len__(self) -> int:
        return len(self._created)

    def __iter__(self):
        return iter(list(self._created))

    def discard(self) -> None:
        self._created.clear()

    def rollback(self, db: Session) -> int:
        """Delete tracked records newest first; returns how many could not be removed.

        Each delete runs in its own savepoint so one failure does not stop the
        others. Failures are logged and never raised.
        """

        failures = 0
        while self._created:
            entity, record_id = self._created.pop()
            model = _ENTITY_MODELS[entity]
            try:
                with db.begin_nested():
                    db.query(model).filter(model.id == record_id).delete(
                        synchronize_session=False
                    )
            except SQLAlchemyError:
                failures += 1
                LOGGER.exception(
                    "Failed to remove %s %s while rolling back import", entity.value, record_id
                )
        db.expire_all()
        return failures
