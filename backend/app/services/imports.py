"""Bulk import of planning data and user profiles from CSV/XLSX files."""

from __future__ import annotations

import csv
import io
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..settings import ImportSettings, get_import_settings
from .import_audit import ImportAuditLogService
from .import_decoder import DecodedRow, TabularDecoder
from .import_errors import (
    ImportCallerNotFoundError,
    ImportFileError,
    ImportPermissionError,
    RowIssue,
    RowProcessingError,
)
from .import_fields import IMPORT_TYPE_ENTITIES, TIER_ORDER, EntityType, FieldNormalizer
from .import_permissions import PermissionGate
from .import_references import ReferenceResolver, ResolvedParent
from .import_tracking import CreatedRecordTracker
from .import_validation import (
    ActivityRecord,
    ImportRecord,
    InitiativeRecord,
    ObjectiveRecord,
    RecordValidator,
    UserRecord,
    parse_date,
)
from .observability import ObservabilityService

LOGGER = logging.getLogger(__name__)


@dataclass
class _PendingRow:
    position: int
    source: DecodedRow
    entity: Optional[EntityType]
    values: dict[str, object]


@dataclass
class _ImportAccumulator:
    preview_limit: int
    sheet_order: dict[Optional[str], int] = field(default_factory=dict)
    total_records: int = 0
    successful_records: int = 0
    failed_rows: set[int] = field(default_factory=set)
    errors: list[tuple[tuple[int, int, int], schemas.ImportRowError]] = field(default_factory=list)
    preview: list[dict[str, object]] = field(default_factory=list)

    def register_success(self, record: ImportRecord) -> None:
        self.successful_records += 1
        if len(self.preview) < self.preview_limit:
            self.preview.append(record.to_preview())

    def register_row_error(self, row: _PendingRow, issues: list[RowIssue]) -> None:
        self.failed_rows.add(row.position)
        sort_key = (
            self.sheet_order.get(row.source.sheet, 0),
            row.source.row_number,
            len(self.errors),
        )
        for issue in issues:
            self.errors.append(
                (
                    sort_key,
                    schemas.ImportRowError(
                        row_number=row.source.row_number,
                        field=issue.field,
                        message=issue.message,
                        value=None if issue.value is None else str(issue.value),
                        sheet=row.source.sheet,
                    ),
                )
            )

    def register_batch_error(self, message: str, field_name: str) -> None:
        """Row-0 error for problems that concern the whole file or import type."""

        error = schemas.ImportRowError(row_number=0, field=field_name, message=message)
        self.errors.append(((-1, 0, len(self.errors)), error))

    @property
    def failed_records(self) -> int:
        return self.total_records - self.successful_records

    def sorted_errors(self) -> list[schemas.ImportRowError]:
        return [error for _, error in sorted(self.errors, key=lambda item: item[0])]

    def build(
        self,
        *,
        commit_policy: models.CommitPolicy,
        import_log_id: Optional[str],
        preview_mode: bool,
        rolled_back: bool = False,
        reject_all: bool = False,
    ) -> schemas.ImportResult:
        errors = self.sorted_errors()
        if reject_all:
            successful, failed = 0, self.total_records
        else:
            successful, failed = self.successful_records, self.failed_records
        return schemas.ImportResult(
            success=not errors,
            total_records=self.total_records,
            successful_records=successful,
            failed_records=failed,
            errors=errors,
            preview=([] if reject_all else list(self.preview)) if preview_mode else None,
            import_log_id=import_log_id,
            commit_policy=commit_policy,
            rolled_back=rolled_back,
        )


class ImportService:
    """Runs the import pipeline: decode, normalize, validate, resolve, persist, audit."""

    TEMPLATE_HEADERS: dict[models.ImportType, list[str]] = {
        models.ImportType.OBJECTIVES: [
            "titulo",
            "descripcion",
            "departamento",
            "fecha_inicio",
            "fecha_fin",
            "responsable_email",
            "estado",
            "progreso",
        ],
        models.ImportType.INITIATIVES: [
            "titulo",
            "descripcion",
            "objetivo_titulo",
            "objetivo_id",
            "fecha_inicio",
            "fecha_fin",
            "responsable_email",
            "presupuesto",
            "estado",
            "progreso",
        ],
        models.ImportType.ACTIVITIES: [
            "titulo",
            "descripcion",
            "iniciativa_titulo",
            "iniciativa_id",
            "fecha_inicio",
            "fecha_limite",
            "responsable_email",
            "estado",
            "progreso",
        ],
        models.ImportType.USERS: [
            "nombre_completo",
            "email",
            "rol",
            "departamento",
            "manager_email",
        ],
    }

    TEMPLATE_ROWS: dict[models.ImportType, dict[str, str]] = {
        models.ImportType.OBJECTIVES: {
            "titulo": "Incrementar ventas 20%",
            "descripcion": "Crecimiento en la región norte",
            "departamento": "Ventas",
            "fecha_inicio": "01/01/2025",
            "fecha_fin": "31/12/2025",
            "responsable_email": "gerente@empresa.com",
            "estado": "en_progreso",
            "progreso": "25",
        },
        models.ImportType.INITIATIVES: {
            "titulo": "Campaña de marketing digital",
            "descripcion": "Campaña en redes sociales",
            "objetivo_titulo": "Incrementar ventas 20%",
            "fecha_inicio": "01/02/2025",
            "fecha_fin": "30/06/2025",
            "responsable_email": "gerente@empresa.com",
            "presupuesto": "50000",
            "estado": "planificacion",
            "progreso": "0",
        },
        models.ImportType.ACTIVITIES: {
            "titulo": "Diseñar anuncios",
            "descripcion": "Piezas gráficas para la campaña",
            "iniciativa_titulo": "Campaña de marketing digital",
            "fecha_inicio": "01/02/2025",
            "fecha_limite": "28/02/2025",
            "responsable_email": "empleado@empresa.com",
            "estado": "pendiente",
            "progreso": "0",
        },
        models.ImportType.USERS: {
            "nombre_completo": "Ana Pérez",
            "email": "ana.perez@empresa.com",
            "rol": "empleado",
            "departamento": "Ventas",
            "manager_email": "gerente@empresa.com",
        },
    }

    @staticmethod
    def build_import_template(import_type: models.ImportType) -> str:
        """Return a CSV template with the expected columns and one example row."""

        headers = ImportService.TEMPLATE_HEADERS[import_type]
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore")
        writer.writeheader()
        writer.writerow(ImportService.TEMPLATE_ROWS[import_type])
        return buffer.getvalue()

    @staticmethod
    def process_import(
        db: Session,
        *,
        content: bytes,
        file_name: str,
        file_kind: models.ImportFileType,
        import_type: models.ImportType,
        caller_id: str,
        tenant_id: str,
        options: Optional[schemas.ImportOptions] = None,
        settings: Optional[ImportSettings] = None,
    ) -> schemas.ImportResult:
        """Import ``content`` on behalf of ``caller_id`` inside ``tenant_id``.

        Row problems never raise; they are reported in the returned
        :class:`schemas.ImportResult`. Only an unknown caller raises, before
        anything is written.
        """

        settings = settings or get_import_settings()
        options = options or schemas.ImportOptions()
        commit_policy = options.commit_policy or settings.default_commit_policy
        started = time.perf_counter()

        caller = ImportService._load_caller(db, caller_id, tenant_id)
        log = ImportAuditLogService.start(
            db,
            tenant_id=str(caller.company_id),
            user_id=str(caller.id),
            file_name=file_name,
            file_kind=file_kind,
            import_type=import_type,
            commit_policy=commit_policy,
            preview=options.preview_mode,
            period_start=options.period_start,
            period_end=options.period_end,
        )
        LOGGER.info(
            "Import %s started: %s %s file '%s' (policy=%s, preview=%s)",
            log.id,
            import_type.value,
            file_kind.value,
            file_name,
            commit_policy.value,
            options.preview_mode,
        )

        run = _ImportRun(db, caller, log, import_type, commit_policy, options, settings)
        try:
            result = run.execute(content, file_kind)
        except Exception:
            LOGGER.exception("Import %s aborted by an unexpected error", log.id)
            db.rollback()
            ImportAuditLogService.finalize(db, log, run.abort_result())
            raise

        ImportAuditLogService.finalize(db, log, result)
        if result.errors:
            LOGGER.warning(
                "Import %s finished with %s failed of %s rows",
                log.id,
                result.failed_records,
                result.total_records,
            )
        ObservabilityService.record_import(
            db,
            result,
            import_type=import_type,
            duration_ms=(time.perf_counter() - started) * 1000,
            preview=options.preview_mode,
        )
        return result

    @staticmethod
    def _load_caller(db: Session, caller_id: str, tenant_id: str) -> models.Profile:
        caller = (
            db.query(models.Profile)
            .filter(
                models.Profile.id == caller_id,
                models.Profile.company_id == tenant_id,
                models.Profile.is_active.is_(True),
            )
            .first()
        )
        if caller is None:
            raise ImportCallerNotFoundError(
                f"El usuario {caller_id} no existe o no pertenece a la empresa"
            )
        return caller


class _ImportRun:
    """State for a single import invocation."""

    def __init__(
        self,
        db: Session,
        caller: models.Profile,
        log: models.ImportLog,
        import_type: models.ImportType,
        commit_policy: models.CommitPolicy,
        options: schemas.ImportOptions,
        settings: ImportSettings,
    ) -> None:
        self.db = db
        self.caller = caller
        self.log = log
        self.log_id = str(log.id)
        self.tenant_id = str(caller.company_id)
        self.import_type = import_type
        self.default_entity = IMPORT_TYPE_ENTITIES[import_type]
        self.commit_policy = commit_policy
        self.options = options
        self.settings = settings
        self.preview_mode = options.preview_mode
        self.accumulator = _ImportAccumulator(preview_limit=settings.preview_limit)
        self.resolver = ReferenceResolver(db, self.tenant_id, str(caller.id))
        self.tracker = CreatedRecordTracker()
        self._preview_sequence = 0

    @property
    def all_or_nothing(self) -> bool:
        return self.commit_policy == models.CommitPolicy.ALL_OR_NOTHING

    def _build(self, **kwargs) -> schemas.ImportResult:
        return self.accumulator.build(
            commit_policy=self.commit_policy,
            import_log_id=self.log_id,
            preview_mode=self.preview_mode,
            **kwargs,
        )

    def abort_result(self) -> schemas.ImportResult:
        self.accumulator.register_batch_error("Error inesperado durante la importación", "import")
        return self._build(reject_all=self.all_or_nothing or self.preview_mode)

    def execute(self, content: bytes, file_kind: models.ImportFileType) -> schemas.ImportResult:
        try:
            decoded = TabularDecoder(self.settings.max_file_bytes).decode(content, file_kind)
            if not decoded:
                raise ImportFileError("El archivo no contiene registros.")
            if self.settings.max_records and len(decoded) > self.settings.max_records:
                raise ImportFileError(
                    f"El archivo excede el máximo de {self.settings.max_records} registros"
                )
        except ImportFileError as exc:
            LOGGER.warning("Import %s rejected: %s", self.log_id, exc)
            self.accumulator.register_batch_error(str(exc), "file")
            return self._build()

        pending = self._prepare(decoded)
        self.accumulator.total_records = len(pending)

        requested = {self.default_entity} | {row.entity for row in pending if row.entity}
        try:
            PermissionGate.ensure_can_import(self.caller, sorted(requested, key=_tier_index))
        except ImportPermissionError as exc:
            LOGGER.warning("Import %s rejected: %s", self.log_id, exc)
            self.accumulator.register_batch_error(str(exc), "import_type")
            return self._build(reject_all=True)

        for row in pending:
            if row.entity is None:
                self.accumulator.register_row_error(
                    row,
                    [RowIssue("Tipo de registro no reconocido", field="entity_type")],
                )

        tiers = (EntityType.USER,) if self.default_entity == EntityType.USER else TIER_ORDER
        for entity in tiers:
            tier_rows = [row for row in pending if row.entity == entity]
            if not tier_rows:
                continue
            LOGGER.info("Import %s: processing %s %s rows", self.log_id, len(tier_rows), entity.value)
            for row in tier_rows:
                self._process_row(row)

        return self._finish()

    def _finish(self) -> schemas.ImportResult:
        failed = bool(self.accumulator.failed_rows)
        if self.preview_mode:
            return self._build(reject_all=failed and self.all_or_nothing)

        if self.all_or_nothing and failed:
            created = len(self.tracker)
            leftovers = self.tracker.rollback(self.db)
            self.db.commit()
            LOGGER.warning(
                "Import %s rolled back %s created records (%s could not be removed)",
                self.log_id,
                created,
                leftovers,
            )
            return self._build(rolled_back=True, reject_all=True)

        self.db.commit()
        self.tracker.discard()
        return self._build()

    def _prepare(self, decoded: list[DecodedRow]) -> list[_PendingRow]:
        """Normalize headers, pick each row's entity and apply the period filter."""

        pending: list[_PendingRow] = []
        for source in decoded:
            self.accumulator.sheet_order.setdefault(source.sheet, len(self.accumulator.sheet_order))
            if self.default_entity == EntityType.USER:
                entity: Optional[EntityType] = EntityType.USER
            else:
                entity = FieldNormalizer.detect_entity_type(source.values, self.default_entity)

            values = FieldNormalizer.normalize_row(source.values, entity or self.default_entity)
            if (
                entity == EntityType.OBJECTIVE
                and values.get("department") is None
                and source.sheet is not None
            ):
                values["department"] = source.sheet
            values["department"] = FieldNormalizer.map_department(
                values.get("department"), self.options.department_mapping
            )

            if entity not in (None, EntityType.USER) and not self._within_period(values):
                continue
            pending.append(_PendingRow(len(pending), source, entity, values))
        return pending

    def _within_period(self, values: dict[str, object]) -> bool:
        period_start, period_end = self.options.period_start, self.options.period_end
        if period_start is None and period_end is None:
            return True
        start = parse_date(values.get("start_date"))
        end = parse_date(values.get("end_date"))
        if start is None or end is None:
            return True
        if period_start is not None and start < period_start:
            return False
        if period_end is not None and end > period_end:
            return False
        return True

    def _process_row(self, row: _PendingRow) -> None:
        try:
            record = RecordValidator.validate(
                row.entity, row.values, row.source.row_number, row.source.sheet
            )
            if isinstance(record, UserRecord):
                self._import_user(record)
            else:
                self._import_planning(record)
        except RowProcessingError as exc:
            self.accumulator.register_row_error(row, exc.issues)
        except SQLAlchemyError:
            LOGGER.exception(
                "Import %s: failed to persist row %s", self.log_id, row.source.row_number
            )
            self.accumulator.register_row_error(
                row,
                [RowIssue("No se pudo guardar el registro en la base de datos", field="database")],
            )

    def _import_planning(self, record: ImportRecord) -> None:
        parent: Optional[ResolvedParent] = None
        if isinstance(record, ObjectiveRecord):
            record.department = record.department or self.caller.department
        elif isinstance(record, InitiativeRecord):
            parent = self.resolver.resolve_objective(record.parent_title, record.parent_id)
            record.department = parent.department
        elif isinstance(record, ActivityRecord):
            parent = self.resolver.resolve_initiative(record.parent_title, record.parent_id)
            record.department = parent.department
        PermissionGate.check_row_department(self.caller, record.department)
        owner_id = self.resolver.resolve_owner(record.owner_email)

        if self.preview_mode:
            record_id = self._next_preview_id(record.entity_type)
        else:
            record_id = self._persist(self._build_planning_model(record, owner_id, parent))

        self._register_success(record, record_id)
        if not isinstance(record, ActivityRecord):
            self.resolver.register_parent(
                record.entity_type,
                ResolvedParent(id=record_id, title=record.title, department=record.department),
            )

    def _import_user(self, record: UserRecord) -> None:
        if self.resolver.email_exists(record.email):
            raise RowProcessingError(
                f"El email {record.email} ya está registrado", field="email", value=record.email
            )
        manager_id = self.resolver.resolve_manager(record.manager_email)

        if self.preview_mode:
            record_id = self._next_preview_id(record.entity_type)
        else:
            record_id = self._persist(
                models.Profile(
                    company_id=self.tenant_id,
                    email=record.email,
                    full_name=record.full_name,
                    role=record.role,
                    department=record.department,
                    manager_id=manager_id,
                    is_active=True,
                    created_by_import_id=self.log_id,
                )
            )
        self._register_success(record, record_id)
        self.resolver.register_profile(record.email, record_id)

    def _build_planning_model(
        self, record: ImportRecord, owner_id: str, parent: Optional[ResolvedParent]
    ):
        common = {
            "company_id": self.tenant_id,
            "title": record.title,
            "description": record.description,
            "owner_id": owner_id,
            "progress": record.progress,
            "start_date": record.start_date,
            "created_by_import_id": self.log_id,
        }
        if isinstance(record, ObjectiveRecord):
            return models.Objective(
                **common,
                department=record.department,
                status=models.ObjectiveStatus(record.status),
                end_date=record.end_date,
            )
        if isinstance(record, InitiativeRecord):
            return models.Initiative(
                **common,
                objective_id=parent.id,
                status=models.InitiativeStatus(record.status),
                budget=record.budget,
                end_date=record.end_date,
            )
        return models.Activity(
            **common,
            initiative_id=parent.id,
            status=models.ActivityStatus(record.status),
            due_date=record.end_date,
        )

    def _persist(self, instance) -> str:
        with self.db.begin_nested():
            self.db.add(instance)
            self.db.flush()
        return str(instance.id)

    def _register_success(self, record: ImportRecord, record_id: str) -> None:
        if not self.preview_mode:
            if not self.all_or_nothing:
                try:
                    self.db.commit()
                except SQLAlchemyError:
                    self.db.rollback()
                    raise
            self.tracker.track(record.entity_type, record_id)
        self.accumulator.register_success(record)

    def _next_preview_id(self, entity: EntityType) -> str:
        self._preview_sequence += 1
        return f"preview-{entity.value}-{self._preview_sequence}"


def _tier_index(entity: EntityType) -> int:
    return list(EntityType).index(entity)
