"""Import session service.

An import session moves through created -> mapped -> previewed -> committed,
and can be aborted from any non-terminal state. Status changes are written as
conditional updates on the current status, so two racing commits (or a
commit racing an abort) cannot both succeed.

Example usage:
    service = ImportSessionService(db, employer_id)
    session = service.init_session(table, "hours.csv")
    session, readiness = service.save_mapping(session.id, mappings, MatchStrategy.ID)
    preview = service.generate_preview(session.id, table)
    result = service.commit_session(session.id)
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db.models import (
    TERMINAL_STATUSES,
    ImportSession,
    MappingTemplate,
    MatchStrategy,
    SessionStatus,
)
from app.imports.detection import detect_columns
from app.imports.directory import SqlEmployeeDirectory
from app.imports.exceptions import (
    MalformedTableError,
    MappingNotReadyError,
    NothingToCommitError,
    SessionNotFoundError,
    SessionStateError,
)
from app.imports.mapping import apply_mapping, check_readiness, resolve_mapping, validate_mapping
from app.imports.matching import EmployeeDirectory, EmployeeMatcher
from app.imports.parsers import check_table
from app.imports.schemas import (
    CommitResult,
    DetectedColumn,
    MappingReadiness,
    NormalizedRecord,
    ParsedTable,
    PreviewResult,
    ResolvedMapping,
    RowOutcome,
    TargetField,
    ValidationStatus,
)
from app.imports.templates import SqlTemplateStore, TemplateStore, template_mapping
from app.imports.validation import validate_row
from app.imports.writers import HoursWriter, SqlHoursWriter

logger = logging.getLogger(__name__)

OPEN_STATUSES = (SessionStatus.CREATED, SessionStatus.MAPPED, SessionStatus.PREVIEWED)
PREVIEWABLE_STATUSES = (SessionStatus.MAPPED, SessionStatus.PREVIEWED)


# --- Preview Storage ---
# Clean records of the most recent preview, kept in memory with a TTL until
# the session is committed. Commit never re-reads the uploaded file.

_preview_cache: dict[str, dict] = {}


def _store_preview(
    session_id: str,
    employer_id: str,
    mapping_version: int,
    records: list[NormalizedRecord],
    ttl_minutes: int,
) -> None:
    """Store the clean records of a session's latest preview."""
    _cleanup_expired_previews()
    _preview_cache[session_id] = {
        "employer_id": employer_id,
        "mapping_version": mapping_version,
        "records": records,
        "created_at": datetime.utcnow(),
        "expires_at": datetime.utcnow() + timedelta(minutes=ttl_minutes),
    }


def _get_preview(
    session_id: str, employer_id: str, mapping_version: int
) -> list[NormalizedRecord] | None:
    """Get the stored preview records.

    Returns:
        Records, or None if not found/expired/wrong employer/other mapping.
    """
    _cleanup_expired_previews()
    preview = _preview_cache.get(session_id)
    if not preview:
        return None
    if preview["employer_id"] != employer_id:
        return None
    if preview["mapping_version"] != mapping_version:
        return None
    return preview["records"]


def _drop_preview(session_id: str) -> None:
    """Forget a session's stored preview."""
    _preview_cache.pop(session_id, None)


def _cleanup_expired_previews() -> None:
    """Remove expired previews."""
    now = datetime.utcnow()
    expired = [sid for sid, data in _preview_cache.items() if now > data["expires_at"]]
    for sid in expired:
        del _preview_cache[sid]


class ImportSessionService:
    """Service class for import session operations."""

    def __init__(
        self,
        db: Session,
        employer_id: str,
        directory: EmployeeDirectory | None = None,
        template_store: TemplateStore | None = None,
        writer: HoursWriter | None = None,
        settings: Settings | None = None,
    ):
        """Initialize import session service.

        Args:
            db: Database session.
            employer_id: Current employer scope.
            directory: Employee directory (defaults to the employees table).
            template_store: Template repository (defaults to mapping_templates).
            writer: Commit-time hours writer (defaults to hours_entries).
            settings: Settings override (defaults to the cached settings).
        """
        self.db = db
        self.employer_id = employer_id
        self.settings = settings or get_settings()
        self.directory = directory or SqlEmployeeDirectory(db, employer_id)
        self.template_store = template_store or SqlTemplateStore(db)
        self.writer = writer or SqlHoursWriter(db)
        self.matcher = EmployeeMatcher(
            self.directory,
            high_threshold=self.settings.match_high_threshold,
            low_threshold=self.settings.match_low_threshold,
            tie_margin=self.settings.match_tie_margin,
        )

    # --- Helpers ---

    def get_session(self, session_id: str) -> ImportSession:
        """Get a session in the current employer scope.

        Raises:
            SessionNotFoundError: If the session does not exist for this employer.
        """
        session = (
            self.db.query(ImportSession)
            .filter(
                ImportSession.id == session_id,
                ImportSession.employer_id == self.employer_id,
            )
            .first()
        )
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def detected_columns(session: ImportSession) -> list[DetectedColumn]:
        """Load a session's stored column detection results."""
        return [DetectedColumn.model_validate(c) for c in session.detected_columns]

    @staticmethod
    def session_mapping(session: ImportSession) -> dict[str, TargetField]:
        """Load a session's saved mapping (empty if none saved)."""
        return {
            column: TargetField(field) for column, field in (session.column_mappings or {}).items()
        }

    def _transition(
        self,
        session: ImportSession,
        allowed: tuple[SessionStatus, ...],
        *criteria,
        **values,
    ) -> bool:
        """Conditionally update a session while its status is still one of allowed.

        The update is flushed but not committed. Extra criteria narrow the
        match further (e.g., the mapping version a preview was built from).

        Returns:
            bool: False if the session left the allowed states concurrently.
        """
        result = self.db.execute(
            update(ImportSession)
            .where(
                ImportSession.id == session.id,
                ImportSession.status.in_(allowed),
                *criteria,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _reject(self, session: ImportSession, message: str) -> SessionStateError:
        logger.warning(f"Rejected operation on session {session.id} ({session.status.value}): {message}")
        return SessionStateError(session.id, session.status.value, message)

    def _require_open(self, session: ImportSession, action: str) -> None:
        if session.status in TERMINAL_STATUSES:
            raise self._reject(session, f"cannot {action} a {session.status.value} session")

    # --- Operations ---

    def init_session(self, table: ParsedTable, file_name: str) -> ImportSession:
        """Create a session for an uploaded table and detect its columns.

        Args:
            table: Parsed upload.
            file_name: Original file name.

        Returns:
            ImportSession: New session in the created state.

        Raises:
            MalformedTableError: If the table has no usable header row.
        """
        table = check_table(table)
        columns = detect_columns(table, max_samples=self.settings.import_sample_size)

        session = ImportSession(
            employer_id=self.employer_id,
            file_name=file_name,
            row_count=len(table.rows),
            detected_columns=[c.model_dump(mode="json") for c in columns],
            match_strategy=MatchStrategy.AUTO,
            status=SessionStatus.CREATED,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info(
            f"Created import session {session.id} for employer {self.employer_id}: "
            f"{len(columns)} columns, {session.row_count} rows"
        )
        return session

    def save_mapping(
        self,
        session_id: str,
        column_mappings: dict[str, TargetField],
        match_strategy: MatchStrategy = MatchStrategy.AUTO,
        date_format: str | None = None,
    ) -> tuple[ImportSession, MappingReadiness]:
        """Save the column mapping and match strategy for a session.

        The mapping replaces any previous one. Detected columns missing from
        the mapping are stored as ignored. Saving on a previewed session keeps
        it previewed but discards the current preview.

        Args:
            session_id: Session ID.
            column_mappings: Column name -> target field.
            match_strategy: Employee match strategy.
            date_format: Preferred strptime format for period dates.

        Returns:
            tuple: (updated session, readiness of the saved mapping).

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionStateError: If the session is committed or aborted.
            InvalidMappingError: If the mapping names unknown columns or
                assigns a field twice.
        """
        session = self.get_session(session_id)
        self._require_open(session, "change the mapping of")

        columns = [c.name for c in self.detected_columns(session)]
        mapping = {column: TargetField(field) for column, field in column_mappings.items()}
        validate_mapping(mapping, columns)
        full_mapping = {column: mapping.get(column, TargetField.IGNORE) for column in columns}

        values = {
            "column_mappings": {column: field.value for column, field in full_mapping.items()},
            "match_strategy": MatchStrategy(match_strategy),
            "date_format": date_format,
            "mapping_version": ImportSession.mapping_version + 1,
        }
        if session.status == SessionStatus.PREVIEWED:
            values.update(total_rows=None, success_count=None, error_count=None, previewed_at=None)
            allowed = (SessionStatus.PREVIEWED,)
        else:
            values["status"] = SessionStatus.MAPPED
            allowed = (SessionStatus.CREATED, SessionStatus.MAPPED)

        if not self._transition(session, allowed, **values):
            self.db.rollback()
            session = self.get_session(session_id)
            raise self._reject(session, "the session changed while saving the mapping")

        self.db.commit()
        _drop_preview(session_id)
        self.db.refresh(session)

        readiness = check_readiness(full_mapping)
        logger.info(
            f"Saved mapping for session {session_id} (strategy={session.match_strategy.value}, "
            f"ready={readiness.ready})"
        )
        return session, readiness

    def resolve_mapping(
        self,
        session_id: str,
        template_id: str | None = None,
        overrides: dict[str, TargetField] | None = None,
    ) -> ResolvedMapping:
        """Resolve a mapping for a session from a template, overrides and detection.

        The resolution is returned, not saved.

        Args:
            session_id: Session ID.
            template_id: Saved template to apply (optional).
            overrides: Explicit column assignments that beat everything else.

        Returns:
            ResolvedMapping: Mapping, sources, unresolved columns and readiness.

        Raises:
            SessionNotFoundError: If the session does not exist.
            TemplateNotFoundError: If the template does not exist.
            InvalidMappingError: If an override names an unknown column.
        """
        session = self.get_session(session_id)
        columns = self.detected_columns(session)
        overrides = {c: TargetField(f) for c, f in (overrides or {}).items()}
        validate_mapping(overrides, [c.name for c in columns])

        template = None
        if template_id:
            template = self.template_store.get(self.employer_id, template_id)

        resolved = resolve_mapping(
            columns,
            template=template_mapping(template) if template else None,
            overrides=overrides,
            threshold=self.settings.import_suggestion_threshold,
        )
        if template:
            resolved.match_strategy = template.match_strategy
            resolved.date_format = template.date_format
        return resolved

    def generate_preview(
        self, session_id: str, table: ParsedTable, sample_limit: int | None = None
    ) -> PreviewResult:
        """Map, match and validate every row of the table.

        Counts cover every row. The returned rows are capped at sample_limit.

        Args:
            session_id: Session ID.
            table: The session's table (re-uploaded by the caller).
            sample_limit: Maximum rows returned (defaults to the configured limit).

        Returns:
            PreviewResult: Counts and per-row outcomes.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionStateError: If no mapping is saved or the session is terminal.
            MappingNotReadyError: If the mapping lacks identity or hours.
            MalformedTableError: If the table lacks a mapped column.
        """
        session = self.get_session(session_id)
        self._require_open(session, "preview")
        if session.status not in PREVIEWABLE_STATUSES:
            raise self._reject(session, "a mapping must be saved before previewing")

        mapping = self.session_mapping(session)
        readiness = check_readiness(mapping)
        if not readiness.ready:
            logger.warning(f"Preview requested for session {session_id} with an unready mapping")
            raise MappingNotReadyError(session.id, session.status.value, readiness.missing)

        table = check_table(table)
        missing_columns = [
            column
            for column, field in mapping.items()
            if field != TargetField.IGNORE and column not in table.headers
        ]
        if missing_columns:
            raise MalformedTableError(
                f"File is missing mapped columns: {', '.join(missing_columns)}"
            )

        version = session.mapping_version
        mapped_fields = {field for field in mapping.values() if field != TargetField.IGNORE}
        strategy = session.match_strategy
        date_format = session.date_format
        outcomes: list[RowOutcome] = []
        seen: dict[tuple, int] = {}

        for i, raw_row in enumerate(table.rows):
            row_number = table.line_numbers[i] if table.line_numbers else i + 2
            mapped = apply_mapping(raw_row, mapping)
            match = self.matcher.match(mapped, strategy)
            errors, record = validate_row(
                mapped,
                mapped_fields,
                match,
                strategy,
                date_format,
                max_hours=self.settings.max_hours_per_row,
            )

            if record:
                key = (record.employee_id, record.period_start, record.period_end)
                if key in seen:
                    errors.append(f"Duplicate of row {seen[key]}: same employee and period")
                    record = None
                else:
                    seen[key] = row_number

            outcomes.append(
                RowOutcome(
                    row_number=row_number,
                    mapped_data=mapped,
                    match_result=match,
                    validation_status=ValidationStatus.VALID if record else ValidationStatus.INVALID,
                    validation_errors=errors,
                    record=record,
                )
            )

        records = [o.record for o in outcomes if o.record]
        success_count = len(records)
        error_count = len(outcomes) - success_count

        if not self._transition(
            session,
            PREVIEWABLE_STATUSES,
            ImportSession.mapping_version == version,
            status=SessionStatus.PREVIEWED,
            total_rows=len(outcomes),
            success_count=success_count,
            error_count=error_count,
            previewed_at=datetime.utcnow(),
        ):
            self.db.rollback()
            session = self.get_session(session_id)
            raise self._reject(
                session, "the session or its mapping changed while generating the preview"
            )

        self.db.commit()
        _store_preview(
            session_id, self.employer_id, version, records, self.settings.preview_ttl_minutes
        )

        logger.info(
            f"Previewed session {session_id}: {len(outcomes)} rows, "
            f"{success_count} valid, {error_count} invalid"
        )

        limit = self.settings.preview_sample_limit if sample_limit is None else sample_limit
        return PreviewResult(
            session_id=session_id,
            total_rows=len(outcomes),
            success_count=success_count,
            error_count=error_count,
            rows=outcomes[:limit],
            truncated=len(outcomes) > limit,
        )

    def commit_session(self, session_id: str) -> CommitResult:
        """Hand the valid rows of the latest preview to the hours writer.

        The status change and the writes share one transaction.

        Args:
            session_id: Session ID.

        Returns:
            CommitResult: Number of rows written.

        Raises:
            SessionNotFoundError: If the session does not exist.
            NothingToCommitError: If the latest preview has no valid rows.
            SessionStateError: If the session is not previewed, the preview is
                stale or expired, or another commit won the race.
        """
        session = self.get_session(session_id)
        if session.status != SessionStatus.PREVIEWED:
            raise self._reject(session, "only a previewed session can be committed")
        if session.previewed_at is None:
            raise self._reject(session, "the mapping changed since the last preview")
        if not session.success_count:
            logger.warning(f"Commit rejected for session {session_id}: no valid rows")
            raise NothingToCommitError(session.id, session.status.value)

        version = session.mapping_version
        records = _get_preview(session_id, self.employer_id, version)
        if records is None:
            raise self._reject(session, "the preview has expired, generate a new preview")

        try:
            if not self._transition(
                session,
                (SessionStatus.PREVIEWED,),
                ImportSession.mapping_version == version,
                ImportSession.previewed_at.is_not(None),
                status=SessionStatus.COMMITTED,
                committed_at=datetime.utcnow(),
            ):
                raise SessionStateError(
                    session.id, session.status.value, "the session changed concurrently"
                )
            committed_count = self.writer.write(self.employer_id, session_id, records)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        _drop_preview(session_id)
        self.db.refresh(session)

        logger.info(
            f"Committed session {session_id} for employer {self.employer_id}: "
            f"{committed_count} rows"
        )
        return CommitResult(
            session_id=session_id,
            committed_count=committed_count,
            status=session.status,
        )

    def abort_session(self, session_id: str) -> ImportSession:
        """Abort a session. No row data is written.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionStateError: If the session is already committed or aborted.
        """
        session = self.get_session(session_id)
        self._require_open(session, "abort")

        if not self._transition(session, OPEN_STATUSES, status=SessionStatus.ABORTED):
            self.db.rollback()
            session = self.get_session(session_id)
            raise self._reject(session, "the session was committed or aborted concurrently")

        self.db.commit()
        _drop_preview(session_id)
        self.db.refresh(session)

        logger.info(f"Aborted import session {session_id}")
        return session

    def save_template_from_session(
        self, session_id: str, name: str, description: str | None = None
    ) -> MappingTemplate:
        """Save a session's current mapping and strategy as a template.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionStateError: If no mapping has been saved yet.
        """
        session = self.get_session(session_id)
        if not session.column_mappings:
            raise self._reject(session, "no mapping has been saved")

        return self.template_store.save(
            self.employer_id,
            name,
            self.session_mapping(session),
            session.match_strategy,
            description=description,
            date_format=session.date_format,
        )
