"""Imports API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from app.config import get_settings
from app.dependencies import CurrentEmployerId, DbSession
from app.imports.exceptions import (
    InvalidMappingError,
    MalformedTableError,
    MappingNotReadyError,
    SessionNotFoundError,
    SessionStateError,
    SmartImportError,
    TemplateNotFoundError,
)
from app.imports.parsers import generate_sample_csv, parse_upload
from app.imports.schemas import (
    CommitResult,
    ImportSessionResponse,
    MappingTemplateCreate,
    MappingTemplateResponse,
    ParsedTable,
    PreviewResult,
    ResolvedMapping,
    ResolveMappingRequest,
    SaveMappingRequest,
    SaveMappingResponse,
    TemplateFromSessionCreate,
)
from app.imports.session import ImportSessionService
from app.imports.templates import SqlTemplateStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_exception(error: SmartImportError) -> HTTPException:
    """Translate an import error into an HTTP error response.

    Args:
        error: Raised import error.

    Returns:
        HTTPException: Exception to raise from the route.
    """
    if isinstance(error, MalformedTableError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, (SessionNotFoundError, TemplateNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, InvalidMappingError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid column mapping", "errors": error.problems},
        )
    if isinstance(error, MappingNotReadyError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(error), "missing": error.missing},
        )
    if isinstance(error, SessionStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def _parse_file(file: UploadFile) -> ParsedTable:
    """Parse an uploaded file into a table.

    Raises:
        MalformedTableError: If the file is unsupported or unreadable.
    """
    try:
        return parse_upload(
            file.filename or "", file.file, max_rows=get_settings().max_upload_rows
        )
    except MalformedTableError as e:
        logger.warning(f"Rejected upload '{file.filename}': {e}")
        raise


@router.get("/sample-file")
async def download_sample_file():
    """Download a sample hours import file.

    Returns:
        Response: CSV file.
    """
    return Response(
        content=generate_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=hours_import_sample.csv"},
    )


# --- Session Endpoints ---


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def create_session(
    file: Annotated[UploadFile, File(description="CSV or Excel file")],
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> ImportSessionResponse:
    """Upload a file and start an import session.

    Parses the file and detects column types and suggested target fields.

    Args:
        file: Uploaded CSV or Excel file.
        db: Database session.
        employer_id: Current employer ID.

    Returns:
        ImportSessionResponse: New session with detected columns.

    Raises:
        HTTPException: If the file cannot be parsed.
    """
    try:
        table = _parse_file(file)
        session = ImportSessionService(db, employer_id).init_session(table, file.filename or "")
    except SmartImportError as e:
        raise _to_http_exception(e) from e
    return ImportSessionResponse.model_validate(session)


@router.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> ImportSessionResponse:
    """Get an import session."""
    try:
        session = ImportSessionService(db, employer_id).get_session(session_id)
    except SmartImportError as e:
        raise _to_http_exception(e) from e
    return ImportSessionResponse.model_validate(session)


@router.put("/sessions/{session_id}/mappings")
def save_mappings(
    session_id: str,
    data: SaveMappingRequest,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> SaveMappingResponse:
    """Save column mappings and the employee match strategy.

    Args:
        session_id: Session ID.
        data: Column mappings, match strategy and optional date format.
        db: Database session.
        employer_id: Current employer ID.

    Returns:
        SaveMappingResponse: Updated session and mapping readiness.
    """
    try:
        session, readiness = ImportSessionService(db, employer_id).save_mapping(
            session_id,
            data.column_mappings,
            data.match_strategy,
            date_format=data.date_format,
        )
    except SmartImportError as e:
        raise _to_http_exception(e) from e
    return SaveMappingResponse(
        session=ImportSessionResponse.model_validate(session),
        readiness=readiness,
    )


@router.post("/sessions/{session_id}/resolve")
def resolve_mappings(
    session_id: str,
    data: ResolveMappingRequest,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> ResolvedMapping:
    """Resolve a mapping from a saved template, overrides and detected suggestions.

    The result is not saved; send it to the mappings endpoint to keep it.
    """
    try:
        return ImportSessionService(db, employer_id).resolve_mapping(
            session_id,
            template_id=data.template_id,
            overrides=data.overrides,
        )
    except SmartImportError as e:
        raise _to_http_exception(e) from e


@router.post("/sessions/{session_id}/preview")
def preview_session(
    session_id: str,
    file: Annotated[UploadFile, File(description="CSV or Excel file")],
    db: DbSession,
    employer_id: CurrentEmployerId,
    sample_limit: int | None = None,
) -> PreviewResult:
    """Preview the import with the saved mapping.

    The file must be re-uploaded because uploads are not stored.

    Args:
        session_id: Session ID.
        file: The same CSV or Excel file used to create the session.
        db: Database session.
        employer_id: Current employer ID.
        sample_limit: Maximum row outcomes to return.

    Returns:
        PreviewResult: Row outcomes and exact counts.
    """
    try:
        table = _parse_file(file)
        return ImportSessionService(db, employer_id).generate_preview(
            session_id, table, sample_limit=sample_limit
        )
    except SmartImportError as e:
        raise _to_http_exception(e) from e


@router.post("/sessions/{session_id}/commit")
def commit_session(
    session_id: str,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> CommitResult:
    """Commit the valid rows of the latest preview."""
    try:
        return ImportSessionService(db, employer_id).commit_session(session_id)
    except SmartImportError as e:
        raise _to_http_exception(e) from e


@router.post("/sessions/{session_id}/abort")
def abort_session(
    session_id: str,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> ImportSessionResponse:
    """Abort an import session without writing any rows."""
    try:
        session = ImportSessionService(db, employer_id).abort_session(session_id)
    except SmartImportError as e:
        raise _to_http_exception(e) from e
    return ImportSessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/templates", status_code=status.HTTP_201_CREATED)
def save_session_as_template(
    session_id: str,
    data: TemplateFromSessionCreate,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> MappingTemplateResponse:
    """Save the session's current mapping and match strategy as a template."""
    try:
        template = ImportSessionService(db, employer_id).save_template_from_session(
            session_id, data.name, description=data.description
        )
    except SmartImportError as e:
        raise _to_http_exception(e) from e
    return MappingTemplateResponse.model_validate(template)


# --- Template Endpoints ---


@router.get("/templates")
def list_templates(
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> list[MappingTemplateResponse]:
    """List saved mapping templates in creation order."""
    templates = SqlTemplateStore(db).list(employer_id)
    return [MappingTemplateResponse.model_validate(t) for t in templates]


@router.post("/templates", status_code=status.HTTP_201_CREATED)
def create_template(
    data: MappingTemplateCreate,
    db: DbSession,
    employer_id: CurrentEmployerId,
) -> MappingTemplateResponse:
    """Create a mapping template from an explicit mapping."""
    template = SqlTemplateStore(db).save(
        employer_id,
        data.name,
        data.column_mappings,
        data.match_strategy,
        description=data.description,
        date_format=data.date_format,
    )
    return MappingTemplateResponse.model_validate(template)
