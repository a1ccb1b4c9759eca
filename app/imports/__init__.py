"""Imports module for CSV/Excel hours import."""

from app.imports.detection import detect_columns
from app.imports.directory import SqlEmployeeDirectory
from app.imports.exceptions import (
    InvalidMappingError,
    MalformedTableError,
    MappingNotReadyError,
    NothingToCommitError,
    SessionNotFoundError,
    SessionStateError,
    SmartImportError,
    TemplateNotFoundError,
)
from app.imports.mapping import apply_mapping, check_readiness, resolve_mapping
from app.imports.matching import EmployeeDirectory, EmployeeMatcher, name_similarity
from app.imports.parsers import parse_csv_raw, parse_excel_raw, parse_upload
from app.imports.router import router
from app.imports.schemas import (
    DetectedColumn,
    MappedRow,
    MatchResult,
    ParsedTable,
    PreviewResult,
    ResolvedMapping,
    RowOutcome,
    TargetField,
)
from app.imports.session import ImportSessionService
from app.imports.templates import SqlTemplateStore, TemplateStore
from app.imports.validation import validate_row
from app.imports.writers import HoursWriter, SqlHoursWriter

__all__ = [
    "router",
    "ImportSessionService",
    "parse_csv_raw",
    "parse_excel_raw",
    "parse_upload",
    "detect_columns",
    "resolve_mapping",
    "check_readiness",
    "apply_mapping",
    "validate_row",
    "ParsedTable",
    "DetectedColumn",
    "MappedRow",
    "MatchResult",
    "ResolvedMapping",
    "RowOutcome",
    "PreviewResult",
    "TargetField",
    # Collaborators
    "EmployeeDirectory",
    "EmployeeMatcher",
    "SqlEmployeeDirectory",
    "name_similarity",
    "TemplateStore",
    "SqlTemplateStore",
    "HoursWriter",
    "SqlHoursWriter",
    # Errors
    "SmartImportError",
    "MalformedTableError",
    "SessionNotFoundError",
    "TemplateNotFoundError",
    "InvalidMappingError",
    "SessionStateError",
    "MappingNotReadyError",
    "NothingToCommitError",
]
