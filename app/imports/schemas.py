"""Pydantic schemas for the smart import pipeline."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.db.models import MatchStrategy, SessionStatus


class TargetField(str, Enum):
    """Canonical fields a source column can be mapped to."""

    EMPLOYEE_ID = "employee_id"
    SSN = "ssn"
    EMAIL = "email"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    HOURS = "hours"
    PERIOD_START = "period_start"
    PERIOD_END = "period_end"
    NOTES = "notes"
    IGNORE = "ignore"  # Column is deliberately not imported


class DataType(str, Enum):
    """Inferred type of a column's values.

    EMAIL and SSN are identifier values with a recognisable shape.
    """

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    IDENTIFIER = "identifier"
    EMAIL = "email"
    SSN = "ssn"


class MatchMethod(str, Enum):
    """Identity signal that produced an employee match."""

    ID = "id"
    SSN = "ssn"
    EMAIL = "email"
    NAME = "name"


class MatchConfidence(str, Enum):
    """Coarse trust level of an employee match."""

    EXACT = "exact"
    HIGH = "high"
    LOW = "low"


class ValidationStatus(str, Enum):
    """Outcome of row validation."""

    VALID = "valid"
    INVALID = "invalid"


# --- Table and Column Schemas ---


class ParsedTable(BaseModel):
    """A parsed upload: header row plus data rows keyed by header.

    Attributes:
        headers: Column names in file order.
        rows: Data rows as header -> raw cell value (None for empty cells).
        line_numbers: 1-indexed source line of each row (empty if unknown).
    """

    headers: list[str]
    rows: list[dict[str, Optional[str]]] = Field(default_factory=list)
    line_numbers: list[int] = Field(default_factory=list)


class DetectedColumn(BaseModel):
    """Detection result for one source column.

    Attributes:
        name: Header text.
        index: 0-based column position.
        data_type: Inferred value type (never None, falls back to text).
        sample_values: First non-empty values, in file order.
        null_count: Empty cells among the scanned rows.
        suggested_field: Suggested target field, if any.
        confidence: Confidence of the suggestion (0-1).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    index: int
    data_type: DataType = DataType.TEXT
    sample_values: list[str] = Field(default_factory=list)
    null_count: int = 0
    suggested_field: Optional[TargetField] = None
    confidence: float = 0.0


class MappedRow(BaseModel):
    """A source row expressed in canonical fields, one optional slot per field."""

    employee_id: Optional[str] = None
    ssn: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    hours: Optional[str] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    notes: Optional[str] = None

    def value(self, field: TargetField) -> Optional[str]:
        """Get the value held for a target field."""
        if field == TargetField.IGNORE:
            return None
        return getattr(self, field.value)


# --- Mapping Schemas ---


class MappingReadiness(BaseModel):
    """Whether a mapping is sufficient to generate a preview.

    Attributes:
        ready: True when an identity field and the hours field are assigned.
        missing: Human-readable list of unmet requirements.
    """

    ready: bool
    missing: list[str] = Field(default_factory=list)


class MappingConflict(BaseModel):
    """Two or more columns claimed the same target field.

    Attributes:
        field: The contested target field.
        kept_column: Column that keeps the assignment.
        dropped_columns: Columns left unresolved.
    """

    field: TargetField
    kept_column: str
    dropped_columns: list[str] = Field(default_factory=list)


class ResolvedMapping(BaseModel):
    """Result of merging overrides, a template and detector suggestions.

    Attributes:
        mapping: Column -> target field, None where unresolved.
        sources: Column -> where the assignment came from
            ("override", "template", "detector") or None.
        unresolved: Columns needing manual resolution, in column order.
        conflicts: Target field collisions that were resolved.
        readiness: Preview readiness of the resolved mapping.
        match_strategy: Strategy carried by the applied template, if any.
        date_format: Date format carried by the applied template, if any.
    """

    mapping: dict[str, Optional[TargetField]] = Field(default_factory=dict)
    sources: dict[str, Optional[str]] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    conflicts: list[MappingConflict] = Field(default_factory=list)
    readiness: MappingReadiness = Field(default_factory=lambda: MappingReadiness(ready=False))
    match_strategy: Optional[MatchStrategy] = None
    date_format: Optional[str] = None


class SaveMappingRequest(BaseModel):
    """Request body for saving a session mapping."""

    column_mappings: dict[str, TargetField]
    match_strategy: MatchStrategy = MatchStrategy.AUTO
    date_format: Optional[str] = None


class ResolveMappingRequest(BaseModel):
    """Request body for resolving a mapping from a template and overrides."""

    template_id: Optional[str] = None
    overrides: dict[str, TargetField] = Field(default_factory=dict)


# --- Matching Schemas ---


class EmployeeRecord(BaseModel):
    """Candidate employee as returned by the employee directory."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_number: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    ssn: Optional[str] = None


class EmployeeRef(BaseModel):
    """Employee reference exposed in previews (no SSN or email)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_number: Optional[str] = None
    first_name: str = ""
    last_name: str = ""


class MatchCandidate(BaseModel):
    """A directory entry considered by fuzzy name matching."""

    employee: EmployeeRef
    score: float


class MatchResult(BaseModel):
    """Outcome of matching one row to the employee directory.

    Either employee, method and confidence are all set (matched) or all None
    (unmatched). Unmatched results may list the near misses in candidates.
    """

    employee: Optional[EmployeeRef] = None
    method: Optional[MatchMethod] = None
    confidence: Optional[MatchConfidence] = None
    score: float = 0.0
    candidates: list[MatchCandidate] = Field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.employee is not None

    @classmethod
    def match(
        cls,
        employee: EmployeeRecord,
        method: MatchMethod,
        confidence: MatchConfidence,
        score: float = 1.0,
    ) -> "MatchResult":
        return cls(
            employee=EmployeeRef.model_validate(employee.model_dump()),
            method=method,
            confidence=confidence,
            score=score,
        )

    @classmethod
    def unmatched(cls, candidates: list[MatchCandidate] | None = None) -> "MatchResult":
        return cls(candidates=candidates or [])


# --- Preview Schemas ---


class NormalizedRecord(BaseModel):
    """Clean, typed record produced from a valid row."""

    employee_id: str
    hours: Decimal
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    notes: Optional[str] = None


class RowOutcome(BaseModel):
    """Preview outcome for one source row.

    Attributes:
        row_number: File row number (header is row 1, first data row is 2).
        mapped_data: Row values under canonical field names.
        match_result: Employee match outcome.
        validation_status: valid or invalid.
        validation_errors: All problems found, empty iff valid.
        record: Normalized record when valid.
    """

    row_number: int
    mapped_data: MappedRow
    match_result: MatchResult
    validation_status: ValidationStatus
    validation_errors: list[str] = Field(default_factory=list)
    record: Optional[NormalizedRecord] = None


class PreviewResult(BaseModel):
    """Aggregated preview of an import session.

    Counts are always exact; rows is a capped sample for display.
    """

    session_id: str
    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    rows: list[RowOutcome] = Field(default_factory=list)
    truncated: bool = False


class CommitResult(BaseModel):
    """Result of committing a session."""

    session_id: str
    committed_count: int
    status: SessionStatus


# --- Session Schemas ---


class ImportSessionResponse(BaseModel):
    """Import session as exposed to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    row_count: int
    detected_columns: list[DetectedColumn] = Field(default_factory=list)
    column_mappings: Optional[dict[str, TargetField]] = None
    match_strategy: MatchStrategy = MatchStrategy.AUTO
    date_format: Optional[str] = None
    mapping_version: int = 0
    status: SessionStatus
    total_rows: Optional[int] = None
    success_count: Optional[int] = None
    error_count: Optional[int] = None
    previewed_at: Optional[datetime] = None
    committed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SaveMappingResponse(BaseModel):
    """Session after a mapping save, with the mapping's readiness."""

    session: ImportSessionResponse
    readiness: MappingReadiness


# --- Template Schemas ---


class MappingTemplateCreate(BaseModel):
    """Request body for creating a mapping template directly."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    column_mappings: dict[str, TargetField]
    match_strategy: MatchStrategy = MatchStrategy.AUTO
    date_format: Optional[str] = None


class TemplateFromSessionCreate(BaseModel):
    """Request body for saving a session's current mapping as a template."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class MappingTemplateResponse(BaseModel):
    """Saved mapping template."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    column_mappings: dict[str, TargetField]
    match_strategy: MatchStrategy
    date_format: Optional[str] = None
    created_at: Optional[datetime] = None
