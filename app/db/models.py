"""SQLAlchemy database models."""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.mysql import CHAR
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys.

    Returns:
        str: UUID as 36-character string.
    """
    return str(uuid4())


class SessionStatus(str, enum.Enum):
    """Import session lifecycle state."""

    CREATED = "created"  # Upload parsed, columns detected
    MAPPED = "mapped"  # Mappings + strategy saved
    PREVIEWED = "previewed"  # Preview generated at least once
    COMMITTED = "committed"  # Terminal, rows handed to the hours writer
    ABORTED = "aborted"  # Terminal, cancelled by the caller


TERMINAL_STATUSES = (SessionStatus.COMMITTED, SessionStatus.ABORTED)


class MatchStrategy(str, enum.Enum):
    """Which identity signal(s) the employee matcher may use."""

    ID = "id"
    SSN = "ssn"
    EMAIL = "email"
    NAME = "name"  # Fuzzy first + last name
    AUTO = "auto"  # Try all of the above in priority order


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Employee(Base):
    """Employee directory entry that import rows are matched against.

    Attributes:
        id: Primary key UUID.
        employer_id: Owning employer scope.
        employee_number: Employer-assigned identifier (e.g., "E100").
        first_name: Given name.
        last_name: Family name.
        email: Work email address.
        ssn: Social security number as stored (may contain dashes).
        is_active: Whether the employee is still on the roster.
        created_at: Creation timestamp.
    """

    __tablename__ = "employees"
    __table_args__ = (
        Index("ix_employees_employer_id", "employer_id"),
        Index("ix_employees_employee_number", "employer_id", "employee_number"),
        Index("ix_employees_email", "employer_id", "email"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    employer_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    employee_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ssn: Mapped[str | None] = mapped_column(String(11), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    hours_entries: Mapped[list["HoursEntry"]] = relationship(
        "HoursEntry", back_populates="employee", cascade="all, delete-orphan"
    )


class ImportSession(Base):
    """One bulk import attempt, from upload through commit or abort.

    Attributes:
        id: Primary key UUID.
        employer_id: Employer scope the import belongs to.
        file_name: Original upload file name.
        row_count: Number of data rows in the upload.
        detected_columns: Column detection results (list of dicts), immutable.
        column_mappings: Saved column -> target field mapping.
        match_strategy: Saved employee match strategy.
        date_format: Preferred strptime format for period dates (optional).
        mapping_version: Incremented on every mapping save.
        status: Lifecycle state.
        total_rows: Rows evaluated by the most recent preview.
        success_count: Valid rows in the most recent preview.
        error_count: Invalid rows in the most recent preview.
        previewed_at: When the current preview was generated (None if stale).
        committed_at: When the session was committed.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "import_sessions"
    __table_args__ = (
        Index("ix_import_sessions_employer_id", "employer_id"),
        Index("ix_import_sessions_status", "status"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    employer_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    row_count: Mapped[int] = mapped_column(Integer, default=0)
    detected_columns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    column_mappings: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    match_strategy: Mapped[MatchStrategy] = mapped_column(
        Enum(MatchStrategy, values_callable=_enum_values),
        default=MatchStrategy.AUTO,
    )
    date_format: Mapped[str | None] = mapped_column(String(20), nullable=True)
    mapping_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, values_callable=_enum_values),
        default=SessionStatus.CREATED,
        nullable=False,
    )

    # Statistics of the most recent preview
    total_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    committed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class MappingTemplate(Base):
    """Saved, reusable column mapping + match strategy for an employer.

    Templates are immutable once saved. Names are not unique; the id is the
    identity.

    Attributes:
        id: Primary key UUID.
        employer_id: Employer scope.
        sequence: Creation order within the employer scope.
        name: Display name (e.g., "ADP Weekly Payroll").
        description: Optional description.
        column_mappings: Column name -> target field.
        match_strategy: Employee match strategy.
        date_format: Preferred strptime format for period dates (optional).
        created_at: Creation timestamp.
    """

    __tablename__ = "mapping_templates"
    __table_args__ = (Index("ix_mapping_templates_employer_seq", "employer_id", "sequence"),)

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    employer_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    column_mappings: Mapped[dict] = mapped_column(JSON, nullable=False)
    match_strategy: Mapped[MatchStrategy] = mapped_column(
        Enum(MatchStrategy, values_callable=_enum_values),
        default=MatchStrategy.AUTO,
    )
    date_format: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class HoursEntry(Base):
    """Hours worked by an employee for a pay period.

    Attributes:
        id: Primary key UUID.
        employer_id: Employer scope.
        employee_id: FK to the matched employee.
        hours: Hours worked.
        period_start: First day of the period (optional).
        period_end: Last day of the period (optional).
        notes: Free-text notes from the import row.
        source: Where the entry came from ("manual", "csv_import", ...).
        import_session_id: FK to the import session that created the entry.
        created_at: Creation timestamp.
    """

    __tablename__ = "hours_entries"
    __table_args__ = (
        Index("ix_hours_entries_employee_id", "employee_id"),
        Index("ix_hours_entries_import_session_id", "import_session_id"),
    )

    id: Mapped[str] = mapped_column(CHAR(36), primary_key=True, default=generate_uuid)
    employer_id: Mapped[str] = mapped_column(CHAR(36), nullable=False)
    employee_id: Mapped[str] = mapped_column(
        CHAR(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(50), default="manual")
    import_session_id: Mapped[str | None] = mapped_column(
        CHAR(36), ForeignKey("import_sessions.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    employee: Mapped["Employee"] = relationship("Employee", back_populates="hours_entries")
    import_session: Mapped[Optional["ImportSession"]] = relationship("ImportSession")
