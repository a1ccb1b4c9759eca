"""Initial database schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Schema for the hours import service:
- Employees (directory that import rows are matched against)
- Import sessions with detected columns, mappings and preview counts
- Mapping templates
- Hours entries written by committed imports
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MATCH_STRATEGIES = ("id", "ssn", "email", "name", "auto")


def upgrade() -> None:
    """Create all tables."""

    # Employees table
    op.create_table(
        "employees",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("employer_id", mysql.CHAR(36), nullable=False),
        sa.Column("employee_number", sa.String(50), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("ssn", sa.String(11), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employees_employer_id", "employees", ["employer_id"])
    op.create_index(
        "ix_employees_employee_number", "employees", ["employer_id", "employee_number"]
    )
    op.create_index("ix_employees_email", "employees", ["employer_id", "email"])

    # Import sessions table
    op.create_table(
        "import_sessions",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("employer_id", mysql.CHAR(36), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("row_count", sa.Integer(), default=0),
        sa.Column("detected_columns", sa.JSON(), nullable=False),
        sa.Column("column_mappings", sa.JSON(), nullable=True),
        sa.Column(
            "match_strategy", sa.Enum(*MATCH_STRATEGIES, name="matchstrategy"), default="auto"
        ),
        sa.Column("date_format", sa.String(20), nullable=True),
        sa.Column("mapping_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(
                "created", "mapped", "previewed", "committed", "aborted", name="sessionstatus"
            ),
            nullable=False,
            default="created",
        ),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("success_count", sa.Integer(), nullable=True),
        sa.Column("error_count", sa.Integer(), nullable=True),
        sa.Column("previewed_at", sa.DateTime(), nullable=True),
        sa.Column("committed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_sessions_employer_id", "import_sessions", ["employer_id"])
    op.create_index("ix_import_sessions_status", "import_sessions", ["status"])

    # Mapping templates table
    op.create_table(
        "mapping_templates",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("employer_id", mysql.CHAR(36), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("column_mappings", sa.JSON(), nullable=False),
        sa.Column(
            "match_strategy", sa.Enum(*MATCH_STRATEGIES, name="matchstrategy"), default="auto"
        ),
        sa.Column("date_format", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_mapping_templates_employer_seq", "mapping_templates", ["employer_id", "sequence"]
    )

    # Hours entries table
    op.create_table(
        "hours_entries",
        sa.Column("id", mysql.CHAR(36), nullable=False),
        sa.Column("employer_id", mysql.CHAR(36), nullable=False),
        sa.Column("employee_id", mysql.CHAR(36), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(50), default="manual"),
        sa.Column("import_session_id", mysql.CHAR(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["import_session_id"], ["import_sessions.id"], ondelete="SET NULL"
        ),
    )
    op.create_index("ix_hours_entries_employee_id", "hours_entries", ["employee_id"])
    op.create_index("ix_hours_entries_import_session_id", "hours_entries", ["import_session_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("hours_entries")
    op.drop_table("mapping_templates")
    op.drop_table("import_sessions")
    op.drop_table("employees")
