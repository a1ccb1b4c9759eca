"""Commit-time writers that persist validated import rows."""

import logging
from typing import Protocol

from sqlalchemy.orm import Session

from app.db.models import HoursEntry
from app.imports.schemas import NormalizedRecord

logger = logging.getLogger(__name__)

IMPORT_SOURCE = "csv_import"


class HoursWriter(Protocol):
    """Persistence collaborator that receives the committed rows."""

    def write(self, employer_id: str, session_id: str, records: list[NormalizedRecord]) -> int:
        """Persist records and return how many were written."""
        ...


class SqlHoursWriter:
    """Write committed rows as hours entries in the caller's transaction.

    The writer only adds rows; the import session service commits the
    transaction together with the session status change.
    """

    def __init__(self, db: Session):
        self.db = db

    def write(self, employer_id: str, session_id: str, records: list[NormalizedRecord]) -> int:
        for record in records:
            self.db.add(
                HoursEntry(
                    employer_id=employer_id,
                    employee_id=record.employee_id,
                    hours=record.hours,
                    period_start=record.period_start,
                    period_end=record.period_end,
                    notes=record.notes,
                    source=IMPORT_SOURCE,
                    import_session_id=session_id,
                )
            )
        self.db.flush()
        logger.info(f"Staged {len(records)} hours entries from import session {session_id}")
        return len(records)
