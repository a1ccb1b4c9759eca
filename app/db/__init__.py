"""Database module."""

from app.db.database import SessionLocal, engine, get_db, init_db
from app.db.models import (
    Base,
    Employee,
    HoursEntry,
    ImportSession,
    MappingTemplate,
    MatchStrategy,
    SessionStatus,
)

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Base",
    "Employee",
    "HoursEntry",
    "ImportSession",
    "MappingTemplate",
    "MatchStrategy",
    "SessionStatus",
]
