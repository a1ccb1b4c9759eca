"""Dependency injection for FastAPI."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.db.database import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Get database session.

    Yields:
        Session: SQLAlchemy session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_employer_id(
    x_employer_id: Annotated[str | None, Header()] = None,
) -> str:
    """Get the employer scope of the current request.

    Authentication happens upstream; the gateway forwards the caller's
    employer in the X-Employer-Id header.

    Args:
        x_employer_id: Value of the X-Employer-Id header.

    Returns:
        str: The employer ID.

    Raises:
        HTTPException: If the header is missing or blank.
    """
    if not x_employer_id or not x_employer_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing employer scope",
        )
    return x_employer_id.strip()


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db)]
CurrentEmployerId = Annotated[str, Depends(get_current_employer_id)]
