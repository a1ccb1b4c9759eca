"""Pytest configuration and fixtures."""

import io
import os
from collections.abc import Generator

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.models import Base, Employee
from app.imports.parsers import parse_csv_raw
from app.imports.schemas import ParsedTable

# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

EMPLOYER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_EMPLOYER_ID = "22222222-2222-2222-2222-222222222222"

HOURS_CSV = (
    "Employee ID,Hours Worked,Period Start,Period End,Notes\n"
    "E100,40,2024-01-01,2024-01-07,\n"
    "E101,32.5,2024-01-01,2024-01-07,PTO Friday\n"
    "E999,38,2024-01-01,2024-01-07,\n"
    "E102,-5,2024-01-01,2024-01-07,\n"
)


def csv_table(content: str) -> ParsedTable:
    """Parse CSV text the way an upload is parsed."""
    return parse_csv_raw(io.BytesIO(content.encode("utf-8")))


@pytest.fixture(autouse=True)
def clear_preview_cache():
    """Start every test without stored previews."""
    from app.imports import session as session_module

    session_module._preview_cache.clear()
    yield
    session_module._preview_cache.clear()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    # Import here to ensure env vars are set
    from app.dependencies import get_db
    from app.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def employer_id() -> str:
    """Employer scope used by the tests."""
    return EMPLOYER_ID


@pytest.fixture
def other_employer_id() -> str:
    """A second employer scope, for isolation tests."""
    return OTHER_EMPLOYER_ID


@pytest.fixture
def make_table():
    """Build a ParsedTable from CSV text."""
    return csv_table


@pytest.fixture
def employer_headers() -> dict[str, str]:
    """Request headers carrying the test employer scope."""
    return {"X-Employer-Id": EMPLOYER_ID}


@pytest.fixture
def employees(db: Session) -> dict[str, Employee]:
    """Seed the employee directory, keyed by employee number."""
    rows = [
        ("E100", "Maria", "Lopez", "maria.lopez@example.com", "123-45-6789"),
        ("E101", "James", "Carter", "james.carter@example.com", "234-56-7890"),
        ("E102", "Jon", "Smith", "jon.smith@example.com", None),
        ("E103", "John", "Smith", "john.smith@example.com", None),
    ]
    seeded = {}
    for number, first, last, email, ssn in rows:
        employee = Employee(
            employer_id=EMPLOYER_ID,
            employee_number=number,
            first_name=first,
            last_name=last,
            email=email,
            ssn=ssn,
        )
        db.add(employee)
        seeded[number] = employee

    # Same employee number under another employer
    db.add(
        Employee(
            employer_id=OTHER_EMPLOYER_ID,
            employee_number="E100",
            first_name="Other",
            last_name="Person",
            email="other@example.com",
        )
    )
    db.commit()
    for employee in seeded.values():
        db.refresh(employee)
    return seeded


@pytest.fixture
def service(db: Session, employees: dict[str, Employee]):
    """Import session service for the test employer."""
    from app.imports.session import ImportSessionService

    return ImportSessionService(db, EMPLOYER_ID)


@pytest.fixture
def hours_table() -> ParsedTable:
    """Hours upload with valid, unmatched and invalid rows."""
    return csv_table(HOURS_CSV)
