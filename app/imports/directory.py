"""SQL-backed employee directory."""

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.db.models import Employee
from app.imports.schemas import EmployeeRecord


class SqlEmployeeDirectory:
    """EmployeeDirectory over the employees table, scoped to one employer.

    Attributes:
        db: Database session.
        employer_id: Employer whose employees are searched.
    """

    def __init__(self, db: Session, employer_id: str):
        self.db = db
        self.employer_id = employer_id

    def _scoped(self):
        return self.db.query(Employee).filter(Employee.employer_id == self.employer_id)

    @staticmethod
    def _records(employees: list[Employee]) -> list[EmployeeRecord]:
        return [EmployeeRecord.model_validate(e) for e in employees]

    def find_by_id(self, employee_id: str) -> list[EmployeeRecord]:
        """Find employees by employer-assigned number or internal id."""
        employees = (
            self._scoped()
            .filter(or_(Employee.employee_number == employee_id, Employee.id == employee_id))
            .all()
        )
        return self._records(employees)

    def find_by_ssn(self, ssn: str) -> list[EmployeeRecord]:
        """Find employees by SSN digits, ignoring dashes and spaces as stored."""
        stored = func.replace(func.replace(Employee.ssn, "-", ""), " ", "")
        return self._records(self._scoped().filter(stored == ssn).all())

    def find_by_email(self, email: str) -> list[EmployeeRecord]:
        """Find employees by email, case-insensitively.

        Employees with the same mailbox name under another domain (e.g. an
        old company address) are returned as candidates too, so the matcher
        can tell an exact hit among look-alikes from a lone one.
        """
        normalized = email.strip().lower()
        stored = func.lower(func.trim(Employee.email))
        local_part = normalized.split("@", 1)[0]
        employees = (
            self._scoped()
            .filter(or_(stored == normalized, stored.startswith(f"{local_part}@", autoescape=True)))
            .all()
        )
        return self._records(employees)

    def search_by_name(self, first_name: str, last_name: str) -> list[EmployeeRecord]:
        """Return every employee of the employer as a fuzzy name candidate."""
        employees = self._scoped().order_by(Employee.last_name, Employee.first_name).all()
        return self._records(employees)
