"""Tests for employee matching."""

import pytest

from app.db.models import Employee, MatchStrategy
from app.imports.directory import SqlEmployeeDirectory
from app.imports.matching import (
    EmployeeMatcher,
    name_similarity,
    normalize_name,
    normalize_ssn,
)
from app.imports.schemas import EmployeeRecord, MappedRow, MatchConfidence, MatchMethod


class FakeDirectory:
    """In-memory EmployeeDirectory returning raw candidates."""

    def __init__(self, employees: list[EmployeeRecord], email_candidates=None):
        self.employees = employees
        self.email_candidates = email_candidates

    def find_by_id(self, employee_id):
        return [e for e in self.employees if employee_id in (e.id, e.employee_number)]

    def find_by_ssn(self, ssn):
        return [e for e in self.employees if normalize_ssn(e.ssn) == ssn]

    def find_by_email(self, email):
        if self.email_candidates is not None:
            return self.email_candidates
        return [e for e in self.employees if (e.email or "").lower() == email]

    def search_by_name(self, first_name, last_name):
        return list(self.employees)


def _employee(id, number, first, last, email=None, ssn=None):
    return EmployeeRecord(
        id=id,
        employee_number=number,
        first_name=first,
        last_name=last,
        email=email,
        ssn=ssn,
    )


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(
        [
            _employee("emp-1", "E100", "Maria", "Lopez", "maria.lopez@example.com", "123-45-6789"),
            _employee("emp-2", "E101", "James", "Carter", "james.carter@example.com"),
            _employee("emp-3", "E102", "Jon", "Smith", "jon.smith@example.com"),
            _employee("emp-4", "E103", "John", "Smith", "john.smith@example.com"),
        ]
    )


@pytest.fixture
def matcher(directory) -> EmployeeMatcher:
    return EmployeeMatcher(directory)


class TestNormalization:
    """Tests for identity normalization helpers."""

    def test_normalize_ssn(self):
        """Test only digits are kept."""
        assert normalize_ssn("123-45 6789") == "123456789"
        assert normalize_ssn(None) == ""

    def test_normalize_name(self):
        """Test case and whitespace are folded."""
        assert normalize_name("  Maria   LOPEZ ") == "maria lopez"

    def test_name_similarity(self):
        """Test identical names score 1 and empty names score 0."""
        assert name_similarity("maria lopez", "maria lopez") == 1.0
        assert name_similarity("", "maria lopez") == 0.0


class TestMatchById:
    """Tests for employee ID matching."""

    def test_exact_id(self, matcher):
        """Test a unique ID match is exact."""
        result = matcher.match(MappedRow(employee_id="E100"), MatchStrategy.ID)

        assert result.matched
        assert result.employee.id == "emp-1"
        assert result.method == MatchMethod.ID
        assert result.confidence == MatchConfidence.EXACT

    def test_unknown_id(self, matcher):
        """Test unknown IDs are unmatched."""
        result = matcher.match(MappedRow(employee_id="E999"), MatchStrategy.ID)

        assert not result.matched
        assert result.method is None
        assert result.confidence is None

    def test_duplicate_id_is_unmatched(self):
        """Test an ID shared by two employees never matches."""
        directory = FakeDirectory(
            [_employee("a", "E1", "A", "One"), _employee("b", "E1", "B", "Two")]
        )

        result = EmployeeMatcher(directory).match(MappedRow(employee_id="E1"), MatchStrategy.ID)

        assert not result.matched

    def test_strategy_restricts_signals(self, matcher):
        """Test single-signal strategies do not fall back."""
        row = MappedRow(employee_id="E999", email="maria.lopez@example.com")

        assert not matcher.match(row, MatchStrategy.ID).matched
        assert matcher.match(row, MatchStrategy.EMAIL).matched


class TestMatchBySsnAndEmail:
    """Tests for SSN and email matching."""

    def test_ssn_ignores_formatting(self, matcher):
        """Test dashes are ignored on both sides."""
        result = matcher.match(MappedRow(ssn="123456789"), MatchStrategy.SSN)

        assert result.employee.id == "emp-1"
        assert result.method == MatchMethod.SSN
        assert result.confidence == MatchConfidence.EXACT

    def test_email_case_insensitive(self, matcher):
        """Test email matching ignores case and whitespace."""
        result = matcher.match(MappedRow(email=" James.Carter@Example.com "), MatchStrategy.EMAIL)

        assert result.employee.id == "emp-2"
        assert result.confidence == MatchConfidence.EXACT

    def test_email_high_when_directory_returns_several(self):
        """Test one exact hit among several candidates is high confidence."""
        candidates = [
            _employee("a", "E1", "Ann", "Lee", "ann.lee@example.com"),
            _employee("b", "E2", "Ann", "Leen", "ann.leen@example.com"),
        ]
        matcher = EmployeeMatcher(FakeDirectory(candidates, email_candidates=candidates))

        result = matcher.match(MappedRow(email="ann.lee@example.com"), MatchStrategy.EMAIL)

        assert result.employee.id == "a"
        assert result.confidence == MatchConfidence.HIGH


class TestMatchByName:
    """Tests for fuzzy name matching."""

    def test_exact_name_is_high(self, matcher):
        """Test an exact name with no close competitor is high confidence."""
        result = matcher.match(
            MappedRow(first_name="maria", last_name="LOPEZ"), MatchStrategy.NAME
        )

        assert result.employee.id == "emp-1"
        assert result.method == MatchMethod.NAME
        assert result.confidence == MatchConfidence.HIGH

    def test_close_name_is_low(self, matcher):
        """Test a close but inexact name is low confidence."""
        result = matcher.match(MappedRow(first_name="Mari", last_name="Lopes"), MatchStrategy.NAME)

        assert result.employee.id == "emp-1"
        assert result.confidence == MatchConfidence.LOW
        assert 0.8 <= result.score < 0.9

    def test_ambiguous_name_is_unmatched(self, matcher):
        """Test two near-equal candidates never produce a match."""
        result = matcher.match(MappedRow(first_name="Jon", last_name="Smyth"), MatchStrategy.NAME)

        assert not result.matched
        assert result.method is None
        candidate_ids = {c.employee.id for c in result.candidates}
        assert candidate_ids == {"emp-3", "emp-4"}

    def test_two_high_candidates_unmatched(self, matcher):
        """Test an exact name is still unmatched when another scores above high."""
        result = matcher.match(MappedRow(first_name="Jon", last_name="Smith"), MatchStrategy.NAME)

        assert not result.matched

    def test_no_close_name(self, matcher):
        """Test unrelated names are unmatched with no candidates."""
        result = matcher.match(
            MappedRow(first_name="Zelda", last_name="Quint"), MatchStrategy.NAME
        )

        assert not result.matched
        assert result.candidates == []

    def test_needs_both_names(self, matcher):
        """Test a partial name is never matched."""
        assert not matcher.match(MappedRow(first_name="Maria"), MatchStrategy.NAME).matched

    def test_pluggable_similarity(self, directory):
        """Test the similarity function can be replaced."""
        matcher = EmployeeMatcher(
            directory, similarity=lambda a, b: 1.0 if b.startswith("james") else 0.0
        )

        result = matcher.match(MappedRow(first_name="x", last_name="y"), MatchStrategy.NAME)

        assert result.employee.id == "emp-2"


class TestAutoStrategy:
    """Tests for the auto strategy."""

    def test_falls_through_signals(self, matcher):
        """Test later signals are tried after earlier ones fail."""
        row = MappedRow(employee_id="E999", email="maria.lopez@example.com")

        result = matcher.match(row, MatchStrategy.AUTO)

        assert result.employee.id == "emp-1"
        assert result.method == MatchMethod.EMAIL

    def test_id_wins_over_name(self, matcher):
        """Test higher priority signals win."""
        row = MappedRow(employee_id="E101", first_name="Maria", last_name="Lopez")

        result = matcher.match(row, MatchStrategy.AUTO)

        assert result.employee.id == "emp-2"
        assert result.method == MatchMethod.ID

    def test_exclusive_outcome(self, matcher):
        """Test results are either fully matched or fully unmatched."""
        rows = [
            MappedRow(employee_id="E100"),
            MappedRow(first_name="Jon", last_name="Smyth"),
            MappedRow(),
        ]
        for row in rows:
            result = matcher.match(row, MatchStrategy.AUTO)
            if result.matched:
                assert result.method is not None and result.confidence is not None
            else:
                assert result.method is None and result.confidence is None


class TestSqlEmployeeDirectory:
    """Tests for the SQL-backed directory."""

    def test_scoped_to_employer(self, db, employees, employer_id):
        """Test other employers' employees are invisible."""
        directory = SqlEmployeeDirectory(db, employer_id)

        found = directory.find_by_id("E100")

        assert [e.id for e in found] == [employees["E100"].id]

    def test_ssn_lookup_strips_dashes(self, db, employees, employer_id):
        """Test stored SSNs with dashes match digit-only input."""
        directory = SqlEmployeeDirectory(db, employer_id)

        assert [e.employee_number for e in directory.find_by_ssn("123456789")] == ["E100"]

    def test_email_lookup_case_insensitive(self, db, employees, employer_id):
        """Test email lookups ignore case."""
        directory = SqlEmployeeDirectory(db, employer_id)

        found = directory.find_by_email("MARIA.LOPEZ@example.com")

        assert [e.employee_number for e in found] == ["E100"]

    def test_email_lookalikes_lower_confidence(self, db, employees, employer_id):
        """Test the same mailbox under another domain makes an email hit high, not exact."""
        db.add(
            Employee(
                employer_id=employer_id,
                employee_number="E104",
                first_name="Maria",
                last_name="Lopez",
                email="Maria.Lopez@oldcorp.example",
            )
        )
        db.commit()
        directory = SqlEmployeeDirectory(db, employer_id)
        matcher = EmployeeMatcher(directory)

        found = directory.find_by_email("maria.lopez@example.com")
        result = matcher.match(MappedRow(email="maria.lopez@example.com"), MatchStrategy.EMAIL)

        assert sorted(e.employee_number for e in found) == ["E100", "E104"]
        assert result.employee.id == employees["E100"].id
        assert result.confidence == MatchConfidence.HIGH

        result = matcher.match(MappedRow(email="james.carter@example.com"), MatchStrategy.EMAIL)
        assert result.confidence == MatchConfidence.EXACT

    def test_matcher_over_sql_directory(self, db, employees, employer_id):
        """Test the ambiguity scenario against the database."""
        matcher = EmployeeMatcher(SqlEmployeeDirectory(db, employer_id))

        result = matcher.match(MappedRow(first_name="Jon", last_name="Smyth"), MatchStrategy.AUTO)

        assert not result.matched
