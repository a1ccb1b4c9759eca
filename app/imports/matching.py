"""Employee matching for import rows.

Rows are resolved against the employee directory using identity signals in a
fixed priority order: employee ID, SSN, email, then fuzzy name. The directory
only returns raw candidates; all uniqueness and ambiguity decisions are made
here. A row is never matched to one of several equally plausible employees.

Example usage:
    matcher = EmployeeMatcher(SqlEmployeeDirectory(db, employer_id))
    result = matcher.match(mapped_row, MatchStrategy.AUTO)
"""

import re
from collections.abc import Callable
from difflib import SequenceMatcher
from typing import Protocol

from app.db.models import MatchStrategy
from app.imports.schemas import (
    EmployeeRecord,
    EmployeeRef,
    MappedRow,
    MatchCandidate,
    MatchConfidence,
    MatchMethod,
    MatchResult,
)

MAX_CANDIDATES = 3


class EmployeeDirectory(Protocol):
    """Read-only lookup into the employee system of record.

    Each method returns zero or more candidates for one employer scope.
    """

    def find_by_id(self, employee_id: str) -> list[EmployeeRecord]: ...

    def find_by_ssn(self, ssn: str) -> list[EmployeeRecord]: ...

    def find_by_email(self, email: str) -> list[EmployeeRecord]: ...

    def search_by_name(self, first_name: str, last_name: str) -> list[EmployeeRecord]: ...


def normalize_ssn(value: str | None) -> str:
    """Strip everything but digits from an SSN."""
    return re.sub(r"\D", "", value or "")


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


def normalize_name(value: str | None) -> str:
    """Trim, case-fold and collapse whitespace in a name."""
    return " ".join((value or "").casefold().split())


def name_similarity(a: str, b: str) -> float:
    """Calculate similarity between two normalized names.

    Args:
        a: First name string.
        b: Second name string.

    Returns:
        float: Similarity score between 0 and 1.
    """
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


class EmployeeMatcher:
    """Resolve mapped rows to a unique employee.

    Attributes:
        directory: Employee directory for one employer.
        high_threshold: Name similarity for a "high" confidence match.
        low_threshold: Name similarity for a "low" confidence match.
        tie_margin: Runner-up candidates this close to the best make the
            name match ambiguous.
        similarity: Name similarity function (0-1).
    """

    def __init__(
        self,
        directory: EmployeeDirectory,
        high_threshold: float = 0.90,
        low_threshold: float = 0.80,
        tie_margin: float = 0.05,
        similarity: Callable[[str, str], float] = name_similarity,
    ):
        self.directory = directory
        self.high_threshold = high_threshold
        self.low_threshold = low_threshold
        self.tie_margin = tie_margin
        self.similarity = similarity

    def _steps(self, strategy: MatchStrategy) -> list[Callable[[MappedRow], MatchResult]]:
        if strategy == MatchStrategy.ID:
            return [self.match_by_id]
        if strategy == MatchStrategy.SSN:
            return [self.match_by_ssn]
        if strategy == MatchStrategy.EMAIL:
            return [self.match_by_email]
        if strategy == MatchStrategy.NAME:
            return [self.match_by_name]
        return [self.match_by_id, self.match_by_ssn, self.match_by_email, self.match_by_name]

    def match(self, row: MappedRow, strategy: MatchStrategy = MatchStrategy.AUTO) -> MatchResult:
        """Match a row using the given strategy.

        Single-signal strategies only try their own signal. Auto tries every
        signal in priority order and stops at the first unique hit.

        Args:
            row: Mapped row data.
            strategy: Which identity signal(s) may be used.

        Returns:
            MatchResult: A unique match, or unmatched.
        """
        unmatched = MatchResult.unmatched()
        for step in self._steps(strategy):
            result = step(row)
            if result.matched:
                return result
            if result.candidates and not unmatched.candidates:
                unmatched = result
        return unmatched

    def match_by_id(self, row: MappedRow) -> MatchResult:
        """Exact match on the employee identifier."""
        value = (row.employee_id or "").strip()
        if not value:
            return MatchResult.unmatched()

        hits = [
            c for c in self.directory.find_by_id(value) if value in (c.id, c.employee_number)
        ]
        if len(hits) == 1:
            return MatchResult.match(hits[0], MatchMethod.ID, MatchConfidence.EXACT)
        return MatchResult.unmatched()

    def match_by_ssn(self, row: MappedRow) -> MatchResult:
        """Exact match on the digits of the SSN."""
        digits = normalize_ssn(row.ssn)
        if not digits:
            return MatchResult.unmatched()

        hits = [c for c in self.directory.find_by_ssn(digits) if normalize_ssn(c.ssn) == digits]
        if len(hits) == 1:
            return MatchResult.match(hits[0], MatchMethod.SSN, MatchConfidence.EXACT)
        return MatchResult.unmatched()

    def match_by_email(self, row: MappedRow) -> MatchResult:
        """Case-insensitive exact match on email.

        The match is "exact" when the directory returned a single candidate
        and "high" when it returned several of which exactly one is equal.
        """
        email = normalize_email(row.email)
        if not email:
            return MatchResult.unmatched()

        candidates = self.directory.find_by_email(email)
        hits = [c for c in candidates if normalize_email(c.email) == email]
        if len(hits) != 1:
            return MatchResult.unmatched()

        confidence = MatchConfidence.EXACT if len(candidates) == 1 else MatchConfidence.HIGH
        return MatchResult.match(hits[0], MatchMethod.EMAIL, confidence)

    def match_by_name(self, row: MappedRow) -> MatchResult:
        """Fuzzy match on first + last name.

        A single candidate at or above the high threshold is "high"; a single
        candidate at or above the low threshold with no competitor within the
        tie margin is "low". Anything else is unmatched.
        """
        first = normalize_name(row.first_name)
        last = normalize_name(row.last_name)
        if not first or not last:
            return MatchResult.unmatched()
        full_name = f"{first} {last}"

        scored = []
        for candidate in self.directory.search_by_name(first, last):
            candidate_name = normalize_name(f"{candidate.first_name} {candidate.last_name}")
            scored.append((self.similarity(full_name, candidate_name), candidate))
        scored.sort(key=lambda s: s[0], reverse=True)

        near_misses = [
            MatchCandidate(
                employee=EmployeeRef.model_validate(c.model_dump()),
                score=round(score, 4),
            )
            for score, c in scored[:MAX_CANDIDATES]
            if score >= self.low_threshold
        ]

        if not scored or scored[0][0] < self.low_threshold:
            return MatchResult.unmatched()

        best_score, best = scored[0]
        runners_up = [score for score, _ in scored[1:]]
        if any(best_score - score <= self.tie_margin for score in runners_up):
            return MatchResult.unmatched(near_misses)

        if best_score >= self.high_threshold:
            if any(score >= self.high_threshold for score in runners_up):
                return MatchResult.unmatched(near_misses)
            confidence = MatchConfidence.HIGH
        else:
            confidence = MatchConfidence.LOW

        return MatchResult.match(best, MatchMethod.NAME, confidence, score=round(best_score, 4))
