"""Row validation and normalization.

Every applicable check runs for every row so operators see the full list of
problems, not just the first one.
"""

from datetime import date
from decimal import Decimal, InvalidOperation

from app.db.models import MatchStrategy
from app.imports.detection import is_email, parse_date
from app.imports.matching import normalize_ssn
from app.imports.schemas import MappedRow, MatchResult, NormalizedRecord, TargetField

HOURS_EXPONENT = -2
DEFAULT_MAX_HOURS = Decimal("168")


def parse_hours(value: str) -> Decimal | None:
    """Parse an hours value, tolerating currency-style formatting.

    Args:
        value: Raw hours string (e.g., "40", "1,040.5").

    Returns:
        Decimal | None: Parsed number, or None if not a finite number.
    """
    cleaned = value.replace("$", "").replace(",", "").replace(" ", "")
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def ssn_problem(digits: str) -> str | None:
    """Check SSN digits against the issued-number rules.

    Args:
        digits: SSN with non-digits removed.

    Returns:
        str | None: Description of the problem, or None if the SSN is well-formed.
    """
    if len(digits) != 9:
        return f"expected 9 digits, got {len(digits)}"
    area, group, serial = digits[:3], digits[3:5], digits[5:]
    if area == "000" or area == "666" or area.startswith("9"):
        return "invalid area number"
    if group == "00":
        return "invalid group number"
    if serial == "0000":
        return "invalid serial number"
    return None


def _check_identity(row: MappedRow, errors: list[str]) -> None:
    has_identity = bool(row.employee_id or row.ssn or row.email) or bool(
        row.first_name and row.last_name
    )
    if not has_identity:
        errors.append(
            "Row has no employee identifier (employee ID, SSN, email, or first and last name)"
        )


def _check_hours(
    row: MappedRow, errors: list[str], max_hours: Decimal | None = None
) -> Decimal | None:
    if not row.hours:
        errors.append("hours is required")
        return None
    hours = parse_hours(row.hours)
    if hours is None:
        errors.append(f"hours: '{row.hours}' is not a number")
        return None
    if hours <= 0:
        errors.append(f"hours: '{row.hours}' must be a positive number")
        return None
    if max_hours is not None and hours > max_hours:
        errors.append(f"hours: '{row.hours}' exceeds the maximum of {max_hours}")
        return None
    # Stored with two decimal places
    if hours.normalize().as_tuple().exponent < HOURS_EXPONENT:
        errors.append(f"hours: '{row.hours}' has more than 2 decimal places")
        return None
    return hours


def _check_date(
    row: MappedRow,
    field: TargetField,
    mapped_fields: set[TargetField],
    date_format: str | None,
    errors: list[str],
) -> date | None:
    if field not in mapped_fields:
        return None
    value = row.value(field)
    if not value:
        errors.append(f"{field.value} is required")
        return None
    parsed = parse_date(value, date_format)
    if parsed is None:
        errors.append(f"{field.value}: '{value}' is not a recognized date")
    return parsed


def validate_row(
    row: MappedRow,
    mapped_fields: set[TargetField],
    match: MatchResult,
    strategy: MatchStrategy = MatchStrategy.AUTO,
    date_format: str | None = None,
    max_hours: Decimal | float | None = DEFAULT_MAX_HOURS,
) -> tuple[list[str], NormalizedRecord | None]:
    """Validate a mapped row and build its normalized record.

    Args:
        row: Mapped row data.
        mapped_fields: Target fields assigned in the session mapping.
        match: Employee match outcome for the row.
        strategy: Strategy used for matching (for error messages).
        date_format: Preferred strptime format for period dates.
        max_hours: Largest accepted hours value (None for no limit).

    Returns:
        tuple: (ordered error list, record when the row is valid else None).
    """
    errors: list[str] = []

    _check_identity(row, errors)
    if max_hours is not None:
        max_hours = Decimal(str(max_hours))
    hours = _check_hours(row, errors, max_hours)

    period_start = _check_date(row, TargetField.PERIOD_START, mapped_fields, date_format, errors)
    period_end = _check_date(row, TargetField.PERIOD_END, mapped_fields, date_format, errors)
    if period_start and period_end and period_start > period_end:
        errors.append(
            f"period_start ({period_start.isoformat()}) is after "
            f"period_end ({period_end.isoformat()})"
        )

    if row.ssn:
        problem = ssn_problem(normalize_ssn(row.ssn))
        if problem:
            errors.append(f"ssn: {problem}")

    if row.email and not is_email(row.email):
        errors.append(f"email: '{row.email}' is not a valid email address")

    if not match.matched:
        if match.candidates:
            errors.append(
                f"Employee match is ambiguous: {len(match.candidates)} possible employees "
                f"(strategy: {strategy.value})"
            )
        else:
            errors.append(f"No matching employee found (strategy: {strategy.value})")

    if errors:
        return errors, None

    return errors, NormalizedRecord(
        employee_id=match.employee.id,
        hours=hours,
        period_start=period_start,
        period_end=period_end,
        notes=row.notes,
    )
