"""Column type detection and target field suggestion.

Each column is classified from a deterministic sample (the first N non-empty
values) and its header text. The two signals are combined into a suggested
target field and a confidence score.
"""

import re
from collections.abc import Callable
from datetime import datetime

from app.imports.schemas import DataType, DetectedColumn, ParsedTable, TargetField

HIGH_CONFIDENCE = 0.9  # Header and values agree
MEDIUM_CONFIDENCE = 0.5  # Only one signal

# Accepted date formats, also used by row validation
DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%Y-%m-%d %H:%M:%S",  # Excel cells read as text
]

SSN_PATTERN = re.compile(r"^\d{3}-\d{2}-\d{4}$|^\d{9}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NUMBER_PATTERN = re.compile(r"^[-+]?\$?\d[\d,]*(\.\d+)?$|^[-+]?\$?\.\d+$")
IDENTIFIER_PATTERN = re.compile(r"^(?=.*\d)[A-Za-z0-9][A-Za-z0-9_\-#./]*$")

# Words of a header, splitting camelCase ("EmployeeSSN" -> "Employee", "SSN")
HEADER_WORD_PATTERN = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


# Header synonyms per target field, compared after stripping everything but
# letters and digits. Checked in order, first hit wins.
HEADER_KEYWORDS: list[tuple[TargetField, list[str]]] = [
    (TargetField.SSN, ["ssn", "social", "socialsecurity", "taxpayerid"]),
    (TargetField.EMAIL, ["email", "mail"]),
    (
        TargetField.EMPLOYEE_ID,
        [
            "employeeid",
            "employeeno",
            "employeenumber",
            "empid",
            "empno",
            "employeenum",
            "workerid",
            "staffid",
            "badge",
            "payrollid",
        ],
    ),
    (TargetField.FIRST_NAME, ["firstname", "fname", "givenname", "first"]),
    (TargetField.LAST_NAME, ["lastname", "lname", "surname", "familyname", "last"]),
    (
        TargetField.PERIOD_START,
        ["periodstart", "startdate", "periodbegin", "weekstart", "paystart", "start", "from"],
    ),
    (
        TargetField.PERIOD_END,
        ["periodend", "enddate", "weekend", "payend", "through", "thru", "end"],
    ),
    (TargetField.HOURS, ["hours", "hrs", "hoursworked"]),
    (TargetField.NOTES, ["notes", "note", "comment", "remark", "memo", "description"]),
]

# Keywords shorter than this only match a whole word of the header
MIN_SUBSTRING_KEYWORD = 5

# Short aliases that would match too much as substrings
EXACT_HEADER_ALIASES: dict[str, TargetField] = {
    "id": TargetField.EMPLOYEE_ID,
    "emp": TargetField.EMPLOYEE_ID,
    "employee": TargetField.EMPLOYEE_ID,
    "hrs": TargetField.HOURS,
    "to": TargetField.PERIOD_END,
}

# Value types that corroborate a header match
EXPECTED_TYPES: dict[TargetField, set[DataType]] = {
    TargetField.EMPLOYEE_ID: {DataType.IDENTIFIER, DataType.NUMBER},
    TargetField.SSN: {DataType.SSN},
    TargetField.EMAIL: {DataType.EMAIL},
    TargetField.FIRST_NAME: {DataType.TEXT},
    TargetField.LAST_NAME: {DataType.TEXT},
    TargetField.HOURS: {DataType.NUMBER},
    TargetField.PERIOD_START: {DataType.DATE},
    TargetField.PERIOD_END: {DataType.DATE},
    TargetField.NOTES: {DataType.TEXT},
}

# Value types that on their own point at one field
TYPE_ONLY_FIELDS: dict[DataType, TargetField] = {
    DataType.SSN: TargetField.SSN,
    DataType.EMAIL: TargetField.EMAIL,
}


def is_ssn(value: str) -> bool:
    return bool(SSN_PATTERN.match(value))


def is_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def parse_date(value: str, preferred_format: str | None = None):
    """Parse a date under the accepted formats.

    Args:
        value: Raw date string.
        preferred_format: strptime format to try before the defaults.

    Returns:
        date | None: Parsed date, or None if no format matches.
    """
    formats = list(DATE_FORMATS)
    if preferred_format:
        formats.insert(0, preferred_format)
    for fmt in formats:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def is_date(value: str) -> bool:
    return parse_date(value) is not None


def is_number(value: str) -> bool:
    return bool(NUMBER_PATTERN.match(value.replace(" ", "")))


def is_identifier(value: str) -> bool:
    return bool(IDENTIFIER_PATTERN.match(value))


# Most specific first; a number like "123456789" is an SSN before it is a number.
TYPE_PREDICATES: list[tuple[DataType, Callable[[str], bool]]] = [
    (DataType.SSN, is_ssn),
    (DataType.EMAIL, is_email),
    (DataType.DATE, is_date),
    (DataType.NUMBER, is_number),
    (DataType.IDENTIFIER, is_identifier),
]


def normalize_header(header: str) -> str:
    """Lowercase a header and drop everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", header.lower())


def header_words(header: str) -> set[str]:
    """Split a header into lowercase words."""
    return {word.lower() for word in HEADER_WORD_PATTERN.findall(header)}


def match_header(header: str) -> TargetField | None:
    """Match a header against known field synonyms.

    Long keywords match anywhere in the compacted header. Short ones such
    as "end" or "mail" must be a whole word, so "Gender" and "Mailing
    Address" are not mistaken for a period end or an email.

    Args:
        header: Column header text.

    Returns:
        TargetField | None: Field the header names, or None.
    """
    compact = normalize_header(header)
    if not compact:
        return None
    if compact in EXACT_HEADER_ALIASES:
        return EXACT_HEADER_ALIASES[compact]
    words = header_words(header)
    for field, keywords in HEADER_KEYWORDS:
        for keyword in keywords:
            if len(keyword) < MIN_SUBSTRING_KEYWORD:
                if keyword in words:
                    return field
            elif keyword in compact:
                return field
    return None


def classify_values(samples: list[str]) -> DataType:
    """Classify sample values, taking the first type a majority satisfies.

    Args:
        samples: Non-empty sample values.

    Returns:
        DataType: Inferred type, TEXT when nothing qualifies.
    """
    if not samples:
        return DataType.TEXT
    for data_type, predicate in TYPE_PREDICATES:
        hits = sum(1 for value in samples if predicate(value))
        if hits * 2 > len(samples):
            return data_type
    return DataType.TEXT


def suggest_field(
    header: str, data_type: DataType, has_samples: bool
) -> tuple[TargetField | None, float]:
    """Combine header and type signals into a suggestion.

    Args:
        header: Column header text.
        data_type: Inferred value type.
        has_samples: Whether the column had any non-empty values.

    Returns:
        tuple: (suggested field or None, confidence).
    """
    if not has_samples:
        return None, 0.0

    header_field = match_header(header)
    if header_field is not None:
        if data_type in EXPECTED_TYPES[header_field]:
            return header_field, HIGH_CONFIDENCE
        return header_field, MEDIUM_CONFIDENCE

    type_field = TYPE_ONLY_FIELDS.get(data_type)
    if type_field is not None:
        return type_field, MEDIUM_CONFIDENCE

    return None, 0.0


def sample_values(rows: list[dict], column: str, max_samples: int) -> tuple[list[str], int]:
    """Collect the first non-empty values of a column.

    Args:
        rows: Data rows.
        column: Column name.
        max_samples: Maximum number of sample values.

    Returns:
        tuple: (sample values in file order, empty cells seen).
    """
    samples = []
    null_count = 0
    for row in rows:
        value = row.get(column)
        text = str(value).strip() if value is not None else ""
        if text:
            if len(samples) < max_samples:
                samples.append(text)
        else:
            null_count += 1
    return samples, null_count


def detect_columns(table: ParsedTable, max_samples: int = 5) -> list[DetectedColumn]:
    """Detect type and suggested field for every column of a table.

    Args:
        table: Parsed table.
        max_samples: Non-empty values sampled per column.

    Returns:
        list[DetectedColumn]: One entry per header, in header order.
    """
    detected = []
    for index, name in enumerate(table.headers):
        samples, null_count = sample_values(table.rows, name, max_samples)
        data_type = classify_values(samples)
        suggested, confidence = suggest_field(name, data_type, bool(samples))
        detected.append(
            DetectedColumn(
                name=name,
                index=index,
                data_type=data_type,
                sample_values=samples,
                null_count=null_count,
                suggested_field=suggested,
                confidence=confidence,
            )
        )
    return detected
