"""Field mapping resolution, readiness and application.

Precedence for each column: explicit override > template value > detector
suggestion at or above the confidence threshold > unresolved.
"""

from app.imports.exceptions import InvalidMappingError
from app.imports.schemas import (
    DetectedColumn,
    MappedRow,
    MappingConflict,
    MappingReadiness,
    ResolvedMapping,
    TargetField,
)

IDENTITY_FIELDS = [
    TargetField.EMPLOYEE_ID,
    TargetField.SSN,
    TargetField.EMAIL,
]
NAME_FIELDS = [TargetField.FIRST_NAME, TargetField.LAST_NAME]

# Higher rank wins a contested field
SOURCE_RANK = {"override": 3, "template": 2, "detector": 1}


def check_readiness(mapping: dict[str, TargetField | None]) -> MappingReadiness:
    """Check whether a mapping can be previewed.

    A mapping is ready when it assigns at least one identity signal (employee
    id, SSN, email, or first and last name together) and the hours field.

    Args:
        mapping: Column -> target field.

    Returns:
        MappingReadiness: Readiness and unmet requirements.
    """
    assigned = {field for field in mapping.values() if field and field != TargetField.IGNORE}
    missing = []

    has_identity = any(f in assigned for f in IDENTITY_FIELDS) or all(
        f in assigned for f in NAME_FIELDS
    )
    if not has_identity:
        missing.append("an employee identifier (employee ID, SSN, email, or first and last name)")
    if TargetField.HOURS not in assigned:
        missing.append("hours")

    return MappingReadiness(ready=not missing, missing=missing)


def validate_mapping(mapping: dict[str, TargetField], columns: list[str]) -> None:
    """Check that a mapping is a valid assignment for the given columns.

    Args:
        mapping: Column -> target field.
        columns: Column names detected for the session.

    Raises:
        InvalidMappingError: If a column is unknown or a field is assigned twice.
    """
    problems = []
    known = set(columns)
    for column in mapping:
        if column not in known:
            problems.append(f"unknown column '{column}'")

    claimed: dict[TargetField, list[str]] = {}
    for column, field in mapping.items():
        if field != TargetField.IGNORE:
            claimed.setdefault(field, []).append(column)
    for field, claimants in claimed.items():
        if len(claimants) > 1:
            problems.append(f"'{field.value}' is assigned to more than one column: {', '.join(claimants)}")

    if problems:
        raise InvalidMappingError(problems)


def resolve_mapping(
    columns: list[DetectedColumn],
    template: dict[str, TargetField] | None = None,
    overrides: dict[str, TargetField] | None = None,
    threshold: float = 0.8,
) -> ResolvedMapping:
    """Merge overrides, a template and detector suggestions into one mapping.

    A target field is never given to two columns. When several columns claim
    the same field the higher precedence wins, then the higher confidence,
    then the earlier column; the others stay unresolved and the collision is
    reported.

    Args:
        columns: Detected columns, in file order.
        template: Saved template mapping keyed by column name.
        overrides: Explicit caller assignments keyed by column name.
        threshold: Minimum detector confidence for a suggestion to apply.

    Returns:
        ResolvedMapping: The merged mapping with sources, gaps and conflicts.
    """
    template = template or {}
    overrides = overrides or {}

    # column -> (field, source, confidence)
    claims: dict[str, tuple[TargetField, str, float]] = {}
    for column in columns:
        if column.name in overrides:
            claims[column.name] = (overrides[column.name], "override", 1.0)
        elif column.name in template:
            claims[column.name] = (template[column.name], "template", 1.0)
        elif column.suggested_field is not None and column.confidence >= threshold:
            claims[column.name] = (column.suggested_field, "detector", column.confidence)

    by_field: dict[TargetField, list[tuple[int, str]]] = {}
    for position, column in enumerate(columns):
        claim = claims.get(column.name)
        if claim and claim[0] != TargetField.IGNORE:
            by_field.setdefault(claim[0], []).append((position, column.name))

    conflicts = []
    for field, claimants in by_field.items():
        if len(claimants) < 2:
            continue
        ranked = sorted(
            claimants,
            key=lambda c: (-SOURCE_RANK[claims[c[1]][1]], -claims[c[1]][2], c[0]),
        )
        kept = ranked[0][1]
        dropped = [name for _, name in sorted(ranked[1:])]
        for name in dropped:
            del claims[name]
        conflicts.append(
            MappingConflict(
                field=field,
                kept_column=kept,
                dropped_columns=dropped,
            )
        )

    mapping: dict[str, TargetField | None] = {}
    sources: dict[str, str | None] = {}
    unresolved = []
    for column in columns:
        claim = claims.get(column.name)
        if claim:
            mapping[column.name] = claim[0]
            sources[column.name] = claim[1]
        else:
            mapping[column.name] = None
            sources[column.name] = None
            unresolved.append(column.name)

    return ResolvedMapping(
        mapping=mapping,
        sources=sources,
        unresolved=unresolved,
        conflicts=conflicts,
        readiness=check_readiness(mapping),
    )


def apply_mapping(raw_row: dict, mapping: dict[str, TargetField]) -> MappedRow:
    """Convert a raw row into canonical fields.

    Args:
        raw_row: Column name -> raw cell value.
        mapping: Column -> target field. Unlisted columns are ignored.

    Returns:
        MappedRow: Trimmed values, blanks as None.
    """
    values = {}
    for column, field in mapping.items():
        if field == TargetField.IGNORE:
            continue
        value = raw_row.get(column)
        text = str(value).strip() if value is not None else ""
        values[field.value] = text or None
    return MappedRow(**values)
