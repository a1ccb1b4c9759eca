"""Exception hierarchy for the import pipeline.

Row-level problems (validation failures, unmatched employees) are data and
never raised. Only structural and call-sequence problems are exceptions.
"""


class SmartImportError(Exception):
    """Base exception for all import errors."""


class MalformedTableError(SmartImportError):
    """The uploaded table cannot be used (no header row, bad headers, bad format)."""


class SessionNotFoundError(SmartImportError):
    """No import session with that id exists in the employer scope."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Import session not found: {session_id}")


class TemplateNotFoundError(SmartImportError):
    """No mapping template with that id exists in the employer scope."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Mapping template not found: {template_id}")


class InvalidMappingError(SmartImportError):
    """A submitted column mapping is not a valid assignment."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Invalid column mapping: " + "; ".join(problems))


class SessionStateError(SmartImportError):
    """An operation was called out of order for the session's lifecycle state."""

    def __init__(self, session_id: str, status: str, message: str) -> None:
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is {status}: {message}")


class MappingNotReadyError(SessionStateError):
    """The saved mapping lacks an identity field or the hours field."""

    def __init__(self, session_id: str, status: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            session_id, status, "mapping is not ready for preview, missing " + ", ".join(missing)
        )


class NothingToCommitError(SessionStateError):
    """The most recent preview contains no valid rows."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(session_id, status, "the last preview has no valid rows to commit")
