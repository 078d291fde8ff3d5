"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class FormatDetectionFailed(DomainError):
    """No usable CSV format could be inferred; an explicit override is needed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not detect CSV format: {reason}")


class RowParseError(DomainError):
    """A single CSV row could not be normalized.

    Row errors are collected rather than raised while a file is parsed; they
    carry enough context to be shown to the user next to the offending row.
    """

    def __init__(
        self,
        row_index: int,
        reason: str,
        column: Optional[int] = None,
        raw_value: Optional[str] = None,
    ):
        self.row_index = row_index
        self.reason = reason
        self.column = column
        self.raw_value = raw_value
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"Row {self.row_index}: {self.reason}"
        if self.column is not None:
            message += f" (column {self.column}"
            if self.raw_value is not None:
                message += f", value '{self.raw_value}'"
            message += ")"
        return message


class MalformedFile(DomainError):
    """Too many rows failed to parse for the import to be trusted."""

    def __init__(self, error_count: int, total_rows: int, errors: list[RowParseError]):
        self.error_count = error_count
        self.total_rows = total_rows
        self.errors = errors
        super().__init__(
            f"Malformed file: {error_count} of {total_rows} rows could not be parsed"
        )


class RuleParseError(DomainError):
    """A rule document is invalid and cannot be saved."""

    def __init__(self, rule_name: Optional[str], reason: str):
        self.rule_name = rule_name
        self.reason = reason
        label = f"'{rule_name}'" if rule_name else "<unnamed>"
        super().__init__(f"Invalid rule {label}: {reason}")


class DuplicateAccountLock(ConflictError):
    """Another import confirm is already running for the account."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"An import is already being confirmed for account {account_id}")


class InvalidSessionState(ConflictError):
    """An import session step was invoked from a state that does not allow it."""

    def __init__(self, session_id: int, current: str, action: str):
        self.session_id = session_id
        self.current = current
        self.action = action
        super().__init__(
            f"Cannot {action} import session {session_id}: session is {current}"
        )


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def session_not_found(session_id: int) -> str:
    """Return message for missing import session."""
    return f"Import session {session_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing rule."""
    return f"Rule {rule_id} not found"


def import_format_not_found(name: str) -> str:
    """Return message for missing saved import format."""
    return f"Import format '{name}' not found"
