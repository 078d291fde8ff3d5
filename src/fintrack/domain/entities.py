"""Domain model entities for fintrack.

These are pure data classes representing business concepts, independent of
database schema. The import engine works only with these types; the database
layer maps its ORM rows to them.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from fintrack.domain.errors import ValidationError
from fintrack.domain.rule_language import Condition


AMOUNT_SIGNED = "signed"
AMOUNT_DEBIT_CREDIT = "debit_credit"
AMOUNT_TYPES = (AMOUNT_SIGNED, AMOUNT_DEBIT_CREDIT)

DELIMITERS = (",", ";", "\t")
DECIMAL_SEPARATORS = (".", ",")


@dataclass(frozen=True)
class Account:
    """Bank account domain entity."""

    id: int
    name: str
    bank_name: str
    created_at: datetime


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity."""

    id: int
    account_id: int
    date: date
    amount: Decimal
    description: str
    category_id: Optional[int]
    tags: tuple[str, ...]
    notes: Optional[str]
    duplicate_hash: Optional[str]
    imported_at: datetime


@dataclass(frozen=True)
class CsvFormatConfig:
    """How to read one bank's CSV export.

    Column indexes are zero-based. Exactly one amount layout is configured:
    a single signed ``amount_column`` or a ``debit_column``/``credit_column``
    pair. ``balance_column`` is informational and never parsed.
    """

    date_column: int
    description_column: int
    delimiter: str = ","
    has_header: bool = True
    date_format: str = "%Y-%m-%d"
    amount_type: str = AMOUNT_SIGNED
    amount_column: Optional[int] = None
    debit_column: Optional[int] = None
    credit_column: Optional[int] = None
    balance_column: Optional[int] = None
    decimal_separator: str = "."

    def validate(self) -> "CsvFormatConfig":
        """Check the config invariants.

        Returns:
            The config itself, so calls can be chained

        Raises:
            ValidationError: If the config is inconsistent
        """
        if self.delimiter not in DELIMITERS:
            raise ValidationError(f"Unsupported delimiter {self.delimiter!r}")
        if self.decimal_separator not in DECIMAL_SEPARATORS:
            raise ValidationError(
                f"Unsupported decimal separator {self.decimal_separator!r}"
            )
        if self.decimal_separator == self.delimiter:
            raise ValidationError("Decimal separator cannot equal the delimiter")
        if self.amount_type not in AMOUNT_TYPES:
            raise ValidationError(
                f"Invalid amount_type '{self.amount_type}'. "
                f"Must be one of: {', '.join(AMOUNT_TYPES)}"
            )
        if not self.date_format:
            raise ValidationError("date_format is required")

        has_amount = self.amount_column is not None
        has_split = self.debit_column is not None and self.credit_column is not None
        has_partial_split = (self.debit_column is None) != (self.credit_column is None)
        if has_partial_split:
            raise ValidationError("debit_column and credit_column must be set together")
        if has_amount == has_split:
            raise ValidationError(
                "Exactly one of amount_column or debit_column/credit_column must be set"
            )
        if self.amount_type == AMOUNT_SIGNED and not has_amount:
            raise ValidationError("Signed amount type requires amount_column")
        if self.amount_type == AMOUNT_DEBIT_CREDIT and not has_split:
            raise ValidationError("Debit/credit amount type requires debit_column and credit_column")

        used = [c for c in self.parsed_columns() if c is not None]
        if self.balance_column is not None:
            used.append(self.balance_column)
        if any(c < 0 for c in used):
            raise ValidationError("Column indexes must be non-negative")
        if len(set(used)) != len(used):
            raise ValidationError("Each column can only have one role")
        return self

    def parsed_columns(self) -> list[int]:
        """Return the column indexes the row parser reads."""
        columns = [self.date_column, self.description_column]
        if self.amount_type == AMOUNT_SIGNED:
            columns.append(self.amount_column)
        else:
            columns.extend([self.debit_column, self.credit_column])
        return columns

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (for JSON storage and display)."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CsvFormatConfig":
        """Build and validate a config from a plain dict.

        Raises:
            ValidationError: If keys are unknown, missing, or of the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError("Format config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown format config keys: {', '.join(sorted(unknown))}")
        for required in ("date_column", "description_column"):
            if data.get(required) is None:
                raise ValidationError(f"Format config is missing '{required}'")

        for key in ("date_column", "description_column", "amount_column",
                    "debit_column", "credit_column", "balance_column"):
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(f"'{key}' must be an integer column index")
        if "has_header" in data and not isinstance(data["has_header"], bool):
            raise ValidationError("'has_header' must be true or false")

        return cls(**data).validate()


@dataclass(frozen=True)
class TransactionPreview:
    """One normalized CSV row, shown to the user before an import is confirmed."""

    date: date
    description: str
    amount: Decimal
    is_duplicate: bool = False
    row_index: Optional[int] = None


@dataclass(frozen=True)
class ImportFormat:
    """A saved CSV format, reusable for later imports into the same account."""

    id: int
    name: str
    account_id: int
    config: CsvFormatConfig
    created_at: datetime


class ImportStatus(str, Enum):
    """Lifecycle states of an import session."""

    UPLOADED = "uploaded"
    PREVIEWED = "previewed"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class ImportSession:
    """Import session domain entity."""

    id: int
    account_id: int
    filename: str
    row_count: int
    status: ImportStatus
    error_message: Optional[str]
    format_config: Optional[CsvFormatConfig]
    csv_data: Optional[bytes] = field(repr=False)
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Rule:
    """Categorization rule domain entity.

    ``source`` is the rule document the user wrote; ``condition``,
    ``category_id`` and ``tags`` are parsed from it when the rule is saved.
    """

    id: int
    name: str
    priority: int
    condition: Condition
    category_id: Optional[int]
    tags: tuple[str, ...]
    is_active: bool
    source: str
    created_at: datetime
    updated_at: datetime

    @property
    def sort_key(self) -> tuple[int, datetime, int]:
        """Evaluation order: priority first, then creation order."""
        return (self.priority, self.created_at, self.id)
