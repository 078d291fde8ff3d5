"""CSV format detection.

Infers a ``CsvFormatConfig`` from the first lines of a bank export. Column
roles are guessed heuristically, so a detected config is only a proposal:
callers show the sample to the user and accept an explicit override. When
the heuristics cannot settle on a config that parses every sampled row,
detection fails instead of returning a lossy guess.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from fintrack.config import ImportSettings
from fintrack.domain.csv_parser import decode_csv, iter_rows, split_lines, split_row
from fintrack.domain.entities import (
    AMOUNT_DEBIT_CREDIT,
    AMOUNT_SIGNED,
    DELIMITERS,
    CsvFormatConfig,
    TransactionPreview,
)
from fintrack.domain.errors import FormatDetectionFailed, RowParseError
from fintrack.utils.amount_parser import is_amount, looks_european, parse_amount
from fintrack.utils.date_parser import detect_date_format

logger = logging.getLogger(__name__)

HEADER_HINTS = {
    "description": ("description", "memo", "payee", "details", "narrative", "merchant", "text", "reference"),
    "amount": ("amount", "betrag", "value", "sum"),
    "debit": ("debit", "withdrawal", "paid out", "money out", "outflow"),
    "credit": ("credit", "deposit", "paid in", "money in", "inflow"),
    "balance": ("balance", "saldo", "running"),
}


@dataclass(frozen=True)
class DetectionResult:
    """A detected (or validated override) format with a sample for confirmation."""

    config: CsvFormatConfig
    sample_rows: tuple[tuple[str, ...], ...]
    sample_previews: tuple[TransactionPreview, ...]
    row_count: int


def detect_format(data: bytes, settings: Optional[ImportSettings] = None) -> DetectionResult:
    """Detect the CSV format of raw file bytes.

    Args:
        data: Raw file content
        settings: Import settings (sample size, candidate date formats)

    Returns:
        DetectionResult whose config parses every sampled row

    Raises:
        FormatDetectionFailed: If no unambiguous format can be inferred
    """
    return detect_format_from_lines(split_lines(decode_csv(data)), settings)


def detect_format_from_lines(
    lines: Sequence[str], settings: Optional[ImportSettings] = None
) -> DetectionResult:
    """Detect the CSV format of already-split, non-blank lines."""
    settings = settings or ImportSettings()
    if not lines:
        raise FormatDetectionFailed("file is empty")

    sample = list(lines[: settings.sample_size])
    delimiter = detect_delimiter(sample)
    rows = [split_row(line, delimiter) for line in sample]

    has_header = is_header_row(rows[0], settings.date_formats)
    header = rows[0] if has_header else None
    data_rows = rows[1:] if has_header else rows
    if not data_rows:
        raise FormatDetectionFailed("no data rows found")

    config = _infer_columns(delimiter, has_header, header, data_rows, settings)
    previews = _validate_sample(sample, config)

    logger.info(
        "Detected CSV format: delimiter=%r header=%s date=%d (%s) description=%d amount_type=%s",
        delimiter, has_header, config.date_column, config.date_format,
        config.description_column, config.amount_type,
    )
    return DetectionResult(
        config=config,
        sample_rows=tuple(tuple(row) for row in rows),
        sample_previews=previews,
        row_count=len(lines) - (1 if has_header else 0),
    )


def sample_with_config(
    lines: Sequence[str], config: CsvFormatConfig, settings: Optional[ImportSettings] = None
) -> DetectionResult:
    """Build a DetectionResult for a caller-supplied config.

    The config is validated but used as-is; rows it cannot parse are simply
    left out of the sample previews.
    """
    settings = settings or ImportSettings()
    config.validate()
    sample = list(lines[: settings.sample_size])
    previews = tuple(
        item for item in iter_rows(sample, config) if isinstance(item, TransactionPreview)
    )
    return DetectionResult(
        config=config,
        sample_rows=tuple(tuple(split_row(line, config.delimiter)) for line in sample),
        sample_previews=previews,
        row_count=max(len(lines) - (1 if config.has_header else 0), 0),
    )


def detect_delimiter(sample: Sequence[str]) -> str:
    """Pick the delimiter giving the most columns with a consistent count.

    Candidates are tried in the order ``,`` ``;`` tab, and earlier candidates
    win ties.

    Raises:
        FormatDetectionFailed: If no candidate splits every line into the
            same number (greater than one) of columns
    """
    best = None
    best_count = 1
    for delimiter in DELIMITERS:
        counts = {len(split_row(line, delimiter)) for line in sample}
        if len(counts) != 1:
            continue
        count = counts.pop()
        if count > best_count:
            best, best_count = delimiter, count
    if best is None:
        raise FormatDetectionFailed("no delimiter produces a consistent number of columns")
    return best


def is_header_row(cells: Sequence[str], date_formats: Sequence[str]) -> bool:
    """A row is a header when none of its cells is a date or a number."""
    for cell in cells:
        if not cell:
            continue
        if _is_date(cell, date_formats) or is_amount(cell) or is_amount(cell, ","):
            return False
    return True


def _is_date(value: str, date_formats: Sequence[str]) -> bool:
    for fmt in date_formats:
        try:
            datetime.strptime(value, fmt)
        except ValueError:
            continue
        return True
    return False


def _infer_columns(
    delimiter: str,
    has_header: bool,
    header: Optional[list[str]],
    data_rows: list[list[str]],
    settings: ImportSettings,
) -> CsvFormatConfig:
    column_count = len(data_rows[0])
    columns = [[row[i] for row in data_rows] for i in range(column_count)]
    names = [cell.casefold() for cell in header] if header else None

    def named(index: int, role: str) -> bool:
        return names is not None and any(hint in names[index] for hint in HEADER_HINTS[role])

    # Date column: first column whose values all parse under one format
    date_column = None
    date_format = None
    for index, values in enumerate(columns):
        if not all(values):
            continue
        fmt = detect_date_format(values, tuple(settings.date_formats))
        if fmt is not None:
            date_column, date_format = index, fmt
            break
    if date_column is None:
        raise FormatDetectionFailed("no date column found")

    decimal_separator = "."
    if delimiter != ",":
        other_values = [v for i, values in enumerate(columns) if i != date_column for v in values if v]
        if any(looks_european(v) for v in other_values):
            decimal_separator = ","

    numeric = [
        index
        for index, values in enumerate(columns)
        if index != date_column
        and any(values)
        and all(is_amount(v, decimal_separator) for v in values if v)
    ]

    balance_column = next((i for i in numeric if named(i, "balance")), None)
    if balance_column is not None:
        numeric.remove(balance_column)

    amount_column = debit_column = credit_column = None
    named_debit = [i for i in numeric if named(i, "debit")]
    named_credit = [i for i in numeric if named(i, "credit")]
    named_amount = [i for i in numeric if named(i, "amount")]

    if len(named_debit) == 1 and len(named_credit) == 1 and named_debit != named_credit:
        debit_column, credit_column = named_debit[0], named_credit[0]
    elif len(named_amount) == 1:
        amount_column = named_amount[0]
    elif len(numeric) == 1:
        amount_column = numeric[0]
    elif len(numeric) == 2:
        first, second = numeric
        if not _complementary(columns[first], columns[second], decimal_separator):
            raise FormatDetectionFailed(
                f"ambiguous amount columns {first} and {second}; supply a format override"
            )
        if named(first, "credit") or named(second, "debit"):
            first, second = second, first
        debit_column, credit_column = first, second
    elif len(numeric) == 3 and balance_column is None:
        pair = _find_debit_credit_pair(numeric, columns, decimal_separator)
        if pair is None:
            raise FormatDetectionFailed(
                f"ambiguous amount columns {', '.join(map(str, numeric))}; supply a format override"
            )
        debit_column, credit_column, balance_column = pair
    elif not numeric:
        raise FormatDetectionFailed("no amount column found")
    else:
        raise FormatDetectionFailed(
            f"ambiguous amount columns {', '.join(map(str, numeric))}; supply a format override"
        )

    taken = {date_column, amount_column, debit_column, credit_column, balance_column}
    description_column = _pick_description(columns, taken, named)
    if description_column is None:
        raise FormatDetectionFailed("no description column found")

    config = CsvFormatConfig(
        delimiter=delimiter,
        has_header=has_header,
        date_column=date_column,
        date_format=date_format,
        description_column=description_column,
        amount_type=AMOUNT_SIGNED if amount_column is not None else AMOUNT_DEBIT_CREDIT,
        amount_column=amount_column,
        debit_column=debit_column,
        credit_column=credit_column,
        balance_column=balance_column,
        decimal_separator=decimal_separator,
    )
    return config.validate()


def _is_active(value: str, decimal_separator: str) -> bool:
    """A cell is active when it holds a non-zero amount."""
    if not value:
        return False
    try:
        return parse_amount(value, decimal_separator) != 0
    except ValueError:
        return False


def _complementary(first: list[str], second: list[str], decimal_separator: str) -> bool:
    """True when every row fills exactly one of two columns (debit/credit layout)."""
    for a, b in zip(first, second):
        if not a and not b:
            return False
        if _is_active(a, decimal_separator) and _is_active(b, decimal_separator):
            return False
    return True


def _find_debit_credit_pair(
    numeric: list[int], columns: list[list[str]], decimal_separator: str
) -> Optional[tuple[int, int, int]]:
    """Find two complementary columns plus an always-filled balance column."""
    for balance in numeric:
        rest = [i for i in numeric if i != balance]
        if not all(columns[balance]):
            continue
        if _complementary(columns[rest[0]], columns[rest[1]], decimal_separator):
            return rest[0], rest[1], balance
    return None


def _pick_description(columns: list[list[str]], taken: set, named) -> Optional[int]:
    candidates = [i for i in range(len(columns)) if i not in taken]
    if not candidates:
        return None
    for index in candidates:
        if named(index, "description"):
            return index
    # Otherwise the column with the longest text on average
    return max(candidates, key=lambda i: (sum(len(v) for v in columns[i]) / len(columns[i]), -i))


def _validate_sample(sample: list[str], config: CsvFormatConfig) -> tuple[TransactionPreview, ...]:
    previews = []
    for item in iter_rows(sample, config):
        if isinstance(item, RowParseError):
            raise FormatDetectionFailed(f"detected format cannot parse the sample ({item})")
        previews.append(item)
    return tuple(previews)
