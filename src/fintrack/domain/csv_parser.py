"""CSV row parsing and normalization.

Turns the raw lines of a bank export into ``TransactionPreview`` objects
according to a ``CsvFormatConfig``. Splitting is deliberately simple: cells
are separated on the configured delimiter and surrounding double quotes are
stripped, nothing more.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, Optional, Sequence, Union

from fintrack.domain.entities import AMOUNT_SIGNED, CsvFormatConfig, TransactionPreview
from fintrack.domain.errors import MalformedFile, RowParseError, ValidationError
from fintrack.utils.amount_parser import parse_amount
from fintrack.utils.date_parser import parse_date_with_format

logger = logging.getLogger(__name__)

DEFAULT_MAX_ERROR_RATIO = 0.5
# Decimal places kept by the transaction store
MAX_AMOUNT_PLACES = 6


@dataclass(frozen=True)
class ParseResult:
    """Previews parsed from a file together with the rows that failed."""

    previews: tuple[TransactionPreview, ...]
    errors: tuple[RowParseError, ...]
    total_rows: int

    @property
    def error_count(self) -> int:
        return len(self.errors)


def decode_csv(data: bytes) -> str:
    """Decode raw file bytes, stripping a UTF-8 byte order mark.

    Exports that are not valid UTF-8 are read as Windows-1252, which is what
    most banks that do not use UTF-8 produce.
    """
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def split_lines(text: str) -> list[str]:
    """Split file content into lines, dropping blank ones."""
    return [line for line in text.splitlines() if line.strip()]


def split_row(line: str, delimiter: str) -> list[str]:
    """Split one line into trimmed cells, stripping surrounding double quotes."""
    cells = []
    for cell in line.split(delimiter):
        cell = cell.strip()
        if len(cell) >= 2 and cell.startswith('"') and cell.endswith('"'):
            cell = cell[1:-1].replace('""', '"').strip()
        cells.append(cell)
    return cells


def data_lines(lines: Sequence[str], config: CsvFormatConfig) -> list[tuple[int, str]]:
    """Return (row number, line) pairs for the data rows of a file.

    Row numbers are 1-based positions among the non-blank lines, so the
    header (when present) is row 1.
    """
    start = 1 if config.has_header else 0
    return [(index + 1, lines[index]) for index in range(start, len(lines))]


def parse_row(cells: Sequence[str], config: CsvFormatConfig, row_index: int) -> TransactionPreview:
    """Normalize one row of cells.

    Raises:
        RowParseError: If a required column is missing or unparseable
    """
    needed = max(config.parsed_columns())
    if len(cells) <= needed:
        raise RowParseError(
            row_index,
            f"missing column (expected at least {needed + 1}, found {len(cells)})",
        )

    raw_date = cells[config.date_column]
    try:
        txn_date = parse_date_with_format(raw_date, config.date_format)
    except ValueError:
        raise RowParseError(row_index, "invalid date", config.date_column, raw_date) from None

    description = cells[config.description_column]
    amount = _parse_row_amount(cells, config, row_index)

    return TransactionPreview(
        date=txn_date,
        description=description,
        amount=amount,
        is_duplicate=False,
        row_index=row_index,
    )


def _parse_row_amount(cells: Sequence[str], config: CsvFormatConfig, row_index: int) -> Decimal:
    if config.amount_type == AMOUNT_SIGNED:
        raw = cells[config.amount_column]
        if not raw:
            raise RowParseError(row_index, "missing amount", config.amount_column, raw)
        return _parse_cell_amount(raw, config.amount_column, config.decimal_separator, row_index)

    debit = _optional_amount(cells, config.debit_column, config.decimal_separator, row_index)
    credit = _optional_amount(cells, config.credit_column, config.decimal_separator, row_index)

    # Some banks fill the unused column with 0.00
    if debit is not None and (debit != 0 or credit is None):
        return -abs(debit)
    if credit is not None:
        return abs(credit)
    raise RowParseError(row_index, "missing debit and credit")


def _optional_amount(
    cells: Sequence[str], column: int, decimal_separator: str, row_index: int
) -> Optional[Decimal]:
    raw = cells[column]
    if not raw:
        return None
    return _parse_cell_amount(raw, column, decimal_separator, row_index)


def _parse_cell_amount(raw: str, column: int, decimal_separator: str, row_index: int) -> Decimal:
    try:
        amount = parse_amount(raw, decimal_separator)
    except ValueError:
        raise RowParseError(row_index, "invalid amount", column, raw) from None
    # Trailing zeros do not count: 1.5000000 is stored exactly
    if -amount.normalize().as_tuple().exponent > MAX_AMOUNT_PLACES:
        raise RowParseError(row_index, "too many decimal places", column, raw)
    return amount


def iter_rows(
    lines: Sequence[str], config: CsvFormatConfig
) -> Iterator[Union[TransactionPreview, RowParseError]]:
    """Lazily parse the data rows of a file.

    Yields a ``TransactionPreview`` for every row that parses and the
    ``RowParseError`` for every row that does not, in file order. Calling it
    again on the same lines starts over.
    """
    for row_index, line in data_lines(lines, config):
        try:
            yield parse_row(split_row(line, config.delimiter), config, row_index)
        except RowParseError as e:
            yield e


def parse_previews(
    lines: Sequence[str],
    config: CsvFormatConfig,
    max_error_ratio: float = DEFAULT_MAX_ERROR_RATIO,
) -> ParseResult:
    """Parse every data row, collecting row errors.

    Args:
        lines: Non-blank file lines
        config: Validated format config
        max_error_ratio: Largest tolerated fraction of failed rows

    Returns:
        ParseResult with previews and row errors

    Raises:
        ValidationError: If the config is invalid
        MalformedFile: If the fraction of failed rows exceeds max_error_ratio
    """
    config.validate()

    previews: list[TransactionPreview] = []
    errors: list[RowParseError] = []
    for item in iter_rows(lines, config):
        if isinstance(item, RowParseError):
            errors.append(item)
        else:
            previews.append(item)

    total = len(previews) + len(errors)
    if errors:
        logger.info("%d of %d rows could not be parsed", len(errors), total)
    if total and len(errors) / total > max_error_ratio:
        raise MalformedFile(len(errors), total, errors)

    return ParseResult(previews=tuple(previews), errors=tuple(errors), total_rows=total)


def parse_csv_bytes(
    data: bytes, config: CsvFormatConfig, max_error_ratio: float = DEFAULT_MAX_ERROR_RATIO
) -> ParseResult:
    """Decode raw bytes and parse them with parse_previews."""
    if not isinstance(config, CsvFormatConfig):
        raise ValidationError("A CsvFormatConfig is required to parse a file")
    return parse_previews(split_lines(decode_csv(data)), config, max_error_ratio)
