"""Tests for CSV format detection."""

import pytest

from fintrack.config import ImportSettings
from fintrack.domain.csv_parser import decode_csv, parse_csv_bytes, split_lines
from fintrack.domain.entities import CsvFormatConfig
from fintrack.domain.errors import FormatDetectionFailed, ValidationError
from fintrack.domain.format_detection import (
    detect_delimiter,
    detect_format,
    detect_format_from_lines,
    is_header_row,
    sample_with_config,
)
from fintrack.utils.date_parser import DEFAULT_DATE_FORMATS


def test_detect_signed_format(fixtures_dir):
    """A comma file with a header and one amount column is detected as signed."""
    result = detect_format((fixtures_dir / "signed_amounts.csv").read_bytes())
    config = result.config

    assert config.delimiter == ","
    assert config.has_header is True
    assert config.date_column == 0
    assert config.date_format == "%Y-%m-%d"
    assert config.description_column == 1
    assert config.amount_type == "signed"
    assert config.amount_column == 2
    assert config.decimal_separator == "."
    assert result.row_count == 4
    assert len(result.sample_previews) == 4
    assert result.sample_rows[0] == ("Date", "Description", "Amount")


def test_detect_european_debit_credit(fixtures_dir):
    """Semicolon files with decimal commas and split amount columns are recognized."""
    result = detect_format((fixtures_dir / "debit_credit_semicolon.csv").read_bytes())
    config = result.config

    assert config.delimiter == ";"
    assert config.decimal_separator == ","
    assert config.date_format == "%d.%m.%Y"
    assert config.amount_type == "debit_credit"
    assert config.debit_column == 2
    assert config.credit_column == 3
    assert config.balance_column == 4
    assert config.description_column == 1
    assert [str(p.amount) for p in result.sample_previews] == ["-12.50", "2500.00", "-900.00"]


def test_detect_file_without_header(fixtures_dir):
    """A first row holding a date and an amount is data, not a header."""
    result = detect_format((fixtures_dir / "no_header.csv").read_bytes())

    assert result.config.has_header is False
    assert result.row_count == 3
    assert result.sample_previews[0].description == "Rent payment"


def test_named_debit_credit_columns():
    """Header names decide which of two columns is the debit side."""
    lines = [
        "Date,Details,Credit,Debit,Balance",
        "01/15/2024,Coffee Shop,,4.50,995.50",
        "01/16/2024,Payroll,1500.00,,2495.50",
    ]

    config = detect_format_from_lines(lines).config

    assert config.date_format == "%m/%d/%Y"
    assert config.debit_column == 3
    assert config.credit_column == 2
    assert config.balance_column == 4


def test_unnamed_debit_credit_with_balance():
    """Without a header, two complementary columns next to a balance are a debit/credit pair."""
    lines = [
        "2024-01-15,Coffee Shop,4.50,,995.50",
        "2024-01-16,Payroll,,1500.00,2495.50",
        "2024-01-17,Rent,800.00,,1695.50",
    ]

    config = detect_format_from_lines(lines).config

    assert config.has_header is False
    assert config.amount_type == "debit_credit"
    assert (config.debit_column, config.credit_column, config.balance_column) == (2, 3, 4)


def test_ambiguous_amount_columns_fail(fixtures_dir):
    """Two always-filled numeric columns are not guessed at."""
    with pytest.raises(FormatDetectionFailed, match="ambiguous amount columns"):
        detect_format((fixtures_dir / "ambiguous.csv").read_bytes())


def test_no_date_column_fails(fixtures_dir):
    """A file whose dates do not all parse cannot be detected."""
    with pytest.raises(FormatDetectionFailed, match="no date column"):
        detect_format((fixtures_dir / "malformed.csv").read_bytes())


def test_empty_file_fails():
    """Nothing to detect in an empty file."""
    with pytest.raises(FormatDetectionFailed, match="empty"):
        detect_format(b"\n\n")


def test_header_only_fails():
    """A header without data rows is not enough."""
    with pytest.raises(FormatDetectionFailed, match="no data rows"):
        detect_format(b"Date,Description,Amount\n")


def test_detection_is_deterministic(fixtures_dir):
    """The same bytes always give the same config."""
    data = (fixtures_dir / "debit_credit_semicolon.csv").read_bytes()
    assert detect_format(data).config == detect_format(data).config


def test_detected_config_parses_whole_file(fixtures_dir):
    """The detected config reads every row of the file it came from."""
    data = (fixtures_dir / "signed_amounts.csv").read_bytes()
    config = detect_format(data).config

    result = parse_csv_bytes(data, config)

    assert result.error_count == 0
    assert result.total_rows == 4


def test_detected_config_survives_dict_round_trip(fixtures_dir):
    """Stored configs come back identical."""
    config = detect_format((fixtures_dir / "debit_credit_semicolon.csv").read_bytes()).config
    assert CsvFormatConfig.from_dict(config.to_dict()) == config


def test_sample_size_limits_inspected_lines():
    """Only the configured number of lines is sampled."""
    lines = ["Date,Description,Amount"] + [f"2024-01-{day:02d},Shop {day},-{day}.00" for day in range(1, 21)]

    result = detect_format_from_lines(lines, ImportSettings(sample_size=5))

    assert len(result.sample_rows) == 5
    assert len(result.sample_previews) == 4
    assert result.row_count == 20


class TestDelimiter:
    """Tests for delimiter detection."""

    def test_prefers_consistent_column_count(self):
        """Commas inside amounts do not fool semicolon detection."""
        assert detect_delimiter(["a;b;1,50", "c;d;2,00,00"]) == ";"

    def test_tab_delimited(self):
        """Tab-separated exports are supported."""
        assert detect_delimiter(["a\tb\tc", "d\te\tf"]) == "\t"

    def test_single_column_fails(self):
        """A file without any delimiter is rejected."""
        with pytest.raises(FormatDetectionFailed, match="delimiter"):
            detect_delimiter(["just text", "more text"])


class TestHeaderRow:
    """Tests for header row recognition."""

    def test_text_row_is_header(self):
        assert is_header_row(["Date", "Description", "Amount"], DEFAULT_DATE_FORMATS)

    def test_row_with_date_is_data(self):
        assert not is_header_row(["2024-01-15", "Coffee", "-4.50"], DEFAULT_DATE_FORMATS)

    def test_row_with_european_number_is_data(self):
        assert not is_header_row(["Shop", "12,50"], DEFAULT_DATE_FORMATS)


class TestSampleWithConfig:
    """Tests for building a sample from an explicit config."""

    def test_override_is_used_as_is(self, fixtures_dir):
        """Rows the override cannot parse are left out of the sample."""
        lines = split_lines(decode_csv((fixtures_dir / "malformed.csv").read_bytes()))
        config = CsvFormatConfig(date_column=0, description_column=1, amount_column=2)

        result = sample_with_config(lines, config)

        assert result.config == config
        assert [p.description for p in result.sample_previews] == ["Coffee"]
        assert result.row_count == 4

    def test_invalid_override_is_rejected(self):
        """An inconsistent override fails validation."""
        config = CsvFormatConfig(date_column=0, description_column=1, amount_column=1)
        with pytest.raises(ValidationError):
            sample_with_config(["2024-01-15,Coffee,-4.50"], config)
