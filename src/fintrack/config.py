"""Import engine settings.

Values come from explicit arguments, then FINTRACK_* environment variables,
then the defaults below.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from fintrack.domain.errors import ValidationError
from fintrack.utils.date_parser import DEFAULT_DATE_FORMATS


@dataclass(frozen=True)
class ImportSettings:
    """Tunable parameters of the import pipeline."""

    # Lines inspected by format detection
    sample_size: int = 10
    # Fraction of failed rows above which a file is rejected as malformed
    max_error_ratio: float = 0.5
    # Extra days on each side of the incoming date range for duplicate lookups
    duplicate_window_days: int = 0
    max_file_size: int = 10 * 1024 * 1024
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS

    def __post_init__(self):
        if self.sample_size < 1:
            raise ValidationError("sample_size must be at least 1")
        if not 0 <= self.max_error_ratio <= 1:
            raise ValidationError("max_error_ratio must be between 0 and 1")
        if self.duplicate_window_days < 0:
            raise ValidationError("duplicate_window_days cannot be negative")
        if self.max_file_size < 1:
            raise ValidationError("max_file_size must be positive")
        if not self.date_formats:
            raise ValidationError("date_formats cannot be empty")


_ENV_SETTINGS = {
    "FINTRACK_SAMPLE_SIZE": ("sample_size", int),
    "FINTRACK_MAX_ERROR_RATIO": ("max_error_ratio", float),
    "FINTRACK_DUPLICATE_WINDOW_DAYS": ("duplicate_window_days", int),
    "FINTRACK_MAX_FILE_SIZE": ("max_file_size", int),
}


def load_import_settings(environ: Optional[Mapping[str, str]] = None, **overrides) -> ImportSettings:
    """Build ImportSettings from the environment.

    Args:
        environ: Environment mapping (defaults to os.environ)
        **overrides: Explicit values; these win over the environment

    Returns:
        ImportSettings instance

    Raises:
        ValidationError: If an environment value is not a valid number
    """
    if environ is None:
        environ = os.environ

    values = {}
    for env_name, (attr, convert) in _ENV_SETTINGS.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            values[attr] = convert(raw)
        except ValueError:
            raise ValidationError(f"Invalid value for {env_name}: '{raw}'") from None

    values.update({k: v for k, v in overrides.items() if v is not None})
    return replace(ImportSettings(), **values)


def default_database_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the SQLite database path.

    Checks FINTRACK_DB_PATH, then defaults to ~/.fintrack/fintrack.db
    """
    if environ is None:
        environ = os.environ

    database_path = environ.get("FINTRACK_DB_PATH")
    if database_path:
        return database_path

    db_dir = Path.home() / ".fintrack"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "fintrack.db")
