"""Saved CSV format domain service.

A saved format is a named ``CsvFormatConfig`` attached to an account, used as
the override for later imports of the same bank's exports.
"""

from typing import Any, Optional, Union

import yaml

from fintrack.database.base import Database
from fintrack.domain.entities import CsvFormatConfig, ImportFormat
from fintrack.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    import_format_not_found,
    session_not_found,
)


def load_format_config(text: str) -> CsvFormatConfig:
    """Parse a format config written as YAML or JSON.

    Args:
        text: Document holding a single mapping of config keys

    Returns:
        Validated CsvFormatConfig

    Raises:
        ValidationError: If the document is not valid or not a config
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid format config document: {e}") from e
    return CsvFormatConfig.from_dict(data)


class ImportFormatService:
    """Service for managing saved CSV formats."""

    def __init__(self, db: Database):
        """Initialize import format service.

        Args:
            db: Database instance
        """
        self.db = db

    def save_format(
        self, name: str, account_id: int, config: Union[CsvFormatConfig, dict[str, Any]]
    ) -> int:
        """Save a named format.

        Args:
            name: Format name (unique)
            account_id: Account the format belongs to
            config: Format config or its dict form

        Returns:
            Format ID

        Raises:
            ValidationError: If the name is empty or the config is invalid
            NotFoundError: If the account doesn't exist
            ConflictError: If a format with the same name exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Format name cannot be empty")
        if not isinstance(config, CsvFormatConfig):
            config = CsvFormatConfig.from_dict(config)
        config.validate()

        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        if self.db.get_import_format_by_name(name) is not None:
            raise ConflictError(f"Import format with name '{name}' already exists")

        return self.db.create_import_format(name=name, account_id=account_id, config=config)

    def save_from_session(self, name: str, session_id: int) -> int:
        """Save the format an import session resolved to.

        Raises:
            NotFoundError: If the session doesn't exist
            ValidationError: If the session has no format config yet
        """
        session = self.db.get_import_session(session_id)
        if session is None:
            raise NotFoundError(session_not_found(session_id))
        if session.format_config is None:
            raise ValidationError(f"Import session {session_id} has no format to save")
        return self.save_format(name, session.account_id, session.format_config)

    def get_format_by_name(self, name: str) -> Optional[ImportFormat]:
        """Get a saved format by name.

        Returns:
            ImportFormat or None if not found
        """
        return self.db.get_import_format_by_name(name)

    def require_format(self, name: str) -> ImportFormat:
        """Get a saved format by name, raising NotFoundError if missing."""
        fmt = self.db.get_import_format_by_name(name)
        if fmt is None:
            raise NotFoundError(import_format_not_found(name))
        return fmt

    def list_formats(self, account_id: Optional[int] = None) -> list[ImportFormat]:
        """List saved formats, optionally for one account."""
        return self.db.list_import_formats(account_id=account_id)

    def delete_format(self, name: str) -> None:
        """Delete a saved format by name.

        Raises:
            NotFoundError: If the format doesn't exist
        """
        fmt = self.require_format(name)
        self.db.delete_import_format(fmt.id)
