"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, ContextManager, Optional, Sequence
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from fintrack.domain.entities import (
    Account,
    Category,
    CsvFormatConfig,
    ImportFormat,
    ImportSession,
    ImportStatus,
    Rule,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for fintrack."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def unit_of_work(self) -> ContextManager[None]:
        """Return a context manager that commits its operations together.

        Operations inside the block become visible only when it exits
        normally; if it raises, none of them are kept.
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Account operations
    @abstractmethod
    def create_account(self, name: str, bank_name: str) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_name(self, name: str) -> Optional[Account]:
        """Get account by name."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path (e.g., 'Food & Dining > Groceries')."""
        pass

    @abstractmethod
    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally filtered by parent."""
        pass

    @abstractmethod
    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy.

        Returns a list of dictionaries with category data and nested 'children' lists.
        """
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        account_id: int,
        date: date,
        amount: Decimal,
        description: str,
        category_id: Optional[int] = None,
        tags: Sequence[str] = (),
        notes: Optional[str] = None,
        duplicate_hash: Optional[str] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def update_transaction_categorization(
        self, transaction_id: int, category_id: Optional[int], tags: Sequence[str]
    ) -> None:
        """Set a transaction's category and tags."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
        account_id: Optional[int] = None,
        uncategorized: bool = False,
    ) -> list[Transaction]:
        """List transactions with optional filters.

        Args:
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)
            category_id: Optional category ID filter
            account_id: Optional account ID filter
            uncategorized: If True, only return transactions without a category
        """
        pass

    # Saved import format operations
    @abstractmethod
    def create_import_format(self, name: str, account_id: int, config: CsvFormatConfig) -> int:
        """Save a named CSV format. Returns format ID."""
        pass

    @abstractmethod
    def get_import_format_by_name(self, name: str) -> Optional[ImportFormat]:
        """Get a saved CSV format by name."""
        pass

    @abstractmethod
    def list_import_formats(self, account_id: Optional[int] = None) -> list[ImportFormat]:
        """List saved CSV formats, optionally filtered by account."""
        pass

    @abstractmethod
    def delete_import_format(self, format_id: int) -> None:
        """Delete a saved CSV format."""
        pass

    # Import session operations
    @abstractmethod
    def create_import_session(
        self,
        account_id: int,
        filename: str,
        csv_data: bytes,
        status: ImportStatus = ImportStatus.UPLOADED,
    ) -> int:
        """Create an import session. Returns session ID."""
        pass

    @abstractmethod
    def get_import_session(self, session_id: int) -> Optional[ImportSession]:
        """Get import session by ID."""
        pass

    @abstractmethod
    def list_import_sessions(
        self, account_id: Optional[int] = None, status: Optional[ImportStatus] = None
    ) -> list[ImportSession]:
        """List import sessions, newest first."""
        pass

    @abstractmethod
    def update_import_session(
        self,
        session_id: int,
        status: ImportStatus,
        error_message: Optional[str] = None,
        format_config: Optional[CsvFormatConfig] = None,
        row_count: Optional[int] = None,
        clear_csv_data: bool = False,
    ) -> None:
        """Update an import session.

        ``status`` and ``error_message`` are always written (None clears the
        message); ``format_config`` and ``row_count`` only when given.
        """
        pass

    # Rule operations
    @abstractmethod
    def create_rule(
        self,
        name: str,
        priority: int,
        source: str,
        category_id: Optional[int],
        is_active: bool = True,
    ) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[Rule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def get_rule_by_name(self, name: str) -> Optional[Rule]:
        """Get rule by name."""
        pass

    @abstractmethod
    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """List rules in evaluation order."""
        pass

    @abstractmethod
    def update_rule(
        self,
        rule_id: int,
        name: Optional[str] = None,
        priority: Optional[int] = None,
        source: Optional[str] = None,
        category_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        update_category: bool = False,
    ) -> None:
        """Update rule fields.

        Args:
            update_category: If True, update category_id even if it's None (to clear it)
        """
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass
