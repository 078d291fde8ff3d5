"""Transaction domain service."""

from typing import Optional, Sequence
from datetime import date
from decimal import Decimal
from fintrack.database.base import Database
from fintrack.domain.duplicates import duplicate_hash
from fintrack.domain.entities import Transaction as TransactionEntity
from fintrack.domain.errors import NotFoundError, account_not_found, category_not_found


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_transaction(
        self,
        account_id: int,
        date: date,
        amount: Decimal,
        description: str,
        category_id: Optional[int] = None,
        tags: Sequence[str] = (),
        notes: Optional[str] = None,
    ) -> int:
        """Create a transaction.

        The duplicate fingerprint hash is computed here so every stored
        transaction can be matched against later imports.

        Args:
            account_id: Account ID
            date: Transaction date
            amount: Signed amount (expenses negative)
            description: Description as it appeared in the bank export
            category_id: Optional category ID
            tags: Optional tags
            notes: Optional notes

        Returns:
            Transaction ID

        Raises:
            NotFoundError: If the account or category doesn't exist
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))

        return self.db.create_transaction(
            account_id=account_id,
            date=date,
            amount=amount,
            description=description,
            category_id=category_id,
            tags=_unique(tags),
            notes=notes,
            duplicate_hash=duplicate_hash(date, amount, description),
        )

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def set_categorization(
        self, transaction_id: int, category_id: Optional[int], tags: Sequence[str]
    ) -> None:
        """Replace a transaction's category and tags.

        Raises:
            NotFoundError: If the transaction or category doesn't exist
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if category_id is not None and self.db.get_category(category_id) is None:
            raise NotFoundError(category_not_found(category_id))
        self.db.update_transaction_categorization(transaction_id, category_id, _unique(tags))

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_path: Optional[str] = None,
        account_id: Optional[int] = None,
        uncategorized: bool = False,
    ) -> list[TransactionEntity]:
        """List transactions with filters.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            category_path: Optional category path filter
            account_id: Optional account ID filter
            uncategorized: Only transactions without a category

        Returns:
            List of transaction entities, newest first
        """
        category_id = None
        if category_path is not None and not uncategorized:
            category = self.db.get_category_by_path(category_path)
            if category is None:
                # Category doesn't exist, return empty list
                return []
            category_id = category.id

        return self.db.list_transactions(
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            account_id=account_id,
            uncategorized=uncategorized,
        )


def _unique(tags: Sequence[str]) -> list[str]:
    result: list[str] = []
    for tag in tags:
        if tag not in result:
            result.append(tag)
    return result
