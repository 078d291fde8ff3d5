"""Categorization rule domain service."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fintrack.database.base import Database
from fintrack.domain.entities import Rule
from fintrack.domain.errors import ConflictError, NotFoundError, RuleParseError, rule_not_found
from fintrack.domain.rule_engine import (
    BatchResult,
    RuleMatch,
    TransactionFields,
    apply_rules_batch,
    evaluate_rules,
)
from fintrack.domain.rule_language import RuleDefinition, parse_rule_document

logger = logging.getLogger(__name__)


class RuleService:
    """Service for managing and applying categorization rules.

    Rule documents are parsed and their category resolved when they are
    saved, so a stored rule is always valid when it is evaluated.
    """

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_rule(
        self,
        source: str,
        name: Optional[str] = None,
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> int:
        """Create a rule from a YAML rule document.

        Args:
            source: Rule document
            name: Optional name overriding the document's
            priority: Optional priority overriding the document's
            is_active: Optional active flag overriding the document's

        Returns:
            Rule ID

        Raises:
            RuleParseError: If the document is invalid or names an unknown category
            ConflictError: If a rule with the same name exists
        """
        definition = parse_rule_document(source, name=name, priority=priority, is_active=is_active)
        category_id = self._resolve_category(definition)
        if self.db.get_rule_by_name(definition.name) is not None:
            raise ConflictError(f"Rule with name '{definition.name}' already exists")

        rule_id = self.db.create_rule(
            name=definition.name,
            priority=definition.priority,
            source=source,
            category_id=category_id,
            is_active=definition.is_active,
        )
        logger.info("Created rule '%s' (priority %d)", definition.name, definition.priority)
        return rule_id

    def update_rule(
        self,
        rule_id: int,
        source: Optional[str] = None,
        name: Optional[str] = None,
        priority: Optional[int] = None,
    ) -> None:
        """Update a rule.

        A new document replaces the rule entirely (including its active
        flag); explicit ``name`` and ``priority`` still take precedence.
        Without a document only the given fields change.

        Raises:
            NotFoundError: If the rule doesn't exist
            RuleParseError: If the resulting rule is invalid
            ConflictError: If the new name is taken by another rule
        """
        rule = self.require_rule(rule_id)
        if source is None:
            definition = parse_rule_document(
                rule.source,
                name=name if name is not None else rule.name,
                priority=priority if priority is not None else rule.priority,
                is_active=rule.is_active,
            )
        else:
            definition = parse_rule_document(source, name=name, priority=priority)
        category_id = self._resolve_category(definition)

        existing = self.db.get_rule_by_name(definition.name)
        if existing is not None and existing.id != rule_id:
            raise ConflictError(f"Rule with name '{definition.name}' already exists")

        self.db.update_rule(
            rule_id,
            name=definition.name,
            priority=definition.priority,
            source=source,
            category_id=category_id,
            is_active=definition.is_active,
            update_category=True,
        )

    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        self.require_rule(rule_id)
        self.db.delete_rule(rule_id)

    def set_active(self, rule_id: int, is_active: bool) -> None:
        """Enable or disable a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        self.require_rule(rule_id)
        self.db.update_rule(rule_id, is_active=is_active)

    def get_rule(self, rule_id: int) -> Optional[Rule]:
        """Get rule by ID."""
        return self.db.get_rule(rule_id)

    def require_rule(self, rule_id: int) -> Rule:
        """Get rule by ID, raising NotFoundError if it does not exist."""
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """List rules in evaluation order."""
        return self.db.list_rules(active_only=active_only)

    def test_transaction(self, description: str, amount: Decimal, txn_date: date) -> Optional[RuleMatch]:
        """Find which active rule would apply to a transaction.

        Args:
            description: Transaction description
            amount: Signed amount
            txn_date: Transaction date

        Returns:
            The first matching rule's action, or None if no rule matches
        """
        fields = TransactionFields(description=description, amount=amount, date=txn_date)
        return evaluate_rules(fields, self.db.list_rules(active_only=True))

    def apply_rules(
        self, only_uncategorized: bool = False, account_id: Optional[int] = None
    ) -> BatchResult:
        """Run the active rules over stored transactions and save the changes.

        Args:
            only_uncategorized: Only look at transactions without a category
            account_id: Optional account ID filter

        Returns:
            BatchResult; ``updated_count`` transactions were written
        """
        rules = self.db.list_rules(active_only=True)
        transactions = self.db.list_transactions(
            account_id=account_id, uncategorized=only_uncategorized
        )
        result = apply_rules_batch(transactions, rules, only_uncategorized=only_uncategorized)
        with self.db.unit_of_work():
            for outcome in result.changed:
                self.db.update_transaction_categorization(
                    outcome.transaction_id, outcome.category_id, outcome.tags
                )
        return result

    def _resolve_category(self, definition: RuleDefinition) -> Optional[int]:
        if definition.category_id is not None:
            if self.db.get_category(definition.category_id) is None:
                raise RuleParseError(
                    definition.name, f"unknown category id {definition.category_id}"
                )
            return definition.category_id
        if definition.category_path is not None:
            category = self.db.get_category_by_path(definition.category_path)
            if category is None:
                raise RuleParseError(
                    definition.name, f"unknown category '{definition.category_path}'"
                )
            return category.id
        return None
