"""Rule evaluation.

Pure functions over a snapshot of rules: no database access and no shared
state between transactions, so results depend only on the rules and the
transaction fields.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from fintrack.domain.entities import Rule, Transaction
from fintrack.domain.rule_language import (
    AllOf,
    AnyOf,
    Condition,
    Field,
    Not,
    Operator,
    Predicate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionFields:
    """The transaction attributes rules can look at."""

    description: str
    amount: Decimal
    date: date


@dataclass(frozen=True)
class RuleMatch:
    """Action of the first rule whose condition matched."""

    rule_id: int
    rule_name: str
    category_id: Optional[int]
    tags: tuple[str, ...]


@dataclass(frozen=True)
class RuleOutcome:
    """Result of running the rules against one transaction."""

    transaction_id: int
    match: Optional[RuleMatch]
    category_id: Optional[int]
    tags: tuple[str, ...]
    changed: bool

    @property
    def matched(self) -> bool:
        return self.match is not None


@dataclass(frozen=True)
class BatchResult:
    """Summary of a batch rule application."""

    outcomes: tuple[RuleOutcome, ...]
    evaluated_count: int
    matched_count: int
    updated_count: int

    @property
    def changed(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.changed]


def active_rules_sorted(rules: Iterable[Rule]) -> tuple[Rule, ...]:
    """Return the active rules in evaluation order.

    Lower priority values come first; equal priorities keep creation order.
    """
    return tuple(sorted((r for r in rules if r.is_active), key=lambda r: r.sort_key))


def matches(condition: Condition, fields: TransactionFields) -> bool:
    """Evaluate a condition tree against transaction fields.

    ``all_of`` and ``any_of`` short-circuit like ``and``/``or``.
    """
    if isinstance(condition, Predicate):
        return _matches_predicate(condition, fields)
    if isinstance(condition, AllOf):
        return all(matches(child, fields) for child in condition.children)
    if isinstance(condition, AnyOf):
        return any(matches(child, fields) for child in condition.children)
    if isinstance(condition, Not):
        return not matches(condition.child, fields)
    raise TypeError(f"Unknown condition node: {condition!r}")


def _matches_predicate(predicate: Predicate, fields: TransactionFields) -> bool:
    op = predicate.operator
    expected = predicate.value

    if predicate.field == Field.DESCRIPTION:
        text = (fields.description or "").casefold()
        if op == Operator.CONTAINS:
            return expected in text
        if op == Operator.EQUALS:
            return text == expected
        if op == Operator.STARTS_WITH:
            return text.startswith(expected)
        if op == Operator.ENDS_WITH:
            return text.endswith(expected)
        if op == Operator.REGEX:
            return expected.search(fields.description or "") is not None
    elif predicate.field == Field.AMOUNT:
        return _compare(op, fields.amount, expected)
    elif predicate.field == Field.DATE:
        if op == Operator.DAY_OF_WEEK:
            return fields.date.isoweekday() == expected
        if op == Operator.DAY_OF_MONTH:
            return fields.date.day == expected
        return _compare(op, fields.date, expected)

    raise TypeError(f"Operator {op.value} is not valid for field {predicate.field.value}")


def _compare(op: Operator, actual, expected) -> bool:
    if op == Operator.EQUALS:
        return actual == expected
    if op == Operator.GT:
        return actual > expected
    if op == Operator.LT:
        return actual < expected
    if op == Operator.BETWEEN:
        low, high = expected
        return low <= actual <= high
    raise TypeError(f"Operator {op.value} is not a comparison")


def evaluate_rules(fields: TransactionFields, rules: Sequence[Rule]) -> Optional[RuleMatch]:
    """Find the first matching rule for a transaction.

    Args:
        fields: Transaction description, amount and date
        rules: Rule snapshot; inactive rules are ignored and the rest are
            evaluated in (priority, creation order)

    Returns:
        The first matching rule's action, or None when no rule matches
    """
    for rule in active_rules_sorted(rules):
        if matches(rule.condition, fields):
            logger.debug("Rule '%s' matched '%s'", rule.name, fields.description)
            return RuleMatch(
                rule_id=rule.id,
                rule_name=rule.name,
                category_id=rule.category_id,
                tags=rule.tags,
            )
    return None


def apply_match(
    category_id: Optional[int], tags: Sequence[str], match: RuleMatch
) -> tuple[Optional[int], tuple[str, ...]]:
    """Combine a transaction's current category/tags with a rule action.

    The rule's category replaces the current one when the rule sets one;
    rule tags are added to the existing tags.
    """
    new_category = match.category_id if match.category_id is not None else category_id
    new_tags = list(tags)
    for tag in match.tags:
        if tag not in new_tags:
            new_tags.append(tag)
    return new_category, tuple(new_tags)


def apply_rules_batch(
    transactions: Iterable[Transaction],
    rules: Sequence[Rule],
    only_uncategorized: bool = False,
) -> BatchResult:
    """Run the rules over many transactions.

    Each transaction is evaluated independently against the same rule
    snapshot. Transactions are not modified; the returned outcomes carry the
    category and tags each one should end up with.

    Args:
        transactions: Transactions to categorize
        rules: Rule snapshot
        only_uncategorized: Skip transactions that already have a category

    Returns:
        Batch result; ``updated_count`` counts transactions whose category
        or tags changed
    """
    snapshot = active_rules_sorted(rules)
    outcomes = []
    evaluated = 0
    for txn in transactions:
        if only_uncategorized and txn.category_id is not None:
            continue
        evaluated += 1
        fields = TransactionFields(description=txn.description, amount=txn.amount, date=txn.date)
        match = evaluate_rules(fields, snapshot)
        if match is None:
            outcomes.append(
                RuleOutcome(
                    transaction_id=txn.id,
                    match=None,
                    category_id=txn.category_id,
                    tags=tuple(txn.tags),
                    changed=False,
                )
            )
            continue

        category_id, tags = apply_match(txn.category_id, txn.tags, match)
        changed = category_id != txn.category_id or set(tags) != set(txn.tags)
        outcomes.append(
            RuleOutcome(
                transaction_id=txn.id,
                match=match,
                category_id=category_id,
                tags=tags,
                changed=changed,
            )
        )

    matched = sum(1 for o in outcomes if o.matched)
    updated = sum(1 for o in outcomes if o.changed)
    logger.info(
        "Applied %d rules to %d transactions: %d matched, %d updated",
        len(snapshot), evaluated, matched, updated,
    )
    return BatchResult(
        outcomes=tuple(outcomes),
        evaluated_count=evaluated,
        matched_count=matched,
        updated_count=updated,
    )
