"""Tests for rule evaluation."""

from datetime import date, datetime, timedelta
from decimal import Decimal

from fintrack.domain.entities import Rule, Transaction
from fintrack.domain.rule_engine import (
    TransactionFields,
    apply_match,
    apply_rules_batch,
    evaluate_rules,
    matches,
)
from fintrack.domain.rule_language import parse_condition


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_rule(rule_id, name, condition, priority=0, category_id=None, tags=(), is_active=True, created_offset=0):
    return Rule(
        id=rule_id,
        name=name,
        priority=priority,
        condition=parse_condition(condition, name),
        category_id=category_id,
        tags=tuple(tags),
        is_active=is_active,
        source="",
        created_at=BASE_TIME + timedelta(seconds=created_offset),
        updated_at=BASE_TIME,
    )


def make_transaction(txn_id, description, amount, txn_date=date(2024, 1, 15), category_id=None, tags=()):
    return Transaction(
        id=txn_id,
        account_id=1,
        date=txn_date,
        amount=Decimal(amount),
        description=description,
        category_id=category_id,
        tags=tuple(tags),
        notes=None,
        duplicate_hash=None,
        imported_at=BASE_TIME,
    )


def fields(description, amount="-4.50", txn_date=date(2024, 1, 15)):
    return TransactionFields(description=description, amount=Decimal(amount), date=txn_date)


def contains(value):
    return {"field": "description", "operator": "contains", "value": value}


class TestMatches:
    """Tests for single condition evaluation."""

    def test_description_operators(self):
        txn = fields("Starbucks Coffee #123")

        assert matches(parse_condition(contains("COFFEE")), txn)
        assert matches(parse_condition({"field": "description", "operator": "starts_with", "value": "starbucks"}), txn)
        assert matches(parse_condition({"field": "description", "operator": "ends_with", "value": "#123"}), txn)
        assert not matches(parse_condition({"field": "description", "operator": "equals", "value": "starbucks"}), txn)
        assert matches(parse_condition({"field": "description", "operator": "regex", "value": r"#\d+$"}), txn)

    def test_amount_operators(self):
        txn = fields("x", amount="-4.50")

        assert matches(parse_condition({"field": "amount", "operator": "lt", "value": 0}), txn)
        assert not matches(parse_condition({"field": "amount", "operator": "gt", "value": 0}), txn)
        assert matches(parse_condition({"field": "amount", "operator": "equals", "value": "-4.5"}), txn)
        assert matches(parse_condition({"field": "amount", "operator": "between", "value": [-5, -4.5]}), txn)

    def test_date_operators(self):
        # 2024-01-15 is a Monday
        txn = fields("x", txn_date=date(2024, 1, 15))

        assert matches(parse_condition({"field": "date", "operator": "day_of_week", "value": 1}), txn)
        assert matches(parse_condition({"field": "date", "operator": "day_of_month", "value": 15}), txn)
        assert matches(parse_condition({"field": "date", "operator": "gt", "value": "2024-01-14"}), txn)
        assert not matches(
            parse_condition({"field": "date", "operator": "between", "value": ["2024-02-01", "2024-02-29"]}), txn
        )

    def test_combinators(self):
        txn = fields("Coffee Shop", amount="-4.50")

        both = parse_condition({"all_of": [contains("coffee"), {"field": "amount", "operator": "lt", "value": 0}]})
        either = parse_condition({"any_of": [contains("tea"), contains("shop")]})
        negated = parse_condition({"not": contains("coffee")})

        assert matches(both, txn)
        assert matches(either, txn)
        assert not matches(negated, txn)


class TestEvaluateRules:
    """Tests for choosing the rule that applies."""

    def test_lowest_priority_wins(self):
        """The rule with the smallest priority value is tried first."""
        rules = [
            make_rule(1, "Generic", contains("coffee"), priority=20, category_id=1),
            make_rule(2, "Specific", contains("starbucks"), priority=5, category_id=2),
        ]

        match = evaluate_rules(fields("Starbucks Coffee"), rules)

        assert match.rule_id == 2
        assert match.category_id == 2

    def test_equal_priority_uses_creation_order(self):
        """Ties are broken by which rule was created first."""
        rules = [
            make_rule(2, "Later", contains("coffee"), category_id=2, created_offset=10),
            make_rule(1, "Earlier", contains("coffee"), category_id=1, created_offset=0),
        ]

        assert evaluate_rules(fields("coffee"), rules).rule_name == "Earlier"

    def test_inactive_rules_are_skipped(self):
        rules = [
            make_rule(1, "Off", contains("coffee"), priority=0, category_id=1, is_active=False),
            make_rule(2, "On", contains("coffee"), priority=10, category_id=2),
        ]

        assert evaluate_rules(fields("coffee"), rules).rule_id == 2

    def test_no_match(self):
        rules = [make_rule(1, "Coffee", contains("coffee"), category_id=1)]
        assert evaluate_rules(fields("Rent"), rules) is None

    def test_result_does_not_depend_on_rule_list_order(self):
        rules = [
            make_rule(1, "A", contains("a"), priority=3, category_id=1),
            make_rule(2, "B", contains("b"), priority=1, category_id=2),
            make_rule(3, "C", contains("c"), priority=2, category_id=3),
        ]
        txn = fields("abc")

        assert evaluate_rules(txn, rules) == evaluate_rules(txn, list(reversed(rules)))


def test_apply_match_merges_tags():
    """Rule tags are added to existing ones without duplicates."""
    rule = make_rule(1, "Coffee", contains("coffee"), category_id=7, tags=["coffee", "daily"])
    match = evaluate_rules(fields("coffee"), [rule])

    category_id, tags = apply_match(None, ("daily", "work"), match)

    assert category_id == 7
    assert tags == ("daily", "work", "coffee")


def test_apply_match_keeps_category_for_tag_only_rule():
    """A rule without a category leaves the current one in place."""
    rule = make_rule(1, "Tagger", contains("coffee"), tags=["coffee"])
    match = evaluate_rules(fields("coffee"), [rule])

    assert apply_match(3, (), match) == (3, ("coffee",))


class TestApplyRulesBatch:
    """Tests for batch categorization."""

    def setup_method(self):
        self.rules = [
            make_rule(1, "Coffee", contains("coffee"), category_id=10, tags=["coffee"]),
            make_rule(2, "Rent", contains("rent"), category_id=20),
        ]
        self.transactions = [
            make_transaction(1, "Corner Coffee", "-3.20"),
            make_transaction(2, "Monthly Rent", "-900.00", category_id=99),
            make_transaction(3, "Groceries", "-55.00"),
        ]

    def test_counts_and_outcomes(self):
        result = apply_rules_batch(self.transactions, self.rules)

        assert result.evaluated_count == 3
        assert result.matched_count == 2
        assert result.updated_count == 2
        by_id = {o.transaction_id: o for o in result.outcomes}
        assert by_id[1].category_id == 10
        assert by_id[1].tags == ("coffee",)
        assert by_id[2].category_id == 20
        assert by_id[3].matched is False
        assert by_id[3].changed is False

    def test_only_uncategorized(self):
        """Categorized transactions are left alone when asked."""
        result = apply_rules_batch(self.transactions, self.rules, only_uncategorized=True)

        assert result.evaluated_count == 2
        assert {o.transaction_id for o in result.outcomes} == {1, 3}

    def test_second_run_changes_nothing(self):
        """Applying the rules to their own output is a no-op."""
        first = apply_rules_batch(self.transactions, self.rules)
        updated = [
            make_transaction(t.id, t.description, t.amount, category_id=o.category_id, tags=o.tags)
            for t, o in zip(self.transactions, first.outcomes)
        ]

        second = apply_rules_batch(updated, self.rules)

        assert second.matched_count == 2
        assert second.updated_count == 0
        assert second.changed == []
