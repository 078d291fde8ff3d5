"""Tests for Database interface returning domain models."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from fintrack.domain import entities
from fintrack.domain.entities import CsvFormatConfig, ImportStatus


SIGNED = CsvFormatConfig(date_column=0, description_column=1, amount_column=2)
RULE_SOURCE = "name: Coffee\ntags: [coffee]\nconditions:\n  - {field: description, operator: contains, value: coffee}\n"


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_account_returns_domain_model(self, temp_db):
        """Test that get_account returns a domain Account entity."""
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")

        account = temp_db.get_account(account_id)

        assert isinstance(account, entities.Account)
        assert account.id == account_id
        assert account.name == "Test Account"
        assert account.bank_name == "Test Bank"
        assert isinstance(account.created_at, datetime)

    def test_get_category_by_path(self, temp_db):
        """Test that nested categories are found by their full path."""
        parent_id = temp_db.create_category(name="Food & Dining", parent_id=None)
        child_id = temp_db.create_category(name="Coffee", parent_id=parent_id)

        category = temp_db.get_category_by_path("Food & Dining > Coffee")

        assert isinstance(category, entities.Category)
        assert category.id == child_id
        assert category.parent_id == parent_id
        assert temp_db.get_category_by_path("Coffee") is None

    def test_transaction_round_trip(self, temp_db):
        """Test that transactions come back with exact amounts and tags."""
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")
        txn_id = temp_db.create_transaction(
            account_id=account_id,
            date=date(2024, 1, 15),
            amount=Decimal("-4.50"),
            description="Coffee",
            tags=["coffee", "daily"],
            duplicate_hash="0123456789abcdef",
        )

        txn = temp_db.get_transaction(txn_id)

        assert isinstance(txn, entities.Transaction)
        assert txn.amount == Decimal("-4.50")
        assert isinstance(txn.amount, Decimal)
        assert txn.date == date(2024, 1, 15)
        assert txn.tags == ("coffee", "daily")
        assert txn.category_id is None
        assert txn.duplicate_hash == "0123456789abcdef"
        assert isinstance(txn.imported_at, datetime)

    def test_update_transaction_categorization(self, temp_db):
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")
        category_id = temp_db.create_category(name="Coffee", parent_id=None)
        txn_id = temp_db.create_transaction(account_id, date(2024, 1, 15), Decimal("-4.50"), "Coffee")

        temp_db.update_transaction_categorization(txn_id, category_id, ["coffee"])

        txn = temp_db.get_transaction(txn_id)
        assert txn.category_id == category_id
        assert txn.tags == ("coffee",)

    def test_list_transactions_filters(self, temp_db):
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")
        other_id = temp_db.create_account(name="Other", bank_name="Test Bank")
        category_id = temp_db.create_category(name="Coffee", parent_id=None)
        temp_db.create_transaction(account_id, date(2024, 1, 10), Decimal("-1.00"), "a")
        temp_db.create_transaction(account_id, date(2024, 1, 20), Decimal("-2.00"), "b", category_id=category_id)
        temp_db.create_transaction(other_id, date(2024, 1, 15), Decimal("-3.00"), "c")

        assert [t.description for t in temp_db.list_transactions()] == ["b", "c", "a"]
        assert [t.description for t in temp_db.list_transactions(start_date=date(2024, 1, 15))] == ["b", "c"]
        assert [t.description for t in temp_db.list_transactions(end_date=date(2024, 1, 15))] == ["c", "a"]
        assert [t.description for t in temp_db.list_transactions(account_id=other_id)] == ["c"]
        assert [t.description for t in temp_db.list_transactions(category_id=category_id)] == ["b"]
        assert [t.description for t in temp_db.list_transactions(uncategorized=True)] == ["c", "a"]

    def test_import_session_round_trip(self, temp_db):
        """Test that sessions keep their file, config and status."""
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")
        session_id = temp_db.create_import_session(account_id, "file.csv", b"Date,Description,Amount\n")

        session = temp_db.get_import_session(session_id)
        assert isinstance(session, entities.ImportSession)
        assert session.status == ImportStatus.UPLOADED
        assert session.format_config is None
        assert session.csv_data == b"Date,Description,Amount\n"

        temp_db.update_import_session(session_id, ImportStatus.PREVIEWED, format_config=SIGNED, row_count=3)
        session = temp_db.get_import_session(session_id)
        assert session.status == ImportStatus.PREVIEWED
        assert session.format_config == SIGNED
        assert session.row_count == 3

        temp_db.update_import_session(session_id, ImportStatus.FAILED, error_message="bad file", clear_csv_data=True)
        session = temp_db.get_import_session(session_id)
        assert session.status == ImportStatus.FAILED
        assert session.error_message == "bad file"
        assert session.csv_data is None
        assert session.format_config == SIGNED

    def test_update_missing_session_raises(self, temp_db):
        with pytest.raises(ValueError):
            temp_db.update_import_session(999, ImportStatus.FAILED)

    def test_import_format_round_trip(self, temp_db):
        account_id = temp_db.create_account(name="Test Account", bank_name="Test Bank")
        format_id = temp_db.create_import_format("bank", account_id, SIGNED)

        fmt = temp_db.get_import_format_by_name("bank")

        assert isinstance(fmt, entities.ImportFormat)
        assert fmt.id == format_id
        assert fmt.config == SIGNED
        assert [f.name for f in temp_db.list_import_formats(account_id=account_id)] == ["bank"]

        temp_db.delete_import_format(format_id)
        assert temp_db.get_import_format_by_name("bank") is None

    def test_rule_round_trip(self, temp_db):
        """Test that stored rule documents are parsed back into rules."""
        rule_id = temp_db.create_rule(name="Coffee", priority=3, source=RULE_SOURCE, category_id=None)

        rule = temp_db.get_rule(rule_id)

        assert isinstance(rule, entities.Rule)
        assert rule.name == "Coffee"
        assert rule.priority == 3
        assert rule.tags == ("coffee",)
        assert rule.is_active is True
        assert rule.source == RULE_SOURCE

    def test_update_rule_fields(self, temp_db):
        category_id = temp_db.create_category(name="Coffee", parent_id=None)
        rule_id = temp_db.create_rule(name="Coffee", priority=3, source=RULE_SOURCE, category_id=category_id)

        temp_db.update_rule(rule_id, name="Cafe", is_active=False)
        rule = temp_db.get_rule(rule_id)
        assert (rule.name, rule.priority, rule.is_active, rule.category_id) == ("Cafe", 3, False, category_id)

        temp_db.update_rule(rule_id, category_id=None, update_category=True)
        assert temp_db.get_rule(rule_id).category_id is None

    def test_list_rules_order_and_filter(self, temp_db):
        temp_db.create_rule(name="Late", priority=10, source=RULE_SOURCE, category_id=None)
        temp_db.create_rule(name="Early", priority=1, source=RULE_SOURCE, category_id=None)
        temp_db.create_rule(name="Off", priority=0, source=RULE_SOURCE, category_id=None, is_active=False)

        assert [r.name for r in temp_db.list_rules()] == ["Off", "Early", "Late"]
        assert [r.name for r in temp_db.list_rules(active_only=True)] == ["Early", "Late"]

    def test_unit_of_work_commits_together(self, temp_db):
        with temp_db.unit_of_work():
            account_id = temp_db.create_account(name="Checking", bank_name="Bank")
            temp_db.create_category(name="Food", parent_id=None)

        assert temp_db.get_account(account_id).name == "Checking"
        assert temp_db.get_category_by_path("Food") is not None

    def test_unit_of_work_rolls_back_on_error(self, temp_db):
        """Nothing written inside a failing block survives, nested blocks included."""
        account_id = temp_db.create_account(name="Checking", bank_name="Bank")

        with pytest.raises(RuntimeError):
            with temp_db.unit_of_work():
                temp_db.create_transaction(account_id, date(2024, 1, 15), Decimal("-4.50"), "Coffee")
                with temp_db.unit_of_work():
                    temp_db.create_category(name="Food", parent_id=None)
                raise RuntimeError("abort")

        assert temp_db.list_transactions() == []
        assert temp_db.get_category_by_path("Food") is None
        assert temp_db.get_account(account_id) is not None
