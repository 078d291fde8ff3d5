"""Shared pytest fixtures for fintrack tests."""

import tempfile
import os
from pathlib import Path
import pytest

from fintrack.config import ImportSettings
from fintrack.database.factories import create_sqlite_database
from fintrack.domain.account import AccountService
from fintrack.domain.category import CategoryService
from fintrack.domain.csv_format import ImportFormatService
from fintrack.domain.csv_import import CSVImportService
from fintrack.domain.import_session import AccountImportLocks
from fintrack.domain.rule import RuleService
from fintrack.domain.transaction import TransactionService


SAMPLE_CATEGORIES = [
    ("Food & Dining", None),
    ("Coffee", "Food & Dining"),
    ("Groceries", "Food & Dining"),
    ("Income", None),
    ("Salary", "Income"),
    ("Housing", None),
]


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def import_format_service(temp_db):
    """Create an ImportFormatService with a temporary database."""
    return ImportFormatService(temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a CSVImportService with its own lock registry."""
    return CSVImportService(temp_db, ImportSettings(), locks=AccountImportLocks())


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def sample_account(account_service):
    """Create a sample account for testing."""
    account_id = account_service.create_account(name="Test Account", bank_name="Test Bank")
    return account_service.get_account(account_id)


@pytest.fixture
def sample_categories(category_service):
    """Create a small category tree and return IDs keyed by path."""
    category_ids = {}
    for name, parent in SAMPLE_CATEGORIES:
        path = f"{parent} > {name}" if parent else name
        category_ids[path] = category_service.create_category(name=name, parent_path=parent)
    return category_ids


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
