"""Database layer for fintrack application."""

from fintrack.database.base import Database
from fintrack.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]

