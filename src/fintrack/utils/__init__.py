"""Utility functions for fintrack."""

from fintrack.utils.date_parser import parse_date, parse_date_with_format
from fintrack.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_date_with_format", "parse_amount"]
