"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

_CURRENCY_SYMBOLS = re.compile(r"[$€£¥]|\b[A-Z]{3}\b")
_EUROPEAN_AMOUNT = re.compile(r"^[+-]?\(?[+-]?\d{1,3}(\.\d{3})*,\d{1,2}\)?$|^[+-]?\(?[+-]?\d+,\d{1,2}\)?$")


def parse_amount(amount_str: str, decimal_separator: str = ".") -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)
    - "1.234,56" when decimal_separator is ","

    Args:
        amount_str: Amount string
        decimal_separator: "." or ","; the other character is treated as a
            thousands separator

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    # Remove whitespace
    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and codes
    amount_str = _CURRENCY_SYMBOLS.sub("", amount_str)

    # Remove thousands separators and normalize the decimal point
    if decimal_separator == ",":
        amount_str = amount_str.replace(".", "").replace(",", ".")
    else:
        amount_str = amount_str.replace(",", "")

    # Remove whitespace again
    amount_str = amount_str.replace(" ", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'") from None
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def is_amount(value: str, decimal_separator: str = ".") -> bool:
    """Return True if the value parses as an amount."""
    try:
        parse_amount(value, decimal_separator)
    except ValueError:
        return False
    return True


def looks_european(value: str) -> bool:
    """Return True if the value is written with a decimal comma (e.g. "1.234,56")."""
    return bool(_EUROPEAN_AMOUNT.match(_CURRENCY_SYMBOLS.sub("", value.strip()).strip()))
