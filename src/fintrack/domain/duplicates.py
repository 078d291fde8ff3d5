"""Duplicate transaction detection.

Two transactions are the same when their date, amount and normalized
description agree exactly. There is no fuzzy matching: a bank that rewrites a
description between exports produces a new transaction.
"""

import hashlib
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from fintrack.domain.entities import Transaction, TransactionPreview

Fingerprint = tuple[date, Decimal, str]


def normalize_description(description: Optional[str]) -> str:
    """Lower-case a description and collapse runs of whitespace."""
    return " ".join((description or "").split()).casefold()


def fingerprint(txn_date: date, amount: Decimal, description: Optional[str]) -> Fingerprint:
    """Return the identity used to compare transactions.

    Amounts are compared by value, so ``10.5`` and ``10.50`` are equal.
    """
    return (txn_date, Decimal(amount).normalize(), normalize_description(description))


def duplicate_hash(txn_date: date, amount: Decimal, description: Optional[str]) -> str:
    """Return a short stable hash of a transaction fingerprint.

    The hash is stored with each transaction as a compact record of its
    fingerprint. It is informational: duplicate detection compares full
    fingerprints of the transactions in the lookup window.
    """
    key = "|".join(
        [
            txn_date.isoformat(),
            format(Decimal(amount).normalize(), "f"),
            normalize_description(description),
        ]
    )
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def mark_duplicates(
    previews: Sequence[TransactionPreview],
    existing: Iterable[Transaction],
) -> list[TransactionPreview]:
    """Flag previews that duplicate an existing transaction or an earlier preview.

    Within one batch the first occurrence of a fingerprint is kept and later
    ones are flagged. The order of ``existing`` does not matter.

    Args:
        previews: Parsed rows in file order
        existing: Persisted transactions to compare against

    Returns:
        New previews with ``is_duplicate`` set; inputs are not modified
    """
    seen = {fingerprint(t.date, t.amount, t.description) for t in existing}
    marked = []
    for preview in previews:
        key = fingerprint(preview.date, preview.amount, preview.description)
        marked.append(replace(preview, is_duplicate=key in seen))
        seen.add(key)
    return marked


def lookup_window(
    previews: Sequence[TransactionPreview], window_days: int = 0
) -> Optional[tuple[date, date]]:
    """Return the date range of existing transactions worth comparing against.

    Returns:
        (start, end) inclusive, widened by ``window_days`` on each side, or
        None when there are no previews
    """
    if not previews:
        return None
    dates = [p.date for p in previews]
    margin = timedelta(days=window_days)
    return min(dates) - margin, max(dates) + margin
