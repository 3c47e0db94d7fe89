"""Invoice matcher: link debit transactions to recorded supplier invoices.

A transaction and an invoice match when their amounts differ by less than
``AMOUNT_EPSILON`` and their dates are at most ``MAX_DATE_DISTANCE_DAYS``
apart. The first matching invoice in the given order wins; there is no
ranking among several candidates.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from .models import (
    Invoice,
    MatchResult,
    NormalizedTransaction,
    StoredBankTransaction,
    TransactionType,
)

AMOUNT_EPSILON = Decimal("0.02")
MAX_DATE_DISTANCE_DAYS = 3


def is_candidate(tx: NormalizedTransaction, invoice: Invoice) -> bool:
    if tx.type is not TransactionType.DEBIT:
        return False
    if abs(tx.amount - invoice.total) >= AMOUNT_EPSILON:
        return False
    return abs((tx.date - invoice.date).days) <= MAX_DATE_DISTANCE_DAYS


def find_match(tx: NormalizedTransaction, invoices: Iterable[Invoice]) -> Invoice | None:
    """Return the first invoice in ``invoices`` that matches ``tx``, else ``None``."""

    for invoice in invoices:
        if is_candidate(tx, invoice):
            return invoice
    return None


def match_transactions(
    transactions: Iterable[StoredBankTransaction], invoices: Sequence[Invoice]
) -> list[MatchResult]:
    """Pair every debit in ``transactions`` with its match (or ``None``).

    Credits are omitted from the result. An invoice may be returned for more
    than one transaction.
    """

    return [
        MatchResult(tx, find_match(tx, invoices))
        for tx in transactions
        if tx.type is TransactionType.DEBIT
    ]


__all__ = [
    "AMOUNT_EPSILON",
    "MAX_DATE_DISTANCE_DAYS",
    "is_candidate",
    "find_match",
    "match_transactions",
]
