"""Adapter for statements with a single amount column.

Direction comes from the indicator column (``Д``/``К``, ``Dr``/``Cr``, ...)
when the statement has one and the cell is recognizable; otherwise from the
sign of the amount, negative meaning money leaving the account.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from ...logging_setup import get_logger
from ...models import NormalizedTransaction, TransactionType
from ...normalizers import parse_amount, quantize_amount
from ..columns import CREDIT_MARKERS, DEBIT_MARKERS, ColumnMap, cell, read_common_fields
from ._balance import read_balance

_logger = get_logger("site_ledger.ingest.signed_amount_csv")


def _direction_from_indicator(raw: str) -> TransactionType | None:
    token = raw.strip().lower().rstrip(".")
    if token in DEBIT_MARKERS:
        return TransactionType.DEBIT
    if token in CREDIT_MARKERS:
        return TransactionType.CREDIT
    return None


def to_transactions(
    rows: Iterable[tuple[int, Sequence[str]]],
    columns: ColumnMap,
    *,
    default_currency: str,
) -> Iterator[NormalizedTransaction]:
    """Convert ``(line_no, cells)`` rows into normalized transactions."""

    for line_no, cells in rows:
        try:
            value = parse_amount(cell(cells, columns.amount))
        except ValueError as exc:
            _logger.warning("statement:row_skipped line=%d reason=%s", line_no, exc)
            continue
        amount = quantize_amount(abs(value))
        if not amount:
            _logger.warning("statement:row_skipped line=%d reason=zero amount", line_no)
            continue

        try:
            common = read_common_fields(cells, columns, default_currency=default_currency)
        except ValueError as exc:
            _logger.warning("statement:row_skipped line=%d reason=%s", line_no, exc)
            continue

        tx_type = _direction_from_indicator(cell(cells, columns.indicator))
        if tx_type is None:
            tx_type = TransactionType.DEBIT if value < 0 else TransactionType.CREDIT

        yield NormalizedTransaction(
            type=tx_type,
            amount=amount,
            balance=read_balance(cells, columns, line_no),
            **common,
        )
