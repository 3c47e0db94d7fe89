"""Adapter for statements with separate debit and credit amount columns.

Direction is taken from whichever amount column is populated. Rows where both
or neither column holds a non-zero amount are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from ...logging_setup import get_logger
from ...models import NormalizedTransaction, TransactionType
from ...normalizers import parse_optional_amount, quantize_amount
from ..columns import ColumnMap, cell, read_common_fields
from ._balance import read_balance

_logger = get_logger("site_ledger.ingest.split_columns_csv")


def to_transactions(
    rows: Iterable[tuple[int, Sequence[str]]],
    columns: ColumnMap,
    *,
    default_currency: str,
) -> Iterator[NormalizedTransaction]:
    """Convert ``(line_no, cells)`` rows into normalized transactions."""

    for line_no, cells in rows:
        try:
            debit = parse_optional_amount(cell(cells, columns.debit))
            credit = parse_optional_amount(cell(cells, columns.credit))
        except ValueError as exc:
            _logger.warning("statement:row_skipped line=%d reason=%s", line_no, exc)
            continue

        # Zero cells (after rounding to cents) count as empty
        debit = quantize_amount(abs(debit)) if debit is not None else None
        credit = quantize_amount(abs(credit)) if credit is not None else None
        debit = debit or None
        credit = credit or None
        if debit is not None and credit is not None:
            _logger.warning(
                "statement:row_skipped line=%d reason=both debit and credit populated", line_no
            )
            continue
        if debit is None and credit is None:
            _logger.warning("statement:row_skipped line=%d reason=no amount", line_no)
            continue

        try:
            common = read_common_fields(cells, columns, default_currency=default_currency)
        except ValueError as exc:
            _logger.warning("statement:row_skipped line=%d reason=%s", line_no, exc)
            continue

        if debit is not None:
            tx_type, value = TransactionType.DEBIT, debit
        else:
            assert credit is not None
            tx_type, value = TransactionType.CREDIT, credit

        yield NormalizedTransaction(
            type=tx_type,
            amount=value,
            balance=read_balance(cells, columns, line_no),
            **common,
        )
