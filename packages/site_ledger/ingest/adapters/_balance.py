from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from ...logging_setup import get_logger
from ...normalizers import parse_optional_amount, quantize_amount
from ..columns import ColumnMap, cell

_logger = get_logger("site_ledger.ingest")


def read_balance(cells: Sequence[str], columns: ColumnMap, line_no: int) -> Decimal | None:
    # Balance is informational; an unreadable cell drops the value, not the row.
    try:
        balance = parse_optional_amount(cell(cells, columns.balance))
    except ValueError:
        _logger.debug("statement:balance_ignored line=%d", line_no)
        return None
    return quantize_amount(balance) if balance is not None else None
