"""Reporting totals over stored transactions."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from .models import (
    Category,
    CategorizedTransaction,
    ObjectCost,
    Stats,
    StoredBankTransaction,
    TransactionType,
)
from .normalizers import quantize_amount

_ZERO = Decimal("0.00")


def summarize(transactions: Iterable[CategorizedTransaction]) -> Stats:
    """Compute overall and per-category totals.

    Category subtotals (fees, loan payments, cash withdrawals) sum the debit
    amounts of that category. Empty input yields an all-zero :class:`Stats`.
    The result does not depend on input order.
    """

    count = 0
    debit = credit = _ZERO
    by_category: dict[Category, Decimal] = {}
    for tx in transactions:
        count += 1
        if tx.type is TransactionType.DEBIT:
            debit += tx.amount
            by_category[tx.category] = by_category.get(tx.category, _ZERO) + tx.amount
        else:
            credit += tx.amount

    return Stats(
        count=count,
        total_debit=quantize_amount(debit),
        total_credit=quantize_amount(credit),
        net_change=quantize_amount(credit - debit),
        bank_fees_total=quantize_amount(by_category.get(Category.BANK_FEES, _ZERO)),
        loan_payments_total=quantize_amount(by_category.get(Category.LOAN_PAYMENT, _ZERO)),
        cash_withdrawals_total=quantize_amount(
            by_category.get(Category.CASH_WITHDRAWAL, _ZERO)
        ),
    )


def costs_by_object(transactions: Iterable[StoredBankTransaction]) -> list[ObjectCost]:
    """Debit spend per assigned construction object, sorted by object id.

    Company expenses (fees, loan payments) and unassigned lines are left out.
    """

    totals: dict[int, Decimal] = {}
    counts: dict[int, int] = {}
    names: dict[int, str | None] = {}
    for tx in transactions:
        if tx.object_id is None or tx.type is not TransactionType.DEBIT:
            continue
        if tx.is_company_expense:
            continue
        oid = tx.object_id
        totals[oid] = totals.get(oid, _ZERO) + tx.amount
        counts[oid] = counts.get(oid, 0) + 1
        if not names.get(oid):
            names[oid] = tx.object_name or None

    return [
        ObjectCost(
            object_id=oid,
            object_name=names.get(oid),
            total=quantize_amount(totals[oid]),
            transaction_count=counts[oid],
        )
        for oid in sorted(totals)
    ]


__all__ = ["summarize", "costs_by_object"]
