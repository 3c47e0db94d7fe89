"""In-memory stand-in for ``site_ledger.webhook_client.WebhookClient``.

Rows are held as camelCase JSON dicts, exactly as the spreadsheet backend
would return them, so every read goes through the real Pydantic payload
models. Each call is recorded in ``calls`` for lightweight assertions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from site_ledger.models import BankTransactionPayload, InvoicePayload, MatchStatus


class FakeLedgerBackend:
    def __init__(
        self,
        bank_rows: Iterable[Mapping[str, Any]] = (),
        invoice_rows: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self.bank_rows: list[dict[str, Any]] = [dict(r) for r in bank_rows]
        self.invoice_rows: list[dict[str, Any]] = [dict(r) for r in invoice_rows]
        self.calls: list[str] = []
        self._next_id = max((int(r.get("id") or 0) for r in self.bank_rows), default=0) + 1

    def fetch_bank_transactions(self) -> list[BankTransactionPayload]:
        self.calls.append("fetch_bank_transactions")
        return [BankTransactionPayload.model_validate(r) for r in self.bank_rows]

    def save_bank_transactions(
        self, payloads: Iterable[BankTransactionPayload]
    ) -> dict[str, int]:
        self.calls.append("save_bank_transactions")
        inserted = 0
        for p in payloads:
            row = p.to_json()
            row["id"] = self._next_id
            self._next_id += 1
            self.bank_rows.append(row)
            inserted += 1
        return {"insertedCount": inserted, "duplicateCount": 0}

    def update_bank_transaction(
        self,
        transaction_id: int,
        *,
        object_id: int | None,
        object_name: str | None,
        status: MatchStatus,
    ) -> BankTransactionPayload | None:
        self.calls.append("update_bank_transaction")
        for row in self.bank_rows:
            if row.get("id") == transaction_id:
                row["objectId"] = object_id
                row["objectName"] = object_name
                row["status"] = str(status)
                return BankTransactionPayload.model_validate(row)
        return None

    def fetch_invoices(self, object_id: int | None = None) -> list[InvoicePayload]:
        self.calls.append("fetch_invoices")
        return [InvoicePayload.model_validate(r) for r in self.invoice_rows]


def bank_row(
    id: int,
    date: str,
    amount: str,
    *,
    type: str = "debit",
    description: str = "",
    reference: str = "",
    category: str = "other",
    counterparty: str | None = None,
    object_id: int | None = None,
    object_name: str | None = None,
) -> dict[str, Any]:
    """Build a stored bank transaction row in backend JSON shape."""

    return {
        "id": id,
        "date": date,
        "reference": reference,
        "description": description,
        "type": type,
        "amount": amount,
        "currency": "BGN",
        "category": category,
        "counterpartyName": counterparty,
        "isCompanyExpense": category in {"bank_fees", "loan_payment"},
        "objectId": object_id,
        "objectName": object_name,
        "status": "matched" if object_id is not None else "unmatched",
    }


def invoice_row(id: int, date: str, total: Any, **extra: Any) -> dict[str, Any]:
    return {"id": id, "date": date, "total": total, **extra}
