"""Cached access to stored bank transactions and invoices.

:class:`BankLedgerStore` is the only component that talks to the webhook
backend on behalf of the reconciliation pipeline. Read operations go through
an explicit :class:`~site_ledger.cache.TtlCache`; every write drops the cache
entries it could have made stale.

Cache keys
----------
- ``bank-transactions-list``: all stored bank transactions
- ``invoices-list``: all invoices
- ``object-details-<id>``: bank transactions and invoices of one object
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import NamedTuple, Protocol

from .cache import TtlCache
from .logging_setup import get_logger
from .models import (
    BankTransactionPayload,
    CategorizedTransaction,
    Invoice,
    InvoicePayload,
    MatchStatus,
    StoredBankTransaction,
)

BANK_TRANSACTIONS_KEY = "bank-transactions-list"
INVOICES_KEY = "invoices-list"
OBJECT_DETAILS_PREFIX = "object-details"

_logger = get_logger("site_ledger.persistence")


class LedgerBackend(Protocol):
    """The subset of :class:`~site_ledger.webhook_client.WebhookClient` used here."""

    def fetch_bank_transactions(self) -> list[BankTransactionPayload]: ...

    def save_bank_transactions(
        self, payloads: Iterable[BankTransactionPayload]
    ) -> dict[str, int]: ...

    def update_bank_transaction(
        self,
        transaction_id: int,
        *,
        object_id: int | None,
        object_name: str | None,
        status: MatchStatus,
    ) -> BankTransactionPayload | None: ...

    def fetch_invoices(self, object_id: int | None = None) -> list[InvoicePayload]: ...


class TransactionNotFoundError(LookupError):
    """No stored bank transaction has the requested id."""


class SaveResult(NamedTuple):
    inserted_count: int
    duplicate_count: int


class ObjectDetails(NamedTuple):
    object_id: int
    bank_transactions: tuple[StoredBankTransaction, ...]
    invoices: tuple[Invoice, ...]


class BankLedgerStore:
    def __init__(self, backend: LedgerBackend, cache: TtlCache | None = None) -> None:
        self._backend = backend
        self._cache = cache if cache is not None else TtlCache()

    @property
    def cache(self) -> TtlCache:
        return self._cache

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_bank_transactions(self) -> tuple[StoredBankTransaction, ...]:
        rows = tuple(p.to_stored() for p in self._backend.fetch_bank_transactions())
        _logger.info("store:fetched bank_transactions=%d", len(rows))
        return rows

    def _load_invoices(self) -> tuple[Invoice, ...]:
        rows = tuple(p.to_invoice() for p in self._backend.fetch_invoices())
        _logger.info("store:fetched invoices=%d", len(rows))
        return rows

    def list_bank_transactions(self) -> list[StoredBankTransaction]:
        return list(self._cache.get_or_load(BANK_TRANSACTIONS_KEY, self._load_bank_transactions))

    def list_invoices(self) -> list[Invoice]:
        return list(self._cache.get_or_load(INVOICES_KEY, self._load_invoices))

    def object_details(self, object_id: int) -> ObjectDetails:
        """Bank transactions and invoices assigned to one construction object."""

        def load() -> ObjectDetails:
            return ObjectDetails(
                object_id=object_id,
                bank_transactions=tuple(
                    tx for tx in self.list_bank_transactions() if tx.object_id == object_id
                ),
                invoices=tuple(
                    inv for inv in self.list_invoices() if inv.object_id == object_id
                ),
            )

        return self._cache.get_or_load(f"{OBJECT_DETAILS_PREFIX}-{object_id}", load)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_bank_transactions(self, transactions: Iterable[CategorizedTransaction]) -> SaveResult:
        payloads = [BankTransactionPayload.from_transaction(tx) for tx in transactions]
        if not payloads:
            return SaveResult(inserted_count=0, duplicate_count=0)
        counts = self._backend.save_bank_transactions(payloads)
        self._cache.invalidate("bank-transactions")
        result = SaveResult(
            inserted_count=counts.get("insertedCount", len(payloads)),
            duplicate_count=counts.get("duplicateCount", 0),
        )
        _logger.info(
            "store:saved inserted=%d backend_duplicates=%d",
            result.inserted_count,
            result.duplicate_count,
        )
        return result

    def assign_object(
        self, transaction_id: int, object_id: int | None, object_name: str | None = None
    ) -> StoredBankTransaction:
        """Assign (or clear, with ``object_id=None``) a transaction's object.

        ``status`` follows from the new assignment. Raises
        :class:`TransactionNotFoundError` for an unknown id.
        """

        current = next(
            (tx for tx in self.list_bank_transactions() if tx.id == transaction_id), None
        )
        if current is None:
            raise TransactionNotFoundError(f"bank transaction {transaction_id} not found")

        name = (object_name or None) if object_id is not None else None
        updated = dataclasses.replace(current, object_id=object_id, object_name=name)
        echoed = self._backend.update_bank_transaction(
            transaction_id,
            object_id=updated.object_id,
            object_name=updated.object_name,
            status=updated.status,
        )
        self._cache.invalidate("bank-transactions")
        self._cache.invalidate(OBJECT_DETAILS_PREFIX)
        _logger.info(
            "store:assigned id=%d object_id=%s status=%s",
            transaction_id,
            object_id,
            updated.status,
        )
        return echoed.to_stored() if echoed is not None else updated


__all__ = [
    "BANK_TRANSACTIONS_KEY",
    "INVOICES_KEY",
    "OBJECT_DETAILS_PREFIX",
    "LedgerBackend",
    "TransactionNotFoundError",
    "SaveResult",
    "ObjectDetails",
    "BankLedgerStore",
]
