from datetime import date
from decimal import Decimal

import pytest

from site_ledger.cache import TtlCache
from site_ledger.categorization import categorize
from site_ledger.models import MatchStatus, NormalizedTransaction, TransactionType
from site_ledger.persistence import (
    BankLedgerStore,
    ObjectDetails,
    SaveResult,
    TransactionNotFoundError,
)
from tests.helpers.webhook_stub import FakeLedgerBackend, bank_row, invoice_row


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeLedgerBackend:
    return FakeLedgerBackend(
        bank_rows=[
            bank_row(1, "2024-03-05", "200.00", description="Теглене ATM",
                     category="cash_withdrawal"),
            bank_row(2, "2024-03-07", "480.00", description="Фактура 12",
                     category="transfer", object_id=4, object_name="Къща Бояна"),
            bank_row(3, "2024-03-08", "2.50", description="Такса", category="bank_fees"),
        ],
        invoice_rows=[
            invoice_row(10, "2024-03-06", "480.00", objectId=4, objectName="Къща Бояна"),
            invoice_row(11, "2024-03-09", "75.00", objectId=5),
        ],
    )


@pytest.fixture
def store(backend: FakeLedgerBackend, clock: FakeClock) -> BankLedgerStore:
    return BankLedgerStore(backend, TtlCache(30.0, clock=clock))


def _new_tx(reference: str) -> NormalizedTransaction:
    return categorize(
        NormalizedTransaction(
            date=date(2024, 3, 20),
            type=TransactionType.DEBIT,
            amount=Decimal("15.00"),
            reference=reference,
            description="Превод",
        )
    )


def test_reads_are_cached_until_ttl(store, backend, clock):
    first = store.list_bank_transactions()
    store.list_bank_transactions()
    assert backend.calls.count("fetch_bank_transactions") == 1
    assert [tx.id for tx in first] == [1, 2, 3]
    assert first[1].status is MatchStatus.MATCHED

    clock.now += 30
    store.list_bank_transactions()
    assert backend.calls.count("fetch_bank_transactions") == 2


def test_invoices_are_cached_separately(store, backend):
    invoices = store.list_invoices()
    store.list_invoices()
    assert [inv.id for inv in invoices] == [10, 11]
    assert backend.calls.count("fetch_invoices") == 1
    assert "fetch_bank_transactions" not in backend.calls


def test_returned_lists_do_not_alias_the_cache(store):
    rows = store.list_bank_transactions()
    rows.clear()
    assert len(store.list_bank_transactions()) == 3


def test_save_invalidates_bank_transactions(store, backend):
    store.list_bank_transactions()
    store.list_invoices()

    result = store.save_bank_transactions([_new_tx("FT9")])

    assert result == SaveResult(inserted_count=1, duplicate_count=0)
    rows = store.list_bank_transactions()
    assert [tx.id for tx in rows] == [1, 2, 3, 4]
    assert rows[-1].reference == "FT9"
    assert backend.calls.count("fetch_bank_transactions") == 2
    # Invoices are untouched by a bank save
    store.list_invoices()
    assert backend.calls.count("fetch_invoices") == 1


def test_saving_nothing_skips_the_backend(store, backend):
    assert store.save_bank_transactions([]) == SaveResult(0, 0)
    assert "save_bank_transactions" not in backend.calls


def test_assign_object_sets_status_and_invalidates(store, backend):
    assert store.object_details(5).bank_transactions == ()

    updated = store.assign_object(1, 5, "Склад")

    assert updated.object_id == 5
    assert updated.object_name == "Склад"
    assert updated.status is MatchStatus.MATCHED
    assert backend.bank_rows[0]["status"] == "matched"
    details = store.object_details(5)
    assert [tx.id for tx in details.bank_transactions] == [1]
    assert [inv.id for inv in details.invoices] == [11]


def test_clearing_the_object_also_clears_the_name(store, backend):
    updated = store.assign_object(2, None, "ignored")
    assert updated.object_id is None
    assert updated.object_name is None
    assert updated.status is MatchStatus.UNMATCHED
    assert backend.bank_rows[1]["objectName"] is None
    assert store.object_details(4).bank_transactions == ()


def test_assign_unknown_transaction(store, backend):
    with pytest.raises(TransactionNotFoundError):
        store.assign_object(99, 1)
    assert "update_bank_transaction" not in backend.calls


def test_object_details_groups_by_object(store, backend):
    details = store.object_details(4)
    assert isinstance(details, ObjectDetails)
    assert details.object_id == 4
    assert [tx.id for tx in details.bank_transactions] == [2]
    assert [inv.id for inv in details.invoices] == [10]

    store.object_details(4)
    assert backend.calls.count("fetch_bank_transactions") == 1
    assert "object-details-4" in store.cache
