import dataclasses
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from site_ledger.models import (
    BankTransactionPayload,
    CategorizedTransaction,
    Category,
    InvoicePayload,
    MatchStatus,
    NormalizedTransaction,
    StoredBankTransaction,
    TransactionType,
    UserPayload,
    source_fields,
)


def test_status_follows_object_assignment():
    tx = StoredBankTransaction(date=date(2024, 3, 1), type=TransactionType.DEBIT,
                               amount=Decimal("5.00"), id=1)
    assert tx.status is MatchStatus.UNMATCHED
    assigned = dataclasses.replace(tx, object_id=3)
    assert assigned.status is MatchStatus.MATCHED


def test_records_are_frozen():
    tx = NormalizedTransaction(date=date(2024, 3, 1), type=TransactionType.CREDIT,
                               amount=Decimal("1.00"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        tx.amount = Decimal("2.00")  # type: ignore[misc]


def test_source_fields_drops_derived_values():
    tx = CategorizedTransaction(
        date=date(2024, 3, 1),
        type=TransactionType.DEBIT,
        amount=Decimal("1.00"),
        description="Такса",
        category=Category.BANK_FEES,
        is_company_expense=True,
    )
    fields = source_fields(tx)
    assert fields["description"] == "Такса"
    assert "category" not in fields
    assert NormalizedTransaction(**fields).amount == Decimal("1.00")


def test_payload_accepts_snake_case_and_negative_amounts():
    payload = BankTransactionPayload(
        date="2024-03-01", type="debit", amount="-12,40", counterparty_name="  "
    )
    assert payload.amount == Decimal("12.40")
    assert payload.counterparty_name is None
    assert payload.reference == ""


def test_payload_status_is_recomputed_from_object_id():
    payload = BankTransactionPayload.model_validate(
        {"date": "2024-03-01", "type": "debit", "amount": 3, "status": "matched",
         "category": "loan_payment", "isCompanyExpense": False}
    )
    stored = payload.to_stored()
    assert stored.status is MatchStatus.UNMATCHED
    assert stored.is_company_expense is True


def test_payload_rejects_unknown_type_and_bool_ids():
    with pytest.raises(ValidationError):
        BankTransactionPayload(date="2024-03-01", type="refund", amount="1")
    with pytest.raises(ValidationError):
        BankTransactionPayload(date="2024-03-01", type="debit", amount="1", id=True)


def test_payload_round_trips_through_stored_record():
    stored = StoredBankTransaction(
        date=date(2024, 3, 1),
        type=TransactionType.DEBIT,
        amount=Decimal("480.00"),
        description="Фактура 12",
        category=Category.TRANSFER,
        display_name="Строй ЕООД",
        invoice_ref="12",
        purpose="Плащане",
        id=7,
        object_id=2,
        object_name="Къща",
    )
    payload = BankTransactionPayload.from_transaction(stored)
    assert payload.status is MatchStatus.MATCHED
    assert payload.to_json()["objectId"] == 2
    assert payload.to_stored() == stored


def test_invoice_payload_skips_rows_without_id():
    with pytest.raises(ValidationError):
        InvoicePayload.model_validate({"date": "2024-03-01", "total": "1"})


def test_invoice_payload_junk_total_counts_as_zero():
    inv = InvoicePayload.model_validate({"id": "3", "date": "2024-03-01", "total": "n/a"})
    assert inv.total == Decimal("0")
    assert inv.supplier == ""


def test_user_role_is_lower_cased():
    user = UserPayload.model_validate({"id": 1, "username": "ivan", "role": " Admin "})
    assert user.role == "admin"


def test_blank_derived_cells_read_as_defaults():
    payload = BankTransactionPayload.model_validate(
        {"id": 4, "date": "2024-03-01", "type": "credit", "amount": "10",
         "category": "", "isCompanyExpense": "", "status": "", "objectId": ""}
    )
    assert payload.category is Category.OTHER
    assert payload.is_company_expense is False
    assert payload.status is MatchStatus.UNMATCHED
    assert payload.to_stored().category is Category.OTHER


def test_unknown_category_and_status_cells_are_tolerated():
    payload = BankTransactionPayload.model_validate(
        {"date": "2024-03-01", "type": "debit", "amount": "10", "category": " Bank_Fees ",
         "status": "n/a", "objectId": 3, "isCompanyExpense": None}
    )
    assert payload.category is Category.BANK_FEES
    assert payload.to_stored().status is MatchStatus.MATCHED

    other = BankTransactionPayload.model_validate(
        {"date": "2024-03-01", "type": "debit", "amount": "10", "category": "food"}
    )
    assert other.category is Category.OTHER
