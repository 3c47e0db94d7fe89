from datetime import date
from decimal import Decimal

from site_ledger.categorization import categorize, categorize_all
from site_ledger.duplicates import compute_fingerprint, filter_new, identity_key
from site_ledger.ingest import parse_statement
from site_ledger.models import BankTransactionPayload, NormalizedTransaction, TransactionType

STATEMENT = (
    "Дата;Референция;Описание;Контрагент;Дебит;Кредит\n"
    "05.03.2024;FT001;Теглене ATM;;200,00;\n"
    "06.03.2024;FT002;Погасяване на кредит;;1 250,50;\n"
    "07.03.2024;;Плащане по фактура 12;Строй ЕООД;480,00;\n"
    "08.03.2024;0000000;Такса обслужване;;2,50;\n"
    "09.03.2024;;Превод от клиент;Клиент АД;;3 000,00\n"
)


def _tx(*, reference: str = "", description: str = "", amount: str = "10.00",
        type: TransactionType = TransactionType.DEBIT) -> NormalizedTransaction:
    return NormalizedTransaction(
        date=date(2024, 3, 10),
        type=type,
        amount=Decimal(amount),
        reference=reference,
        description=description,
    )


def _persist(txs):
    # Simulate the backend round trip: stored rows come back with ids
    return [
        BankTransactionPayload.from_transaction(tx).model_copy(update={"id": i}).to_stored()
        for i, tx in enumerate(txs, start=1)
    ]


def test_reuploading_the_same_statement_inserts_nothing():
    first = categorize_all(parse_statement(STATEMENT.encode("cp1251")))
    to_insert, duplicates = filter_new(first, [])
    assert len(to_insert) == 5
    assert duplicates == 0

    stored = _persist(to_insert)
    second = categorize_all(parse_statement(STATEMENT.encode("cp1251")))
    again, duplicates = filter_new(second, stored)
    assert again == []
    assert duplicates == len(second) == 5


def test_only_new_rows_survive_an_overlapping_statement():
    stored = _persist(categorize_all(parse_statement(STATEMENT)))
    extended = STATEMENT + "10.03.2024;FT006;Нов превод;Фирма;15,00;\n"
    result = filter_new(categorize_all(parse_statement(extended)), stored)
    assert [t.reference for t in result.to_insert] == ["FT006"]
    assert result.duplicate_count == 5


def test_reference_key_ignores_description_changes():
    a = _tx(reference="FT1", description="Плащане")
    b = _tx(reference="FT1", description="Плащане (коригирано)")
    assert identity_key(a) == identity_key(b)


def test_amount_type_and_date_are_part_of_identity():
    base = _tx(reference="FT1")
    assert identity_key(base) != identity_key(_tx(reference="FT1", amount="10.01"))
    assert identity_key(base) != identity_key(_tx(reference="FT1", type=TransactionType.CREDIT))
    # Scale does not matter: 10 == 10.00
    assert identity_key(base) == identity_key(_tx(reference="FT1", amount="10"))


def test_blank_or_placeholder_reference_falls_back_to_description():
    assert identity_key(_tx(reference="", description="Такса"))[3] == "desc"
    assert identity_key(_tx(reference="000000", description="Такса"))[3] == "desc"
    assert identity_key(_tx(reference=" - ", description="Такса"))[3] == "desc"
    assert identity_key(_tx(reference="", description="такса")) == identity_key(
        _tx(reference="0", description="  Такса ")
    )


def test_records_without_reference_or_description_are_never_duplicates():
    blank = categorize(_tx())
    assert identity_key(blank) is None
    assert compute_fingerprint(blank) is None

    result = filter_new([blank], _persist([blank]))
    assert result.to_insert == [blank]
    assert result.duplicate_count == 0


def test_repeats_within_one_statement_are_kept():
    tx = categorize(_tx(reference="FT1"))
    result = filter_new([tx, tx], [])
    assert result.to_insert == [tx, tx]
    assert result.duplicate_count == 0


def test_existing_is_not_mutated_and_order_is_kept():
    candidates = [categorize(_tx(reference=f"FT{i}")) for i in (3, 1, 2)]
    existing = _persist([candidates[1]])
    snapshot = list(existing)

    result = filter_new(candidates, existing)

    assert existing == snapshot
    assert [t.reference for t in result.to_insert] == ["FT3", "FT2"]
    assert result.duplicate_count == 1


def test_fingerprint_is_stable_sha256():
    a = compute_fingerprint(_tx(reference="FT1"))
    b = compute_fingerprint(_tx(reference="FT1", description="other"))
    assert a == b
    assert a is not None and len(a) == 64
    assert a != compute_fingerprint(_tx(reference="FT2"))


def test_numeric_reference_matches_without_leading_zeros():
    parsed = categorize(_tx(reference="000123", description="Превод"))
    # The sheet hands the reference back as a number
    stored = BankTransactionPayload.model_validate(
        {"id": 1, "date": "2024-03-10", "type": "debit", "amount": "10.00", "reference": 123}
    ).to_stored()

    assert identity_key(parsed) == identity_key(stored)
    result = filter_new([parsed], [stored])
    assert result.to_insert == []
    assert result.duplicate_count == 1


def test_alphanumeric_references_keep_leading_zeros():
    assert identity_key(_tx(reference="0FT1")) != identity_key(_tx(reference="FT1"))
