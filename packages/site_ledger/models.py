"""Data models for ``site_ledger``.

Domain records are frozen, slotted dataclasses so they can be hashed, compared
and shared freely between the parser, categorizer, deduplicator, matcher and
aggregator. Wire DTOs that cross the webhook boundary are Pydantic models with
camelCase aliases matching the spreadsheet backend's JSON.

Record hierarchy (each level adds fields, none removes):

``NormalizedTransaction`` -> ``CategorizedTransaction`` -> ``StoredBankTransaction``
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    """Direction of a statement line relative to the account."""

    DEBIT = "debit"
    CREDIT = "credit"


class Category(StrEnum):
    """Semantic transaction class used for reporting and expense flagging."""

    CASH_WITHDRAWAL = "cash_withdrawal"
    BANK_FEES = "bank_fees"
    LOAN_PAYMENT = "loan_payment"
    TRANSFER = "transfer"
    OTHER = "other"


# Evaluation order of the categorizer; ``OTHER`` is the fallback, never a rule.
CATEGORY_PRIORITY: tuple[Category, ...] = (
    Category.CASH_WITHDRAWAL,
    Category.BANK_FEES,
    Category.LOAN_PAYMENT,
    Category.TRANSFER,
)

# Blanket company costs rather than spend attributable to a construction object
COMPANY_EXPENSE_CATEGORIES: frozenset[Category] = frozenset(
    {Category.BANK_FEES, Category.LOAN_PAYMENT}
)


class MatchStatus(StrEnum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"


# Placeholder label shown when a line has neither counterparty nor narrative
NO_DESCRIPTION_MARKER = "Без описание"


# ---------------------------------------------------------------------------
# Transaction records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A single bank-statement line after parsing.

    ``amount`` is always a positive magnitude; the direction is carried solely
    by ``type``.
    """

    date: date
    type: TransactionType
    amount: Decimal
    reference: str = ""
    description: str = ""
    counterparty_name: str | None = None
    balance: Decimal | None = None
    currency: str = "BGN"
    iban: str | None = None


@dataclass(frozen=True, slots=True)
class CategorizedTransaction(NormalizedTransaction):
    """A normalized transaction annotated by the categorizer."""

    category: Category = Category.OTHER
    display_name: str = NO_DESCRIPTION_MARKER
    is_company_expense: bool = False
    invoice_ref: str | None = None
    purpose: str = ""


@dataclass(frozen=True, slots=True)
class StoredBankTransaction(CategorizedTransaction):
    """A categorized transaction as held by the storage backend.

    ``id`` is assigned by the backend on first save. Object assignment is the
    only mutation this package performs after creation; ``status`` is derived
    from it and cannot be set independently.
    """

    id: int | None = None
    object_id: int | None = None
    object_name: str | None = None
    matched_invoice_id: int | None = None

    @property
    def status(self) -> MatchStatus:
        return MatchStatus.MATCHED if self.object_id is not None else MatchStatus.UNMATCHED


def source_fields(tx: NormalizedTransaction) -> dict[str, Any]:
    """Return only the statement-provided fields of ``tx`` as keyword args.

    Categorization is computed from these fields alone, which keeps it
    idempotent for already-categorized or stored records.
    """

    return {f.name: getattr(tx, f.name) for f in fields(NormalizedTransaction)}


# ---------------------------------------------------------------------------
# Invoices, matches and statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Invoice:
    """A previously recorded supplier invoice (read-only match candidate)."""

    id: int
    date: date
    total: Decimal
    supplier: str = ""
    invoice_number: str = ""
    object_id: int | None = None
    object_name: str | None = None


class MatchResult(NamedTuple):
    """A debit transaction paired with at most one invoice."""

    transaction: StoredBankTransaction
    invoice: Invoice | None


@dataclass(frozen=True, slots=True)
class Stats:
    count: int = 0
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")
    net_change: Decimal = Decimal("0.00")
    bank_fees_total: Decimal = Decimal("0.00")
    loan_payments_total: Decimal = Decimal("0.00")
    cash_withdrawals_total: Decimal = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class ObjectCost:
    """Debit spend attributed to one construction object."""

    object_id: int
    object_name: str | None
    total: Decimal
    transaction_count: int


# ---------------------------------------------------------------------------
# Wire DTOs (webhook JSON)
# ---------------------------------------------------------------------------


def _optional_int(v: Any) -> int | None:
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("boolean is not a valid identifier")
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    return int(v)


def _cell_decimal(v: Any) -> Decimal | None:
    """Return a finite ``Decimal`` from a spreadsheet cell, else ``None``."""

    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, Decimal):
        d = v
    else:
        s = str(v).strip().replace("\u00a0", "").replace(" ", "").replace(",", ".")
        if not s:
            return None
        try:
            d = Decimal(s)
        except ArithmeticError:
            return None
    return d if d.is_finite() else None


class BankTransactionPayload(BaseModel):
    """JSON shape of a bank transaction row in the spreadsheet backend.

    Numbers may arrive as strings (spreadsheet cells); they are coerced on
    input. Serialize with ``model_dump(mode="json", by_alias=True)``.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", str_strip_whitespace=True
    )

    id: int | None = None
    date: date
    reference: str = ""
    description: str = ""
    display_name: str | None = Field(default=None, alias="displayName")
    type: TransactionType
    amount: Decimal
    balance: Decimal | None = None
    currency: str = "BGN"
    iban: str | None = None
    category: Category = Category.OTHER
    counterparty_name: str | None = Field(default=None, alias="counterpartyName")
    invoice_ref: str | None = Field(default=None, alias="invoiceRef")
    purpose: str | None = None
    is_company_expense: bool = Field(default=False, alias="isCompanyExpense")
    object_id: int | None = Field(default=None, alias="objectId")
    object_name: str | None = Field(default=None, alias="objectName")
    status: MatchStatus = MatchStatus.UNMATCHED
    matched_invoice_id: int | None = Field(default=None, alias="matchedInvoiceId")

    @field_validator("id", "object_id", "matched_invoice_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v: Any) -> int | None:
        return _optional_int(v)

    @field_validator("amount", "balance", mode="before")
    @classmethod
    def _coerce_decimal(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        d = _cell_decimal(v)
        if d is None:
            raise ValueError(f"invalid amount: {v!r}")
        return d

    @field_validator("iban", "counterparty_name", "invoice_ref", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("reference", "description", mode="before")
    @classmethod
    def _none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("amount")
    @classmethod
    def _amount_magnitude(cls, v: Decimal) -> Decimal:
        return abs(v)

    # Derived columns: blank or hand-edited cells must not block reading the sheet.

    @field_validator("category", mode="before")
    @classmethod
    def _category_cell(cls, v: Any) -> Category:
        if isinstance(v, Category):
            return v
        try:
            return Category(str(v or "").strip().lower())
        except ValueError:
            return Category.OTHER

    @field_validator("is_company_expense", mode="before")
    @classmethod
    def _flag_cell(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return False
        return v

    @field_validator("status", mode="before")
    @classmethod
    def _status_cell(cls, v: Any) -> MatchStatus:
        # Recomputed from ``object_id`` by ``to_stored``
        try:
            return MatchStatus(str(v or "").strip().lower())
        except ValueError:
            return MatchStatus.UNMATCHED

    @classmethod
    def from_transaction(cls, tx: CategorizedTransaction) -> BankTransactionPayload:
        stored = tx if isinstance(tx, StoredBankTransaction) else None
        return cls(
            id=stored.id if stored else None,
            date=tx.date,
            reference=tx.reference,
            description=tx.description,
            display_name=tx.display_name,
            type=tx.type,
            amount=tx.amount,
            balance=tx.balance,
            currency=tx.currency,
            iban=tx.iban,
            category=tx.category,
            counterparty_name=tx.counterparty_name,
            invoice_ref=tx.invoice_ref,
            purpose=tx.purpose,
            is_company_expense=tx.is_company_expense,
            object_id=stored.object_id if stored else None,
            object_name=stored.object_name if stored else None,
            status=stored.status if stored else MatchStatus.UNMATCHED,
            matched_invoice_id=stored.matched_invoice_id if stored else None,
        )

    def to_stored(self) -> StoredBankTransaction:
        # ``status`` is recomputed from ``object_id`` by the domain record.
        return StoredBankTransaction(
            date=self.date,
            type=self.type,
            amount=self.amount,
            reference=self.reference,
            description=self.description,
            counterparty_name=self.counterparty_name,
            balance=self.balance,
            currency=self.currency,
            iban=self.iban,
            category=self.category,
            display_name=self.display_name or NO_DESCRIPTION_MARKER,
            is_company_expense=self.category in COMPANY_EXPENSE_CATEGORIES,
            invoice_ref=self.invoice_ref,
            purpose=self.purpose or "",
            id=self.id,
            object_id=self.object_id,
            object_name=self.object_name,
            matched_invoice_id=self.matched_invoice_id,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InvoicePayload(BaseModel):
    """JSON shape of an invoice row; only the match-relevant columns."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    date: date
    total: Decimal = Decimal("0")
    supplier: str = ""
    invoice_number: str = Field(default="", alias="invoiceNumber")
    object_id: int | None = Field(default=None, alias="objectId")
    object_name: str | None = Field(default=None, alias="objectName")

    @model_validator(mode="before")
    @classmethod
    def _misplaced_items(cls, data: Any) -> Any:
        # Item JSON occasionally lands in the objectName column; the row then
        # carries no object assignment at all.
        if isinstance(data, dict):
            name = data.get("objectName", data.get("object_name"))
            if isinstance(name, str) and name.lstrip().startswith("["):
                data = {
                    k: v
                    for k, v in data.items()
                    if k not in {"objectName", "object_name", "objectId", "object_id"}
                }
        return data

    @field_validator("total", mode="before")
    @classmethod
    def _total_or_zero(cls, v: Any) -> Any:
        # Spreadsheet cells may hold blanks or junk; those count as zero.
        d = _cell_decimal(v)
        return d if d is not None else Decimal("0")

    @field_validator("object_id", mode="before")
    @classmethod
    def _coerce_object_id(cls, v: Any) -> int | None:
        # Falsy ids ("", 0) mean "unassigned" in the spreadsheet
        if not v:
            return None
        return _optional_int(v)

    @field_validator("supplier", "invoice_number", mode="before")
    @classmethod
    def _none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("object_name", mode="before")
    @classmethod
    def _object_name(cls, v: Any) -> Any:
        return v or None

    def to_invoice(self) -> Invoice:
        return Invoice(
            id=self.id,
            date=self.date,
            total=self.total,
            supplier=self.supplier,
            invoice_number=self.invoice_number,
            object_id=self.object_id,
            object_name=self.object_name,
        )


class UserPayload(BaseModel):
    """Login response user shape; ``role`` is normalized to lower case."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: int
    username: str
    name: str = ""
    role: str

    @field_validator("role")
    @classmethod
    def _lower_role(cls, v: str) -> str:
        return v.lower()


__all__ = [
    "TransactionType",
    "Category",
    "CATEGORY_PRIORITY",
    "COMPANY_EXPENSE_CATEGORIES",
    "MatchStatus",
    "NO_DESCRIPTION_MARKER",
    "NormalizedTransaction",
    "CategorizedTransaction",
    "StoredBankTransaction",
    "source_fields",
    "Invoice",
    "MatchResult",
    "Stats",
    "ObjectCost",
    "BankTransactionPayload",
    "InvoicePayload",
    "UserPayload",
]
