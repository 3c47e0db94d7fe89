"""Header recognition and shared cell extraction for statement CSV exports.

Bank exports differ in column order, language (Bulgarian or English) and in
how direction is expressed. Headers are matched through an alias table after
normalization (lower case, collapsed whitespace, trailing ``:``/``.`` and any
parenthesized unit such as ``(лв.)`` removed). The first alias hit for a role,
scanning left to right, wins.

Layouts
-------
- ``split``: separate debit and credit amount columns.
- ``signed``: a single amount column plus an optional direction indicator
  column; without an indicator the sign of the amount decides.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from ..normalizers import clean_text, parse_statement_date

HEADER_ALIASES: dict[str, frozenset[str]] = {
    "date": frozenset(
        {
            "дата",
            "дата на операция",
            "дата на операцията",
            "дата операция",
            "дата на плащане",
            "вальор",
            "дата вальор",
            "date",
            "transaction date",
            "booking date",
            "value date",
        }
    ),
    "reference": frozenset(
        {
            "референция",
            "референция на операцията",
            "номер на документ",
            "№ на документ",
            "номер",
            "reference",
            "ref",
            "transaction id",
        }
    ),
    "description": frozenset(
        {
            "описание",
            "описание на операцията",
            "основание",
            "основание за плащане",
            "пояснение",
            "description",
            "details",
            "narrative",
            "payment details",
        }
    ),
    "counterparty": frozenset(
        {
            "контрагент",
            "име на контрагент",
            "наредител/получател",
            "наредител / получател",
            "получател",
            "наредител",
            "counterparty",
            "beneficiary",
            "payee",
            "payer",
        }
    ),
    "iban": frozenset(
        {
            "iban",
            "iban на контрагент",
            "сметка на контрагент",
            "сметка",
            "counterparty iban",
            "counterparty account",
        }
    ),
    "debit": frozenset({"дебит", "дт", "сума дебит", "debit", "withdrawal", "paid out"}),
    "credit": frozenset({"кредит", "кт", "сума кредит", "credit", "deposit", "paid in"}),
    "amount": frozenset({"сума", "стойност", "amount"}),
    "indicator": frozenset(
        {"д/к", "дт/кт", "дебит/кредит", "вид", "тип", "d/c", "dc", "debit/credit", "type"}
    ),
    "balance": frozenset({"салдо", "крайно салдо", "наличност", "balance"}),
    "currency": frozenset({"валута", "currency", "ccy"}),
}

DEBIT_MARKERS: frozenset[str] = frozenset({"d", "д", "дт", "дебит", "debit", "dr", "-"})
CREDIT_MARKERS: frozenset[str] = frozenset({"c", "к", "кт", "кредит", "credit", "cr", "+"})

_DELIMITERS: tuple[str, ...] = (";", "\t", ",")
_UNIT_SUFFIX_RE = re.compile(r"\s*\([^)]*\)$")

type Layout = Literal["split", "signed"]


def normalize_header(cell: str) -> str:
    s = clean_text(cell).lower().lstrip("\ufeff")
    s = _UNIT_SUFFIX_RE.sub("", s)
    return s.rstrip(":.").strip()


def detect_delimiter(line: str) -> str:
    """Pick the delimiter with the most occurrences, preferring ``;`` on ties.

    Commas double as decimal marks in this locale, so they are only chosen
    when no semicolon or tab appears at all.
    """

    counts = {d: line.count(d) for d in _DELIMITERS}
    if counts[";"] or counts["\t"]:
        return ";" if counts[";"] >= counts["\t"] else "\t"
    return ","


@dataclass(frozen=True, slots=True)
class ColumnMap:
    """Column indices by role for one recognized header row."""

    width: int
    date: int
    reference: int | None = None
    description: int | None = None
    counterparty: int | None = None
    iban: int | None = None
    debit: int | None = None
    credit: int | None = None
    amount: int | None = None
    indicator: int | None = None
    balance: int | None = None
    currency: int | None = None

    @property
    def layout(self) -> Layout:
        return "split" if self.debit is not None and self.credit is not None else "signed"


def match_header(cells: Sequence[str]) -> ColumnMap | None:
    """Return a :class:`ColumnMap` when ``cells`` look like a statement header.

    A header needs a date column and either a debit/credit pair or an amount
    column. Returns ``None`` for any other row (preamble, data, footers).
    """

    found: dict[str, int] = {}
    for pos, raw in enumerate(cells):
        name = normalize_header(raw)
        if not name:
            continue
        for role, aliases in HEADER_ALIASES.items():
            if role not in found and name in aliases:
                found[role] = pos
                break

    if "date" not in found:
        return None
    has_split = "debit" in found and "credit" in found
    if not has_split and "amount" not in found:
        return None
    return ColumnMap(width=len(cells), **found)


def cell(cells: Sequence[str], pos: int | None) -> str:
    if pos is None or pos >= len(cells):
        return ""
    return cells[pos]


def read_common_fields(
    cells: Sequence[str], columns: ColumnMap, *, default_currency: str
) -> dict[str, Any]:
    """Extract the direction-independent fields of a data row.

    Raises ``ValueError`` when the date cannot be parsed; the caller skips the
    row.
    """

    counterparty = clean_text(cell(cells, columns.counterparty))
    iban = "".join(cell(cells, columns.iban).split()).upper()
    currency = clean_text(cell(cells, columns.currency)).upper()
    return {
        "date": parse_statement_date(cell(cells, columns.date)),
        "reference": clean_text(cell(cells, columns.reference)),
        "description": clean_text(cell(cells, columns.description)),
        "counterparty_name": counterparty or None,
        "iban": iban or None,
        "currency": currency or default_currency,
    }


__all__ = [
    "HEADER_ALIASES",
    "DEBIT_MARKERS",
    "CREDIT_MARKERS",
    "ColumnMap",
    "Layout",
    "normalize_header",
    "detect_delimiter",
    "match_header",
    "cell",
    "read_common_fields",
]
