"""Rule-based transaction categorization.

Rules are data, not code: ``rules/default_rules.json`` (or a caller-supplied
file or mapping) lists keyword sets and regular expressions per category. At
load time they are validated with Pydantic and compiled into an ordered tuple
of predicates; evaluation is first-match-wins in the fixed priority

``cash_withdrawal -> bank_fees -> loan_payment -> transfer``

with ``other`` as the fallback. Categorization reads only the statement
fields of a record (never a previously assigned category), so re-running it
over categorized or stored records is idempotent.
"""

from __future__ import annotations

import functools
import json
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .logging_setup import get_logger
from .models import (
    CATEGORY_PRIORITY,
    COMPANY_EXPENSE_CATEGORIES,
    NO_DESCRIPTION_MARKER,
    CategorizedTransaction,
    Category,
    NormalizedTransaction,
    TransactionType,
    source_fields,
)
from .normalizers import clean_text

DEFAULT_RULES_PATH = Path(__file__).parent / "rules" / "default_rules.json"

DISPLAY_NAME_MAX_LEN = 80

_logger = get_logger("site_ledger.categorization")

type Predicate = Callable[[NormalizedTransaction], bool]
type SearchField = Literal["description", "counterparty_name", "reference", "iban"]


class RuleConfigError(ValueError):
    """A rule file or mapping failed validation."""


# ---------------------------------------------------------------------------
# Rule schema
# ---------------------------------------------------------------------------


class RuleSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    category: Category
    keywords: list[str] = []
    patterns: list[str] = []
    search_fields: list[SearchField] = ["description", "counterparty_name"]
    # Empty means the rule applies to both directions
    types: list[TransactionType] = []
    match_counterparty: bool = False
    match_iban: bool = False
    match_invoice_ref: bool = False

    @field_validator("category")
    @classmethod
    def _not_fallback(cls, v: Category) -> Category:
        if v is Category.OTHER:
            raise ValueError("'other' is the fallback category and cannot have rules")
        return v

    @field_validator("keywords")
    @classmethod
    def _drop_blank_keywords(cls, v: list[str]) -> list[str]:
        return [k for k in v if k]

    @field_validator("patterns")
    @classmethod
    def _patterns_compile(cls, v: list[str]) -> list[str]:
        for p in v:
            try:
                re.compile(p)
            except re.error as exc:
                raise ValueError(f"invalid pattern {p!r}: {exc}") from exc
        return v


class RuleSet(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    version: int = 1
    invoice_markers: list[str]
    rules: list[RuleSpec]

    @field_validator("invoice_markers")
    @classmethod
    def _markers_non_empty(cls, v: list[str]) -> list[str]:
        markers = [m for m in v if m]
        if not markers:
            raise ValueError("at least one invoice marker is required")
        return markers

    @model_validator(mode="after")
    def _rules_in_priority_order(self) -> RuleSet:
        ranks = [CATEGORY_PRIORITY.index(r.category) for r in self.rules]
        if ranks != sorted(ranks):
            order = ", ".join(c.value for c in CATEGORY_PRIORITY)
            raise ValueError(f"rules must be listed in category priority order: {order}")
        return self


def load_rules(source: str | PathLike[str] | Mapping[str, Any] | None = None) -> RuleSet:
    """Load and validate a rule set.

    ``source`` may be a path to a JSON file, an already-parsed mapping, or
    ``None`` for the packaged defaults. Raises :class:`RuleConfigError`.
    """

    try:
        if isinstance(source, Mapping):
            return RuleSet.model_validate(source)
        path = Path(source) if source is not None else DEFAULT_RULES_PATH
        return RuleSet.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise RuleConfigError(f"invalid categorization rules: {exc}") from exc


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _invoice_ref_regex(markers: Iterable[str]) -> re.Pattern[str]:
    # Longest markers first so "фактура" wins over "фак"
    alternation = "|".join(re.escape(m) for m in sorted(set(markers), key=len, reverse=True))
    return re.compile(
        rf"(?<!\w)(?:{alternation})(?:\.|(?![^\W\d_]))"
        r"\s*(?:№|No\.?|Nr\.?|#)?\s*[:.]?\s*"
        r"(?P<ref>\d(?:[\d/-]*\d)?)",
        re.IGNORECASE,
    )


@dataclass(frozen=True, slots=True)
class CompiledRules:
    predicates: tuple[tuple[Category, Predicate], ...]
    invoice_ref_re: re.Pattern[str]


def _field_text(tx: NormalizedTransaction, names: Iterable[str]) -> str:
    return " ".join(str(getattr(tx, n) or "") for n in names)


def _build_predicate(spec: RuleSpec, invoice_ref_re: re.Pattern[str]) -> Predicate:
    keywords = tuple(k.casefold() for k in spec.keywords)
    patterns = tuple(re.compile(p, re.IGNORECASE) for p in spec.patterns)
    search_fields = tuple(spec.search_fields)
    types = frozenset(spec.types)

    def predicate(tx: NormalizedTransaction) -> bool:
        if types and tx.type not in types:
            return False
        if spec.match_counterparty and (tx.counterparty_name or "").strip():
            return True
        if spec.match_iban and (tx.iban or "").strip():
            return True
        if spec.match_invoice_ref and invoice_ref_re.search(tx.description or ""):
            return True
        text = _field_text(tx, search_fields)
        folded = text.casefold()
        if any(k in folded for k in keywords):
            return True
        return any(p.search(text) for p in patterns)

    return predicate


def compile_rules(rule_set: RuleSet) -> CompiledRules:
    invoice_ref_re = _invoice_ref_regex(rule_set.invoice_markers)
    return CompiledRules(
        predicates=tuple(
            (spec.category, _build_predicate(spec, invoice_ref_re)) for spec in rule_set.rules
        ),
        invoice_ref_re=invoice_ref_re,
    )


@functools.cache
def default_rules() -> CompiledRules:
    """Compiled packaged rules (loaded once per process)."""

    return compile_rules(load_rules())


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------


def extract_invoice_ref(
    description: str, rules: CompiledRules | None = None
) -> tuple[str | None, str]:
    """Return ``(invoice_ref, purpose)`` parsed from a payment narrative.

    When an invoice marker followed by a number is found, ``purpose`` is the
    narrative with that marker and number removed; otherwise ``purpose`` is
    the full (cleaned) narrative.
    """

    compiled = rules or default_rules()
    text = clean_text(description)
    m = compiled.invoice_ref_re.search(text)
    if m is None:
        return None, text
    purpose = clean_text(f"{text[: m.start()]} {text[m.end() :]}").strip(" ,;:-")
    return m.group("ref"), purpose


def resolve_display_name(counterparty_name: str | None, description: str | None) -> str:
    """Counterparty when present, else the cleaned narrative, else the marker."""

    name = clean_text(counterparty_name)
    if name:
        return name
    desc = clean_text(description)
    if not desc:
        return NO_DESCRIPTION_MARKER
    if len(desc) > DISPLAY_NAME_MAX_LEN:
        return desc[: DISPLAY_NAME_MAX_LEN - 1].rstrip() + "…"
    return desc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify(tx: NormalizedTransaction, rules: CompiledRules | None = None) -> Category:
    compiled = rules or default_rules()
    for category, predicate in compiled.predicates:
        if predicate(tx):
            return category
    return Category.OTHER


def categorize(
    tx: NormalizedTransaction, rules: CompiledRules | None = None
) -> CategorizedTransaction:
    """Assign a category and derived display fields to ``tx``.

    Pure and deterministic. Accepts any record in the hierarchy; only the
    statement fields are read, and a plain :class:`CategorizedTransaction` is
    returned.
    """

    compiled = rules or default_rules()
    source = source_fields(tx)
    base = NormalizedTransaction(**source)
    category = classify(base, compiled)

    invoice_ref: str | None = None
    purpose = clean_text(base.description)
    if category is Category.TRANSFER:
        invoice_ref, purpose = extract_invoice_ref(base.description, compiled)

    return CategorizedTransaction(
        **source,
        category=category,
        display_name=resolve_display_name(base.counterparty_name, base.description),
        is_company_expense=category in COMPANY_EXPENSE_CATEGORIES,
        invoice_ref=invoice_ref,
        purpose=purpose,
    )


def categorize_all(
    transactions: Iterable[NormalizedTransaction], rules: CompiledRules | None = None
) -> list[CategorizedTransaction]:
    compiled = rules or default_rules()
    results = [categorize(tx, compiled) for tx in transactions]
    counts: dict[str, int] = {}
    for r in results:
        counts[r.category.value] = counts.get(r.category.value, 0) + 1
    _logger.info("categorize:batch total=%d by_category=%s", len(results), counts)
    return results


__all__ = [
    "DEFAULT_RULES_PATH",
    "RuleConfigError",
    "RuleSpec",
    "RuleSet",
    "CompiledRules",
    "load_rules",
    "compile_rules",
    "default_rules",
    "extract_invoice_ref",
    "resolve_display_name",
    "classify",
    "categorize",
    "categorize_all",
]
