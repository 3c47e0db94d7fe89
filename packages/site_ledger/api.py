"""Public orchestration for the ``site_ledger`` package.

Upload flow
-----------
raw statement -> :func:`~site_ledger.ingest.parse_statement` ->
:func:`~site_ledger.categorization.categorize_all` ->
:func:`~site_ledger.duplicates.filter_new` (against the stored snapshot) ->
save -> :func:`~site_ledger.aggregation.summarize` over the stored set.

The invoice matcher and per-object attribution run on demand over stored
transactions.
"""

from __future__ import annotations

from typing import NamedTuple

from .aggregation import costs_by_object, summarize
from .categorization import CompiledRules, categorize_all
from .duplicates import filter_new
from .ingest import parse_statement
from .logging_setup import get_logger
from .matching import match_transactions
from .models import CategorizedTransaction, MatchResult, ObjectCost, Stats
from .persistence import BankLedgerStore
from .settings import DEFAULT_STATEMENT_ENCODING

_logger = get_logger("site_ledger.api")


class ImportResult(NamedTuple):
    parsed_count: int
    to_insert: list[CategorizedTransaction]
    inserted_count: int
    duplicate_count: int
    stats: Stats


def parse_and_categorize(
    raw: str | bytes,
    *,
    source_encoding: str = DEFAULT_STATEMENT_ENCODING,
    rules: CompiledRules | None = None,
    default_currency: str | None = None,
) -> list[CategorizedTransaction]:
    """Parse a statement and categorize every transaction (no I/O)."""

    parsed = parse_statement(raw, source_encoding, default_currency=default_currency)
    return categorize_all(parsed, rules)


def import_statement(
    raw: str | bytes,
    *,
    store: BankLedgerStore,
    source_encoding: str = DEFAULT_STATEMENT_ENCODING,
    rules: CompiledRules | None = None,
    default_currency: str | None = None,
    dry_run: bool = False,
) -> ImportResult:
    """Import a bank statement into the store without creating duplicates.

    Parameters
    ----------
    raw:
        Statement content; ``bytes`` are decoded with ``source_encoding``.
    store:
        Backend access used for the existing-transaction snapshot and the save.
    dry_run:
        When true nothing is saved; ``stats`` then cover the existing rows
        plus the rows that would be inserted.

    Returns
    -------
    ImportResult
        ``to_insert`` lists the new rows; ``duplicate_count`` counts candidates
        already present in storage. ``stats`` are computed over the full
        stored set after the save.

    Raises
    ------
    StatementDecodeError
        When the statement cannot be read at all.
    """

    categorized = parse_and_categorize(
        raw, source_encoding=source_encoding, rules=rules, default_currency=default_currency
    )
    existing = store.list_bank_transactions()
    to_insert, duplicate_count = filter_new(categorized, existing)

    inserted = 0
    if dry_run:
        stats = summarize([*existing, *to_insert])
    else:
        if to_insert:
            inserted = store.save_bank_transactions(to_insert).inserted_count
        # Re-read so the totals reflect what the backend actually holds
        stats = summarize(store.list_bank_transactions())

    _logger.info(
        "import:done parsed=%d new=%d inserted=%d duplicates=%d dry_run=%s",
        len(categorized),
        len(to_insert),
        inserted,
        duplicate_count,
        dry_run,
    )
    return ImportResult(
        parsed_count=len(categorized),
        to_insert=to_insert,
        inserted_count=inserted,
        duplicate_count=duplicate_count,
        stats=stats,
    )


def statement_stats(store: BankLedgerStore) -> Stats:
    return summarize(store.list_bank_transactions())


def match_invoices(store: BankLedgerStore) -> list[MatchResult]:
    """Pair every stored debit with its first matching invoice (or ``None``)."""

    return match_transactions(store.list_bank_transactions(), store.list_invoices())


def object_costs(store: BankLedgerStore) -> list[ObjectCost]:
    return costs_by_object(store.list_bank_transactions())


__all__ = [
    "ImportResult",
    "parse_and_categorize",
    "import_statement",
    "statement_stats",
    "match_invoices",
    "object_costs",
]
