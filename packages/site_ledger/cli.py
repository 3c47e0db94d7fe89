# ruff: noqa: I001
"""CLI for the ``site_ledger`` package.

This module exposes callable command handlers (``cmd_import_statement``,
``cmd_summarize``, ...) returning a process exit code, and a Typer-based
console interface wrapping them. Environment variables (notably
``SITE_LEDGER_WEBHOOK_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Business logic lives in
``site_ledger.api`` and related modules.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .logging_setup import configure_logging
from .models import Stats


# ---- Small module-level helpers used by CLI commands -------------------------


def _build_store(settings):
    """Return a :class:`BankLedgerStore` talking to the configured webhook."""

    from .cache import TtlCache
    from .persistence import BankLedgerStore
    from .webhook_client import WebhookClient

    client = WebhookClient(settings.require_webhook_url(), timeout=settings.http_timeout)
    return BankLedgerStore(client, TtlCache(settings.cache_ttl))


def _resolve_rules(settings, rules_path: str | None):
    """Compile the rule file given on the command line or in the environment."""

    from .categorization import compile_rules, default_rules, load_rules

    path = rules_path or settings.rules_path
    if path is None:
        return default_rules()
    return compile_rules(load_rules(path))


def _print_stats(stats: Stats) -> None:
    print(f"count\t{stats.count}")
    print(f"total_debit\t{stats.total_debit}")
    print(f"total_credit\t{stats.total_credit}")
    print(f"net_change\t{stats.net_change}")
    print(f"bank_fees\t{stats.bank_fees_total}")
    print(f"loan_payments\t{stats.loan_payments_total}")
    print(f"cash_withdrawals\t{stats.cash_withdrawals_total}")


def _read_statement(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


# ---- Command handlers --------------------------------------------------------


def cmd_categorize_statement(
    statement_path: str, *, encoding: str | None = None, rules_path: str | None = None
) -> int:
    """Parse and categorize a statement offline and print one line per row.

    Output columns: ``date``, ``type``, ``amount``, ``category``,
    ``display_name`` and ``invoice_ref`` (empty when absent), tab-separated.
    Nothing is sent to the backend.
    """

    from .api import parse_and_categorize
    from .settings import Settings

    try:
        settings = Settings.from_env()
        rules = _resolve_rules(settings, rules_path)
        raw = _read_statement(statement_path)
        rows = parse_and_categorize(
            raw,
            source_encoding=encoding or settings.statement_encoding,
            rules=rules,
            default_currency=settings.default_currency,
        )
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for tx in rows:
        print(
            f"{tx.date.isoformat()}\t{tx.type}\t{tx.amount}\t{tx.category}"
            f"\t{tx.display_name}\t{tx.invoice_ref or ''}"
        )
    return 0


def cmd_import_statement(
    statement_path: str,
    *,
    encoding: str | None = None,
    rules_path: str | None = None,
    dry_run: bool = False,
) -> int:
    """Import a statement file into the backend and print a summary.

    The summary lists the parsed, new, inserted and duplicate counts followed
    by the statistics over all stored transactions. An empty statement is
    reported as ``No transactions found.`` and exits successfully.
    """

    from .api import import_statement
    from .settings import Settings

    try:
        settings = Settings.from_env()
        rules = _resolve_rules(settings, rules_path)
        raw = _read_statement(statement_path)
        store = _build_store(settings)
        result = import_statement(
            raw,
            store=store,
            source_encoding=encoding or settings.statement_encoding,
            rules=rules,
            default_currency=settings.default_currency,
            dry_run=dry_run,
        )
    except (OSError, RuntimeError, ValueError) as e:
        # Decode, rule and webhook errors are ValueError / RuntimeError subclasses
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result.parsed_count == 0:
        print("No transactions found.")
    print(f"parsed\t{result.parsed_count}")
    print(f"new\t{len(result.to_insert)}")
    print(f"inserted\t{result.inserted_count}")
    print(f"duplicates\t{result.duplicate_count}")
    _print_stats(result.stats)
    return 0


def cmd_summarize() -> int:
    """Print statistics over all stored bank transactions."""

    from .api import statement_stats
    from .settings import Settings

    try:
        stats = statement_stats(_build_store(Settings.from_env()))
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_stats(stats)
    return 0


def cmd_match_invoices(*, only_matched: bool = False) -> int:
    """Print ``<tx id>\\t<date>\\t<amount>\\t<invoice id>\\t<invoice number>`` per debit."""

    from .api import match_invoices
    from .settings import Settings

    try:
        results = match_invoices(_build_store(Settings.from_env()))
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for tx, invoice in results:
        if invoice is None and only_matched:
            continue
        inv_id = "" if invoice is None else str(invoice.id)
        inv_no = "" if invoice is None else invoice.invoice_number
        tx_id = "" if tx.id is None else str(tx.id)
        print(f"{tx_id}\t{tx.date.isoformat()}\t{tx.amount}\t{inv_id}\t{inv_no}")
    return 0


def cmd_assign_object(
    transaction_id: int, *, object_id: int | None, object_name: str | None = None
) -> int:
    """Assign a stored transaction to a construction object (``None`` clears it)."""

    from .persistence import TransactionNotFoundError
    from .settings import Settings

    try:
        store = _build_store(Settings.from_env())
        updated = store.assign_object(transaction_id, object_id, object_name)
    except TransactionNotFoundError as e:
        print(f"Error: {e.args[0] if e.args else e}", file=sys.stderr)
        return 1
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    oid = "" if updated.object_id is None else str(updated.object_id)
    print(f"{transaction_id}\t{oid}\t{updated.object_name or ''}\t{updated.status}")
    return 0


def cmd_object_costs() -> int:
    """Print ``<object id>\\t<object name>\\t<total>\\t<count>`` per object."""

    from .api import object_costs
    from .settings import Settings

    try:
        costs = object_costs(_build_store(Settings.from_env()))
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for cost in costs:
        print(
            f"{cost.object_id}\t{cost.object_name or ''}\t{cost.total}\t{cost.transaction_count}"
        )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements into the site ledger, categorize them and match "
        "debits to invoices. Loads SITE_LEDGER_* settings from a local .env."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
STATEMENT_PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    help="Path to a bank statement CSV export",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports unreadable files itself
)

ENCODING_OPTION: OptionInfo = typer.Option(
    "--encoding",
    help="Byte encoding of the statement (default: SITE_LEDGER_STATEMENT_ENCODING or cp1251).",
)

RULES_OPTION: OptionInfo = typer.Option(
    "--rules",
    help="Categorization rule file (default: SITE_LEDGER_RULES_PATH or the packaged rules).",
)


@app.command("categorize-statement")
def categorize_statement_cmd(
    statement_path: Annotated[Path, STATEMENT_PATH_ARGUMENT],
    *,
    encoding: Annotated[str | None, ENCODING_OPTION] = None,
    rules: Annotated[Path | None, RULES_OPTION] = None,
) -> None:
    """Parse and categorize a statement without contacting the backend."""

    raise typer.Exit(
        cmd_categorize_statement(
            str(statement_path),
            encoding=encoding,
            rules_path=str(rules) if rules else None,
        )
    )


@app.command("import-statement")
def import_statement_cmd(
    statement_path: Annotated[Path, STATEMENT_PATH_ARGUMENT],
    *,
    encoding: Annotated[str | None, ENCODING_OPTION] = None,
    rules: Annotated[Path | None, RULES_OPTION] = None,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compute new rows and statistics without saving."
    ),
) -> None:
    """Import a statement, skipping transactions that are already stored."""

    raise typer.Exit(
        cmd_import_statement(
            str(statement_path),
            encoding=encoding,
            rules_path=str(rules) if rules else None,
            dry_run=dry_run,
        )
    )


@app.command("summarize")
def summarize_cmd() -> None:
    """Show totals over all stored bank transactions."""

    raise typer.Exit(cmd_summarize())


@app.command("match-invoices")
def match_invoices_cmd(
    only_matched: bool = typer.Option(
        False, "--only-matched", help="Hide debits without a matching invoice."
    ),
) -> None:
    """Match stored debits to invoices by amount and date."""

    raise typer.Exit(cmd_match_invoices(only_matched=only_matched))


@app.command("assign-object")
def assign_object_cmd(
    transaction_id: int = typer.Argument(..., help="Stored bank transaction id"),
    object_id: int | None = typer.Option(
        None, "--object-id", help="Construction object id; omit to clear the assignment."
    ),
    object_name: str | None = typer.Option(None, "--object-name", help="Object display name."),
) -> None:
    """Assign a bank transaction to a construction object."""

    raise typer.Exit(
        cmd_assign_object(transaction_id, object_id=object_id, object_name=object_name)
    )


@app.command("object-costs")
def object_costs_cmd() -> None:
    """Show debit spend per construction object (company expenses excluded)."""

    raise typer.Exit(cmd_object_costs())


@app.callback()
def _root(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log at DEBUG level (cache hits, skipped rows)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging("DEBUG" if verbose else None)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m site_ledger.cli`
    app()
