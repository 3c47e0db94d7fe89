"""Bank statement reconciliation for construction-site expense tracking."""

from .aggregation import costs_by_object, summarize
from .api import (
    ImportResult,
    import_statement,
    match_invoices,
    object_costs,
    parse_and_categorize,
    statement_stats,
)
from .cache import TtlCache
from .categorization import RuleConfigError, categorize, categorize_all, load_rules
from .duplicates import filter_new, identity_key
from .ingest import StatementDecodeError, parse_statement
from .matching import find_match
from .models import (
    Category,
    CategorizedTransaction,
    Invoice,
    MatchResult,
    MatchStatus,
    NormalizedTransaction,
    ObjectCost,
    Stats,
    StoredBankTransaction,
    TransactionType,
)
from .persistence import BankLedgerStore, TransactionNotFoundError
from .webhook_client import AuthenticationError, WebhookClient, WebhookError

__all__ = [
    "AuthenticationError",
    "BankLedgerStore",
    "Category",
    "CategorizedTransaction",
    "ImportResult",
    "Invoice",
    "MatchResult",
    "MatchStatus",
    "NormalizedTransaction",
    "ObjectCost",
    "RuleConfigError",
    "StatementDecodeError",
    "Stats",
    "StoredBankTransaction",
    "TransactionNotFoundError",
    "TransactionType",
    "TtlCache",
    "WebhookClient",
    "WebhookError",
    "categorize",
    "categorize_all",
    "costs_by_object",
    "filter_new",
    "find_match",
    "identity_key",
    "import_statement",
    "load_rules",
    "match_invoices",
    "object_costs",
    "parse_and_categorize",
    "parse_statement",
    "statement_stats",
    "summarize",
]
