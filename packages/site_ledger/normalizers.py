"""Amount, date and text normalization for bank statement cells.

Statements exported by Bulgarian banks use comma decimal marks, space or dot
thousands separators, ``dd.mm.yyyy`` dates (sometimes followed by a time or
the year marker ``г.``) and currency suffixes such as ``лв.``. Every helper
raises ``ValueError`` on input it cannot interpret so the statement parser can
skip the offending row.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("0.01")

# Currency markers that may prefix or suffix an amount cell
_CURRENCY_TOKENS: tuple[str, ...] = ("лв.", "лв", "bgn", "eur", "usd", "€", "$")

# Characters used as visual grouping only
_GROUPING_CHARS = str.maketrans("", "", " \u00a0\u202f'\u2019")

_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d+)?|\.\d+)$")

_DATE_FORMATS: tuple[str, ...] = (
    "%d.%m.%Y",
    "%d.%m.%y",
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d-%m-%Y",
    "%Y-%m-%d",
    "%Y.%m.%d",
)

_YEAR_MARKER_RE = re.compile(r"\s*г\.?$", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def clean_text(value: str | None) -> str:
    """Collapse internal whitespace (including newlines) and strip."""

    if value is None:
        return ""
    return _WS_RE.sub(" ", value).strip()


def _strip_currency(s: str) -> tuple[str, bool]:
    low = s.lower()
    for token in _CURRENCY_TOKENS:
        if low.startswith(token):
            return s[len(token) :].strip(), True
        if low.endswith(token):
            return s[: -len(token)].strip(), True
    return s, False


def _unify_separators(s: str) -> str:
    """Return ``s`` with thousands separators removed and a dot decimal mark."""

    commas = s.count(",")
    dots = s.count(".")
    if commas and dots:
        # The right-most separator is the decimal mark
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    sep = "," if commas else "." if dots else None
    if sep is None:
        return s
    if s.count(sep) > 1:
        return s.replace(sep, "")
    head, _, tail = s.partition(sep)
    # "1,234" / "12.500" are grouped integers; "0,125" is still a fraction
    if len(tail) == 3 and head.lstrip("0"):
        return head + tail
    return f"{head}.{tail}"


def parse_amount(raw: str | None) -> Decimal:
    """Parse a statement amount cell into a signed ``Decimal``.

    Accepts comma or dot decimal marks, space/NBSP/dot/comma grouping, a
    leading ``+``/``-``, a trailing ``-``, surrounding parentheses and currency
    markers (``лв.``, ``BGN``, ``EUR``, ``€``). Raises ``ValueError`` for
    anything non-numeric.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.translate(_GROUPING_CHARS).strip()
    if not s:
        raise ValueError("amount is empty")

    negative = False
    # Strip sign, currency and parentheses markers in any order until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].strip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].strip()
            changed = True
        elif s.endswith("-"):
            negative = True
            s = s[:-1].strip()
            changed = True
        s, stripped = _strip_currency(s)
        changed = changed or stripped
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = _unify_separators(s)
    if not _NUMBER_RE.match(s):
        raise ValueError(f"invalid amount: {raw!r}")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:  # pragma: no cover - guarded by the regex
        raise ValueError(f"invalid amount: {raw!r}") from exc
    return -d if negative else d


def parse_optional_amount(raw: str | None) -> Decimal | None:
    """Like :func:`parse_amount` but blank cells yield ``None``."""

    if raw is None or not raw.translate(_GROUPING_CHARS).strip():
        return None
    return parse_amount(raw)


def quantize_amount(d: Decimal) -> Decimal:
    """Round half-up to exactly two decimal places."""

    return d.quantize(_CENT, rounding=ROUND_HALF_UP)


def parse_statement_date(raw: str | None) -> date:
    """Parse a statement date cell into a calendar date.

    A trailing time component and the Bulgarian year marker ``г.`` are
    ignored. Raises ``ValueError`` when no known format matches.
    """

    if raw is None:
        raise ValueError("date is required")
    s = raw.strip()
    if not s:
        raise ValueError("date is empty")
    # Dates may carry a time: "10.03.2024 14:22:05"
    first = _YEAR_MARKER_RE.sub("", s.split()[0])
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(first, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid statement date: {raw!r}")


__all__ = [
    "clean_text",
    "parse_amount",
    "parse_optional_amount",
    "quantize_amount",
    "parse_statement_date",
]
