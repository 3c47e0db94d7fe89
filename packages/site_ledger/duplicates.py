"""Duplicate detection between freshly parsed and already stored transactions.

Public surface:
- ``identity_key``: the canonical identity tuple of a transaction, applied
  symmetrically to candidates and stored rows.
- ``compute_fingerprint``: SHA-256 over the identity key, for callers that
  want a compact, storable token.
- ``filter_new``: drop candidates whose identity already exists in storage.

Identity is ``(date, amount, type, reference)`` when the statement reference
discriminates between lines; otherwise the cleaned description stands in for
it. Lines with neither are never considered duplicates. All-digit references
are compared without leading zeros.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable
from typing import NamedTuple

from .logging_setup import get_logger
from .models import CategorizedTransaction, NormalizedTransaction
from .normalizers import clean_text, quantize_amount

type IdentityKey = tuple[str, str, str, str, str]

# References such as "0000000", "-" or "--" carry no identity
_NON_DISCRIMINATING_REF_RE = re.compile(r"^[\s0-]*$")

_logger = get_logger("site_ledger.duplicates")


class FilterResult(NamedTuple):
    to_insert: list[CategorizedTransaction]
    duplicate_count: int


def _discriminating_reference(reference: str | None) -> str | None:
    ref = clean_text(reference)
    if _NON_DISCRIMINATING_REF_RE.match(ref):
        return None
    # The sheet stores "000123" as the number 123
    if ref.isdigit():
        return ref.lstrip("0")
    return ref


def identity_key(tx: NormalizedTransaction) -> IdentityKey | None:
    """Return the dedup identity of ``tx`` or ``None`` when it has none."""

    head = (tx.date.isoformat(), f"{quantize_amount(tx.amount):.2f}", str(tx.type))
    ref = _discriminating_reference(tx.reference)
    if ref is not None:
        return (*head, "ref", ref)
    desc = clean_text(tx.description).casefold()
    if desc:
        return (*head, "desc", desc)
    return None


def compute_fingerprint(tx: NormalizedTransaction) -> str | None:
    """Stable SHA-256 hex digest of :func:`identity_key`, or ``None``."""

    key = identity_key(tx)
    if key is None:
        return None
    data = json.dumps(list(key), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def filter_new(
    candidates: Iterable[CategorizedTransaction],
    existing: Iterable[NormalizedTransaction],
) -> FilterResult:
    """Split ``candidates`` into new records and a duplicate count.

    ``existing`` is only read. Candidates keep their input order; repeats
    within ``candidates`` themselves are not collapsed.
    """

    known = {k for k in (identity_key(tx) for tx in existing) if k is not None}
    to_insert: list[CategorizedTransaction] = []
    duplicates = 0
    for tx in candidates:
        key = identity_key(tx)
        if key is not None and key in known:
            duplicates += 1
            continue
        to_insert.append(tx)

    _logger.info(
        "dedupe:filtered existing=%d new=%d duplicates=%d",
        len(known),
        len(to_insert),
        duplicates,
    )
    return FilterResult(to_insert=to_insert, duplicate_count=duplicates)


__all__ = ["FilterResult", "IdentityKey", "identity_key", "compute_fingerprint", "filter_new"]
