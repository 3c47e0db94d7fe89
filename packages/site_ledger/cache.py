"""In-memory time-to-live cache for lists fetched from the webhook backend.

The cache is an explicit object handed to whoever needs it (see
``persistence.BankLedgerStore``); there is no module-level instance. Keys are
plain strings such as ``"bank-transactions-list"`` or
``"object-details-12"`` so related entries can be dropped together with
:meth:`TtlCache.invalidate` and a key prefix.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from .logging_setup import get_logger
from .settings import DEFAULT_CACHE_TTL_SEC

_logger = get_logger("site_ledger.cache")

_MISSING = object()


class TtlCache:
    """A ``key -> (value, stored_at)`` store with lazy expiry.

    Entries older than ``ttl_seconds`` are evicted when they are next looked
    up. ``clock`` must be monotonic; tests pass a fake.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SEC,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            _logger.debug("cache:expired key=%s", key)
            return _MISSING
        return value

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for ``key`` or store and return ``loader()``.

        Loader exceptions propagate and nothing is cached.
        """

        value = self._lookup(key)
        if value is not _MISSING:
            _logger.debug("cache:hit key=%s", key)
            return value
        _logger.debug("cache:miss key=%s", key)
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, prefix: str | None = None) -> int:
        """Drop entries whose key starts with ``prefix`` (all when ``None``).

        Returns the number of entries removed.
        """

        if prefix is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            removed = len(doomed)
        if removed:
            _logger.debug("cache:invalidated prefix=%s removed=%d", prefix, removed)
        return removed

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._lookup(key) is not _MISSING

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, stored_at in self._entries.values() if now - stored_at < self._ttl)


__all__ = ["TtlCache"]
