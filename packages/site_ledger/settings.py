"""Environment-driven configuration.

All settings are read from ``SITE_LEDGER_*`` environment variables. The CLI
loads a local ``.env`` (via ``python-dotenv``, without overriding variables
that are already set) before building :class:`Settings`; host applications
may construct :class:`Settings` directly instead.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HTTP_TIMEOUT_SEC = 30.0
DEFAULT_CACHE_TTL_SEC = 30.0
DEFAULT_STATEMENT_ENCODING = "cp1251"
DEFAULT_CURRENCY = "BGN"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True, slots=True)
class Settings:
    webhook_url: str | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SEC
    cache_ttl: float = DEFAULT_CACHE_TTL_SEC
    statement_encoding: str = DEFAULT_STATEMENT_ENCODING
    default_currency: str = DEFAULT_CURRENCY
    rules_path: Path | None = None

    @classmethod
    def from_env(cls) -> Settings:
        rules = _env_str("SITE_LEDGER_RULES_PATH")
        return cls(
            webhook_url=_env_str("SITE_LEDGER_WEBHOOK_URL"),
            http_timeout=_env_float("SITE_LEDGER_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT_SEC),
            cache_ttl=_env_float("SITE_LEDGER_CACHE_TTL", DEFAULT_CACHE_TTL_SEC),
            statement_encoding=(
                _env_str("SITE_LEDGER_STATEMENT_ENCODING") or DEFAULT_STATEMENT_ENCODING
            ),
            default_currency=(
                _env_str("SITE_LEDGER_DEFAULT_CURRENCY") or DEFAULT_CURRENCY
            ).upper(),
            rules_path=Path(rules).expanduser() if rules else None,
        )

    def require_webhook_url(self) -> str:
        if not self.webhook_url:
            raise RuntimeError(
                "SITE_LEDGER_WEBHOOK_URL is not set; cannot reach the storage backend"
            )
        return self.webhook_url


__all__ = ["Settings"]
