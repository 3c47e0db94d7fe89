"""Thin JSON client for the spreadsheet-backed webhook API.

Plain ``urllib.request`` calls against ``<base_url>/barin-alp/...``. Each
endpoint answers either with an envelope ``{"success": true, "data": ...}`` /
``{"success": false, "error": "..."}`` or with the bare payload (a list or an
object); :func:`unwrap_envelope` normalizes both.

The client has no retries or caching; ``persistence`` layers a
:class:`~site_ledger.cache.TtlCache` on top of it.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import BankTransactionPayload, InvoicePayload, MatchStatus, UserPayload
from .settings import DEFAULT_HTTP_TIMEOUT_SEC

LOGIN_PATH = "/barin-alp/login"
INVOICES_PATH = "/barin-alp/invoices"
BANK_TRANSACTIONS_PATH = "/barin-alp/bank-transactions"
SAVE_BANK_TRANSACTIONS_PATH = "/barin-alp/bank-transactions/save"
UPDATE_BANK_TRANSACTION_PATH = "/barin-alp/bank-transactions/update"

_DEFAULT_LOGIN_ERROR = "invalid username or PIN"

_logger = get_logger("site_ledger.webhook_client")


class WebhookError(RuntimeError):
    """Transport, HTTP or payload failure talking to the webhook backend."""


class AuthenticationError(WebhookError):
    """The backend rejected the login credentials."""


def unwrap_envelope(body: Any, *, what: str) -> Any:
    """Return the payload of a ``{success, data}`` envelope or ``body`` itself.

    Raises :class:`WebhookError` for ``success: false`` answers.
    """

    if isinstance(body, Mapping) and "success" in body:
        if not body.get("success"):
            raise WebhookError(f"{what} failed: {body.get('error') or 'unknown error'}")
        return body.get("data")
    return body


def _rows(data: Any, *, key: str, what: str) -> list[Mapping[str, Any]]:
    # Lists arrive bare or wrapped as {"<key>": [...]}
    if data is None:
        return []
    if isinstance(data, Mapping):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise WebhookError(f"{what}: expected a list, got {type(data).__name__}")
    return [row for row in data if isinstance(row, Mapping)]


class WebhookClient:
    """JSON-over-HTTP access to the bank transaction and invoice sheets."""

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_HTTP_TIMEOUT_SEC) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            if query:
                url = f"{url}?{urllib.parse.urlencode(query)}"
        data = None
        if payload is not None:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")

        _logger.debug("webhook:request method=%s path=%s", method, path)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            try:
                err_body = e.read().decode("utf-8", errors="replace")
            except OSError:
                err_body = ""
            raise WebhookError(f"{method} {path}: HTTP {e.code} {e.reason}: {err_body}") from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise WebhookError(f"{method} {path}: {e}") from e

        if not body.strip():
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise WebhookError(f"{method} {path}: response is not valid JSON") from e

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def login(self, username: str, pin: str) -> UserPayload:
        body = self._request("POST", LOGIN_PATH, payload={"username": username, "pin": pin})
        if isinstance(body, Mapping) and "success" in body:
            if not body.get("success"):
                raise AuthenticationError(body.get("error") or _DEFAULT_LOGIN_ERROR)
            user = body.get("data")
        elif isinstance(body, Mapping):
            user = body.get("user", body)
        else:
            user = None
        if not isinstance(user, Mapping):
            raise AuthenticationError(_DEFAULT_LOGIN_ERROR)
        try:
            return UserPayload.model_validate(user)
        except ValidationError as e:
            raise WebhookError(f"login: unexpected user payload: {e}") from e

    def fetch_bank_transactions(self) -> list[BankTransactionPayload]:
        data = unwrap_envelope(
            self._request("GET", BANK_TRANSACTIONS_PATH), what="fetch bank transactions"
        )
        rows = _rows(data, key="transactions", what="fetch bank transactions")
        try:
            return [BankTransactionPayload.model_validate(r) for r in rows]
        except ValidationError as e:
            raise WebhookError(f"fetch bank transactions: invalid row: {e}") from e

    def save_bank_transactions(
        self, payloads: Iterable[BankTransactionPayload]
    ) -> dict[str, int]:
        """Append rows; returns the backend's ``insertedCount``/``duplicateCount``."""

        items = [p.to_json() for p in payloads]
        data = unwrap_envelope(
            self._request(
                "POST", SAVE_BANK_TRANSACTIONS_PATH, payload={"transactions": items}
            ),
            what="save bank transactions",
        )
        counts = data if isinstance(data, Mapping) else {}
        try:
            inserted = int(counts.get("insertedCount", len(items)))
            duplicates = int(counts.get("duplicateCount", 0))
        except (TypeError, ValueError) as e:
            raise WebhookError("save bank transactions: invalid counts in response") from e
        return {"insertedCount": inserted, "duplicateCount": duplicates}

    def update_bank_transaction(
        self,
        transaction_id: int,
        *,
        object_id: int | None,
        object_name: str | None,
        status: MatchStatus,
    ) -> BankTransactionPayload | None:
        """Update object assignment; returns the updated row when echoed back."""

        data = unwrap_envelope(
            self._request(
                "POST",
                UPDATE_BANK_TRANSACTION_PATH,
                payload={
                    "id": transaction_id,
                    "objectId": object_id,
                    "objectName": object_name or "",
                    "status": str(status),
                },
            ),
            what="update bank transaction",
        )
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, Mapping) or "date" not in data:
            return None
        try:
            return BankTransactionPayload.model_validate(data)
        except ValidationError as e:
            raise WebhookError(f"update bank transaction: invalid row: {e}") from e

    def fetch_invoices(self, object_id: int | None = None) -> list[InvoicePayload]:
        data = unwrap_envelope(
            self._request("GET", INVOICES_PATH, params={"objectId": object_id}),
            what="fetch invoices",
        )
        rows = _rows(data, key="invoices", what="fetch invoices")
        out: list[InvoicePayload] = []
        for r in rows:
            try:
                out.append(InvoicePayload.model_validate(r))
            except ValidationError as e:
                # Half-filled sheet rows (no id or date) are not match candidates
                _logger.warning("webhook:invoice_skipped id=%s reason=%s", r.get("id"), e)
        return out


__all__ = [
    "WebhookClient",
    "WebhookError",
    "AuthenticationError",
    "unwrap_envelope",
    "LOGIN_PATH",
    "INVOICES_PATH",
    "BANK_TRANSACTIONS_PATH",
    "SAVE_BANK_TRANSACTIONS_PATH",
    "UPDATE_BANK_TRANSACTION_PATH",
]
