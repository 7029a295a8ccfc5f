"""httpx-based client for the Stripe REST API.

Only the two read calls the subscription handlers need. Methods return
the decoded JSON objects or raise StripeUnavailableError / StripeError.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from healthrocket.config import settings

logger = logging.getLogger(__name__)


class StripeUnavailableError(Exception):
    """Raised when Stripe is unreachable or not configured."""


class StripeError(Exception):
    """Raised when Stripe returns an error response."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Stripe error {status_code}: {detail}")


class StripeClient:
    """Synchronous httpx client pinned to one Stripe API version."""

    def __init__(
        self,
        secret_key: str | None = None,
        api_base: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self._api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self._api_version = api_version or settings.stripe_api_version
        self._timeout = timeout or settings.stripe_timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Perform an authenticated GET against the Stripe API."""
        if not self._secret_key:
            raise StripeUnavailableError("Stripe secret key is not configured")
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.get(
                    f"{self._api_base}{path}",
                    params=params,
                    auth=(self._secret_key, ""),
                    headers={"Stripe-Version": self._api_version},
                )
        except httpx.TimeoutException:
            raise StripeUnavailableError("Stripe request timed out")
        except httpx.TransportError as e:
            raise StripeUnavailableError(f"Stripe is unreachable: {e}")

        if resp.status_code >= 400:
            detail = resp.text
            try:
                detail = resp.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            logger.warning("Stripe %s returned %d: %s", path, resp.status_code, detail)
            raise StripeError(resp.status_code, str(detail))
        return resp.json()

    # ── High-level methods ───────────────────────────────────────────────

    def list_subscriptions(self, customer_id: str, status: str = "active") -> list[dict[str, Any]]:
        """GET /subscriptions?customer=...&status=..."""
        body = self._get("/subscriptions", params={"customer": customer_id, "status": status})
        return list(body.get("data", []))

    def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        """GET /checkout/sessions/{id}"""
        return self._get(f"/checkout/sessions/{quote(session_id, safe='')}")
