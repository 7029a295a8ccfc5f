"""Subscription reconciliation between Stripe and the local table.

``get_active_subscriptions`` backs the get-active-subscription endpoint,
``verify_session`` backs verify-session (called after Stripe Checkout
redirects back with a session id).
"""

from __future__ import annotations

import logging
import re
from typing import Any

from healthrocket.billing.store import SubscriptionRecord, SubscriptionStore
from healthrocket.billing.stripe_client import StripeClient
from healthrocket.timeutils import from_unix

logger = logging.getLogger(__name__)

STATUS_COMPLETE = "complete"
STATUS_NO_ACTIVE = "no_active_subscription"

SESSION_ID_RE = re.compile(r"^cs_[A-Za-z0-9_]+$")


class SubscriptionNotFoundError(Exception):
    """The user has no Stripe customer on record."""


class InvalidSessionError(Exception):
    """The checkout session is missing, unpaid or has no customer."""


def _customer_id(session: dict[str, Any]) -> str | None:
    customer = session.get("customer")
    if isinstance(customer, dict):  # expanded object
        return customer.get("id")
    return customer or None


def _period(subscription: dict[str, Any], key: str) -> str | None:
    value = subscription.get(key)
    if value is None:
        # newer API versions moved billing periods onto the items
        items = (subscription.get("items") or {}).get("data") or []
        value = items[0].get(key) if items else None
    return from_unix(value) if value is not None else None


def _price_id(subscription: dict[str, Any]) -> str:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        raise ValueError(f"Subscription {subscription.get('id')} has no items")
    return items[0]["price"]["id"]


class SubscriptionService:
    def __init__(self, store: SubscriptionStore, stripe: StripeClient) -> None:
        self._store = store
        self._stripe = stripe

    @property
    def stripe(self) -> StripeClient:
        return self._stripe

    def get_active_subscriptions(self, user_id: str) -> list[dict[str, Any]]:
        customer_id = self._store.customer_id_for(user_id)
        if not customer_id:
            raise SubscriptionNotFoundError("No active subscription found")
        return self._stripe.list_subscriptions(customer_id, status="active")

    def verify_session(self, user_id: str, session_id: str) -> str:
        """Record the subscription behind a completed checkout session.

        Returns ``complete`` or ``no_active_subscription``. Verifying the
        same session twice does not create a second row.
        """
        if not SESSION_ID_RE.match(session_id):
            raise InvalidSessionError("Invalid or incomplete session")
        session = self._stripe.retrieve_checkout_session(session_id)
        customer_id = _customer_id(session) if session else None
        if not session or session.get("status") != "complete" or not customer_id:
            raise InvalidSessionError("Invalid or incomplete session")

        subscriptions = self._stripe.list_subscriptions(customer_id, status="active")
        if not subscriptions:
            logger.info("Checkout %s: customer %s has no active subscription", session_id, customer_id)
            return STATUS_NO_ACTIVE

        subscription = subscriptions[0]
        plan_id = _price_id(subscription)
        if not self._store.exists(user_id, plan_id, customer_id, subscription["id"]):
            self._store.create(SubscriptionRecord(
                user_id=user_id,
                stripe_customer_id=customer_id,
                stripe_subscription_id=subscription["id"],
                plan_id=plan_id,
                status=subscription.get("status", "active"),
                current_period_start=_period(subscription, "current_period_start"),
                current_period_end=_period(subscription, "current_period_end"),
                cancel_at_period_end=bool(subscription.get("cancel_at_period_end", False)),
            ))
        return STATUS_COMPLETE
