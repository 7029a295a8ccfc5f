"""Billing — plan tiers, Stripe client and subscription reconciliation."""

from .plans import PLANS, Plan, get_plan
from .service import InvalidSessionError, SubscriptionNotFoundError, SubscriptionService
from .store import SubscriptionRecord, SubscriptionStore
from .stripe_client import StripeClient, StripeError, StripeUnavailableError
