"""Stripe event classification and subscription helpers."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

import stripe

from threadcraft.core.config import PlanGrant, settings

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str | None
    user_id: str | None
    subscription_id: str | None


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str | None
    event_type: str | None


BillingEvent = CheckoutCompleted | UnhandledEvent


@dataclass(frozen=True)
class SubscriptionDetail:
    price_id: str
    period_start: datetime | None
    period_end: datetime | None


class InvalidSubscriptionData(ValueError):
    pass


def classify_event(event: Mapping[str, Any]) -> BillingEvent:
    """Map a verified Stripe event payload onto the kinds this service acts on."""
    event_type = event.get("type")
    event_id = event.get("id")
    if event_type != CHECKOUT_COMPLETED:
        return UnhandledEvent(event_id=event_id, event_type=event_type)

    session = (event.get("data") or {}).get("object") or {}
    return CheckoutCompleted(
        event_id=event_id,
        user_id=session.get("client_reference_id") or None,
        subscription_id=session.get("subscription") or None,
    )


def _field(obj: Any, key: str) -> Any:
    # StripeObject and plain dicts both support item access
    if obj is None:
        return None
    try:
        return obj[key]
    except KeyError:
        return None


def _to_utc_dt_from_unix(ts: int | str | None) -> datetime | None:
    if ts is None:
        return None
    # Stripe uses unix seconds; tolerate strings
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def retrieve_subscription(subscription_id: str) -> SubscriptionDetail:
    """Fetch a subscription from Stripe and pull out price and period bounds.

    Raises InvalidSubscriptionData when the subscription has no items or the
    first item carries no price.
    """
    stripe.api_key = settings.STRIPE_SECRET_KEY
    subscription = stripe.Subscription.retrieve(subscription_id)

    items = _field(_field(subscription, "items"), "data") or []
    if not items:
        raise InvalidSubscriptionData("No items found in subscription")
    first_item = items[0]
    price_id = _field(_field(first_item, "price"), "id")
    if not price_id:
        raise InvalidSubscriptionData("No price ID found in subscription items")

    # Newer API versions moved the period onto the subscription items.
    start = _field(subscription, "current_period_start") or _field(first_item, "current_period_start")
    end = _field(subscription, "current_period_end") or _field(first_item, "current_period_end")

    return SubscriptionDetail(
        price_id=price_id,
        period_start=_to_utc_dt_from_unix(start),
        period_end=_to_utc_dt_from_unix(end),
    )


def resolve_plan(price_id: str) -> PlanGrant | None:
    return settings.plan_for_price(price_id)


def create_checkout_session(user_id: str, email: str, price_id: str) -> str:
    """Start a subscription checkout; the webhook matches it back by client_reference_id."""
    stripe.api_key = settings.STRIPE_SECRET_KEY
    session = stripe.checkout.Session.create(
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        client_reference_id=user_id,
        customer_email=email or None,
        success_url=settings.CHECKOUT_SUCCESS_URL,
        cancel_url=settings.CHECKOUT_CANCEL_URL,
        metadata={"clerk_id": user_id},
    )
    return session.url
