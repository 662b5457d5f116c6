import json
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from threadcraft.core.config import settings
from threadcraft.db import crud
from threadcraft.db.models.subscription import Subscription

BASIC_PRICE_ID = "price_1PyFKGBibz3ZDixDAaJ3HO74"
PRO_PRICE_ID = "price_1PyFN0Bibz3ZDixDqm9eYL8W"
WEBHOOK_URL = "/api/billing/webhook"
PERIOD_START = 1767225600  # 2026-01-01T00:00:00Z
PERIOD_END = 1769904000  # 2026-02-01T00:00:00Z


def checkout_event(user_id="user_clerk_1", subscription_id="sub_123", event_id="evt_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "client_reference_id": user_id,
                "subscription": subscription_id,
            }
        },
    }


def stripe_subscription(price_id=BASIC_PRICE_ID, on_items=False):
    item = {"id": "si_1", "object": "subscription_item", "price": {"id": price_id}}
    sub = {"id": "sub_123", "object": "subscription", "status": "active", "items": {"data": [item]}}
    period = {"current_period_start": PERIOD_START, "current_period_end": PERIOD_END}
    if on_items:
        item.update(period)
    else:
        sub.update(period)
    return sub


@pytest.fixture
def post_event(client, sign_stripe):
    def _post(event: dict, signature: str | None = None):
        payload = json.dumps(event).encode()
        headers = {"content-type": "application/json"}
        headers["stripe-signature"] = signature if signature is not None else sign_stripe(payload)
        return client.post(WEBHOOK_URL, content=payload, headers=headers)

    return _post


@pytest.fixture
def retrieve(mocker):
    return mocker.patch("stripe.Subscription.retrieve", return_value=stripe_subscription())


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def test_missing_signature_header(client, retrieve):
    response = client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 400
    assert response.json() == {"error": "No Stripe signature"}
    retrieve.assert_not_called()


def test_invalid_signature_rejected_without_mutation(db_session, make_user, post_event, retrieve):
    make_user(points=50)

    response = post_event(checkout_event(), signature=f"t={int(time.time())},v1=deadbeef")

    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook Error:")
    retrieve.assert_not_called()
    assert crud.get_points(db_session, "user_clerk_1") == 50
    assert db_session.query(Subscription).count() == 0


def test_signature_from_other_secret_rejected(post_event, sign_stripe, retrieve):
    payload = json.dumps(checkout_event()).encode()

    response = post_event(checkout_event(), signature=sign_stripe(payload, secret="whsec_other"))

    assert response.status_code == 400
    retrieve.assert_not_called()


def test_missing_secret_is_server_error(db_session, make_user, post_event, retrieve, monkeypatch):
    make_user(points=50)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)

    response = post_event(checkout_event())

    assert response.status_code == 500
    assert response.json() == {"error": "Server misconfigured"}
    retrieve.assert_not_called()
    assert crud.get_points(db_session, "user_clerk_1") == 50


def test_signed_non_object_payload_rejected(post_event, retrieve):
    response = post_event([])

    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook Error:")
    retrieve.assert_not_called()


def test_unhandled_event_type_acknowledged(post_event, retrieve):
    event = {"id": "evt_2", "type": "invoice.paid", "data": {"object": {"id": "in_1"}}}

    response = post_event(event)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    retrieve.assert_not_called()


def test_checkout_completed_credits_points_and_records_subscription(db_session, make_user, post_event, retrieve):
    make_user(points=50)

    response = post_event(checkout_event())

    assert response.status_code == 200
    assert response.json() == {"received": True}
    retrieve.assert_called_once_with("sub_123")

    assert crud.get_points(db_session, "user_clerk_1") == 150
    sub = db_session.query(Subscription).one()
    assert sub.stripe_subscription_id == "sub_123"
    assert sub.plan == "Basic"
    assert sub.status == "active"
    assert _utc(sub.current_period_start) == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert _utc(sub.current_period_end) == datetime(2026, 2, 1, tzinfo=timezone.utc)


def test_period_read_from_subscription_items(db_session, make_user, post_event, retrieve):
    make_user()
    retrieve.return_value = stripe_subscription(price_id=PRO_PRICE_ID, on_items=True)

    response = post_event(checkout_event())

    assert response.status_code == 200
    sub = db_session.query(Subscription).one()
    assert sub.plan == "Pro"
    assert _utc(sub.current_period_end) == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert crud.get_points(db_session, "user_clerk_1") == 550


@pytest.mark.parametrize(
    "event",
    [
        checkout_event(user_id=None),
        checkout_event(subscription_id=None),
    ],
)
def test_missing_references_rejected(db_session, make_user, post_event, retrieve, event):
    make_user()

    response = post_event(event)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid session data"}
    retrieve.assert_not_called()


def test_unknown_price_rejected_without_mutation(db_session, make_user, post_event, retrieve):
    make_user(points=50)
    retrieve.return_value = stripe_subscription(price_id="price_unknown")

    response = post_event(checkout_event())

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown price ID"}
    assert crud.get_points(db_session, "user_clerk_1") == 50
    assert db_session.query(Subscription).count() == 0


def test_subscription_without_items_rejected(make_user, post_event, retrieve):
    make_user()
    retrieve.return_value = {"id": "sub_123", "items": {"data": []}}

    response = post_event(checkout_event())

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid subscription data"}


def test_unknown_user_returns_500(db_session, post_event, retrieve):
    response = post_event(checkout_event(user_id="user_ghost"))

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Error processing subscription"
    assert "user_ghost" in body["details"]
    assert db_session.query(Subscription).count() == 0


def test_provider_failure_returns_500(make_user, post_event, retrieve):
    make_user()
    retrieve.side_effect = RuntimeError("stripe unreachable")

    response = post_event(checkout_event())

    assert response.status_code == 500
    assert response.json() == {"error": "Error processing subscription", "details": "stripe unreachable"}


def test_replayed_event_credits_points_twice(db_session, make_user, post_event, retrieve):
    # Redelivery is not deduplicated unless STRIPE_DEDUPE_EVENTS is on.
    make_user(points=50)

    assert post_event(checkout_event()).status_code == 200
    assert post_event(checkout_event()).status_code == 200

    assert db_session.query(Subscription).count() == 1
    assert crud.get_points(db_session, "user_clerk_1") == 250


def test_replayed_event_skipped_when_dedupe_enabled(db_session, make_user, post_event, retrieve, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_DEDUPE_EVENTS", True)
    make_user(points=50)

    first = post_event(checkout_event())
    second = post_event(checkout_event())

    assert first.json() == {"received": True}
    assert second.json() == {"received": True, "duplicate": True}
    assert retrieve.call_count == 1
    assert crud.get_points(db_session, "user_clerk_1") == 150


def test_create_checkout_session(client, make_user, auth_headers, mocker):
    make_user()
    create = mocker.patch(
        "stripe.checkout.Session.create",
        return_value=MagicMock(url="https://checkout.stripe.test/c/cs_1"),
    )

    response = client.post("/api/billing/checkout", json={"price_id": PRO_PRICE_ID}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/c/cs_1"}
    kwargs = create.call_args.kwargs
    assert kwargs["client_reference_id"] == "user_clerk_1"
    assert kwargs["line_items"] == [{"price": PRO_PRICE_ID, "quantity": 1}]
    assert kwargs["mode"] == "subscription"


def test_create_checkout_unknown_price(client, make_user, auth_headers, mocker):
    make_user()
    create = mocker.patch("stripe.checkout.Session.create")

    response = client.post("/api/billing/checkout", json={"price_id": "price_nope"}, headers=auth_headers())

    assert response.status_code == 400
    create.assert_not_called()
