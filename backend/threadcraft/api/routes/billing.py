"""Billing routes for Stripe integration."""
import json

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from threadcraft.api.deps import get_current_user_id
from threadcraft.core.config import settings
from threadcraft.core.logging import get_logger
from threadcraft.db import crud
from threadcraft.db.session import get_db
from threadcraft.schemas.billing import CheckoutRequest, CheckoutResponse
from threadcraft.services.billing import (
    CHECKOUT_COMPLETED,
    CheckoutCompleted,
    InvalidSubscriptionData,
    classify_event,
    create_checkout_session,
    resolve_plan,
    retrieve_subscription,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    payload: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if resolve_plan(payload.price_id) is None:
        raise HTTPException(status_code=400, detail="Unknown price ID")

    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        url = create_checkout_session(user_id, user.email, payload.price_id)
    except stripe.StripeError:
        logger.exception("stripe checkout session create failed for %s", user_id)
        raise HTTPException(status_code=502, detail="Failed to create checkout session")
    return CheckoutResponse(url=url)


@router.post("/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        return _error("Server misconfigured", status_code=500)

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        logger.error("No Stripe signature found")
        return _error("No Stripe signature")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            sig_header,
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
        )
        event = json.loads(payload)
        if not isinstance(event, dict):
            raise ValueError("payload is not a JSON object")
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error("Webhook signature verification failed: %s", e)
        return _error(f"Webhook Error: {e}")

    logger.info("Received event type: %s", event.get("type"))
    billing_event = classify_event(event)

    if not isinstance(billing_event, CheckoutCompleted):
        return {"received": True}

    if not billing_event.user_id or not billing_event.subscription_id:
        logger.error("Missing user or subscription reference in event %s", billing_event.event_id)
        return _error("Invalid session data")

    dedupe = settings.STRIPE_DEDUPE_EVENTS and billing_event.event_id
    if dedupe and crud.is_event_processed(db, billing_event.event_id):
        logger.info("Skipping already processed event %s", billing_event.event_id)
        return {"received": True, "duplicate": True}

    try:
        detail = retrieve_subscription(billing_event.subscription_id)
    except InvalidSubscriptionData as e:
        logger.error("%s (subscription %s)", e, billing_event.subscription_id)
        return _error("Invalid subscription data")
    except Exception as e:
        logger.exception("Error retrieving subscription %s", billing_event.subscription_id)
        return JSONResponse(
            {"error": "Error processing subscription", "details": str(e)},
            status_code=500,
        )

    grant = resolve_plan(detail.price_id)
    if grant is None:
        logger.error("Unknown price ID %s", detail.price_id)
        return _error("Unknown price ID")

    try:
        crud.upsert_subscription(
            db,
            billing_event.user_id,
            billing_event.subscription_id,
            grant.plan,
            "active",
            detail.period_start,
            detail.period_end,
        )
        crud.increment_points(db, billing_event.user_id, grant.points)
        if dedupe:
            crud.mark_event_processed(db, billing_event.event_id, "stripe", CHECKOUT_COMPLETED)
    except Exception as e:
        db.rollback()
        logger.exception("Error processing subscription for user %s", billing_event.user_id)
        return JSONResponse(
            {"error": "Error processing subscription", "details": str(e)},
            status_code=500,
        )

    logger.info("Successfully processed subscription for user %s", billing_event.user_id)
    return {"received": True}
