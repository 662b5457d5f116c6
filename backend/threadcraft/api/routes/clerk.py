"""Clerk user webhook (delivered and signed by Svix)."""
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from svix.webhooks import WebhookVerificationError

from threadcraft.core.config import settings
from threadcraft.core.logging import get_logger
from threadcraft.db import crud
from threadcraft.db.session import get_db
from threadcraft.notifications.email_sender import send_welcome_email
from threadcraft.services.identity import (
    UserChanged,
    classify_event,
    extract_svix_headers,
    verify_payload,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/clerk")
async def clerk_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    secret = settings.CLERK_WEBHOOK_SECRET
    if not secret:
        logger.error("CLERK_WEBHOOK_SECRET is not configured")
        return PlainTextResponse("Server misconfigured", status_code=500)

    headers = extract_svix_headers(request.headers)
    if headers is None:
        return PlainTextResponse("Missing Svix headers", status_code=400)

    body = await request.body()
    try:
        event = verify_payload(secret, body, headers)
    except (ValueError, WebhookVerificationError) as e:
        logger.error("Error verifying webhook: %s", e)
        return PlainTextResponse("Webhook verification failed", status_code=400)

    identity_event = classify_event(event)
    logger.info("Received clerk event type: %s", identity_event.event_type)

    if isinstance(identity_event, UserChanged) and identity_event.clerk_id and identity_event.email:
        try:
            user, match = crud.upsert_user(
                db,
                identity_event.clerk_id,
                identity_event.email,
                identity_event.name,
            )
        except Exception:
            db.rollback()
            logger.exception("Error creating/updating user %s", identity_event.clerk_id)
            return PlainTextResponse("Error processing user data", status_code=500)

        if match is not crud.UserMatch.FOUND:
            background_tasks.add_task(send_welcome_email, user.email, user.name or "")
        logger.info("User %s created/updated successfully", identity_event.clerk_id)

    return {"message": "Webhook processed successfully"}
