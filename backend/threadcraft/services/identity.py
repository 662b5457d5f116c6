"""Clerk (Svix-signed) webhook verification and event classification."""
import json
from dataclasses import dataclass
from typing import Any, Mapping

from svix.webhooks import Webhook

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")
USER_EVENTS = ("user.created", "user.updated")


@dataclass(frozen=True)
class UserChanged:
    event_type: str
    clerk_id: str | None
    email: str | None
    name: str


@dataclass(frozen=True)
class UnhandledEvent:
    event_type: str | None


IdentityEvent = UserChanged | UnhandledEvent


def extract_svix_headers(headers: Mapping[str, str]) -> dict[str, str] | None:
    """The three signature headers, or None when any is missing."""
    values = {name: headers.get(name) for name in SVIX_HEADERS}
    if not all(values.values()):
        return None
    return values


def verify_payload(secret: str, body: bytes, headers: dict[str, str]) -> dict[str, Any]:
    """Verify the Svix signature over the raw body and return the event.

    Raises svix.webhooks.WebhookVerificationError on a bad signature or a
    timestamp outside the tolerance window, and ValueError when the verified
    body is not a JSON object.
    """
    Webhook(secret).verify(body, headers)
    event = json.loads(body)
    if not isinstance(event, dict):
        raise ValueError("webhook payload is not a JSON object")
    return event


def _full_name(first_name: str | None, last_name: str | None) -> str:
    return " ".join(part for part in (first_name, last_name) if part)


def classify_event(event: Mapping[str, Any]) -> IdentityEvent:
    event_type = event.get("type")
    if event_type not in USER_EVENTS:
        return UnhandledEvent(event_type=event_type)

    data = event.get("data") or {}
    addresses = data.get("email_addresses") or []
    email = addresses[0].get("email_address") if addresses else None

    return UserChanged(
        event_type=event_type,
        clerk_id=data.get("id"),
        email=email or None,
        name=_full_name(data.get("first_name"), data.get("last_name")),
    )
