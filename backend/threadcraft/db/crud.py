"""Persistence operations keyed by the external (Clerk) user id.

Every function commits its own unit of work. Callers that chain several of
them (the billing webhook does lookup, subscription upsert, then points) get
no cross-step atomicity.
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from threadcraft.core.config import settings
from threadcraft.core.errors import UserNotFoundError
from threadcraft.core.logging import get_logger
from threadcraft.db.models.generated_content import GeneratedContent
from threadcraft.db.models.processed_webhook_event import ProcessedWebhookEvent
from threadcraft.db.models.subscription import Subscription
from threadcraft.db.models.user import User

logger = get_logger(__name__)


class UserMatch(str, enum.Enum):
    """Outcome of the ordered identity lookup."""

    FOUND = "found"
    FOUND_BY_EMAIL = "found_by_email"
    NOT_FOUND = "not_found"


def get_user(db: Session, user_id: str) -> User | None:
    return db.execute(select(User).where(User.clerk_id == user_id)).scalar_one_or_none()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def _require_user(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def get_points(db: Session, user_id: str) -> int:
    """Current balance; 0 when the user is unknown."""
    points = db.execute(select(User.points).where(User.clerk_id == user_id)).scalar_one_or_none()
    if points is None:
        logger.info("No user found with clerk id %s; reporting 0 points", user_id)
        return 0
    return points


def increment_points(db: Session, user_id: str, delta: int) -> int:
    """Apply a relative change to the balance and return the new value."""
    result = db.execute(
        update(User)
        .where(User.clerk_id == user_id)
        .values(points=User.points + delta)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        db.rollback()
        raise UserNotFoundError(user_id)
    db.commit()

    balance = db.execute(select(User.points).where(User.clerk_id == user_id)).scalar_one()
    logger.info("Points for %s changed by %+d (now %d)", user_id, delta, balance)
    return balance


def upsert_subscription(
    db: Session,
    user_id: str,
    subscription_id: str,
    plan: str,
    status: str,
    period_start: datetime | None,
    period_end: datetime | None,
) -> Subscription:
    user = _require_user(db, user_id)

    subscription = db.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == subscription_id)
    ).scalar_one_or_none()

    if subscription is None:
        subscription = Subscription(
            user_id=user.id,
            stripe_subscription_id=subscription_id,
            plan=plan,
            status=status,
            current_period_start=period_start,
            current_period_end=period_end,
        )
        db.add(subscription)
        action = "created"
    else:
        subscription.plan = plan
        subscription.status = status
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        action = "updated"

    db.commit()
    db.refresh(subscription)
    logger.info(
        "Subscription %s %s for user %s (plan=%s status=%s)",
        subscription_id,
        action,
        user_id,
        plan,
        status,
    )
    return subscription


def find_user_for_identity(db: Session, clerk_id: str, email: str) -> tuple[UserMatch, User | None]:
    """Look up by clerk id, then by email."""
    user = get_user(db, clerk_id)
    if user is not None:
        return UserMatch.FOUND, user

    user = get_user_by_email(db, email)
    if user is not None:
        return UserMatch.FOUND_BY_EMAIL, user

    return UserMatch.NOT_FOUND, None


def upsert_user(db: Session, clerk_id: str, email: str, name: str) -> tuple[User, UserMatch]:
    """Reconcile an identity-provider user with the users table.

    FOUND refreshes name and email, FOUND_BY_EMAIL links the clerk id to the
    existing row, NOT_FOUND creates the row with the initial points grant.
    """
    match, user = find_user_for_identity(db, clerk_id, email)

    if match is UserMatch.FOUND:
        user.name = name
        user.email = email
    elif match is UserMatch.FOUND_BY_EMAIL:
        user.name = name
        user.clerk_id = clerk_id
    else:
        user = User(
            clerk_id=clerk_id,
            email=email,
            name=name,
            points=settings.INITIAL_POINTS,
        )
        db.add(user)

    db.commit()
    db.refresh(user)
    logger.info("User %s reconciled (%s)", clerk_id, match.value)
    return user, match


def save_history(
    db: Session,
    user_id: str,
    content: str,
    prompt: str,
    content_type: str,
) -> GeneratedContent:
    user = _require_user(db, user_id)

    item = GeneratedContent(
        user_id=user.id,
        content=content,
        prompt=prompt,
        content_type=content_type,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def list_history(db: Session, user_id: str, limit: int = 10) -> list[GeneratedContent]:
    """Most recent first; empty when the user is unknown."""
    user = get_user(db, user_id)
    if user is None:
        return []

    stmt = (
        select(GeneratedContent)
        .where(GeneratedContent.user_id == user.id)
        .order_by(GeneratedContent.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_history_item(db: Session, user_id: str, item_id: uuid.UUID) -> GeneratedContent | None:
    stmt = (
        select(GeneratedContent)
        .join(User, GeneratedContent.user_id == User.id)
        .where(User.clerk_id == user_id, GeneratedContent.id == item_id)
    )
    return db.execute(stmt).scalar_one_or_none()


def is_event_processed(db: Session, event_id: str) -> bool:
    return db.get(ProcessedWebhookEvent, event_id) is not None


def mark_event_processed(db: Session, event_id: str, provider: str, event_type: str) -> None:
    db.add(ProcessedWebhookEvent(id=event_id, provider=provider, event_type=event_type))
    db.commit()
