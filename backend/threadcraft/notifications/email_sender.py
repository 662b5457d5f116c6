import smtplib
from email.message import EmailMessage

from threadcraft.core.config import settings
from threadcraft.core.errors import EmailSendError
from threadcraft.core.logging import get_logger

logger = get_logger(__name__)

WELCOME_SUBJECT = "Welcome to ThreadCraft"


def send_email(to_email: str, subject: str, body: str) -> None:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        raise EmailSendError("SMTP is not configured")

    msg = EmailMessage()
    from_name = settings.SMTP_FROM_NAME or ""
    from_email = settings.SMTP_FROM_EMAIL

    if from_name:
        msg["From"] = f"{from_name} <{from_email}>"
    else:
        msg["From"] = from_email

    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
            server.ehlo()
            if settings.SMTP_USE_TLS:
                server.starttls()
                server.ehlo()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except Exception as e:
        raise EmailSendError(str(e)) from e


def welcome_body(name: str) -> str:
    greeting = f"Hi {name}," if name else "Hi,"
    return (
        f"{greeting}\n\n"
        f"Thanks for signing up. Your account starts with {settings.INITIAL_POINTS} points; "
        f"each generation costs {settings.POINTS_PER_GENERATION}.\n\n"
        "Head to the generator to write your first thread, caption or post.\n\n"
        "The ThreadCraft team\n"
    )


def send_welcome_email(to_email: str, name: str) -> None:
    """Best-effort welcome message; failures are logged, never raised.

    With email disabled (the default) the message is only logged.
    """
    if not settings.ENABLE_EMAIL_NOTIFICATIONS:
        logger.info("WELCOME EMAIL DISABLED (log-only): to=%s subject=%s", to_email, WELCOME_SUBJECT)
        return

    try:
        send_email(to_email=to_email, subject=WELCOME_SUBJECT, body=welcome_body(name))
        logger.info("welcome email sent to=%s", to_email)
    except EmailSendError as e:
        logger.warning("welcome email failed to=%s err=%s", to_email, e)
