from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.schemas.common import NotificationStatus, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT_NAME = "Valued Customer"
_SIGNATURE = "Best regards,\nThe ETIAS Assist Team"


@dataclass(frozen=True, slots=True)
class NotificationTemplate:
    subject: str
    content: str


def application_started_template(user_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        subject="Your ETIAS Application Has Been Started",
        content=(
            f"Dear {user_name},\n\n"
            "Thank you for starting your ETIAS application with us. We're here to help you prepare "
            "all the necessary information before submitting to the official EU website.\n\n"
            "Next steps:\n"
            "1. Complete the eligibility check\n"
            "2. Fill in your personal and travel details\n"
            "3. Review and validate your information\n"
            "4. Complete payment for our assistance service\n"
            "5. Submit your application on the official EU ETIAS website\n\n"
            f"{_SIGNATURE}"
        ),
    )


def payment_received_template(user_name: str, application_id: UUID | str) -> NotificationTemplate:
    return NotificationTemplate(
        subject="Payment Confirmed - Your ETIAS Application is Ready",
        content=(
            f"Dear {user_name},\n\n"
            f"Great news! Your payment has been confirmed and your ETIAS application "
            f"(ID: {application_id}) is now ready to submit.\n\n"
            "What happens next:\n"
            '1. Click the "Submit to Official EU Website" button in your dashboard\n'
            "2. You'll be redirected to the official EU ETIAS portal\n"
            "3. Your prepared information will help you complete the official form quickly\n"
            "4. Pay the official EU ETIAS fee (€7)\n"
            "5. Receive your authorization via email\n\n"
            "Remember: We've prepared your application, but you must submit it yourself on the "
            "official EU website.\n\n"
            f"{_SIGNATURE}"
        ),
    )


def payment_failed_template(user_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        subject="Payment Failed - Action Required",
        content=(
            f"Dear {user_name},\n\n"
            "Your payment could not be processed. Please try again or use a different payment "
            "method.\n\n"
            f"{_SIGNATURE}"
        ),
    )


class NotificationSender(Protocol):
    async def send(self, notification: Notification) -> None: ...


class LoggingNotificationSender:
    """Default transport: emits the message on the application log.

    Email delivery is owned by an external collaborator that consumes the
    stored notification rows.
    """

    async def send(self, notification: Notification) -> None:
        logger.info(
            "[ETIAS] %s -> %s",
            notification.subject,
            notification.recipient_email or "no recipient",
            extra={"event": f"notification.{notification.type}"},
        )


_sender: NotificationSender = LoggingNotificationSender()


def get_sender() -> NotificationSender:
    return _sender


def set_sender(sender: NotificationSender) -> None:
    global _sender
    _sender = sender


async def dispatch(
    db: AsyncSession,
    *,
    notification_type: NotificationType,
    template: NotificationTemplate,
    user_id: UUID | None = None,
    application_id: UUID | None = None,
    recipient_email: str | None = None,
) -> Notification:
    """Store a notification and hand it to the sender.

    Sender failures mark the row ``failed`` and never propagate to the caller.
    """
    notification = Notification(
        user_id=user_id,
        application_id=application_id,
        type=notification_type.value,
        channel="email",
        recipient_email=recipient_email,
        subject=template.subject,
        content=template.content,
        status=NotificationStatus.PENDING.value,
    )
    db.add(notification)
    try:
        await get_sender().send(notification)
    except Exception:
        logger.exception("Failed to send %s notification", notification_type.value)
        notification.status = NotificationStatus.FAILED.value
    else:
        notification.status = NotificationStatus.SENT.value
        notification.sent_at = datetime.now(timezone.utc)
    return notification


async def send_application_started(db: AsyncSession, *, user, application_id: UUID) -> Notification:
    return await dispatch(
        db,
        notification_type=NotificationType.APPLICATION_STARTED,
        template=application_started_template(_display_name(user)),
        user_id=getattr(user, "id", None),
        application_id=application_id,
        recipient_email=getattr(user, "email", None),
    )


async def send_payment_received(db: AsyncSession, *, user, application_id: UUID) -> Notification:
    return await dispatch(
        db,
        notification_type=NotificationType.PAYMENT_RECEIVED,
        template=payment_received_template(_display_name(user), application_id),
        user_id=getattr(user, "id", None),
        application_id=application_id,
        recipient_email=getattr(user, "email", None),
    )


async def send_payment_failed(db: AsyncSession, *, user, application_id: UUID) -> Notification:
    return await dispatch(
        db,
        notification_type=NotificationType.PAYMENT_FAILED,
        template=payment_failed_template(_display_name(user)),
        user_id=getattr(user, "id", None),
        application_id=application_id,
        recipient_email=getattr(user, "email", None),
    )


def _display_name(user) -> str:
    return (getattr(user, "name", None) or "").strip() or DEFAULT_RECIPIENT_NAME
