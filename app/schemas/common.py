from __future__ import annotations

from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    ELIGIBILITY_CHECKED = "eligibility_checked"
    FORM_COMPLETED = "form_completed"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_COMPLETED = "payment_completed"
    READY_TO_SUBMIT = "ready_to_submit"
    REDIRECTED = "redirected"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self) + 1

    @classmethod
    def parse(cls, value: "str | ApplicationStatus") -> "ApplicationStatus":
        if isinstance(value, ApplicationStatus):
            return value
        return cls(str(value).strip().lower())


_STATUS_ORDER = [
    ApplicationStatus.DRAFT,
    ApplicationStatus.ELIGIBILITY_CHECKED,
    ApplicationStatus.FORM_COMPLETED,
    ApplicationStatus.PAYMENT_PENDING,
    ApplicationStatus.PAYMENT_COMPLETED,
    ApplicationStatus.READY_TO_SUBMIT,
    ApplicationStatus.REDIRECTED,
]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED, PaymentStatus.CANCELLED}
)


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class NotificationType(str, Enum):
    APPLICATION_STARTED = "application_started"
    ELIGIBILITY_CONFIRMED = "eligibility_confirmed"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    APPLICATION_READY = "application_ready"
    REMINDER_INCOMPLETE = "reminder_incomplete"
    ADMIN_ALERT = "admin_alert"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
