from app.models.analytics_event import AnalyticsEvent
from app.models.application import Application
from app.models.audit_log import AuditLog
from app.models.eligibility_check import EligibilityCheck
from app.models.notification import Notification
from app.models.payment import Payment
from app.models.user import User

__all__ = [
    "AnalyticsEvent",
    "Application",
    "AuditLog",
    "EligibilityCheck",
    "Notification",
    "Payment",
    "User",
]
