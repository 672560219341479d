import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            "type IN ('application_started', 'eligibility_confirmed', 'payment_received', "
            "'payment_failed', 'application_ready', 'reminder_incomplete', 'admin_alert')",
            name="ck_notifications_type",
        ),
        CheckConstraint("channel IN ('email', 'system')", name="ck_notifications_channel"),
        CheckConstraint("status IN ('pending', 'sent', 'failed')", name="ck_notifications_status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    application_id = Column(
        UUID(as_uuid=True), ForeignKey("applications.id", ondelete="SET NULL"), nullable=True
    )
    type = Column(String(40), nullable=False)
    channel = Column(String(10), nullable=False, default="email")
    recipient_email = Column(String(320), nullable=True)
    subject = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)
    status = Column(String(10), nullable=False, default="pending", index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
