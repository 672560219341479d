import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class EligibilityCheck(Base):
    """Append-only record of one eligibility evaluation."""

    __tablename__ = "eligibility_checks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    session_id = Column(String(100), nullable=True)
    nationality = Column(String(100), nullable=False)
    has_valid_passport = Column(Boolean, nullable=False)
    travel_purpose = Column(String(100), nullable=True)
    is_eligible = Column(Boolean, nullable=False, index=True)
    eligibility_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
