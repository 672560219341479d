import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import EncryptedString


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'eligibility_checked', 'form_completed', 'payment_pending', "
            "'payment_completed', 'ready_to_submit', 'redirected')",
            name="ck_applications_status",
        ),
        CheckConstraint("current_step BETWEEN 1 AND 8", name="ck_applications_current_step"),
        CheckConstraint("gender IN ('male', 'female', 'other')", name="ck_applications_gender"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(30), nullable=False, default="draft", index=True)

    # Eligibility
    nationality = Column(String(100), nullable=True)
    has_valid_passport = Column(Boolean, nullable=True)
    travel_purpose = Column(String(100), nullable=True)
    is_eligible = Column(Boolean, nullable=True)

    # Personal information
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    place_of_birth = Column(String(200), nullable=True)
    gender = Column(String(10), nullable=True)

    # Passport
    passport_number = Column(EncryptedString(), nullable=True)
    passport_issuing_country = Column(String(100), nullable=True)
    passport_issue_date = Column(Date, nullable=True)
    passport_expiry_date = Column(Date, nullable=True)

    # Contact
    phone_number = Column(String(30), nullable=True)
    address_line1 = Column(String(200), nullable=True)
    address_line2 = Column(String(200), nullable=True)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)

    # Travel
    destination_countries = Column(JSONB, nullable=True)
    planned_arrival_date = Column(Date, nullable=True)
    planned_departure_date = Column(Date, nullable=True)
    accommodation_address = Column(Text, nullable=True)
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)

    # Security questions
    has_criminal_record = Column(Boolean, nullable=True)
    has_visa_denied = Column(Boolean, nullable=True)
    has_deportation_history = Column(Boolean, nullable=True)

    # Progress
    current_step = Column(Integer, nullable=False, default=1)
    completed_steps = Column(JSONB, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    redirected_at = Column(DateTime(timezone=True), nullable=True)
