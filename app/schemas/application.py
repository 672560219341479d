from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import ApplicationStatus, Gender


class ApplicationCreate(BaseModel):
    nationality: str = Field(min_length=1, max_length=100)
    travel_purpose: str | None = Field(default=None, max_length=100)


class ApplicationCreateResponse(BaseModel):
    id: UUID


class ApplicationUpdate(BaseModel):
    """Sparse patch; only fields present in the request body are applied."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    status: ApplicationStatus | None = None
    current_step: int | None = Field(default=None, ge=1, le=8)
    completed_steps: list[int] | None = None

    nationality: str | None = Field(default=None, max_length=100)
    has_valid_passport: bool | None = None
    travel_purpose: str | None = Field(default=None, max_length=100)
    is_eligible: bool | None = None

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    date_of_birth: date | None = None
    place_of_birth: str | None = Field(default=None, max_length=200)
    gender: Gender | None = None

    passport_number: str | None = Field(default=None, max_length=50)
    passport_issuing_country: str | None = Field(default=None, max_length=100)
    passport_issue_date: date | None = None
    passport_expiry_date: date | None = None

    phone_number: str | None = Field(default=None, max_length=30)
    address_line1: str | None = Field(default=None, max_length=200)
    address_line2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, max_length=100)

    destination_countries: list[str] | None = None
    planned_arrival_date: date | None = None
    planned_departure_date: date | None = None
    accommodation_address: str | None = None
    emergency_contact_name: str | None = Field(default=None, max_length=200)
    emergency_contact_phone: str | None = Field(default=None, max_length=30)

    has_criminal_record: bool | None = None
    has_visa_denied: bool | None = None
    has_deportation_history: bool | None = None

    @field_validator("current_step", "completed_steps", mode="before")
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @field_validator("completed_steps")
    @classmethod
    def _normalize_steps(cls, value: list[int]) -> list[int]:
        for step in value:
            if step < 1 or step > 8:
                raise ValueError("completed_steps entries must be between 1 and 8")
        return sorted(set(value))


class ApplicationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    status: ApplicationStatus
    current_step: int
    completed_steps: list[int] = Field(default_factory=list)

    nationality: str | None = None
    has_valid_passport: bool | None = None
    travel_purpose: str | None = None
    is_eligible: bool | None = None

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    place_of_birth: str | None = None
    gender: Gender | None = None

    passport_number: str | None = None
    passport_issuing_country: str | None = None
    passport_issue_date: date | None = None
    passport_expiry_date: date | None = None

    phone_number: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None

    destination_countries: list[str] | None = None
    planned_arrival_date: date | None = None
    planned_departure_date: date | None = None
    accommodation_address: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None

    has_criminal_record: bool | None = None
    has_visa_denied: bool | None = None
    has_deportation_history: bool | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    submitted_at: datetime | None = None
    redirected_at: datetime | None = None

    @field_validator("completed_steps", mode="before")
    @classmethod
    def _default_steps(cls, value):
        return value or []


class ApplicationListResponse(BaseModel):
    items: list[ApplicationDTO]
    total: int


class SuccessResponse(BaseModel):
    success: bool = True


class RedirectResponse(BaseModel):
    success: bool = True
    redirect_url: str
    redirected_at: datetime | None = None


class StepValidationResponse(BaseModel):
    step: int
    is_valid: bool
    missing_fields: list[str] = Field(default_factory=list)
