from __future__ import annotations

from pydantic import BaseModel, Field


class EligibilityCheckRequest(BaseModel):
    nationality: str = Field(min_length=1, max_length=100)
    has_valid_passport: bool
    travel_purpose: str | None = Field(default=None, max_length=100)
    session_id: str | None = Field(default=None, max_length=100)


class EligibilityCheckResponse(BaseModel):
    is_eligible: bool
    reason: str
    requires_visa: bool
    next_steps: str


class TravelPurposeOption(BaseModel):
    value: str
    label: str


class EligibilityReferenceData(BaseModel):
    eligible_countries: list[str]
    schengen_countries: list[str]
    travel_purposes: list[TravelPurposeOption]
