"""Match offer schemas - Pydantic models for the offers API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from matchslot.db.enums import AgeGroup, MatchFormat


# =============================================================================
# Create
# =============================================================================

class SlotCreate(BaseModel):
    """Schema for one candidate time window."""
    start_time: datetime
    end_time: datetime


class OfferCreate(BaseModel):
    """Schema for creating a match offer with its slots."""
    host_name: str = Field(..., max_length=255)
    host_club: str | None = Field(None, max_length=255)
    host_contact: str | None = Field(None, max_length=255)

    age_group: AgeGroup
    format: MatchFormat
    duration: int = Field(..., description="Match length in minutes")
    location: str = Field(..., max_length=500)
    notes: str | None = None

    approver_email: EmailStr
    slots: list[SlotCreate]


class MatchResultUpdate(BaseModel):
    """Schema for recording the score of a played match."""
    home_score: int = Field(..., ge=0, le=99)
    away_score: int = Field(..., ge=0, le=99)
    result_notes: str | None = None


# =============================================================================
# Read
# =============================================================================

class SlotRead(BaseModel):
    """Schema for a slot as the host sees it."""
    id: UUID
    start_time: datetime
    end_time: datetime
    status: str
    held_at: datetime | None
    guest_name: str | None
    guest_club: str | None
    guest_contact: str | None
    guest_notes: str | None
    home_score: int | None
    away_score: int | None
    result_notes: str | None
    result_saved_at: datetime | None

    model_config = {"from_attributes": True}


class OfferRead(BaseModel):
    """Schema for reading a match offer."""
    id: UUID
    host_name: str
    host_club: str | None
    host_contact: str | None
    age_group: str
    format: str
    duration: int
    location: str
    notes: str | None
    approver_email: str
    status: str
    share_token: str
    share_link: str
    slots: list[SlotRead]
    created_at: datetime
    updated_at: datetime


class OfferListResponse(BaseModel):
    """Schema for the host's offer list."""
    items: list[OfferRead]
    total: int


# =============================================================================
# Public (share link)
# =============================================================================

class PublicSlotRead(BaseModel):
    """Slot as a guest sees it: no other guest's details."""
    id: UUID
    start_time: datetime
    end_time: datetime
    status: str

    model_config = {"from_attributes": True}


class PublicOfferRead(BaseModel):
    """Schema for the public offer page opened from a share link."""
    host_name: str
    host_club: str | None
    age_group: str
    format: str
    duration: int
    location: str
    notes: str | None
    status: str
    slots: list[PublicSlotRead]

    model_config = {"from_attributes": True}
