"""Approval and guest request schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from matchslot.db.enums import ApprovalDecision
from matchslot.schemas.offer import OfferRead


# =============================================================================
# Guest side
# =============================================================================

class HoldRequest(BaseModel):
    """Schema for reserving a slot while the guest fills in details."""
    session_id: str = Field(..., min_length=1, max_length=128)


class SlotRequest(BaseModel):
    """Schema for a guest asking for a slot."""
    guest_name: str = Field(..., max_length=255)
    guest_club: str = Field(..., max_length=255)
    guest_contact: str = Field(..., max_length=255)
    guest_notes: str | None = None
    session_id: str | None = Field(None, max_length=128, description="Set when the slot was held first")


class SlotRequestResponse(BaseModel):
    """Schema for the outcome of a guest slot request."""
    slot_id: UUID
    slot_status: str
    offer_status: str
    requires_approval: bool


# =============================================================================
# Approver side
# =============================================================================

class DecisionRequest(BaseModel):
    """Schema for approving or rejecting via an approval link."""
    decision: ApprovalDecision
    notes: str | None = None


class ApprovalRead(BaseModel):
    """Schema for reading an approval."""
    id: UUID
    match_offer_id: UUID
    slot_id: UUID | None
    approver_email: str
    status: str
    decision_at: datetime | None
    decision_notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApprovalContextRead(BaseModel):
    """Everything the approver page needs."""
    approval: ApprovalRead
    offer: OfferRead


class DecisionResponse(BaseModel):
    """Schema for the outcome of a decision."""
    already_processed: bool
    approval: ApprovalRead
    offer_status: str | None = None
    slot_status: str | None = None


class BulkDecisionRequest(BaseModel):
    """Schema for approving or rejecting every pending slot request of an offer."""
    decision: ApprovalDecision
    notes: str | None = None


class BulkItemRead(BaseModel):
    approval_id: UUID
    slot_id: UUID | None
    outcome: Literal["applied", "already_processed", "failed"]
    error_kind: str | None = None
    message: str | None = None


class BulkDecisionResponse(BaseModel):
    offer_id: UUID
    decision: ApprovalDecision
    offer_status: str
    offer_cancelled: bool
    items: list[BulkItemRead]


class SlotRejectionRequest(BaseModel):
    """Approver taking one candidate slot off an offer."""
    notes: str | None = None


class SlotRejectionResponse(BaseModel):
    slot_id: UUID
    slot_status: str
    offer_status: str
    offer_cancelled: bool
