"""Pydantic schemas for API request/response models."""

from matchslot.schemas.offer import (
    MatchResultUpdate,
    OfferCreate,
    OfferListResponse,
    OfferRead,
    PublicOfferRead,
    PublicSlotRead,
    SlotCreate,
    SlotRead,
)
from matchslot.schemas.approval import (
    ApprovalContextRead,
    ApprovalRead,
    BulkDecisionRequest,
    BulkDecisionResponse,
    BulkItemRead,
    DecisionRequest,
    DecisionResponse,
    HoldRequest,
    SlotRejectionRequest,
    SlotRejectionResponse,
    SlotRequest,
    SlotRequestResponse,
)
from matchslot.schemas.notification import NotificationRead

__all__ = [
    "ApprovalContextRead",
    "ApprovalRead",
    "BulkDecisionRequest",
    "BulkDecisionResponse",
    "BulkItemRead",
    "DecisionRequest",
    "DecisionResponse",
    "HoldRequest",
    "MatchResultUpdate",
    "NotificationRead",
    "OfferCreate",
    "OfferListResponse",
    "OfferRead",
    "PublicOfferRead",
    "PublicSlotRead",
    "SlotCreate",
    "SlotRejectionRequest",
    "SlotRejectionResponse",
    "SlotRead",
    "SlotRequest",
    "SlotRequestResponse",
]
