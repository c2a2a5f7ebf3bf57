"""Enum definitions for application constants."""

from matchslot.db.enums.approvals import ApprovalDecision, ApprovalStatus
from matchslot.db.enums.notifications import NotificationType, RecipientType
from matchslot.db.enums.offers import (
    ACTIVE_SLOT_STATUSES,
    IN_FLIGHT_SLOT_STATUSES,
    MATCH_DURATIONS,
    TERMINAL_OFFER_STATUSES,
    AgeGroup,
    MatchFormat,
    OfferStatus,
    SlotStatus,
    WorkflowMode,
)

__all__ = [
    "ACTIVE_SLOT_STATUSES",
    "IN_FLIGHT_SLOT_STATUSES",
    "MATCH_DURATIONS",
    "TERMINAL_OFFER_STATUSES",
    "AgeGroup",
    "ApprovalDecision",
    "ApprovalStatus",
    "MatchFormat",
    "NotificationType",
    "OfferStatus",
    "RecipientType",
    "SlotStatus",
    "WorkflowMode",
]
