"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Kinds of outbound messages recorded in the outbox."""

    SLOT_SELECTED = "SLOT_SELECTED"  # Guest picked a slot (to host)
    APPROVAL_REQUEST = "APPROVAL_REQUEST"  # Booking needs sign-off (to approver)
    OFFER_APPROVAL_REQUEST = "OFFER_APPROVAL_REQUEST"  # New offer needs sign-off
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    OFFER_CLOSED = "OFFER_CLOSED"  # Offer closed/cancelled under a pending guest


class RecipientType(str, Enum):
    """Role of the notification recipient."""

    HOST = "HOST"
    GUEST = "GUEST"
    APPROVER = "APPROVER"
