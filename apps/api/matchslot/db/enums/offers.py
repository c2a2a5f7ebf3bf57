"""Match offer and slot enums."""

from enum import Enum


class AgeGroup(str, Enum):
    """Age group a match is played in."""

    U8 = "U8"
    U10 = "U10"
    U12 = "U12"
    U14 = "U14"
    U16 = "U16"
    U18 = "U18"
    OPEN = "Open"


class MatchFormat(str, Enum):
    """Team size."""

    FIVE_V_FIVE = "5v5"
    SEVEN_V_SEVEN = "7v7"
    NINE_V_NINE = "9v9"
    ELEVEN_V_ELEVEN = "11v11"


# Allowed match durations in minutes
MATCH_DURATIONS = (60, 70, 80, 90, 100, 120)


class OfferStatus(str, Enum):
    """
    Match offer lifecycle status.

    Flow: pending_approval → open → closed
                 ↘ cancelled   ↘ cancelled
    """

    PENDING_APPROVAL = "PENDING_APPROVAL"  # Awaiting approver sign-off
    OPEN = "OPEN"  # Shareable, guests may pick a slot
    CLOSED = "CLOSED"  # A slot was booked
    CANCELLED = "CANCELLED"  # Rejected by approver or withdrawn by host


class SlotStatus(str, Enum):
    """
    Slot lifecycle status.

    Flow: open → held → pending_approval → booked
             ↘ pending_approval ↗   ↘ open (denied/expired)
             ↘ rejected (a sibling won, or the offer was cancelled)
    """

    OPEN = "OPEN"
    HELD = "HELD"  # Reserved for one guest session while details are entered
    PENDING_APPROVAL = "PENDING_APPROVAL"  # Guest request awaiting approver
    BOOKED = "BOOKED"
    REJECTED = "REJECTED"


# Slot states that still take part in the booking race
ACTIVE_SLOT_STATUSES = (SlotStatus.OPEN, SlotStatus.HELD, SlotStatus.PENDING_APPROVAL)
# Slot states that carry a guest request in flight
IN_FLIGHT_SLOT_STATUSES = (SlotStatus.HELD, SlotStatus.PENDING_APPROVAL)

TERMINAL_OFFER_STATUSES = (OfferStatus.CLOSED, OfferStatus.CANCELLED)


class WorkflowMode(str, Enum):
    """Which approval stages an offer goes through."""

    OFFER_FIRST = "offer_first"  # Offer needs sign-off before it can be shared
    SLOT_ONLY = "slot_only"  # Offer is open at once, each booking needs sign-off
