"""Booking workflow errors.

Every failure a caller can see maps to one of these kinds. An approval
token that was already resolved is not an error: decisions return a
DecisionResult with already_processed=True instead.
"""


class BookingError(Exception):
    """Base exception for booking workflow errors."""

    pass


class NotFoundError(BookingError):
    """Token, offer or slot id does not resolve."""

    def __init__(self, entity: str, key: object):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class SlotUnavailableError(BookingError):
    """The compare-and-swap claim found the slot no longer open."""

    def __init__(self, slot_id: object, current_status: str | None = None):
        message = f"Slot {slot_id} is no longer available"
        if current_status:
            message = f"{message} (status: {current_status})"
        super().__init__(message)
        self.slot_id = slot_id
        self.current_status = current_status


class OfferNotOpenError(SlotUnavailableError):
    """The slot itself is free but its offer is not taking bookings."""

    def __init__(self, slot_id: object, offer_status: str, current_status: str | None = None):
        BookingError.__init__(
            self, f"Slot {slot_id} belongs to an offer that is not open (status: {offer_status})"
        )
        self.slot_id = slot_id
        self.current_status = current_status
        self.offer_status = offer_status


class ValidationError(BookingError):
    """Input rejected before any write. `field` names the offending input."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(ValidationError):
    """Raised when an invalid offer or slot state transition is requested."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Invalid {entity} state transition: {current} -> {target}", field="status")
        self.entity = entity
        self.current = current
        self.target = target


class PersistenceError(BookingError):
    """Store unreachable, write rejected, or a malformed row was read."""

    pass


class TokenIssuanceError(PersistenceError):
    """Could not produce a collision-free token."""

    pass
