"""Service layer modules."""

from matchslot.services import errors
from matchslot.services import token_service
from matchslot.services import notification_service
from matchslot.services import availability_events
from matchslot.services import booking_state_machine
from matchslot.services import offer_service
from matchslot.services import approval_service

from matchslot.services.approval_service import ApprovalCoordinator, WorkflowPolicy
from matchslot.services.booking_state_machine import BookingStateMachine, GuestDetails

__all__ = [
    "ApprovalCoordinator",
    "BookingStateMachine",
    "GuestDetails",
    "WorkflowPolicy",
    # Service modules
    "approval_service",
    "availability_events",
    "booking_state_machine",
    "errors",
    "notification_service",
    "offer_service",
    "token_service",
]
