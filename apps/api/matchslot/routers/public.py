"""Public router - share-link endpoints used by guest coaches.

Unauthenticated: the share token is the only thing a guest needs.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from matchslot.core.deps import booking_http_error, get_db, get_workflow_policy
from matchslot.core.rate_limit import BOOKING_LIMIT, limiter
from matchslot.schemas.approval import HoldRequest, SlotRequest, SlotRequestResponse
from matchslot.schemas.offer import PublicOfferRead, PublicSlotRead
from matchslot.services import offer_service
from matchslot.services.approval_service import ApprovalCoordinator, WorkflowPolicy
from matchslot.services.booking_state_machine import GuestDetails
from matchslot.services.errors import BookingError

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/offers/{share_token}", response_model=PublicOfferRead)
def get_public_offer(share_token: str, request: Request, db: Session = Depends(get_db)):
    """Offer and slot availability behind a share link."""
    try:
        offer = offer_service.get_offer_by_share_token(db, share_token)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return PublicOfferRead.model_validate(offer)


@router.post("/slots/{slot_id}/hold", response_model=PublicSlotRead)
@limiter.limit(BOOKING_LIMIT)
def hold_slot(
    slot_id: UUID,
    data: HoldRequest,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """Reserve a slot while the guest fills in their details."""
    try:
        slot = ApprovalCoordinator(db, policy).hold_slot(slot_id, data.session_id)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return PublicSlotRead.model_validate(slot)


@router.post("/slots/{slot_id}/book", response_model=SlotRequestResponse)
@limiter.limit(BOOKING_LIMIT)
def book_slot(
    slot_id: UUID,
    data: SlotRequest,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """
    Ask for a slot.

    Waits for the approver when slot approval is required, otherwise the
    match is booked immediately. 409 when another guest got the slot first
    or the offer is not open for booking.
    """
    guest = GuestDetails(
        name=data.guest_name,
        club=data.guest_club,
        contact=data.guest_contact,
        notes=data.guest_notes,
    )
    try:
        result = ApprovalCoordinator(db, policy).request_slot_approval(
            slot_id, guest, session_id=data.session_id
        )
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return SlotRequestResponse(
        slot_id=result.slot.id,
        slot_status=result.slot.status,
        offer_status=result.offer.status,
        requires_approval=result.requires_approval,
    )
