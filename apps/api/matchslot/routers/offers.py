"""Offers router - host-side endpoints for managing match offers."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from matchslot.core.deps import booking_http_error, get_db, get_workflow_policy
from matchslot.schemas.approval import ApprovalRead
from matchslot.schemas.offer import (
    MatchResultUpdate,
    OfferCreate,
    OfferListResponse,
    OfferRead,
    SlotRead,
)
from matchslot.services import offer_service, token_service
from matchslot.services.approval_service import ApprovalCoordinator, WorkflowPolicy
from matchslot.services.errors import BookingError

router = APIRouter(prefix="/offers", tags=["offers"])


def offer_to_read(offer) -> OfferRead:
    """Convert MatchOffer model to read schema."""
    return OfferRead(
        id=offer.id,
        host_name=offer.host_name,
        host_club=offer.host_club,
        host_contact=offer.host_contact,
        age_group=offer.age_group,
        format=offer.format,
        duration=offer.duration,
        location=offer.location,
        notes=offer.notes,
        approver_email=offer.approver_email,
        status=offer.status,
        share_token=offer.share_token,
        share_link=token_service.share_link(offer.share_token),
        slots=[SlotRead.model_validate(slot) for slot in offer.slots],
        created_at=offer.created_at,
        updated_at=offer.updated_at,
    )


@router.post("", response_model=OfferRead, status_code=201)
def create_offer(
    data: OfferCreate,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """
    Create a match offer with its slots.

    In offer-first mode the approver is asked to sign it off before it can
    be shared; otherwise it is open straight away.
    """
    try:
        offer = ApprovalCoordinator(db, policy).create_offer(data)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return offer_to_read(offer)


@router.get("", response_model=OfferListResponse)
def list_offers(
    host_contact: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """List a host's offers, newest first."""
    offers = offer_service.list_offers_for_host(db, host_contact)
    return OfferListResponse(items=[offer_to_read(o) for o in offers], total=len(offers))


@router.get("/{offer_id}", response_model=OfferRead)
def get_offer(offer_id: UUID, request: Request, db: Session = Depends(get_db)):
    try:
        offer = offer_service.get_offer(db, offer_id)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return offer_to_read(offer)


@router.post("/{offer_id}/cancel", response_model=OfferRead)
def cancel_offer(offer_id: UUID, request: Request, db: Session = Depends(get_db)):
    """Withdraw an offer that has not been booked."""
    try:
        offer_service.cancel_offer(db, offer_id)
        offer = offer_service.get_offer(db, offer_id)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return offer_to_read(offer)


@router.delete("/{offer_id}", status_code=204)
def delete_offer(offer_id: UUID, request: Request, db: Session = Depends(get_db)):
    """Delete an offer with its slots."""
    try:
        offer_service.delete_offer(db, offer_id)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return Response(status_code=204)


@router.post("/{offer_id}/approval-request", response_model=ApprovalRead)
def request_offer_approval(
    offer_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """Ask the approver again; returns the outstanding request if there is one."""
    try:
        approval = ApprovalCoordinator(db, policy).request_offer_approval(offer_id)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return ApprovalRead.model_validate(approval)


@router.put("/{offer_id}/slots/{slot_id}/result", response_model=SlotRead)
def save_match_result(
    offer_id: UUID,
    slot_id: UUID,
    data: MatchResultUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Record the score of a played match."""
    try:
        slot = offer_service.save_match_result(db, offer_id, slot_id, data)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return SlotRead.model_validate(slot)
