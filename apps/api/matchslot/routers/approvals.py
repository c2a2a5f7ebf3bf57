"""Approvals router - endpoints behind the approver's emailed link."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from matchslot.core.deps import booking_http_error, get_db, get_workflow_policy
from matchslot.routers.offers import offer_to_read
from matchslot.schemas.approval import (
    ApprovalContextRead,
    ApprovalRead,
    BulkDecisionRequest,
    BulkDecisionResponse,
    BulkItemRead,
    DecisionRequest,
    DecisionResponse,
    SlotRejectionRequest,
    SlotRejectionResponse,
)
from matchslot.services.approval_service import ApprovalCoordinator, WorkflowPolicy
from matchslot.services.errors import BookingError

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/{token}", response_model=ApprovalContextRead)
def get_approval(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """Offer, slots and request details for the approver page."""
    try:
        context = ApprovalCoordinator(db, policy).get_approval_context(token)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return ApprovalContextRead(
        approval=ApprovalRead.model_validate(context.approval),
        offer=offer_to_read(context.offer),
    )


@router.post("/{token}/decision", response_model=DecisionResponse)
def decide(
    token: str,
    data: DecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """
    Approve or reject.

    A token that was already decided returns already_processed=true with the
    stored decision instead of an error.
    """
    try:
        result = ApprovalCoordinator(db, policy).decide(token, data.decision, data.notes)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return DecisionResponse(
        already_processed=result.already_processed,
        approval=ApprovalRead.model_validate(result.approval),
        offer_status=result.offer.status if result.offer else None,
        slot_status=result.slot.status if result.slot else None,
    )


@router.post("/{token}/bulk-decision", response_model=BulkDecisionResponse)
def bulk_decision(
    token: str,
    data: BulkDecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """Approve or reject every pending slot request of the token's offer."""
    try:
        result = ApprovalCoordinator(db, policy).bulk_decide_for_token(
            token, data.decision, data.notes
        )
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return BulkDecisionResponse(
        offer_id=result.offer.id,
        decision=result.decision,
        offer_status=result.offer.status,
        offer_cancelled=result.offer_cancelled,
        items=[
            BulkItemRead(
                approval_id=item.approval_id,
                slot_id=item.slot_id,
                outcome=item.outcome,
                error_kind=item.error_kind,
                message=item.message,
            )
            for item in result.items
        ],
    )


@router.post("/{token}/slots/{slot_id}/reject", response_model=SlotRejectionResponse)
def reject_slot(
    token: str,
    slot_id: UUID,
    request: Request,
    data: SlotRejectionRequest | None = None,
    db: Session = Depends(get_db),
    policy: WorkflowPolicy = Depends(get_workflow_policy),
):
    """
    Take one open slot off the offer.

    Rejecting the last remaining slot cancels the offer.
    """
    notes = data.notes if data else None
    try:
        result = ApprovalCoordinator(db, policy).reject_offer_slot(token, slot_id, notes)
    except BookingError as exc:
        raise booking_http_error(exc, request) from exc
    return SlotRejectionResponse(
        slot_id=result.slot.id,
        slot_status=result.slot.status,
        offer_status=result.offer.status,
        offer_cancelled=result.offer_cancelled,
    )
