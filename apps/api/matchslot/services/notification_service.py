"""
Notification Service - outbox of messages that need external delivery.

enqueue() only adds a row to the caller's session; it never commits, so
a notification exists if and only if the transition that caused it
committed. Delivery is done by an external worker reading list_pending().
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from matchslot.db.enums import NotificationType, RecipientType
from matchslot.db.models import Approval, MatchOffer, Notification, Slot
from matchslot.services import token_service

logger = logging.getLogger(__name__)


# =============================================================================
# Outbox
# =============================================================================


def enqueue(
    db: Session,
    recipient_email: str | None,
    recipient_type: RecipientType,
    kind: NotificationType,
    subject: str,
    body: str,
    match_offer_id: UUID | None,
    slot_id: UUID | None = None,
) -> Notification:
    """Record an outbound message in the caller's transaction."""
    notification = Notification(
        recipient_email=recipient_email,
        recipient_type=recipient_type.value,
        notification_type=kind.value,
        match_offer_id=match_offer_id,
        slot_id=slot_id,
        subject=subject,
        message=body,
        sent=False,
    )
    db.add(notification)
    return notification


def list_pending(db: Session, limit: int = 100) -> list[Notification]:
    """Unsent notifications, oldest first."""
    return (
        db.query(Notification)
        .filter(Notification.sent.is_(False))
        .order_by(Notification.created_at, Notification.id)
        .limit(limit)
        .all()
    )


def list_for_offer(db: Session, offer_id: UUID) -> list[Notification]:
    """All notifications recorded for an offer."""
    return (
        db.query(Notification)
        .filter(Notification.match_offer_id == offer_id)
        .order_by(Notification.created_at, Notification.id)
        .all()
    )


def mark_sent(db: Session, notification_id: UUID) -> bool:
    """Mark a notification as delivered. Returns False if it was already sent."""
    updated = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.sent.is_(False))
        .update(
            {Notification.sent: True, Notification.sent_at: datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    db.commit()
    return bool(updated)


# =============================================================================
# Message builders (called by the booking workflow)
# =============================================================================


def format_slot_time(value: datetime) -> str:
    """Human readable slot time, e.g. 'Sat 12 Oct, 10:00'."""
    return value.strftime("%a %d %b, %H:%M")


def _match_label(offer: MatchOffer) -> str:
    return f"{offer.age_group} {offer.format}"


def _host_label(offer: MatchOffer) -> str:
    if offer.host_club:
        return f"{offer.host_name} ({offer.host_club})"
    return offer.host_name


def _notify_host(
    db: Session,
    offer: MatchOffer,
    kind: NotificationType,
    subject: str,
    body: str,
    slot_id: UUID | None = None,
) -> Notification | None:
    if not offer.host_contact:
        logger.debug("Offer %s has no host contact, skipping %s", offer.id, kind.value)
        return None
    return enqueue(
        db,
        recipient_email=offer.host_contact,
        recipient_type=RecipientType.HOST,
        kind=kind,
        subject=subject,
        body=body,
        match_offer_id=offer.id,
        slot_id=slot_id,
    )


def notify_offer_approval_requested(
    db: Session,
    offer: MatchOffer,
    approval: Approval,
    slots: list[Slot],
) -> Notification:
    """Ask the approver to sign off a new offer."""
    slot_lines = "\n".join(f"- {format_slot_time(s.start_time)}" for s in slots)
    body = (
        f"Hello,\n\n{_host_label(offer)} has created a match offer that requires your "
        f"approval before it can be shared with other coaches.\n\n"
        f"Match Details:\n"
        f"- Age Group: {offer.age_group}\n"
        f"- Format: {offer.format}\n"
        f"- Duration: {offer.duration} minutes\n"
        f"- Location: {offer.location}\n\n"
        f"Available Time Slots:\n{slot_lines}\n\n"
        f"Please review and approve this offer:\n"
        f"{token_service.approval_link(approval.approval_token)}\n"
    )
    return enqueue(
        db,
        recipient_email=offer.approver_email,
        recipient_type=RecipientType.APPROVER,
        kind=NotificationType.OFFER_APPROVAL_REQUEST,
        subject=f"Match Offer Approval Required - {_match_label(offer)}",
        body=body,
        match_offer_id=offer.id,
    )


def notify_offer_decided(
    db: Session,
    offer: MatchOffer,
    approved: bool,
    notes: str | None = None,
) -> Notification | None:
    """Tell the host whether their offer was approved."""
    if approved:
        body = (
            f"Your {_match_label(offer)} match offer has been approved and is ready to share:\n"
            f"{token_service.share_link(offer.share_token)}"
        )
        if notes:
            body = f"{body}\n\nApprover notes: {notes}"
        return _notify_host(
            db, offer, NotificationType.APPROVED, "Match Offer Approved", body
        )
    body = f"Your {_match_label(offer)} match offer was not approved.\n\nReason: {notes}"
    return _notify_host(db, offer, NotificationType.REJECTED, "Match Offer Rejected", body)


def notify_slot_rejected(
    db: Session,
    offer: MatchOffer,
    slot: Slot,
    notes: str | None = None,
    offer_cancelled: bool = False,
) -> Notification | None:
    """Tell the host the approver took one of their slots off the offer."""
    body = f"The slot on {format_slot_time(slot.start_time)} has been rejected."
    if notes:
        body = f"{body}\n\nReason: {notes}"
    if offer_cancelled:
        body = f"{body}\n\nNo slots remain, so your {_match_label(offer)} match offer has been cancelled."
    return _notify_host(
        db, offer, NotificationType.REJECTED, "Slot Rejected", body, slot_id=slot.id
    )


def notify_slot_selected(db: Session, offer: MatchOffer, slot: Slot) -> Notification | None:
    """Tell the host a guest asked for a slot."""
    body = (
        f"{slot.guest_club or slot.guest_name} has requested your match slot on "
        f"{format_slot_time(slot.start_time)}. The request is awaiting approval."
    )
    return _notify_host(
        db, offer, NotificationType.SLOT_SELECTED, "Slot Requested", body, slot_id=slot.id
    )


def notify_slot_approval_requested(
    db: Session,
    offer: MatchOffer,
    slot: Slot,
    approval: Approval,
) -> Notification:
    """Ask the approver to sign off a guest booking."""
    body = (
        f"Hello,\n\n{slot.guest_name} ({slot.guest_club}) would like to book the "
        f"{_match_label(offer)} match hosted by {_host_label(offer)}.\n\n"
        f"Date: {format_slot_time(slot.start_time)}\n"
        f"Location: {offer.location}\n\n"
        f"Please approve or reject this booking:\n"
        f"{token_service.approval_link(approval.approval_token)}\n"
    )
    return enqueue(
        db,
        recipient_email=offer.approver_email,
        recipient_type=RecipientType.APPROVER,
        kind=NotificationType.APPROVAL_REQUEST,
        subject=f"Booking Approval Required - {_match_label(offer)}",
        body=body,
        match_offer_id=offer.id,
        slot_id=slot.id,
    )


def notify_booking_confirmed(db: Session, offer: MatchOffer, slot: Slot) -> list[Notification]:
    """Tell host and guest the match is booked."""
    when = format_slot_time(slot.start_time)
    created = []
    host = _notify_host(
        db,
        offer,
        NotificationType.APPROVED,
        f"Match Booked! {slot.guest_club} - {_match_label(offer)}",
        (
            f"Hello {offer.host_name},\n\nGreat news! A match has been booked.\n\n"
            f"Opponent: {slot.guest_club}\n"
            f"Contact: {slot.guest_name} ({slot.guest_contact})\n"
            f"Date: {when}\n"
            f"Location: {offer.location}\n\n"
            f"Please contact them to confirm details."
        ),
        slot_id=slot.id,
    )
    if host is not None:
        created.append(host)
    if slot.guest_contact:
        created.append(
            enqueue(
                db,
                recipient_email=slot.guest_contact,
                recipient_type=RecipientType.GUEST,
                kind=NotificationType.APPROVED,
                subject=f"Match Confirmed - {_match_label(offer)}",
                body=(
                    f"Hello {slot.guest_name},\n\nYour match against {_host_label(offer)} "
                    f"is confirmed.\n\nDate: {when}\nLocation: {offer.location}"
                ),
                match_offer_id=offer.id,
                slot_id=slot.id,
            )
        )
    return created


def notify_booking_rejected(
    db: Session,
    offer: MatchOffer,
    slot_id: UUID,
    start_time: datetime,
    guest_name: str | None,
    guest_contact: str | None,
    notes: str | None,
) -> list[Notification]:
    """Tell guest and host a booking request was turned down."""
    when = format_slot_time(start_time)
    created = []
    if guest_contact:
        created.append(
            enqueue(
                db,
                recipient_email=guest_contact,
                recipient_type=RecipientType.GUEST,
                kind=NotificationType.REJECTED,
                subject="Booking Request Rejected",
                body=(
                    f"Hello {guest_name},\n\nYour request for the {_match_label(offer)} match on "
                    f"{when} was not approved.\n\nReason: {notes}"
                ),
                match_offer_id=offer.id,
                slot_id=slot_id,
            )
        )
    host = _notify_host(
        db,
        offer,
        NotificationType.REJECTED,
        "Slot Request Rejected",
        f"The request for your slot on {when} was rejected and the slot is open again.\n\nReason: {notes}",
        slot_id=slot_id,
    )
    if host is not None:
        created.append(host)
    return created


def notify_request_displaced(
    db: Session,
    offer: MatchOffer,
    slot_id: UUID,
    start_time: datetime,
    guest_name: str | None,
    guest_contact: str | None,
    reason: str,
) -> Notification | None:
    """Tell a guest whose request was still in flight that the offer closed."""
    if not guest_contact:
        return None
    return enqueue(
        db,
        recipient_email=guest_contact,
        recipient_type=RecipientType.GUEST,
        kind=NotificationType.OFFER_CLOSED,
        subject=f"Match Offer Closed - {_match_label(offer)}",
        body=(
            f"Hello {guest_name},\n\nThe slot you requested on {format_slot_time(start_time)} "
            f"is no longer available: {reason}"
        ),
        match_offer_id=offer.id,
        slot_id=slot_id,
    )
