"""Offer service - host-side offer management.

Creation validation lives here; status changes are delegated to the
booking state machine.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from matchslot.core.structured_logging import build_log_context
from matchslot.db.enums import MATCH_DURATIONS, TERMINAL_OFFER_STATUSES, OfferStatus, SlotStatus
from matchslot.db.models import MatchOffer, Slot
from matchslot.schemas.offer import MatchResultUpdate, OfferCreate
from matchslot.services import token_service
from matchslot.services.booking_state_machine import BookingStateMachine
from matchslot.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

HOST_CANCELLED_NOTE = "Cancelled by host"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _required(value: str | None, field: str, label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} is required", field=field)
    return value.strip()


def validate_offer(data: OfferCreate) -> None:
    """Reject an offer that cannot be published. Nothing is written."""
    _required(data.host_name, "host_name", "Host name")
    _required(data.location, "location", "Location")
    if data.duration not in MATCH_DURATIONS:
        allowed = ", ".join(str(d) for d in MATCH_DURATIONS)
        raise ValidationError(f"Duration must be one of {allowed} minutes", field="duration")
    if not data.slots:
        raise ValidationError("At least one time slot is required", field="slots")

    expected = timedelta(minutes=data.duration)
    seen = set()
    for index, slot in enumerate(data.slots):
        start, end = _as_utc(slot.start_time), _as_utc(slot.end_time)
        if end <= start:
            raise ValidationError("Slot must end after it starts", field=f"slots[{index}].end_time")
        if end - start != expected:
            raise ValidationError(
                f"Slot length must match the {data.duration} minute duration",
                field=f"slots[{index}].end_time",
            )
        if start in seen:
            raise ValidationError("Duplicate slot start time", field=f"slots[{index}].start_time")
        seen.add(start)


def build_offer(db: Session, data: OfferCreate, status: OfferStatus) -> MatchOffer:
    """Validate and stage a new offer with its slots. Caller commits."""
    validate_offer(data)
    offer = MatchOffer(
        host_name=data.host_name.strip(),
        host_club=(data.host_club or "").strip() or None,
        host_contact=(data.host_contact or "").strip() or None,
        age_group=data.age_group,
        format=data.format,
        duration=data.duration,
        location=data.location.strip(),
        notes=data.notes,
        approver_email=str(data.approver_email),
        status=status,
        share_token=token_service.issue_share_token(db),
    )
    offer.slots = [
        Slot(
            start_time=_as_utc(slot.start_time),
            end_time=_as_utc(slot.end_time),
            status=SlotStatus.OPEN,
        )
        for slot in sorted(data.slots, key=lambda s: _as_utc(s.start_time))
    ]
    db.add(offer)
    db.flush()
    return offer


def get_offer(db: Session, offer_id: UUID) -> MatchOffer:
    """Get an offer with its slots."""
    offer = (
        db.query(MatchOffer)
        .options(selectinload(MatchOffer.slots))
        .filter(MatchOffer.id == offer_id)
        .first()
    )
    if not offer:
        raise NotFoundError("Offer", offer_id)
    return offer


def get_offer_by_share_token(db: Session, share_token: str) -> MatchOffer:
    """Resolve a share link. Only the token is needed."""
    offer = (
        db.query(MatchOffer)
        .options(selectinload(MatchOffer.slots))
        .filter(MatchOffer.share_token == share_token)
        .first()
    )
    if not offer:
        raise NotFoundError("Offer", "share token")
    return offer


def list_offers_for_host(db: Session, host_contact: str) -> list[MatchOffer]:
    """Offers a host created, newest first."""
    return (
        db.query(MatchOffer)
        .options(selectinload(MatchOffer.slots))
        .filter(MatchOffer.host_contact == host_contact)
        .order_by(MatchOffer.created_at.desc())
        .all()
    )


def cancel_offer(db: Session, offer_id: UUID, reason: str = HOST_CANCELLED_NOTE) -> MatchOffer:
    """Withdraw an offer that has not been booked yet."""
    return BookingStateMachine(db).cancel_offer(offer_id, reason)


def delete_offer(db: Session, offer_id: UUID) -> None:
    """
    Delete an offer with its slots and approvals.

    A live offer is cancelled first so guests with a request in flight are
    told. The notification outbox keeps its rows with the offer reference
    cleared.
    """
    machine = BookingStateMachine(db)
    offer = machine.get_offer(offer_id)
    with machine.unit(offer_id=offer_id):
        if OfferStatus(offer.status) not in TERMINAL_OFFER_STATUSES:
            offer = machine.cancel_offer(offer_id, HOST_CANCELLED_NOTE, commit=False)
        db.flush()
        db.delete(offer)
    logger.info("Offer deleted", extra=build_log_context(offer_id=offer_id))


def save_match_result(
    db: Session,
    offer_id: UUID,
    slot_id: UUID,
    data: MatchResultUpdate,
    now: datetime | None = None,
) -> Slot:
    """Record the score of a booked match once it has kicked off."""
    now = now or datetime.now(timezone.utc)
    slot = db.query(Slot).filter(Slot.id == slot_id, Slot.match_offer_id == offer_id).first()
    if not slot:
        raise NotFoundError("Slot", slot_id)
    if slot.status != SlotStatus.BOOKED.value:
        raise ValidationError("Results can only be saved for booked matches", field="status")
    if _as_utc(slot.start_time) > now:
        raise ValidationError("Match has not been played yet", field="start_time")

    slot.home_score = data.home_score
    slot.away_score = data.away_score
    slot.result_notes = data.result_notes
    slot.result_saved_at = now
    db.commit()
    db.refresh(slot)
    return slot
