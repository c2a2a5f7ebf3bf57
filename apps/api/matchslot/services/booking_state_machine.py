"""Booking state machine: the only writer of offer and slot status.

Every status change is a conditional UPDATE (compare-and-swap) checked by
affected row count, so two sessions racing for the same slot or offer can
never both win. Callers stage related writes in the same Session and let the
machine commit the unit, or pass commit=False and commit themselves.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from matchslot.core.config import settings
from matchslot.core.structured_logging import build_log_context
from matchslot.db.enums import (
    ACTIVE_SLOT_STATUSES,
    IN_FLIGHT_SLOT_STATUSES,
    ApprovalStatus,
    OfferStatus,
    SlotStatus,
)
from matchslot.db.models import Approval, MatchOffer, Slot
from matchslot.services import notification_service
from matchslot.services.errors import (
    BookingError,
    InvalidTransitionError,
    NotFoundError,
    OfferNotOpenError,
    PersistenceError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)


_OFFER_TRANSITIONS: dict[OfferStatus, set[OfferStatus]] = {
    OfferStatus.PENDING_APPROVAL: {OfferStatus.OPEN, OfferStatus.CANCELLED},
    OfferStatus.OPEN: {OfferStatus.CLOSED, OfferStatus.CANCELLED},
    OfferStatus.CLOSED: set(),
    OfferStatus.CANCELLED: set(),
}

_SLOT_TRANSITIONS: dict[SlotStatus, set[SlotStatus]] = {
    # OPEN -> BOOKED is the direct-booking shortcut (claim and book in one commit)
    SlotStatus.OPEN: {
        SlotStatus.HELD,
        SlotStatus.PENDING_APPROVAL,
        SlotStatus.BOOKED,
        SlotStatus.REJECTED,
    },
    SlotStatus.HELD: {
        SlotStatus.PENDING_APPROVAL,
        SlotStatus.BOOKED,
        SlotStatus.OPEN,
        SlotStatus.REJECTED,
    },
    SlotStatus.PENDING_APPROVAL: {SlotStatus.BOOKED, SlotStatus.OPEN, SlotStatus.REJECTED},
    SlotStatus.BOOKED: set(),
    SlotStatus.REJECTED: set(),
}

BOOKED_ELSEWHERE_NOTE = "Another slot was booked"
OFFER_CANCELLED_NOTE = "Match offer was cancelled"
REQUEST_EXPIRED_NOTE = "Request expired"
ALL_SLOTS_REJECTED_NOTE = "Every slot was rejected"


def validate_offer_transition(current: str | OfferStatus, target: str | OfferStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is an allowed offer move."""
    current, target = OfferStatus(current), OfferStatus(target)
    if target not in _OFFER_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError("offer", current.value, target.value)


def validate_slot_transition(current: str | SlotStatus, target: str | SlotStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is an allowed slot move."""
    current, target = SlotStatus(current), SlotStatus(target)
    if target not in _SLOT_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError("slot", current.value, target.value)


def ensure_known_status(row, enum_cls) -> None:
    """Reject a row whose status is outside the enumeration."""
    try:
        enum_cls(row.status)
    except ValueError:
        raise PersistenceError(
            f"Malformed {type(row).__name__} row {row.id}: unknown status {row.status!r}"
        ) from None


def _values(statuses: Iterable) -> list[str]:
    return [getattr(s, "value", s) for s in statuses]


@dataclass(frozen=True)
class GuestDetails:
    """Guest coach details submitted with a slot request."""

    name: str
    club: str
    contact: str
    notes: str | None = None

    def as_slot_values(self) -> dict:
        return {
            Slot.guest_name: self.name,
            Slot.guest_club: self.club,
            Slot.guest_contact: self.contact,
            Slot.guest_notes: self.notes,
        }


@dataclass(frozen=True)
class DisplacedRequest:
    """Snapshot of an in-flight guest request taken before it was rejected."""

    slot_id: UUID
    start_time: datetime
    guest_name: str | None
    guest_contact: str | None

    @classmethod
    def from_slot(cls, slot: Slot) -> "DisplacedRequest":
        return cls(
            slot_id=slot.id,
            start_time=slot.start_time,
            guest_name=slot.guest_name,
            guest_contact=slot.guest_contact,
        )


@dataclass
class BookingOutcome:
    offer: MatchOffer
    slot: Slot
    siblings_rejected: int
    displaced: list[DisplacedRequest]


@dataclass
class ExpiryResult:
    holds_released: int = 0
    requests_expired: int = 0

    @property
    def total(self) -> int:
        return self.holds_released + self.requests_expired


_CLEARED_REQUEST_VALUES = {
    Slot.held_by_session: None,
    Slot.held_at: None,
    Slot.guest_name: None,
    Slot.guest_club: None,
    Slot.guest_contact: None,
    Slot.guest_notes: None,
}


class BookingStateMachine:
    """Offer and slot transitions against one Session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Reads (always fresh from the store)
    # -------------------------------------------------------------------------

    def get_offer(self, offer_id: UUID) -> MatchOffer:
        offer = (
            self.db.query(MatchOffer)
            .populate_existing()
            .filter(MatchOffer.id == offer_id)
            .first()
        )
        if not offer:
            raise NotFoundError("Offer", offer_id)
        ensure_known_status(offer, OfferStatus)
        return offer

    def get_slot(self, slot_id: UUID) -> Slot:
        slot = self.db.query(Slot).populate_existing().filter(Slot.id == slot_id).first()
        if not slot:
            raise NotFoundError("Slot", slot_id)
        ensure_known_status(slot, SlotStatus)
        return slot

    def _current_slot_status(self, slot_id: UUID) -> str:
        status = self.db.query(Slot.status).filter(Slot.id == slot_id).scalar()
        if status is None:
            raise NotFoundError("Slot", slot_id)
        return status

    def _current_offer_status(self, offer_id: UUID) -> str:
        status = self.db.query(MatchOffer.status).filter(MatchOffer.id == offer_id).scalar()
        if status is None:
            raise NotFoundError("Offer", offer_id)
        return status

    def _claim_refusal(self, slot_id: UUID, offer_id: UUID) -> SlotUnavailableError:
        """Why a slot claim matched no row: the slot was taken or its offer is not open."""
        slot_status = self._current_slot_status(slot_id)
        offer_status = self._current_offer_status(offer_id)
        if offer_status != OfferStatus.OPEN.value and slot_status in _values(
            (SlotStatus.OPEN, SlotStatus.HELD)
        ):
            return OfferNotOpenError(slot_id, offer_status, slot_status)
        return SlotUnavailableError(slot_id, slot_status)

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    @contextmanager
    def unit(self, commit: bool = True, **context):
        """Run one unit of work; commit at the end or roll back on failure."""
        try:
            yield
            if commit:
                self.db.commit()
        except BookingError:
            if commit:
                self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Booking transaction failed", extra=build_log_context(**context))
            raise PersistenceError(f"Booking transaction failed: {exc.__class__.__name__}") from exc

    def _slot_update(
        self,
        slot_id: UUID,
        expected: Iterable[SlotStatus],
        values: dict,
        session_id: str | None = None,
        offer_id: UUID | None = None,
        *criteria,
    ) -> int:
        """Compare-and-swap a slot. HELD only matches the holding session."""
        expected = tuple(expected)
        open_like = [s for s in expected if s != SlotStatus.HELD]
        clauses = [Slot.status.in_(_values(open_like))] if open_like else []
        if SlotStatus.HELD in expected:
            held = Slot.status == SlotStatus.HELD.value
            if session_id is not None:
                held = held & (Slot.held_by_session == session_id)
            clauses.append(held)

        query = self.db.query(Slot).filter(Slot.id == slot_id, or_(*clauses))
        if offer_id is not None:
            # The owning offer must still be taking bookings
            offer_open = (
                self.db.query(MatchOffer.id)
                .filter(MatchOffer.id == offer_id, MatchOffer.status == OfferStatus.OPEN.value)
                .exists()
            )
            query = query.filter(Slot.match_offer_id == offer_id, offer_open)
        if criteria:
            query = query.filter(*criteria)
        return query.update(values, synchronize_session=False)

    # -------------------------------------------------------------------------
    # Offer transitions
    # -------------------------------------------------------------------------

    def transition_offer(
        self,
        offer_id: UUID,
        expected: Iterable[OfferStatus],
        target: OfferStatus,
        *,
        commit: bool = True,
    ) -> MatchOffer:
        expected = tuple(expected)
        for status in expected:
            validate_offer_transition(status, target)

        with self.unit(commit, offer_id=offer_id):
            updated = (
                self.db.query(MatchOffer)
                .filter(MatchOffer.id == offer_id, MatchOffer.status.in_(_values(expected)))
                .update({MatchOffer.status: target.value}, synchronize_session=False)
            )
            if not updated:
                current = self.get_offer(offer_id)
                raise InvalidTransitionError("offer", current.status, target.value)

        logger.info(
            "Offer moved to %s", target.value, extra=build_log_context(offer_id=offer_id)
        )
        return self.get_offer(offer_id)

    def cancel_offer(
        self,
        offer_id: UUID,
        reason: str = OFFER_CANCELLED_NOTE,
        *,
        commit: bool = True,
    ) -> MatchOffer:
        """Cancel an offer, reject its live slots and resolve its pending approvals."""
        with self.unit(commit, offer_id=offer_id):
            offer = self.transition_offer(
                offer_id,
                (OfferStatus.PENDING_APPROVAL, OfferStatus.OPEN),
                OfferStatus.CANCELLED,
                commit=False,
            )
            displaced = self._in_flight_requests(offer_id)
            self.reject_slots(offer_id, commit=False)
            self._resolve_pending_approvals(offer_id, reason)
            for request in displaced:
                notification_service.notify_request_displaced(
                    self.db,
                    offer,
                    request.slot_id,
                    request.start_time,
                    request.guest_name,
                    request.guest_contact,
                    reason,
                )
        return self.get_offer(offer_id)

    def close_offer_if_exhausted(self, offer_id: UUID, *, commit: bool = True) -> bool:
        """
        Cancel a live offer whose slots have all been rejected.

        A pending offer-level approval is resolved along with it.
        """
        live_slot = aliased(Slot)
        any_slot = aliased(Slot)
        has_live = (
            self.db.query(live_slot.id)
            .filter(
                live_slot.match_offer_id == offer_id,
                live_slot.status != SlotStatus.REJECTED.value,
            )
            .exists()
        )
        has_any = self.db.query(any_slot.id).filter(any_slot.match_offer_id == offer_id).exists()
        with self.unit(commit, offer_id=offer_id):
            updated = (
                self.db.query(MatchOffer)
                .filter(
                    MatchOffer.id == offer_id,
                    MatchOffer.status.in_(
                        _values((OfferStatus.PENDING_APPROVAL, OfferStatus.OPEN))
                    ),
                    has_any,
                    ~has_live,
                )
                .update({MatchOffer.status: OfferStatus.CANCELLED.value}, synchronize_session=False)
            )
            if updated:
                self._resolve_pending_approvals(offer_id, ALL_SLOTS_REJECTED_NOTE)
        if updated:
            logger.info(
                "Offer cancelled: every slot rejected", extra=build_log_context(offer_id=offer_id)
            )
        return bool(updated)

    # -------------------------------------------------------------------------
    # Slot transitions
    # -------------------------------------------------------------------------

    def claim_slot(
        self,
        slot_id: UUID,
        target: SlotStatus,
        *,
        session_id: str | None = None,
        guest: GuestDetails | None = None,
        commit: bool = True,
    ) -> Slot:
        """
        Claim a slot for one guest: OPEN (or HELD by the same session) -> target.

        Raises SlotUnavailableError when another session got there first and
        OfferNotOpenError when the slot is free but its offer is not OPEN.
        Never retried here.
        """
        if target not in (SlotStatus.HELD, SlotStatus.PENDING_APPROVAL):
            raise InvalidTransitionError("slot", SlotStatus.OPEN.value, target.value)

        snapshot = self.get_slot(slot_id)
        offer_id = snapshot.match_offer_id
        expected = [SlotStatus.OPEN]
        if target != SlotStatus.HELD and session_id is not None:
            expected.append(SlotStatus.HELD)
        current = SlotStatus(snapshot.status)
        if current not in expected or (
            current == SlotStatus.HELD and snapshot.held_by_session != session_id
        ):
            logger.info(
                "Slot claim refused, status %s",
                current.value,
                extra=build_log_context(offer_id=offer_id, slot_id=slot_id),
            )
            raise SlotUnavailableError(slot_id, current.value)
        offer_status = self._current_offer_status(offer_id)
        if offer_status != OfferStatus.OPEN.value:
            logger.info(
                "Slot claim refused, offer %s",
                offer_status,
                extra=build_log_context(offer_id=offer_id, slot_id=slot_id),
            )
            raise OfferNotOpenError(slot_id, offer_status, current.value)

        values = {
            Slot.status: target.value,
            Slot.held_by_session: session_id,
            Slot.held_at: datetime.now(timezone.utc),
        }
        if guest is not None:
            values.update(guest.as_slot_values())

        with self.unit(commit, offer_id=offer_id, slot_id=slot_id):
            updated = self._slot_update(slot_id, expected, values, session_id, offer_id=offer_id)
            if not updated:
                refusal = self._claim_refusal(slot_id, offer_id)
                logger.info(
                    "Slot claim lost: %s",
                    refusal,
                    extra=build_log_context(offer_id=offer_id, slot_id=slot_id),
                )
                raise refusal

        return self.get_slot(slot_id)

    def release_slot(
        self,
        slot_id: UUID,
        expected: Iterable[SlotStatus] = IN_FLIGHT_SLOT_STATUSES,
        *,
        commit: bool = True,
    ) -> Slot:
        """Return a held or pending slot to OPEN and clear the guest request."""
        expected = tuple(expected)
        for status in expected:
            validate_slot_transition(status, SlotStatus.OPEN)

        with self.unit(commit, slot_id=slot_id):
            values = {Slot.status: SlotStatus.OPEN.value, **_CLEARED_REQUEST_VALUES}
            updated = (
                self.db.query(Slot)
                .filter(Slot.id == slot_id, Slot.status.in_(_values(expected)))
                .update(values, synchronize_session=False)
            )
            if not updated:
                raise SlotUnavailableError(slot_id, self._current_slot_status(slot_id))

        return self.get_slot(slot_id)

    def reject_slots(
        self,
        offer_id: UUID,
        statuses: Iterable[SlotStatus] = ACTIVE_SLOT_STATUSES,
        exclude_slot_id: UUID | None = None,
        *,
        slot_id: UUID | None = None,
        commit: bool = True,
    ) -> int:
        """Reject the slots of an offer in the given statuses with one UPDATE.

        slot_id narrows the update to that one slot.
        """
        with self.unit(commit, offer_id=offer_id):
            query = self.db.query(Slot).filter(
                Slot.match_offer_id == offer_id,
                Slot.status.in_(_values(statuses)),
            )
            if exclude_slot_id is not None:
                query = query.filter(Slot.id != exclude_slot_id)
            if slot_id is not None:
                query = query.filter(Slot.id == slot_id)
            rejected = query.update(
                {Slot.status: SlotStatus.REJECTED.value}, synchronize_session=False
            )
        return rejected

    def book_slot(
        self,
        slot_id: UUID,
        expected: Iterable[SlotStatus] = IN_FLIGHT_SLOT_STATUSES,
        *,
        session_id: str | None = None,
        guest: GuestDetails | None = None,
        commit: bool = True,
    ) -> BookingOutcome:
        """
        Book a slot and cascade to its offer in one unit of work.

        Winner -> BOOKED, live siblings -> REJECTED, offer OPEN -> CLOSED,
        sibling approvals resolved, host/guest notified. Any failed step
        rolls the whole unit back.
        """
        expected = tuple(expected)
        for status in expected:
            validate_slot_transition(status, SlotStatus.BOOKED)

        offer_id = self.get_slot(slot_id).match_offer_id
        context = {"offer_id": offer_id, "slot_id": slot_id}

        with self.unit(commit, **context):
            displaced = self._in_flight_requests(offer_id, exclude_slot_id=slot_id)

            booked_sibling = aliased(Slot)
            none_booked = ~(
                self.db.query(booked_sibling.id)
                .filter(
                    booked_sibling.match_offer_id == offer_id,
                    booked_sibling.status == SlotStatus.BOOKED.value,
                )
                .exists()
            )
            values = {Slot.status: SlotStatus.BOOKED.value}
            if guest is not None:
                values.update(guest.as_slot_values())
            try:
                updated = self._slot_update(
                    slot_id, expected, values, session_id, offer_id, none_booked
                )
            except IntegrityError:
                logger.info("Slot booking lost to a sibling", extra=build_log_context(**context))
                raise SlotUnavailableError(slot_id, SlotStatus.BOOKED.value) from None
            if not updated:
                refusal = self._claim_refusal(slot_id, offer_id)
                logger.info("Slot booking refused: %s", refusal, extra=build_log_context(**context))
                raise refusal

            rejected = self.reject_slots(offer_id, exclude_slot_id=slot_id, commit=False)
            self.transition_offer(offer_id, (OfferStatus.OPEN,), OfferStatus.CLOSED, commit=False)
            self._resolve_pending_approvals(offer_id, BOOKED_ELSEWHERE_NOTE, exclude_slot_id=slot_id)

            offer = self.get_offer(offer_id)
            winner = self.get_slot(slot_id)
            notification_service.notify_booking_confirmed(self.db, offer, winner)
            for request in displaced:
                notification_service.notify_request_displaced(
                    self.db,
                    offer,
                    request.slot_id,
                    request.start_time,
                    request.guest_name,
                    request.guest_contact,
                    BOOKED_ELSEWHERE_NOTE,
                )

        logger.info(
            "Slot booked, %d sibling slots rejected", rejected, extra=build_log_context(**context)
        )
        return BookingOutcome(
            offer=self.get_offer(offer_id),
            slot=self.get_slot(slot_id),
            siblings_rejected=rejected,
            displaced=displaced,
        )

    # -------------------------------------------------------------------------
    # Expiry sweep
    # -------------------------------------------------------------------------

    def expire_stale_holds(
        self,
        now: datetime | None = None,
        *,
        hold_minutes: int | None = None,
        pending_minutes: int | None = None,
    ) -> ExpiryResult:
        """
        Release holds older than the hold timeout and, when enabled, expire
        pending guest requests older than the pending timeout.
        """
        now = now or datetime.now(timezone.utc)
        hold_minutes = settings.SLOT_HOLD_TIMEOUT_MINUTES if hold_minutes is None else hold_minutes
        pending_minutes = (
            settings.PENDING_APPROVAL_TIMEOUT_MINUTES if pending_minutes is None else pending_minutes
        )
        result = ExpiryResult()

        with self.unit(True):
            hold_cutoff = now - timedelta(minutes=hold_minutes)
            result.holds_released = (
                self.db.query(Slot)
                .filter(
                    Slot.status == SlotStatus.HELD.value,
                    Slot.held_at.isnot(None),
                    Slot.held_at < hold_cutoff,
                )
                .update(
                    {Slot.status: SlotStatus.OPEN.value, **_CLEARED_REQUEST_VALUES},
                    synchronize_session=False,
                )
            )

            if pending_minutes > 0:
                pending_cutoff = now - timedelta(minutes=pending_minutes)
                stale = (
                    self.db.query(Slot)
                    .filter(
                        Slot.status == SlotStatus.PENDING_APPROVAL.value,
                        Slot.held_at.isnot(None),
                        Slot.held_at < pending_cutoff,
                    )
                    .all()
                )
                for slot in stale:
                    request = DisplacedRequest.from_slot(slot)
                    updated = (
                        self.db.query(Slot)
                        .filter(
                            Slot.id == slot.id,
                            Slot.status == SlotStatus.PENDING_APPROVAL.value,
                        )
                        .update(
                            {Slot.status: SlotStatus.OPEN.value, **_CLEARED_REQUEST_VALUES},
                            synchronize_session=False,
                        )
                    )
                    if not updated:
                        continue
                    self._resolve_pending_approvals(
                        slot.match_offer_id, REQUEST_EXPIRED_NOTE, slot_id=slot.id
                    )
                    notification_service.notify_booking_rejected(
                        self.db,
                        slot.offer,
                        request.slot_id,
                        request.start_time,
                        request.guest_name,
                        request.guest_contact,
                        REQUEST_EXPIRED_NOTE,
                    )
                    result.requests_expired += 1

        if result.total:
            logger.info(
                "Expired %d holds and %d pending requests",
                result.holds_released,
                result.requests_expired,
            )
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _in_flight_requests(
        self, offer_id: UUID, exclude_slot_id: UUID | None = None
    ) -> list[DisplacedRequest]:
        query = self.db.query(Slot).filter(
            Slot.match_offer_id == offer_id,
            Slot.status.in_(_values(IN_FLIGHT_SLOT_STATUSES)),
        )
        if exclude_slot_id is not None:
            query = query.filter(Slot.id != exclude_slot_id)
        return [DisplacedRequest.from_slot(slot) for slot in query.all()]

    def _resolve_pending_approvals(
        self,
        offer_id: UUID,
        note: str,
        *,
        slot_id: UUID | None = None,
        exclude_slot_id: UUID | None = None,
    ) -> int:
        query = self.db.query(Approval).filter(
            Approval.match_offer_id == offer_id,
            Approval.status == ApprovalStatus.PENDING.value,
        )
        if slot_id is not None:
            query = query.filter(Approval.slot_id == slot_id)
        if exclude_slot_id is not None:
            query = query.filter(
                (Approval.slot_id.is_(None)) | (Approval.slot_id != exclude_slot_id)
            )
        return query.update(
            {
                Approval.status: ApprovalStatus.REJECTED.value,
                Approval.decision_at: datetime.now(timezone.utc),
                Approval.decision_notes: note,
            },
            synchronize_session=False,
        )
