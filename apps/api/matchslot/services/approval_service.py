"""
Approval workflow coordinator.

Sequences the approver and guest steps of an offer: offer sign-off,
holding and requesting a slot, deciding slot requests one by one or in
bulk, and taking candidate slots off an offer. Status changes go through BookingStateMachine; each public method is
one unit of work that commits or rolls back as a whole.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from matchslot.core.config import settings
from matchslot.core.structured_logging import build_log_context
from matchslot.db.enums import (
    TERMINAL_OFFER_STATUSES,
    ApprovalDecision,
    ApprovalStatus,
    OfferStatus,
    SlotStatus,
    WorkflowMode,
)
from matchslot.db.models import Approval, MatchOffer, Slot
from matchslot.schemas.offer import OfferCreate
from matchslot.services import availability_events, notification_service, offer_service, token_service
from matchslot.services.booking_state_machine import (
    BookingStateMachine,
    DisplacedRequest,
    GuestDetails,
)
from matchslot.services.errors import (
    BookingError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    SlotUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Policy and results
# =============================================================================


@dataclass(frozen=True)
class WorkflowPolicy:
    """
    Which approval stages apply.

    OFFER_FIRST: offers need approver sign-off before they can be shared.
    SLOT_ONLY: offers open at once and every booking request needs sign-off.
    require_slot_approval=False books a slot as soon as a guest asks for it.
    """

    mode: WorkflowMode = WorkflowMode.OFFER_FIRST
    require_slot_approval: bool = True

    def __post_init__(self):
        object.__setattr__(self, "mode", WorkflowMode(self.mode))
        if self.mode == WorkflowMode.SLOT_ONLY and not self.require_slot_approval:
            raise ValueError("slot_only workflow requires slot approval")

    @classmethod
    def from_settings(cls) -> "WorkflowPolicy":
        return cls(
            mode=WorkflowMode(settings.WORKFLOW_MODE),
            require_slot_approval=settings.REQUIRE_SLOT_APPROVAL,
        )


@dataclass
class DecisionResult:
    """Outcome of an approval decision. already_processed means nothing changed."""

    approval: Approval
    already_processed: bool = False
    offer: MatchOffer | None = None
    slot: Slot | None = None

    @property
    def decision(self) -> ApprovalDecision | None:
        if self.approval.status == ApprovalStatus.APPROVED.value:
            return ApprovalDecision.APPROVE
        if self.approval.status == ApprovalStatus.REJECTED.value:
            return ApprovalDecision.REJECT
        return None


@dataclass
class SlotRequestResult:
    slot: Slot
    offer: MatchOffer
    approval: Approval | None = None

    @property
    def requires_approval(self) -> bool:
        return self.approval is not None


@dataclass
class BulkItemOutcome:
    approval_id: UUID
    slot_id: UUID | None
    outcome: Literal["applied", "already_processed", "failed"]
    error_kind: str | None = None
    message: str | None = None


@dataclass
class BulkDecisionResult:
    offer: MatchOffer
    decision: ApprovalDecision
    items: list[BulkItemOutcome] = field(default_factory=list)
    offer_cancelled: bool = False

    @property
    def failed(self) -> list[BulkItemOutcome]:
        return [item for item in self.items if item.outcome == "failed"]


@dataclass
class SlotRejectionResult:
    offer: MatchOffer
    slot: Slot
    offer_cancelled: bool = False


@dataclass
class ApprovalContext:
    approval: Approval
    offer: MatchOffer
    slots: list[Slot]


def _require_notes(notes: str | None) -> str:
    if notes is None or not notes.strip():
        raise ValidationError("A reason is required when rejecting", field="notes")
    return notes.strip()


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None


def validate_guest(
    guest_name: str | None,
    guest_club: str | None,
    guest_contact: str | None,
    guest_notes: str | None = None,
) -> GuestDetails:
    """Build guest details, rejecting blank required fields."""
    values = {}
    for key, value, label in (
        ("guest_name", guest_name, "Your name"),
        ("guest_club", guest_club, "Club name"),
        ("guest_contact", guest_contact, "Contact details"),
    ):
        if value is None or not value.strip():
            raise ValidationError(f"{label} is required", field=key)
        values[key] = value.strip()
    return GuestDetails(
        name=values["guest_name"],
        club=values["guest_club"],
        contact=values["guest_contact"],
        notes=_clean_notes(guest_notes),
    )


# =============================================================================
# Coordinator
# =============================================================================


class ApprovalCoordinator:
    """Approver and guest workflow over one Session."""

    def __init__(self, db: Session, policy: WorkflowPolicy | None = None):
        self.db = db
        self.policy = policy or WorkflowPolicy.from_settings()
        self.machine = BookingStateMachine(db)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get_approval(self, token: str) -> Approval:
        approval = (
            self.db.query(Approval)
            .populate_existing()
            .filter(Approval.approval_token == token)
            .first()
        )
        if not approval:
            raise NotFoundError("Approval", "token")
        return approval

    def _resolve(self, approval: Approval, decision: ApprovalDecision, notes: str | None) -> bool:
        """Resolve a pending approval. False if another decision got there first."""
        updated = (
            self.db.query(Approval)
            .filter(Approval.id == approval.id, Approval.status == ApprovalStatus.PENDING.value)
            .update(
                {
                    Approval.status: decision.resulting_status.value,
                    Approval.decision_at: datetime.now(timezone.utc),
                    Approval.decision_notes: notes,
                },
                synchronize_session=False,
            )
        )
        return bool(updated)

    def _already_processed(self, token: str) -> DecisionResult:
        approval = self._get_approval(token)
        logger.info(
            "Approval already %s",
            approval.status,
            extra=build_log_context(approval_id=approval.id, offer_id=approval.match_offer_id),
        )
        return DecisionResult(approval=approval, already_processed=True)

    def get_approval_context(self, token: str) -> ApprovalContext:
        """Approval with its offer and slots, for the approver page."""
        approval = self._get_approval(token)
        offer = offer_service.get_offer(self.db, approval.match_offer_id)
        return ApprovalContext(approval=approval, offer=offer, slots=list(offer.slots))

    # -------------------------------------------------------------------------
    # Offer stage
    # -------------------------------------------------------------------------

    def create_offer(self, data: OfferCreate) -> MatchOffer:
        """Create an offer; in offer-first mode also ask the approver to sign it off."""
        initial = (
            OfferStatus.PENDING_APPROVAL
            if self.policy.mode == WorkflowMode.OFFER_FIRST
            else OfferStatus.OPEN
        )
        with self.machine.unit():
            offer = offer_service.build_offer(self.db, data, initial)
            offer_id = offer.id
            if initial == OfferStatus.PENDING_APPROVAL:
                self._stage_offer_approval(offer)

        logger.info(
            "Offer created as %s", initial.value, extra=build_log_context(offer_id=offer_id)
        )
        return offer_service.get_offer(self.db, offer_id)

    def _stage_offer_approval(self, offer: MatchOffer) -> Approval:
        approval = Approval(
            approval_token=token_service.issue_approval_token(self.db),
            match_offer_id=offer.id,
            slot_id=None,
            approver_email=offer.approver_email,
            status=ApprovalStatus.PENDING,
        )
        self.db.add(approval)
        self.db.flush()
        notification_service.notify_offer_approval_requested(
            self.db, offer, approval, list(offer.slots)
        )
        return approval

    def _pending_offer_approval(self, offer_id: UUID) -> Approval | None:
        return (
            self.db.query(Approval)
            .filter(
                Approval.match_offer_id == offer_id,
                Approval.slot_id.is_(None),
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .first()
        )

    def request_offer_approval(self, offer_id: UUID) -> Approval:
        """Issue (or return the outstanding) offer-level approval request."""
        offer = self.machine.get_offer(offer_id)
        if offer.status != OfferStatus.PENDING_APPROVAL.value:
            raise InvalidTransitionError("offer", offer.status, OfferStatus.PENDING_APPROVAL.value)

        existing = self._pending_offer_approval(offer_id)
        if existing:
            return existing

        try:
            with self.machine.unit(offer_id=offer_id):
                approval = self._stage_offer_approval(offer)
                approval_id = approval.id
        except PersistenceError as exc:
            # Lost to a concurrent request on uq_approvals_one_pending_offer_level
            existing = self._pending_offer_approval(offer_id)
            if existing is None or not isinstance(exc.__cause__, IntegrityError):
                raise
            return existing
        return self.db.get(Approval, approval_id)

    def decide_offer_approval(
        self,
        token: str,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> DecisionResult:
        """Approve (offer opens) or reject (offer cancelled) an offer."""
        decision = ApprovalDecision(decision)
        approval = self._get_approval(token)
        if not approval.is_offer_level:
            raise ValidationError("Approval link is for a slot request", field="token")
        if approval.status != ApprovalStatus.PENDING.value:
            return self._already_processed(token)
        notes = _require_notes(notes) if decision == ApprovalDecision.REJECT else _clean_notes(notes)

        offer_id = approval.match_offer_id
        context = {"offer_id": offer_id, "approval_id": approval.id}
        with self.machine.unit(**context):
            if not self._resolve(approval, decision, notes):
                resolved = False
            else:
                resolved = True
                if decision == ApprovalDecision.APPROVE:
                    offer = self.machine.transition_offer(
                        offer_id, (OfferStatus.PENDING_APPROVAL,), OfferStatus.OPEN, commit=False
                    )
                else:
                    offer = self.machine.cancel_offer(offer_id, notes, commit=False)
                notification_service.notify_offer_decided(
                    self.db, offer, decision == ApprovalDecision.APPROVE, notes
                )
        if not resolved:
            return self._already_processed(token)

        logger.info("Offer approval decided: %s", decision.value, extra=build_log_context(**context))
        offer = self.machine.get_offer(offer_id)
        availability_events.publish_offer_update(offer)
        return DecisionResult(approval=self._get_approval(token), offer=offer)

    # -------------------------------------------------------------------------
    # Guest stage
    # -------------------------------------------------------------------------

    def hold_slot(self, slot_id: UUID, session_id: str) -> Slot:
        """Reserve an open slot for one guest session while details are entered."""
        if not session_id or not session_id.strip():
            raise ValidationError("Session id is required to hold a slot", field="session_id")
        slot = self.machine.claim_slot(slot_id, SlotStatus.HELD, session_id=session_id.strip())
        availability_events.publish_offer_update(self.machine.get_offer(slot.match_offer_id))
        return slot

    def request_slot_approval(
        self,
        slot_id: UUID,
        guest: GuestDetails,
        session_id: str | None = None,
    ) -> SlotRequestResult:
        """
        Claim a slot for a guest.

        With slot approval required the slot waits in PENDING_APPROVAL for the
        approver; otherwise it is booked straight away.
        """
        if not isinstance(guest, GuestDetails):
            raise ValidationError("Guest details are required", field="guest")
        guest = validate_guest(guest.name, guest.club, guest.contact, guest.notes)
        session_id = session_id.strip() if session_id and session_id.strip() else None

        if not self.policy.require_slot_approval:
            expected = (SlotStatus.OPEN, SlotStatus.HELD) if session_id else (SlotStatus.OPEN,)
            outcome = self.machine.book_slot(
                slot_id, expected, session_id=session_id, guest=guest
            )
            availability_events.publish_offer_update(outcome.offer)
            return SlotRequestResult(slot=outcome.slot, offer=outcome.offer)

        with self.machine.unit(slot_id=slot_id):
            slot = self.machine.claim_slot(
                slot_id,
                SlotStatus.PENDING_APPROVAL,
                session_id=session_id,
                guest=guest,
                commit=False,
            )
            offer = self.machine.get_offer(slot.match_offer_id)
            approval = Approval(
                approval_token=token_service.issue_approval_token(self.db),
                match_offer_id=offer.id,
                slot_id=slot.id,
                approver_email=offer.approver_email,
                status=ApprovalStatus.PENDING,
            )
            self.db.add(approval)
            self.db.flush()
            notification_service.notify_slot_approval_requested(self.db, offer, slot, approval)
            notification_service.notify_slot_selected(self.db, offer, slot)
            approval_id, offer_id = approval.id, offer.id

        logger.info(
            "Slot requested, awaiting approval",
            extra=build_log_context(offer_id=offer_id, slot_id=slot_id, approval_id=approval_id),
        )
        offer = self.machine.get_offer(offer_id)
        availability_events.publish_offer_update(offer)
        return SlotRequestResult(
            slot=self.machine.get_slot(slot_id),
            offer=offer,
            approval=self.db.get(Approval, approval_id),
        )

    # -------------------------------------------------------------------------
    # Slot approval stage
    # -------------------------------------------------------------------------

    def decide_slot_approval(
        self,
        token: str,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> DecisionResult:
        """Approve (book, cascade) or reject (slot reopens) a guest request."""
        decision = ApprovalDecision(decision)
        approval = self._get_approval(token)
        if approval.is_offer_level:
            raise ValidationError("Approval link is for an offer", field="token")
        if approval.status != ApprovalStatus.PENDING.value:
            return self._already_processed(token)
        notes = _require_notes(notes) if decision == ApprovalDecision.REJECT else _clean_notes(notes)

        slot_id, offer_id = approval.slot_id, approval.match_offer_id
        context = {"offer_id": offer_id, "slot_id": slot_id, "approval_id": approval.id}
        with self.machine.unit(**context):
            resolved = self._resolve(approval, decision, notes)
            if resolved and decision == ApprovalDecision.APPROVE:
                self.machine.book_slot(slot_id, (SlotStatus.PENDING_APPROVAL,), commit=False)
            elif resolved:
                request = DisplacedRequest.from_slot(self.machine.get_slot(slot_id))
                self.machine.release_slot(slot_id, (SlotStatus.PENDING_APPROVAL,), commit=False)
                notification_service.notify_booking_rejected(
                    self.db,
                    self.machine.get_offer(offer_id),
                    request.slot_id,
                    request.start_time,
                    request.guest_name,
                    request.guest_contact,
                    notes,
                )
        if not resolved:
            return self._already_processed(token)

        logger.info("Slot approval decided: %s", decision.value, extra=build_log_context(**context))
        offer = self.machine.get_offer(offer_id)
        availability_events.publish_offer_update(offer)
        return DecisionResult(
            approval=self._get_approval(token),
            offer=offer,
            slot=self.machine.get_slot(slot_id),
        )

    def decide(
        self,
        token: str,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> DecisionResult:
        """Decide any approval token, offer-level or slot-level."""
        approval = self._get_approval(token)
        if approval.is_offer_level:
            return self.decide_offer_approval(token, decision, notes)
        return self.decide_slot_approval(token, decision, notes)

    def bulk_decide_all_pending(
        self,
        offer_id: UUID,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> BulkDecisionResult:
        """
        Apply one decision to every pending slot request of an offer.

        Each request is its own unit of work; one failure does not undo the
        others. A reject that applied to every request, with nothing approved,
        cancels the offer.
        """
        decision = ApprovalDecision(decision)
        if decision == ApprovalDecision.REJECT:
            notes = _require_notes(notes)
        self.machine.get_offer(offer_id)

        pending = (
            self.db.query(Approval.id, Approval.slot_id, Approval.approval_token)
            .filter(
                Approval.match_offer_id == offer_id,
                Approval.slot_id.isnot(None),
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .order_by(Approval.created_at, Approval.id)
            .all()
        )

        result_items: list[BulkItemOutcome] = []
        for approval_id, slot_id, token in pending:
            try:
                decided = self.decide_slot_approval(token, decision, notes)
            except BookingError as exc:
                logger.warning(
                    "Bulk decision failed for one request: %s",
                    exc,
                    extra=build_log_context(
                        offer_id=offer_id, slot_id=slot_id, approval_id=approval_id
                    ),
                )
                result_items.append(
                    BulkItemOutcome(
                        approval_id=approval_id,
                        slot_id=slot_id,
                        outcome="failed",
                        error_kind=type(exc).__name__,
                        message=str(exc),
                    )
                )
                continue
            result_items.append(
                BulkItemOutcome(
                    approval_id=approval_id,
                    slot_id=slot_id,
                    outcome="already_processed" if decided.already_processed else "applied",
                )
            )

        offer_cancelled = False
        if decision == ApprovalDecision.REJECT and not any(
            item.outcome == "failed" for item in result_items
        ):
            offer_cancelled = self._cancel_if_nothing_approved(offer_id, notes)

        return BulkDecisionResult(
            offer=self.machine.get_offer(offer_id),
            decision=decision,
            items=result_items,
            offer_cancelled=offer_cancelled,
        )

    def bulk_decide_for_token(
        self,
        token: str,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> BulkDecisionResult:
        """Bulk decision from the approver page; the token fixes which offer."""
        approval = self._get_approval(token)
        return self.bulk_decide_all_pending(approval.match_offer_id, decision, notes)

    def reject_offer_slot(
        self,
        token: str,
        slot_id: UUID,
        notes: str | None = None,
    ) -> SlotRejectionResult:
        """
        Take one OPEN candidate slot off an offer from the approver page.

        Any approval token of the offer authorizes it. Rejecting the last
        slot that is not already REJECTED cancels the offer.
        """
        approval = self._get_approval(token)
        offer_id = approval.match_offer_id
        slot = self.machine.get_slot(slot_id)
        if slot.match_offer_id != offer_id:
            raise NotFoundError("Slot", slot_id)
        notes = _clean_notes(notes)

        context = {"offer_id": offer_id, "slot_id": slot_id, "approval_id": approval.id}
        with self.machine.unit(**context):
            rejected = self.machine.reject_slots(
                offer_id, (SlotStatus.OPEN,), slot_id=slot_id, commit=False
            )
            if not rejected:
                raise SlotUnavailableError(slot_id, self.machine.get_slot(slot_id).status)
            offer_cancelled = self.machine.close_offer_if_exhausted(offer_id, commit=False)
            notification_service.notify_slot_rejected(
                self.db, self.machine.get_offer(offer_id), slot, notes, offer_cancelled
            )

        logger.info(
            "Slot rejected by approver%s",
            ", offer cancelled" if offer_cancelled else "",
            extra=build_log_context(**context),
        )
        offer = self.machine.get_offer(offer_id)
        availability_events.publish_offer_update(offer)
        return SlotRejectionResult(
            offer=offer, slot=self.machine.get_slot(slot_id), offer_cancelled=offer_cancelled
        )

    def _cancel_if_nothing_approved(self, offer_id: UUID, notes: str) -> bool:
        offer = self.machine.get_offer(offer_id)
        if OfferStatus(offer.status) in TERMINAL_OFFER_STATUSES:
            return False
        approved = (
            self.db.query(Approval.id)
            .filter(
                Approval.match_offer_id == offer_id,
                Approval.slot_id.isnot(None),
                Approval.status == ApprovalStatus.APPROVED.value,
            )
            .first()
        )
        if approved:
            return False

        with self.machine.unit(offer_id=offer_id):
            offer = self.machine.cancel_offer(offer_id, notes, commit=False)
            notification_service.notify_offer_decided(self.db, offer, False, notes)
        logger.info("Offer cancelled after rejecting all requests", extra=build_log_context(offer_id=offer_id))
        availability_events.publish_offer_update(self.machine.get_offer(offer_id))
        return True
