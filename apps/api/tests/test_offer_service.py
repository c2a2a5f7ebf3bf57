"""Tests for offer creation, lookup, deletion and match results."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from conftest import GUEST, KICKOFF, make_offer_data
from matchslot.db.enums import NotificationType, OfferStatus, SlotStatus
from matchslot.db.models import Approval, MatchOffer, Notification, Slot
from matchslot.schemas.offer import MatchResultUpdate, SlotCreate
from matchslot.services import offer_service
from matchslot.services.errors import NotFoundError, ValidationError


class TestValidateOffer:
    """Rejected offers name the offending field and write nothing."""

    def test_valid_offer(self):
        offer_service.validate_offer(make_offer_data())

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"host_name": "  "}, "host_name"),
            ({"location": ""}, "location"),
            ({"duration": 45}, "duration"),
            ({"slots": []}, "slots"),
        ],
    )
    def test_rejected_fields(self, overrides, field):
        with pytest.raises(ValidationError) as exc:
            offer_service.validate_offer(make_offer_data(**overrides))
        assert exc.value.field == field

    def test_slot_must_end_after_start(self):
        data = make_offer_data(
            slots=[SlotCreate(start_time=KICKOFF, end_time=KICKOFF - timedelta(minutes=60))]
        )
        with pytest.raises(ValidationError) as exc:
            offer_service.validate_offer(data)
        assert exc.value.field == "slots[0].end_time"

    def test_slot_length_must_match_duration(self):
        data = make_offer_data(
            duration=90,
            slots=[SlotCreate(start_time=KICKOFF, end_time=KICKOFF + timedelta(minutes=60))],
        )
        with pytest.raises(ValidationError) as exc:
            offer_service.validate_offer(data)
        assert exc.value.field == "slots[0].end_time"

    def test_duplicate_start_times(self):
        slot = SlotCreate(start_time=KICKOFF, end_time=KICKOFF + timedelta(minutes=60))
        with pytest.raises(ValidationError) as exc:
            offer_service.validate_offer(make_offer_data(slots=[slot, slot]))
        assert exc.value.field == "slots[1].start_time"

    def test_invalid_offer_not_persisted(self, db, coordinator):
        before = db.query(MatchOffer).count()
        with pytest.raises(ValidationError):
            coordinator.create_offer(make_offer_data(duration=45))
        assert db.query(MatchOffer).count() == before

    def test_offset_slot_times_stored_in_utc(self, db, coordinator):
        start = datetime(2030, 6, 1, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        offer = coordinator.create_offer(
            make_offer_data(
                slots=[SlotCreate(start_time=start, end_time=start + timedelta(minutes=60))]
            )
        )

        slot = db.query(Slot).populate_existing().filter(Slot.match_offer_id == offer.id).one()
        # SQLite hands back naive values; they must be the UTC wall clock
        assert slot.start_time.replace(tzinfo=None) == datetime(2030, 6, 1, 8, 0)
        assert slot.end_time.replace(tzinfo=None) == datetime(2030, 6, 1, 9, 0)


class TestLookups:

    def test_share_token_is_unique_and_opaque(self, coordinator):
        first = coordinator.create_offer(make_offer_data())
        second = coordinator.create_offer(make_offer_data())
        assert first.share_token != second.share_token
        assert len(first.share_token) >= 32
        assert str(first.id) not in first.share_token

    def test_get_by_share_token(self, db, pending_offer):
        offer = offer_service.get_offer_by_share_token(db, pending_offer.share_token)
        assert offer.id == pending_offer.id
        assert [s.start_time for s in offer.slots] == sorted(s.start_time for s in offer.slots)

    def test_unknown_share_token(self, db):
        with pytest.raises(NotFoundError):
            offer_service.get_offer_by_share_token(db, "missing")

    def test_unknown_offer(self, db):
        with pytest.raises(NotFoundError) as exc:
            offer_service.get_offer(db, uuid4())
        assert exc.value.entity == "Offer"

    def test_list_for_host(self, db, coordinator):
        mine = coordinator.create_offer(make_offer_data())
        coordinator.create_offer(make_offer_data(host_contact="someone@else.example.com"))
        offers = offer_service.list_offers_for_host(db, "jordan@parkside.example.com")
        assert [o.id for o in offers] == [mine.id]


class TestCancelAndDelete:

    def test_cancel_open_offer(self, db, open_offer):
        offer = offer_service.cancel_offer(db, open_offer.id)
        assert offer.status == OfferStatus.CANCELLED.value

    def test_delete_keeps_notifications(self, db, coordinator, open_offer):
        slot_id = open_offer.slots[0].id
        coordinator.request_slot_approval(slot_id, GUEST)
        offer_id = open_offer.id

        offer_service.delete_offer(db, offer_id)

        assert db.get(MatchOffer, offer_id) is None
        assert db.query(Slot).filter(Slot.match_offer_id == offer_id).count() == 0
        assert db.query(Approval).filter(Approval.match_offer_id == offer_id).count() == 0
        closed = (
            db.query(Notification)
            .filter(Notification.notification_type == NotificationType.OFFER_CLOSED.value)
            .one()
        )
        assert closed.recipient_email == GUEST.contact
        assert closed.match_offer_id is None
        assert closed.slot_id is None

    def test_delete_unknown(self, db):
        with pytest.raises(NotFoundError):
            offer_service.delete_offer(db, uuid4())


class TestMatchResult:

    def test_saved_after_kickoff(self, db, coordinator, open_offer):
        slot_id = open_offer.slots[0].id
        coordinator.machine.book_slot(slot_id, (SlotStatus.OPEN,), guest=GUEST)
        after_match = KICKOFF + timedelta(hours=3)

        slot = offer_service.save_match_result(
            db,
            open_offer.id,
            slot_id,
            MatchResultUpdate(home_score=3, away_score=2, result_notes="Great game"),
            now=after_match,
        )

        assert (slot.home_score, slot.away_score) == (3, 2)
        assert slot.result_saved_at is not None

    def test_rejected_before_kickoff(self, db, coordinator, open_offer):
        slot_id = open_offer.slots[0].id
        coordinator.machine.book_slot(slot_id, (SlotStatus.OPEN,), guest=GUEST)
        with pytest.raises(ValidationError) as exc:
            offer_service.save_match_result(
                db,
                open_offer.id,
                slot_id,
                MatchResultUpdate(home_score=1, away_score=0),
                now=datetime(2026, 1, 1, tzinfo=timezone.utc),
            )
        assert exc.value.field == "start_time"

    def test_rejected_for_unbooked_slot(self, db, open_offer):
        with pytest.raises(ValidationError) as exc:
            offer_service.save_match_result(
                db,
                open_offer.id,
                open_offer.slots[0].id,
                MatchResultUpdate(home_score=1, away_score=0),
                now=KICKOFF + timedelta(days=1),
            )
        assert exc.value.field == "status"
