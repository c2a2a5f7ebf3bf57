"""Tests for the notification outbox."""

from datetime import datetime

from conftest import make_offer_data
from matchslot.db.enums import NotificationType, RecipientType
from matchslot.db.models import Notification
from matchslot.services import notification_service


def test_enqueue_does_not_commit(db, pending_offer):
    notification_service.enqueue(
        db,
        recipient_email="jordan@parkside.example.com",
        recipient_type=RecipientType.HOST,
        kind=NotificationType.SLOT_SELECTED,
        subject="Slot Requested",
        body="A guest asked for your slot",
        match_offer_id=pending_offer.id,
    )
    db.rollback()

    kinds = [n.notification_type for n in notification_service.list_for_offer(db, pending_offer.id)]
    assert kinds == [NotificationType.OFFER_APPROVAL_REQUEST.value]


def test_list_pending_and_mark_sent(db, pending_offer):
    [pending] = notification_service.list_pending(db)
    assert pending.match_offer_id == pending_offer.id
    assert pending.sent is False

    assert notification_service.mark_sent(db, pending.id) is True
    assert notification_service.mark_sent(db, pending.id) is False
    assert notification_service.list_pending(db) == []

    stored = db.query(Notification).populate_existing().filter(Notification.id == pending.id).one()
    assert stored.sent is True
    assert stored.sent_at is not None


def test_list_pending_respects_limit(db, coordinator):
    for _ in range(3):
        coordinator.create_offer(make_offer_data())
    assert len(notification_service.list_pending(db, limit=2)) == 2


def test_host_without_contact_is_skipped(db, coordinator):
    offer = coordinator.create_offer(make_offer_data(host_contact=None))
    assert notification_service.notify_offer_decided(db, offer, approved=True) is None


def test_format_slot_time():
    assert notification_service.format_slot_time(datetime(2030, 3, 9, 10, 0)) == "Sat 09 Mar, 10:00"
