"""Tests for live availability pushes over WebSocket."""

import pytest

from conftest import GUEST
from matchslot.core.websocket import OfferConnectionManager
from matchslot.services import availability_events


class _FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent: list[str] = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


@pytest.mark.asyncio
async def test_broadcast_reaches_subscribers_and_drops_closed():
    manager = OfferConnectionManager()
    alive, dead = _FakeWebSocket(), _FakeWebSocket(fail=True)
    await manager.connect(alive, "share-1")
    await manager.connect(dead, "share-1")
    assert alive.accepted
    assert manager.get_total_connections() == 2

    await manager.broadcast("share-1", {"type": "availability"})

    assert alive.sent == ['{"type": "availability"}']
    assert manager.get_total_connections() == 1

    await manager.disconnect(alive, "share-1")
    assert not manager.has_subscribers("share-1")


def test_update_payload_has_no_guest_details(db, coordinator, open_offer):
    coordinator.request_slot_approval(open_offer.slots[0].id, GUEST)
    offer = coordinator.machine.get_offer(open_offer.id)

    message = availability_events.build_offer_update(offer)

    assert message["type"] == "availability"
    assert message["data"]["status"] == "OPEN"
    assert [s["status"] for s in message["data"]["slots"]] == ["PENDING_APPROVAL", "OPEN", "OPEN"]
    assert GUEST.contact not in str(message)
    assert "offer_id" not in message["data"]


def test_publish_without_subscribers_is_skipped(open_offer):
    assert availability_events.publish_offer_update(open_offer) is False


def test_publish_outside_event_loop_never_raises(open_offer, monkeypatch):
    monkeypatch.setattr(availability_events.manager, "has_subscribers", lambda token: True)
    assert availability_events.publish_offer_update(open_offer) is False
