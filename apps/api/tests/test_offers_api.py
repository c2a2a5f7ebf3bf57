"""Tests for the host-side /offers endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from conftest import GUEST, make_offer_data
from matchslot.db.enums import SlotStatus
from matchslot.db.models import Notification


def _payload(**overrides) -> dict:
    return make_offer_data(**overrides).model_dump(mode="json")


@pytest.mark.asyncio
async def test_create_offer(client: AsyncClient, db):
    response = await client.post("/offers", json=_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING_APPROVAL"
    assert len(data["slots"]) == 3
    assert all(slot["status"] == "OPEN" for slot in data["slots"])
    assert data["share_link"].endswith(f"/offer/{data['share_token']}")
    assert db.query(Notification).count() == 1


@pytest.mark.asyncio
async def test_create_offer_invalid_duration(client: AsyncClient):
    response = await client.post("/offers", json=_payload(duration=45))
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "duration"


@pytest.mark.asyncio
async def test_create_offer_bad_slot_window(client: AsyncClient):
    payload = _payload()
    payload["slots"][1]["end_time"] = payload["slots"][1]["start_time"]
    response = await client.post("/offers", json=payload)
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "slots[1].end_time"


@pytest.mark.asyncio
async def test_list_offers_for_host(client: AsyncClient, pending_offer):
    response = await client.get("/offers", params={"host_contact": "jordan@parkside.example.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(pending_offer.id)


@pytest.mark.asyncio
async def test_get_offer_not_found(client: AsyncClient):
    response = await client.get(f"/offers/{uuid4()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Offer not found"


@pytest.mark.asyncio
async def test_cancel_offer(client: AsyncClient, open_offer):
    response = await client.post(f"/offers/{open_offer.id}/cancel")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert {slot["status"] for slot in data["slots"]} == {"REJECTED"}

    again = await client.post(f"/offers/{open_offer.id}/cancel")
    assert again.status_code == 422
    assert again.json()["detail"]["field"] == "status"


@pytest.mark.asyncio
async def test_delete_offer(client: AsyncClient, db, pending_offer):
    response = await client.delete(f"/offers/{pending_offer.id}")
    assert response.status_code == 204

    response = await client.get(f"/offers/{pending_offer.id}")
    assert response.status_code == 404
    assert db.query(Notification).filter(Notification.match_offer_id.is_(None)).count() == 1


@pytest.mark.asyncio
async def test_request_offer_approval(client: AsyncClient, pending_offer, offer_approval):
    response = await client.post(f"/offers/{pending_offer.id}/approval-request")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(offer_approval.id)
    assert "approval_token" not in data


@pytest.mark.asyncio
async def test_bulk_decision_needs_approval_token(client: AsyncClient, coordinator, open_offer):
    coordinator.request_slot_approval(open_offer.slots[0].id, GUEST)

    response = await client.post(
        f"/offers/{open_offer.id}/bulk-decision", json={"decision": "APPROVE"}
    )
    assert response.status_code == 404
    slot = coordinator.machine.get_slot(open_offer.slots[0].id)
    assert slot.status == SlotStatus.PENDING_APPROVAL.value


@pytest.mark.asyncio
async def test_result_rejected_for_future_match(client: AsyncClient, coordinator, open_offer):
    slot_id = open_offer.slots[0].id
    coordinator.machine.book_slot(slot_id, (SlotStatus.OPEN,), guest=GUEST)

    response = await client.put(
        f"/offers/{open_offer.id}/slots/{slot_id}/result",
        json={"home_score": 2, "away_score": 1},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "start_time"
