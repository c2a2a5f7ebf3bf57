"""Tests for the share-link, approval-link and internal endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import GUEST, make_offer_data
from matchslot.db.models import Approval, Slot

GUEST_FORM = {
    "guest_name": "Sam Guest",
    "guest_club": "Riverside FC",
    "guest_contact": "sam@riverside.example.com",
    "guest_notes": "Kit colours: red",
}


# =============================================================================
# Share link
# =============================================================================

@pytest.mark.asyncio
async def test_public_offer_hides_guest_details(client: AsyncClient, coordinator, open_offer):
    coordinator.request_slot_approval(open_offer.slots[0].id, GUEST)

    response = await client.get(f"/public/offers/{open_offer.share_token}")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OPEN"
    assert [slot["status"] for slot in data["slots"]] == ["PENDING_APPROVAL", "OPEN", "OPEN"]
    assert "guest_name" not in data["slots"][0]
    assert "approver_email" not in data
    assert "id" not in data
    assert "share_token" not in data


@pytest.mark.asyncio
async def test_public_offer_unknown_token(client: AsyncClient):
    response = await client.get("/public/offers/nope")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_hold_conflict(client: AsyncClient, open_offer):
    slot_id = open_offer.slots[0].id
    first = await client.post(f"/public/slots/{slot_id}/hold", json={"session_id": "tab-1"})
    assert first.status_code == 200
    assert first.json()["status"] == "HELD"

    second = await client.post(f"/public/slots/{slot_id}/hold", json={"session_id": "tab-2"})
    assert second.status_code == 409
    assert second.json()["detail"] == "Slot Unavailable"


@pytest.mark.asyncio
async def test_book_requires_approval(client: AsyncClient, db, open_offer):
    slot_id = open_offer.slots[1].id
    response = await client.post(f"/public/slots/{slot_id}/book", json=GUEST_FORM)
    assert response.status_code == 200
    data = response.json()
    assert data == {
        "slot_id": str(slot_id),
        "slot_status": "PENDING_APPROVAL",
        "offer_status": "OPEN",
        "requires_approval": True,
    }
    slot = db.get(Slot, slot_id)
    db.refresh(slot)
    assert slot.guest_notes == "Kit colours: red"


@pytest.mark.asyncio
async def test_book_missing_guest_name(client: AsyncClient, open_offer):
    response = await client.post(
        f"/public/slots/{open_offer.slots[0].id}/book", json={**GUEST_FORM, "guest_name": " "}
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "guest_name"


@pytest.mark.asyncio
async def test_book_on_pending_offer(client: AsyncClient, pending_offer):
    response = await client.post(f"/public/slots/{pending_offer.slots[0].id}/book", json=GUEST_FORM)
    assert response.status_code == 409
    assert response.json()["detail"] == "Offer Not Open"


# =============================================================================
# Approval link
# =============================================================================

@pytest.mark.asyncio
async def test_approval_page_and_decision(client: AsyncClient, db, open_offer):
    slot_id = open_offer.slots[2].id
    await client.post(f"/public/slots/{slot_id}/book", json=GUEST_FORM)
    token = db.query(Approval.approval_token).filter(Approval.slot_id == slot_id).scalar()

    page = await client.get(f"/approvals/{token}")
    assert page.status_code == 200
    assert page.json()["approval"]["slot_id"] == str(slot_id)
    assert page.json()["offer"]["id"] == str(open_offer.id)

    decided = await client.post(f"/approvals/{token}/decision", json={"decision": "APPROVE"})
    assert decided.status_code == 200
    data = decided.json()
    assert data["already_processed"] is False
    assert data["slot_status"] == "BOOKED"
    assert data["offer_status"] == "CLOSED"

    repeat = await client.post(
        f"/approvals/{token}/decision", json={"decision": "REJECT", "notes": "too late"}
    )
    assert repeat.status_code == 200
    assert repeat.json()["already_processed"] is True
    assert repeat.json()["approval"]["status"] == "APPROVED"


@pytest.mark.asyncio
async def test_reject_without_notes(client: AsyncClient, offer_approval):
    response = await client.post(
        f"/approvals/{offer_approval.approval_token}/decision", json={"decision": "REJECT"}
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "notes"


@pytest.mark.asyncio
async def test_unknown_approval_token(client: AsyncClient):
    response = await client.get("/approvals/unknown")
    assert response.status_code == 404
    assert response.json()["detail"] == "Approval not found"


@pytest.mark.asyncio
async def test_bulk_decision_by_token(client: AsyncClient, db, open_offer, offer_approval):
    await client.post(f"/public/slots/{open_offer.slots[0].id}/book", json=GUEST_FORM)

    response = await client.post(
        f"/approvals/{offer_approval.approval_token}/bulk-decision",
        json={"decision": "REJECT", "notes": "No referee available"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["offer_cancelled"] is True
    assert data["offer_status"] == "CANCELLED"
    assert [item["outcome"] for item in data["items"]] == ["applied"]


@pytest.mark.asyncio
async def test_bulk_reject_requires_notes(client: AsyncClient, offer_approval):
    response = await client.post(
        f"/approvals/{offer_approval.approval_token}/bulk-decision", json={"decision": "REJECT"}
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "notes"


@pytest.mark.asyncio
async def test_guest_cannot_approve_own_booking(client: AsyncClient, db, open_offer):
    page = await client.get(f"/public/offers/{open_offer.share_token}")
    slot_id = page.json()["slots"][0]["id"]
    await client.post(f"/public/slots/{slot_id}/book", json=GUEST_FORM)

    for path in (
        f"/approvals/{open_offer.share_token}/bulk-decision",
        f"/offers/{open_offer.id}/bulk-decision",
    ):
        response = await client.post(path, json={"decision": "APPROVE"})
        assert response.status_code == 404

    slot = db.query(Slot).populate_existing().filter(Slot.id == open_offer.slots[0].id).one()
    assert slot.status == "PENDING_APPROVAL"


@pytest.mark.asyncio
async def test_approver_rejects_slots_until_offer_cancelled(
    client: AsyncClient, pending_offer, offer_approval
):
    token = offer_approval.approval_token
    slot_ids = [str(slot.id) for slot in pending_offer.slots]

    first = await client.post(
        f"/approvals/{token}/slots/{slot_ids[0]}/reject", json={"notes": "Pitch closed"}
    )
    assert first.status_code == 200
    assert first.json() == {
        "slot_id": slot_ids[0],
        "slot_status": "REJECTED",
        "offer_status": "PENDING_APPROVAL",
        "offer_cancelled": False,
    }

    again = await client.post(f"/approvals/{token}/slots/{slot_ids[0]}/reject")
    assert again.status_code == 409

    for slot_id in slot_ids[1:]:
        last = await client.post(f"/approvals/{token}/slots/{slot_id}/reject")
    assert last.json()["offer_cancelled"] is True
    assert last.json()["offer_status"] == "CANCELLED"

    page = await client.get(f"/approvals/{token}")
    assert page.json()["approval"]["status"] == "REJECTED"


@pytest.mark.asyncio
async def test_reject_slot_of_other_offer(client: AsyncClient, coordinator, offer_approval):
    other = coordinator.create_offer(make_offer_data())
    response = await client.post(
        f"/approvals/{offer_approval.approval_token}/slots/{other.slots[0].id}/reject"
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Slot not found"


# =============================================================================
# Internal sweep
# =============================================================================

@pytest.mark.asyncio
async def test_expire_holds_endpoint(client: AsyncClient, db, coordinator, open_offer, monkeypatch):
    from matchslot.core.config import settings
    from matchslot.routers import internal as internal_router

    monkeypatch.setattr(settings, "INTERNAL_SECRET", "secret")

    class _TestSession:
        def __enter__(self):
            return db

        def __exit__(self, exc_type, exc, tb):
            return False

    monkeypatch.setattr(internal_router, "SessionLocal", lambda: _TestSession())

    slot_id = open_offer.slots[0].id
    coordinator.hold_slot(slot_id, "tab-1")
    db.query(Slot).filter(Slot.id == slot_id).update(
        {Slot.held_at: datetime.now(timezone.utc) - timedelta(hours=1)},
        synchronize_session=False,
    )
    db.commit()

    forbidden = await client.post(
        "/internal/scheduled/expire-holds", headers={"X-Internal-Secret": "wrong"}
    )
    assert forbidden.status_code == 403

    response = await client.post(
        "/internal/scheduled/expire-holds", headers={"X-Internal-Secret": "secret"}
    )
    assert response.status_code == 200
    assert response.json() == {"holds_released": 1, "requests_expired": 0}


@pytest.mark.asyncio
async def test_expire_holds_unconfigured(client: AsyncClient, monkeypatch):
    from matchslot.core.config import settings

    monkeypatch.setattr(settings, "INTERNAL_SECRET", "")
    response = await client.post(
        "/internal/scheduled/expire-holds", headers={"X-Internal-Secret": "anything"}
    )
    assert response.status_code == 501
