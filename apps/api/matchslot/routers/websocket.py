"""
WebSocket router for live slot availability.

A guest page subscribes with the offer's share token, receives the current
slot statuses on connect and again whenever they change.
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from matchslot.core.deps import get_db
from matchslot.core.websocket import manager
from matchslot.db.models import MatchOffer
from matchslot.services.availability_events import build_offer_update

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/offers/{share_token}")
async def websocket_offer_availability(
    websocket: WebSocket,
    share_token: str,
    db: Session = Depends(get_db),
):
    offer = db.query(MatchOffer).filter(MatchOffer.share_token == share_token).first()
    if not offer:
        await websocket.close(code=4004, reason="Offer not found")
        return

    await manager.connect(websocket, share_token)
    try:
        await websocket.send_json(build_offer_update(offer))
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        await manager.disconnect(websocket, share_token)
