"""
WebSocket connection manager for live slot availability.

Guests viewing an offer subscribe by share token and receive the current
slot statuses whenever one of them changes.
"""

from typing import Dict, Set
import asyncio
import json

from fastapi import WebSocket


class OfferConnectionManager:
    """Manages WebSocket connections per offer share token."""

    def __init__(self):
        # share_token -> set of active WebSocket connections
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, share_token: str):
        """Accept and register a new subscriber."""
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(share_token, set()).add(websocket)

    async def disconnect(self, websocket: WebSocket, share_token: str):
        async with self._lock:
            subscribers = self._connections.get(share_token)
            if subscribers is None:
                return
            subscribers.discard(websocket)
            if not subscribers:
                del self._connections[share_token]

    async def broadcast(self, share_token: str, message: dict):
        """Send a message to every subscriber of one offer."""
        async with self._lock:
            connections = self._connections.get(share_token, set()).copy()

        if not connections:
            return

        data = json.dumps(message, default=str)
        closed = []
        for ws in connections:
            try:
                await ws.send_text(data)
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        if closed:
            async with self._lock:
                subscribers = self._connections.get(share_token)
                if subscribers is not None:
                    subscribers.difference_update(closed)
                    if not subscribers:
                        del self._connections[share_token]

    def has_subscribers(self, share_token: str) -> bool:
        return bool(self._connections.get(share_token))

    def get_total_connections(self) -> int:
        """Get total number of active connections across all offers."""
        return sum(len(conns) for conns in self._connections.values())


# Singleton instance
manager = OfferConnectionManager()
