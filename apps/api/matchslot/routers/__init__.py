"""API routers."""

from matchslot.routers.approvals import router as approvals_router
from matchslot.routers.internal import router as internal_router
from matchslot.routers.offers import router as offers_router
from matchslot.routers.public import router as public_router
from matchslot.routers.websocket import router as websocket_router

__all__ = [
    "approvals_router",
    "internal_router",
    "offers_router",
    "public_router",
    "websocket_router",
]
