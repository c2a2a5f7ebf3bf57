"""Live availability events.

Published after a commit so subscribers only ever see committed state.
Delivery is best-effort: the booking workflow never waits on or fails
because of a subscriber.
"""

import logging

import anyio

from matchslot.core.websocket import manager
from matchslot.db.models import MatchOffer

logger = logging.getLogger(__name__)


def build_offer_update(offer: MatchOffer) -> dict:
    """Current offer and slot statuses, without any guest details."""
    return {
        "type": "availability",
        "data": {
            "status": offer.status,
            "slots": [
                {"id": str(slot.id), "status": slot.status, "start_time": slot.start_time.isoformat()}
                for slot in offer.slots
            ],
        },
    }


def publish_offer_update(offer: MatchOffer) -> bool:
    """Push the offer's availability to its subscribers. Returns True if sent."""
    share_token = offer.share_token
    if not manager.has_subscribers(share_token):
        return False

    message = build_offer_update(offer)
    try:
        anyio.from_thread.run(manager.broadcast, share_token, message)
    except Exception as exc:
        # Not on a worker thread of the running loop (CLI, tests) or the push failed
        logger.debug("Availability push skipped: %s", exc)
        return False
    return True
