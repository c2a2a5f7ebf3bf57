"""SQLAlchemy ORM models."""

from matchslot.db.models.offers import MatchOffer, Slot
from matchslot.db.models.approvals import Approval
from matchslot.db.models.notifications import Notification

__all__ = [
    "Approval",
    "MatchOffer",
    "Notification",
    "Slot",
]
