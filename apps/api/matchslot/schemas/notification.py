"""Notification outbox schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationRead(BaseModel):
    """Schema for an outbox entry."""
    id: UUID
    recipient_email: str | None
    recipient_type: str
    notification_type: str
    match_offer_id: UUID | None
    slot_id: UUID | None
    subject: str
    message: str
    sent: bool
    sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
