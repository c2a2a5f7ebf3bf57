"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from matchslot.db.base import Base
from matchslot.db.enums import NotificationType, RecipientType
from matchslot.db.models.offers import _coerce_enum, _in_clause


class Notification(Base):
    """
    Outbox record of an event that needs external delivery.

    Rows outlive the offer they reference (foreign keys are nulled on
    delete) so the outbox doubles as an audit log.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            _in_clause("recipient_type", RecipientType), name="ck_notifications_recipient_type"
        ),
        CheckConstraint(
            _in_clause("notification_type", NotificationType), name="ck_notifications_type"
        ),
        Index("idx_notifications_unsent", "sent", "created_at"),
        Index("idx_notifications_offer", "match_offer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(40), nullable=False)

    # Related data
    match_offer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("match_offers.id", ondelete="SET NULL"), nullable=True
    )
    slot_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("slots.id", ondelete="SET NULL"), nullable=True
    )

    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    sent: Mapped[bool] = mapped_column(default=False, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    @validates("recipient_type")
    def _validate_recipient_type(self, key, value):
        return _coerce_enum(RecipientType, key, value)

    @validates("notification_type")
    def _validate_notification_type(self, key, value):
        return _coerce_enum(NotificationType, key, value)
