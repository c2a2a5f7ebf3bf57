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
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from matchslot.db.base import Base
from matchslot.db.enums import ApprovalStatus
from matchslot.db.models.offers import MatchOffer, Slot, _coerce_enum, _in_clause


class Approval(Base):
    """
    A decision request keyed by a single-use approval token.

    slot_id NULL means offer-level approval; otherwise the approval gates
    one guest booking request. Immutable once resolved.
    """

    __tablename__ = "approvals"
    __table_args__ = (
        CheckConstraint(_in_clause("status", ApprovalStatus), name="ck_approvals_status"),
        Index("idx_approvals_offer", "match_offer_id", "status"),
        Index("idx_approvals_slot", "slot_id"),
        # At most one outstanding offer-level request per offer
        Index(
            "uq_approvals_one_pending_offer_level",
            "match_offer_id",
            unique=True,
            postgresql_where=text("slot_id IS NULL AND status = 'PENDING'"),
            sqlite_where=text("slot_id IS NULL AND status = 'PENDING'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    approval_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)

    match_offer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("match_offers.id", ondelete="CASCADE"), nullable=False
    )
    slot_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("slots.id", ondelete="CASCADE"), nullable=True
    )

    approver_email: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value
    )
    decision_at: Mapped[datetime | None] = mapped_column(nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    # Relationships
    offer: Mapped["MatchOffer"] = relationship(back_populates="approvals")
    slot: Mapped["Slot | None"] = relationship()

    @property
    def is_offer_level(self) -> bool:
        return self.slot_id is None

    @validates("status")
    def _validate_status(self, key, value):
        return _coerce_enum(ApprovalStatus, key, value)
