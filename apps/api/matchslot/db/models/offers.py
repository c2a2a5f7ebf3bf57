"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from matchslot.db.base import Base
from matchslot.db.enums import (
    AgeGroup,
    MatchFormat,
    OfferStatus,
    SlotStatus,
)

if TYPE_CHECKING:
    from matchslot.db.models import Approval


def _in_clause(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


def _coerce_enum(enum_cls, key: str, value):
    """Normalize an enum member or raw string to its stored value."""
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValueError(f"Invalid {key}: {value!r}") from None


class MatchOffer(Base):
    """
    A host coach's proposed match with one or more candidate time slots.

    Status is owned by the booking state machine; nothing else writes it.
    The share token is the only thing a guest needs to view the offer.
    """

    __tablename__ = "match_offers"
    __table_args__ = (
        CheckConstraint(_in_clause("status", OfferStatus), name="ck_match_offers_status"),
        CheckConstraint(_in_clause("age_group", AgeGroup), name="ck_match_offers_age_group"),
        CheckConstraint(_in_clause("format", MatchFormat), name="ck_match_offers_format"),
        CheckConstraint("duration > 0", name="ck_match_offers_duration"),
        Index("idx_match_offers_host_contact", "host_contact"),
        Index("idx_match_offers_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Host coach
    host_name: Mapped[str] = mapped_column(String(255), nullable=False)
    host_club: Mapped[str | None] = mapped_column(String(255), nullable=True)
    host_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Match details
    age_group: Mapped[str] = mapped_column(String(10), nullable=False)
    format: Mapped[str] = mapped_column(String(10), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    approver_email: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OfferStatus.PENDING_APPROVAL.value
    )
    share_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    slots: Mapped[list["Slot"]] = relationship(
        back_populates="offer",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Slot.start_time",
    )
    approvals: Mapped[list["Approval"]] = relationship(
        back_populates="offer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("status")
    def _validate_status(self, key, value):
        return _coerce_enum(OfferStatus, key, value)

    @validates("age_group")
    def _validate_age_group(self, key, value):
        return _coerce_enum(AgeGroup, key, value)

    @validates("format")
    def _validate_format(self, key, value):
        return _coerce_enum(MatchFormat, key, value)


class Slot(Base):
    """
    One concrete time window within a match offer.

    Guest fields are filled when a guest targets the slot and cleared if
    the request is denied or expires. Result fields are filled post-match.
    """

    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint(_in_clause("status", SlotStatus), name="ck_slots_status"),
        CheckConstraint("end_time > start_time", name="ck_slots_time_window"),
        Index("idx_slots_offer", "match_offer_id", "status"),
        # Store-level backstop for "at most one booked slot per offer"
        Index(
            "uq_slots_one_booked_per_offer",
            "match_offer_id",
            unique=True,
            postgresql_where=text("status = 'BOOKED'"),
            sqlite_where=text("status = 'BOOKED'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    match_offer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("match_offers.id", ondelete="CASCADE"), nullable=False
    )

    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SlotStatus.OPEN.value
    )

    # Hold info (booking request in flight)
    held_by_session: Mapped[str | None] = mapped_column(String(128), nullable=True)
    held_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Guest team
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_club: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Result (post-match)
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    result_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    result_saved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    offer: Mapped["MatchOffer"] = relationship(back_populates="slots")

    @validates("status")
    def _validate_status(self, key, value):
        return _coerce_enum(SlotStatus, key, value)
