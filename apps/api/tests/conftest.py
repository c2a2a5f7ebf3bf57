"""
Test configuration and fixtures.

Provides:
- Database session with savepoint (rollback after each test)
- HTTPX AsyncClient against the app
- Offer fixtures in each workflow stage
"""
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# In-memory SQLite unless a DATABASE_URL is provided; in-memory rate limiter
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TESTING", "1")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

from matchslot.main import app
from matchslot.core.deps import get_db
from matchslot.db.base import Base
from matchslot.db.enums import AgeGroup, MatchFormat, WorkflowMode
from matchslot.db.session import engine, SessionLocal
from matchslot.schemas.offer import OfferCreate, SlotCreate
from matchslot.services.approval_service import ApprovalCoordinator, WorkflowPolicy
from matchslot.services.booking_state_machine import GuestDetails


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    """Create the schema once per test session."""
    import matchslot.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session with savepoint for test isolation.

    App code can commit() and rollback() freely: both act on a SAVEPOINT
    inside an outer transaction that is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = SessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Create AsyncClient with the test session injected."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# Workflow Fixtures
# =============================================================================

KICKOFF = datetime(2030, 3, 9, 10, 0, tzinfo=timezone.utc)

GUEST = GuestDetails(name="Sam Guest", club="Riverside FC", contact="sam@riverside.example.com")
OTHER_GUEST = GuestDetails(name="Alex Other", club="Hilltop Rovers", contact="alex@hilltop.example.com")


def make_offer_data(slot_count: int = 3, duration: int = 60, **overrides) -> OfferCreate:
    """Offer payload with `slot_count` consecutive Saturday slots."""
    fields = {
        "host_name": "Jordan Host",
        "host_club": "Parkside United",
        "host_contact": "jordan@parkside.example.com",
        "age_group": AgeGroup.U12,
        "format": MatchFormat.NINE_V_NINE,
        "duration": duration,
        "location": "Parkside Rec Ground",
        "notes": "Bring both kits",
        "approver_email": "approver@league.example.com",
        "slots": [
            SlotCreate(
                start_time=KICKOFF + timedelta(days=7 * i),
                end_time=KICKOFF + timedelta(days=7 * i, minutes=duration),
            )
            for i in range(slot_count)
        ],
    }
    fields.update(overrides)
    return OfferCreate(**fields)


@pytest.fixture
def offer_first_policy() -> WorkflowPolicy:
    return WorkflowPolicy(mode=WorkflowMode.OFFER_FIRST, require_slot_approval=True)


@pytest.fixture
def coordinator(db, offer_first_policy) -> ApprovalCoordinator:
    return ApprovalCoordinator(db, offer_first_policy)


@pytest.fixture
def pending_offer(coordinator):
    """Offer waiting for approver sign-off (offer-first mode)."""
    return coordinator.create_offer(make_offer_data())


@pytest.fixture
def offer_approval(db, pending_offer):
    from matchslot.db.models import Approval

    return (
        db.query(Approval)
        .filter(Approval.match_offer_id == pending_offer.id, Approval.slot_id.is_(None))
        .one()
    )


@pytest.fixture
def open_offer(coordinator, pending_offer, offer_approval):
    """Offer signed off by the approver and shareable."""
    result = coordinator.decide_offer_approval(offer_approval.approval_token, "APPROVE")
    return result.offer
