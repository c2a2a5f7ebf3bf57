"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
"""

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from matchslot.core.config import settings
from matchslot.db.session import SessionLocal
from matchslot.services.booking_state_machine import BookingStateMachine
from matchslot.services.errors import BookingError

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class ExpireHoldsResponse(BaseModel):
    holds_released: int
    requests_expired: int


@router.post("/expire-holds", response_model=ExpireHoldsResponse)
def expire_holds(x_internal_secret: str = Header(...)):
    """
    Sweep stale slot holds back to OPEN.

    Also expires pending guest requests when
    PENDING_APPROVAL_TIMEOUT_MINUTES is set.
    """
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        try:
            result = BookingStateMachine(db).expire_stale_holds()
        except BookingError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    return ExpireHoldsResponse(
        holds_released=result.holds_released,
        requests_expired=result.requests_expired,
    )
