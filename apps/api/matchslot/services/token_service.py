"""Share and approval token issuance.

Tokens are the only authorization for opening an offer or deciding an
approval, so they come from the OS CSPRNG and embed nothing. Uniqueness is
checked against the table the token will live in.
"""

import secrets

from sqlalchemy.orm import Session

from matchslot.core.config import settings
from matchslot.db.models import Approval, MatchOffer
from matchslot.services.errors import TokenIssuanceError

MAX_ISSUE_ATTEMPTS = 5


def generate_token(length: int | None = None) -> str:
    """Generate cryptographically secure token."""
    return secrets.token_urlsafe(length or settings.TOKEN_BYTES)


def _issue_unique(db: Session, column, category: str) -> str:
    for _ in range(MAX_ISSUE_ATTEMPTS):
        token = generate_token()
        exists = db.query(column).filter(column == token).first()
        if not exists:
            return token
    raise TokenIssuanceError(f"Could not issue a unique {category} token")


def issue_share_token(db: Session) -> str:
    """Issue a share token not used by any offer."""
    return _issue_unique(db, MatchOffer.share_token, "share")


def issue_approval_token(db: Session) -> str:
    """Issue an approval token not used by any approval."""
    return _issue_unique(db, Approval.approval_token, "approval")


def share_link(share_token: str) -> str:
    """Public URL a guest opens to view an offer."""
    return f"{settings.public_base_url}/offer/{share_token}"


def approval_link(approval_token: str) -> str:
    """Public URL the approver opens to decide a request."""
    return f"{settings.public_base_url}/approve/{approval_token}"
