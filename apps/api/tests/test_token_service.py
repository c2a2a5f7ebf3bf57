"""Tests for share and approval token issuance."""

import pytest

from matchslot.core.config import settings
from matchslot.services import token_service
from matchslot.services.errors import PersistenceError, TokenIssuanceError


def test_tokens_are_urlsafe_and_distinct():
    tokens = {token_service.generate_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) >= 43
        assert all(c.isalnum() or c in "-_" for c in token)


def test_collision_is_retried(db, pending_offer, monkeypatch):
    candidates = iter([pending_offer.share_token, "fresh-token"])
    monkeypatch.setattr(token_service, "generate_token", lambda length=None: next(candidates))

    assert token_service.issue_share_token(db) == "fresh-token"


def test_persistent_collision_fails(db, pending_offer, monkeypatch):
    monkeypatch.setattr(
        token_service, "generate_token", lambda length=None: pending_offer.share_token
    )

    with pytest.raises(TokenIssuanceError) as exc:
        token_service.issue_share_token(db)
    assert isinstance(exc.value, PersistenceError)


def test_links_use_public_base_url(monkeypatch):
    monkeypatch.setattr(settings, "PUBLIC_BASE_URL", "https://book.example.com/")
    assert token_service.share_link("abc") == "https://book.example.com/offer/abc"
    assert token_service.approval_link("xyz") == "https://book.example.com/approve/xyz"
