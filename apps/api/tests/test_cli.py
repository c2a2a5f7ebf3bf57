"""Tests for the matchslot CLI."""

from click.testing import CliRunner

from matchslot import cli as cli_module


class _TestSession:
    def __init__(self, db):
        self.db = db

    def __enter__(self):
        return self.db

    def __exit__(self, exc_type, exc, tb):
        return False


def test_list_outbox(db, pending_offer, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: _TestSession(db))

    result = CliRunner().invoke(cli_module.cli, ["list-outbox", "--limit", "5"])

    assert result.exit_code == 0, result.output
    assert "OFFER_APPROVAL_REQUEST" in result.output
    assert "approver@league.example.com" in result.output


def test_expire_holds_reports_counts(db, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: _TestSession(db))

    result = CliRunner().invoke(cli_module.cli, ["expire-holds", "--hold-minutes", "15"])

    assert result.exit_code == 0, result.output
    assert "Released 0 holds" in result.output
    assert "Expired 0 pending requests" in result.output
