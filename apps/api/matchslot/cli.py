"""CLI tools for MatchSlot administration."""

import click

from matchslot.core.config import settings
from matchslot.core.structured_logging import configure_logging
from matchslot.db.base import Base
from matchslot.db.session import SessionLocal, engine
from matchslot.services import notification_service
from matchslot.services.booking_state_machine import BookingStateMachine
from matchslot.services.errors import BookingError


@click.group()
def cli():
    """MatchSlot CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
def init_db():
    """
    Create all tables directly from the models.

    For local SQLite setups; deployed databases use `alembic upgrade head`.
    """
    import matchslot.db.models  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    click.echo(f"✓ Tables created on {engine.url.render_as_string(hide_password=True)}")


@cli.command()
@click.option("--hold-minutes", type=int, default=None, help="Override SLOT_HOLD_TIMEOUT_MINUTES")
@click.option(
    "--pending-minutes",
    type=int,
    default=None,
    help="Override PENDING_APPROVAL_TIMEOUT_MINUTES (0 disables)",
)
def expire_holds(hold_minutes: int | None, pending_minutes: int | None):
    """Release stale slot holds (and optionally stale pending requests)."""
    with SessionLocal() as db:
        try:
            result = BookingStateMachine(db).expire_stale_holds(
                hold_minutes=hold_minutes, pending_minutes=pending_minutes
            )
        except BookingError as e:
            raise click.ClickException(str(e))
    click.echo(f"✓ Released {result.holds_released} holds")
    click.echo(f"✓ Expired {result.requests_expired} pending requests")


@cli.command()
@click.option("--limit", type=int, default=20, show_default=True)
def list_outbox(limit: int):
    """Show notifications waiting for delivery."""
    with SessionLocal() as db:
        pending = notification_service.list_pending(db, limit=limit)
        if not pending:
            click.echo("Outbox is empty")
            return
        for item in pending:
            click.echo(
                f"{item.created_at:%Y-%m-%d %H:%M}  {item.notification_type:<22} "
                f"{item.recipient_type:<8} {item.recipient_email or '-'}  {item.subject}"
            )


if __name__ == "__main__":
    cli()
