import click
from flask.cli import AppGroup

from rentwise.services.booking_service import BookingService
from rentwise.services.payment_service import PaymentService

payments_cli = AppGroup("payments", help="Payment ledger maintenance.")
bookings_cli = AppGroup("bookings", help="Booking maintenance.")


@payments_cli.command("expire-stale")
@click.option("--ttl-minutes", type=int, default=None, help="Age after which a pending payment is failed.")
def expire_stale(ttl_minutes):
    """Mark pending payments older than the TTL as failed."""
    expired = PaymentService.expire_stale(ttl_minutes=ttl_minutes)
    click.echo(f"Expired {expired} pending payment(s).")


@bookings_cli.command("complete-finished")
def complete_finished():
    """Move approved bookings whose end date has passed to completed."""
    completed = BookingService.complete_finished()
    click.echo(f"Completed {completed} booking(s).")


def register_commands(app):
    app.cli.add_command(payments_cli)
    app.cli.add_command(bookings_cli)
