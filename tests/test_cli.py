from datetime import date, timedelta

from rentwise.extensions import db
from rentwise.models import Booking, Payment
from rentwise.services import PaymentService


def test_complete_finished_command(app, owner, renter, make_property, make_booking):
    booking = make_booking(
        make_property(owner),
        renter,
        status=Booking.STATUS_APPROVED,
        start=date.today() - timedelta(days=10),
        nights=3,
    )

    result = app.test_cli_runner().invoke(args=["bookings", "complete-finished"])

    assert "Completed 1 booking(s)." in result.output
    db.session.expire_all()
    assert db.session.get(Booking, booking.id).status == Booking.STATUS_COMPLETED


def test_expire_stale_command_respects_ttl(app, owner, make_property):
    payment = PaymentService.create_advertise_payment(make_property(owner, published=False).id, owner.id)

    result = app.test_cli_runner().invoke(args=["payments", "expire-stale", "--ttl-minutes", "60"])

    assert "Expired 0 pending payment(s)." in result.output
    db.session.expire_all()
    assert db.session.get(Payment, payment.id).status == Payment.STATUS_PENDING
