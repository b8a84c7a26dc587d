import pytest

from rentwise.errors import ConflictError
from rentwise.models import Booking, Property
from rentwise.services import BookingLifecycle, PropertyLifecycle


@pytest.mark.parametrize(
    "current,target",
    [
        (Booking.STATUS_PENDING, Booking.STATUS_APPROVED),
        (Booking.STATUS_PENDING, Booking.STATUS_CANCELLED),
        (Booking.STATUS_PENDING, Booking.STATUS_REJECTED),
        (Booking.STATUS_APPROVED, Booking.STATUS_COMPLETED),
        (Booking.STATUS_APPROVED, Booking.STATUS_CANCELLED),
    ],
)
def test_allowed_booking_transitions(current, target):
    booking = Booking(status=current)

    BookingLifecycle.transition(booking, target)

    assert booking.status == target


@pytest.mark.parametrize(
    "current,target",
    [
        (Booking.STATUS_PENDING, Booking.STATUS_COMPLETED),
        (Booking.STATUS_CANCELLED, Booking.STATUS_APPROVED),
        (Booking.STATUS_REJECTED, Booking.STATUS_APPROVED),
        (Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED),
    ],
)
def test_refused_booking_transitions(current, target):
    booking = Booking(status=current)

    with pytest.raises(ConflictError):
        BookingLifecycle.transition(booking, target)
    assert booking.status == current


def test_transition_stamps_timestamps():
    booking = Booking(status=Booking.STATUS_PENDING)

    BookingLifecycle.transition(booking, Booking.STATUS_APPROVED)
    BookingLifecycle.transition(booking, Booking.STATUS_COMPLETED)

    assert booking.approved_at is not None
    assert booking.completed_at is not None
    assert booking.cancelled_at is None


def test_approve_is_idempotent():
    booking = Booking(status=Booking.STATUS_PENDING)

    assert BookingLifecycle.approve(booking) is True
    assert BookingLifecycle.approve(booking) is False
    assert booking.status == Booking.STATUS_APPROVED


def test_approve_refuses_cancelled_booking():
    booking = Booking(status=Booking.STATUS_CANCELLED)

    with pytest.raises(ConflictError):
        BookingLifecycle.approve(booking)


def test_mark_advertised_publishes_once():
    property_ = Property(status=Property.STATUS_PENDING, is_paid=False)

    assert PropertyLifecycle.mark_advertised(property_) is True
    first_published_at = property_.published_at
    assert PropertyLifecycle.mark_advertised(property_) is False

    assert property_.is_paid is True
    assert property_.status == Property.STATUS_AVAILABLE
    assert property_.published_at == first_published_at


def test_mark_awaiting_payment_unpublishes():
    property_ = Property(status=Property.STATUS_REJECTED, is_paid=False)

    PropertyLifecycle.mark_awaiting_payment(property_)

    assert property_.status == Property.STATUS_PENDING
    assert property_.is_paid is False
