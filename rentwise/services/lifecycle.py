"""
State transitions for properties and bookings.

These functions only mutate the entity they are given; the caller owns the
transaction and decides when to commit.
"""

from rentwise.errors import ConflictError
from rentwise.models import Booking, Property
from rentwise.models.base import utcnow

BOOKING_TRANSITIONS = {
    Booking.STATUS_PENDING: {Booking.STATUS_APPROVED, Booking.STATUS_CANCELLED, Booking.STATUS_REJECTED},
    Booking.STATUS_APPROVED: {Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED},
    Booking.STATUS_CANCELLED: set(),
    Booking.STATUS_REJECTED: set(),
    Booking.STATUS_COMPLETED: set(),
}


class BookingLifecycle:
    @staticmethod
    def transition(booking, new_status):
        current = (booking.status or "").lower()
        if new_status not in BOOKING_TRANSITIONS.get(current, set()):
            raise ConflictError(f"Invalid booking transition from {current} to {new_status}.")

        booking.status = new_status
        now = utcnow()
        if new_status == Booking.STATUS_APPROVED:
            booking.approved_at = now
        elif new_status == Booking.STATUS_CANCELLED:
            booking.cancelled_at = now
        elif new_status == Booking.STATUS_COMPLETED:
            booking.completed_at = now
        return booking

    @staticmethod
    def approve(booking):
        """Approve a paid booking. Returns False when it was already approved."""
        if booking.status == Booking.STATUS_APPROVED:
            return False
        BookingLifecycle.transition(booking, Booking.STATUS_APPROVED)
        return True


class PropertyLifecycle:
    @staticmethod
    def mark_awaiting_payment(property_):
        property_.is_paid = False
        property_.status = Property.STATUS_PENDING
        return property_

    @staticmethod
    def mark_advertised(property_):
        """Publish a property after its advertise payment. Returns False when it was already paid."""
        if property_.is_paid:
            return False
        property_.is_paid = True
        property_.status = Property.STATUS_AVAILABLE
        property_.published_at = utcnow()
        return True
