from datetime import date

from flask import current_app

from rentwise.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from rentwise.extensions import db
from rentwise.models import Booking, Payment, Property
from rentwise.services.lifecycle import BookingLifecycle
from rentwise.services.notification_service import NotificationService


class BookingService:
    @staticmethod
    def _parse_date(value, label):
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value or "").strip()[:10])
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid {label}; expected YYYY-MM-DD.") from exc

    @staticmethod
    def _has_conflict(property_id, start_date, end_date):
        return (
            Booking.query.filter(Booking.property_id == property_id)
            .filter(Booking.status.in_(Booking.ACTIVE_STATUSES))
            .filter(Booking.start_date < end_date, Booking.end_date > start_date)
            .first()
            is not None
        )

    @staticmethod
    def create_booking(renter_id, property_id, start_date, end_date, today=None):
        try:
            property_id = int(property_id)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError("A valid property_id is required.") from exc
        property_ = db.session.get(Property, property_id)
        if not property_:
            raise NotFoundError("Property not found.")
        if property_.status != Property.STATUS_AVAILABLE:
            raise ConflictError("Property is not open for booking.")
        if property_.owner_id == renter_id:
            raise ForbiddenError("Owners cannot book their own property.")

        start = BookingService._parse_date(start_date, "start date")
        end = BookingService._parse_date(end_date, "end date")
        if end <= start:
            raise InvalidArgumentError("End date must be after start date.")
        if start < (today or date.today()):
            raise InvalidArgumentError("Start date cannot be in the past.")
        if BookingService._has_conflict(property_.id, start, end):
            raise ConflictError("Property already booked for the selected dates.")

        booking = Booking(
            property_id=property_.id,
            renter_id=renter_id,
            start_date=start,
            end_date=end,
            status=Booking.STATUS_PENDING,
        )
        db.session.add(booking)
        db.session.flush()
        NotificationService.push(
            property_.owner_id,
            "New booking request",
            f"Booking #{booking.id} requested for {property_.title} ({start} to {end}).",
            booking_id=booking.id,
        )
        db.session.commit()
        return booking

    @staticmethod
    def list_for_renter(renter_id):
        return (
            Booking.query.filter_by(renter_id=renter_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    @staticmethod
    def list_for_owner(owner_id):
        return (
            Booking.query.join(Property, Property.id == Booking.property_id)
            .filter(Property.owner_id == owner_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    @staticmethod
    def cancel_booking(booking_id, renter_id, today=None):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found.")
        if booking.renter_id != renter_id:
            raise ForbiddenError("Not authorized for this booking.")
        if booking.status not in Booking.ACTIVE_STATUSES:
            raise ConflictError(f"A {booking.status} booking cannot be cancelled.")
        if booking.end_date <= (today or date.today()):
            raise ConflictError("Booking has already ended.")

        BookingLifecycle.transition(booking, Booking.STATUS_CANCELLED)
        abandoned = (
            Payment.query.filter_by(booking_id=booking.id, status=Payment.STATUS_PENDING)
            .update({"status": Payment.STATUS_FAILED, "failure_reason": "booking_cancelled"}, synchronize_session=False)
        )
        if abandoned:
            current_app.logger.info("Booking %s cancelled; %s pending payments marked failed", booking.id, abandoned)
        NotificationService.push(
            booking.property.owner_id,
            "Booking cancelled",
            f"Booking #{booking.id} for {booking.property.title} was cancelled by the renter.",
            booking_id=booking.id,
        )
        db.session.commit()
        return booking

    @staticmethod
    def complete_finished(today=None):
        finished = (
            Booking.query.filter(Booking.status == Booking.STATUS_APPROVED)
            .filter(Booking.end_date < (today or date.today()))
            .all()
        )
        for booking in finished:
            BookingLifecycle.transition(booking, Booking.STATUS_COMPLETED)
        db.session.commit()
        return len(finished)
