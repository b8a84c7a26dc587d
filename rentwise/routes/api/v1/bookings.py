from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from rentwise.decorators import role_required
from rentwise.services import BookingService

api_booking_bp = Blueprint("api_booking", __name__)


def _booking_payload(booking):
    return {
        "id": booking.id,
        "status": booking.status,
        "property_id": booking.property_id,
        "property_title": booking.property.title,
        "renter_id": booking.renter_id,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
        "created_at": booking.created_at.isoformat(),
    }


@api_booking_bp.post("")
@login_required
@role_required("renter")
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.create_booking(
        renter_id=current_user.id,
        property_id=payload.get("property_id"),
        start_date=payload.get("start_date"),
        end_date=payload.get("end_date"),
    )
    return jsonify(_booking_payload(booking)), 201


@api_booking_bp.get("/me")
@login_required
@role_required("renter")
def my_bookings():
    return jsonify([_booking_payload(b) for b in BookingService.list_for_renter(current_user.id)])


@api_booking_bp.get("/owner")
@login_required
@role_required("owner")
def owner_bookings():
    return jsonify([_booking_payload(b) for b in BookingService.list_for_owner(current_user.id)])


@api_booking_bp.put("/<int:booking_id>/cancel")
@login_required
@role_required("renter")
def cancel_booking(booking_id):
    booking = BookingService.cancel_booking(booking_id, current_user.id)
    return jsonify({"id": booking.id, "status": booking.status})
