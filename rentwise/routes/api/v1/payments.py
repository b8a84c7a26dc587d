from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from rentwise.decorators import role_required
from rentwise.errors import InternalError
from rentwise.extensions import limiter
from rentwise.gateways import get_gateway
from rentwise.services import PaymentService, ReconciliationService

api_payment_bp = Blueprint("api_payment", __name__)


@api_payment_bp.post("/advertise")
@login_required
@role_required("owner")
def advertise_payment():
    payload = request.get_json(silent=True) or {}
    payment = PaymentService.create_advertise_payment(payload.get("property_id"), current_user.id)
    return (
        jsonify(
            {
                "message": "Advertisement payment created.",
                "payment_id": payment.id,
                "commission": str(payment.commission),
                "redirect_url": payment.redirect_url,
            }
        ),
        201,
    )


@api_payment_bp.post("/booking")
@login_required
@role_required("renter")
def booking_payment():
    payload = request.get_json(silent=True) or {}
    payment = PaymentService.create_booking_payment(payload.get("booking_id"), current_user.id)
    return (
        jsonify(
            {
                "message": "Booking payment created.",
                "payment_id": payment.id,
                "total_amount": str(payment.amount),
                "commission": str(payment.commission),
                "redirect_url": payment.redirect_url,
            }
        ),
        201,
    )


@api_payment_bp.get("/mine")
@login_required
def my_payments():
    return jsonify(PaymentService.list_payments_for(current_user.id))


@api_payment_bp.route("/callback", methods=["GET", "POST"])
def gateway_callback():
    try:
        notification = get_gateway().parse_notification(request.args, request.get_data(), request.headers)
    except (AttributeError, KeyError, TypeError, ValueError):
        current_app.logger.exception("Gateway callback payload could not be parsed; acknowledged without changes")
        return jsonify({"received": True})
    try:
        result = ReconciliationService.handle_notification(notification)
    except InternalError:
        return jsonify({"received": False}), 500
    if result is None:
        return jsonify({"received": True})
    return jsonify({"received": True, "payment_id": result.payment_id, "payment_type": result.payment_type})


@api_payment_bp.post("/confirm")
@login_required
@limiter.limit("30 per minute")
def confirm_payment():
    payload = request.get_json(silent=True)
    payment_id = None
    if isinstance(payload, dict):
        transaction_id = payload.get("transaction_id")
        payment_id = payload.get("payment_id")
    else:
        # Some clients post the bare transaction id as a JSON string.
        transaction_id = payload
    result = ReconciliationService.confirm_transaction(transaction_id, current_user.id, payment_id=payment_id)
    current_app.logger.info("Payment %s confirmed by user %s", result.payment_id, current_user.id)
    return jsonify(
        {
            "message": "Payment confirmed successfully.",
            "transaction_id": result.transaction_id,
            "payment_id": result.payment_id,
            "payment_type": result.payment_type,
        }
    )
