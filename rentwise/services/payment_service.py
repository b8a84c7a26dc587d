from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from rentwise.errors import (
    ConflictError,
    ForbiddenError,
    GatewayUnavailableError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from rentwise.extensions import db
from rentwise.gateways import get_gateway, to_minor_units
from rentwise.models import Booking, Payment, Property, User
from rentwise.models.base import utcnow
from rentwise.services.lifecycle import PropertyLifecycle

CENTS = Decimal("0.01")


class PaymentService:
    @staticmethod
    def calculate_commission(amount, rate):
        return (Decimal(str(amount)) * Decimal(str(rate))).quantize(CENTS, rounding=ROUND_HALF_UP)

    @staticmethod
    def booking_amount(daily_price, start_date, end_date):
        days = (end_date - start_date).days
        if days <= 0:
            raise InvalidArgumentError("Booking must last at least one day.")
        return (Decimal(str(daily_price)) * Decimal(days)).quantize(CENTS, rounding=ROUND_HALF_UP)

    @staticmethod
    def _parse_id(value, label):
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"A valid {label} is required.") from exc

    @staticmethod
    def _new_reference():
        return f"RW-{uuid4().hex[:20].upper()}"

    @staticmethod
    def _open_gateway_order(payment, payer):
        """Create the gateway order for a payment and remember its id and redirect target."""
        gateway = get_gateway()
        amount_cents = to_minor_units(payment.amount)
        auth_token = gateway.authenticate()
        order_id = gateway.create_order(
            auth_token,
            amount_cents,
            payment.currency,
            current_app.config["PAYMENT_RETURN_URL"],
            payment.merchant_reference,
        )
        payment.gateway_order_id = str(order_id)
        payment.redirect_url = gateway.create_payment_handle(
            auth_token,
            order_id,
            amount_cents,
            payer.email,
            payer.full_name,
        )

    @staticmethod
    def _save_with_gateway_order(payment, payer):
        db.session.add(payment)
        try:
            PaymentService._open_gateway_order(payment, payer)
            db.session.commit()
        except GatewayUnavailableError:
            db.session.rollback()
            current_app.logger.warning("Gateway unavailable while opening %s payment", payment.payment_type)
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Saving %s payment failed", payment.payment_type)
            raise InternalError("Could not create payment.") from exc
        current_app.logger.info(
            "Payment %s (%s) opened with gateway order %s",
            payment.id,
            payment.payment_type,
            payment.gateway_order_id,
        )
        return payment

    @staticmethod
    def create_advertise_payment(property_id, caller_id):
        property_id = PaymentService._parse_id(property_id, "property_id")
        property_ = db.session.get(Property, property_id)
        if not property_:
            raise NotFoundError("Property not found.")
        if property_.owner_id != caller_id:
            raise ForbiddenError("You are not the owner of this property.")
        if property_.is_paid:
            raise ConflictError("This property has already been paid for.")

        payer = db.session.get(User, caller_id)
        amount = Decimal(str(property_.price)).quantize(CENTS)
        gateway = get_gateway()
        payment = Payment(
            payment_type=Payment.TYPE_ADVERTISE,
            property_id=property_.id,
            owner_id=property_.owner_id,
            amount=amount,
            commission=PaymentService.calculate_commission(amount, current_app.config["ADVERTISE_COMMISSION_RATE"]),
            currency=current_app.config["PAYMENT_CURRENCY"],
            status=Payment.STATUS_PENDING,
            is_confirmed=False,
            transaction_id=None,
            gateway=gateway.name,
            merchant_reference=PaymentService._new_reference(),
        )
        PropertyLifecycle.mark_awaiting_payment(property_)
        return PaymentService._save_with_gateway_order(payment, payer)

    @staticmethod
    def create_booking_payment(booking_id, caller_id):
        booking_id = PaymentService._parse_id(booking_id, "booking_id")
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found.")
        if booking.renter_id != caller_id:
            raise ForbiddenError("Not authorized for this booking.")
        if booking.status != Booking.STATUS_PENDING:
            raise ConflictError("Payment already made or booking is not in pending state.")

        property_ = booking.property
        amount = PaymentService.booking_amount(property_.price, booking.start_date, booking.end_date)
        gateway = get_gateway()
        payment = Payment(
            payment_type=Payment.TYPE_BOOKING,
            booking_id=booking.id,
            owner_id=property_.owner_id,
            renter_id=caller_id,
            amount=amount,
            commission=PaymentService.calculate_commission(amount, current_app.config["BOOKING_COMMISSION_RATE"]),
            currency=current_app.config["PAYMENT_CURRENCY"],
            status=Payment.STATUS_PENDING,
            is_confirmed=False,
            transaction_id=None,
            gateway=gateway.name,
            merchant_reference=PaymentService._new_reference(),
        )
        # The booking stays pending until the payment is reconciled.
        return PaymentService._save_with_gateway_order(payment, booking.renter)

    @staticmethod
    def list_payments_for(user_id):
        booking_property = aliased(Property)
        rows = (
            db.session.query(Payment, Property.title, booking_property.title, Booking.property_id)
            .outerjoin(Property, Property.id == Payment.property_id)
            .outerjoin(Booking, Booking.id == Payment.booking_id)
            .outerjoin(booking_property, booking_property.id == Booking.property_id)
            .filter(or_(Payment.owner_id == user_id, Payment.renter_id == user_id))
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )
        return [
            {
                "id": payment.id,
                "amount": str(payment.amount),
                "commission": str(payment.commission),
                "currency": payment.currency,
                "payment_type": payment.payment_type,
                "status": payment.status,
                "is_confirmed": payment.is_confirmed,
                "created_at": payment.created_at.isoformat(),
                "property_id": payment.property_id or booking_property_id,
                "property_title": advertised_title or booked_title,
                "booking_id": payment.booking_id,
            }
            for payment, advertised_title, booked_title, booking_property_id in rows
        ]

    @staticmethod
    def expire_stale(ttl_minutes=None, now=None):
        ttl = ttl_minutes if ttl_minutes is not None else current_app.config["PENDING_PAYMENT_TTL_MINUTES"]
        cutoff = (now or utcnow()) - timedelta(minutes=int(ttl))
        expired = (
            Payment.query.filter(Payment.status == Payment.STATUS_PENDING)
            .filter(Payment.transaction_id.is_(None))
            .filter(Payment.created_at < cutoff)
            .update(
                {"status": Payment.STATUS_FAILED, "failure_reason": "expired", "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        db.session.commit()
        if expired:
            current_app.logger.info("Expired %s pending payments older than %s minutes", expired, ttl)
        return expired
