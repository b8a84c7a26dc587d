"""
Settles pending payments once the gateway reports a successful transaction.

Two entry points share one commit path:

* ``handle_notification`` for gateway callbacks (unauthenticated, delivered
  at least once, possibly duplicated);
* ``confirm_transaction`` for a signed-in client that comes back from the
  gateway with a transaction id.

A notification is matched to exactly one payment through the correlation
data we sent when the order was opened: the gateway order id, then our
merchant reference. A payment is never picked by recency.

The pending -> paid flip is a conditional UPDATE guarded on
``status = 'pending' AND transaction_id IS NULL``, so when two deliveries
race only one of them claims the row; the other observes the paid payment
and returns it as already settled without repeating the cascade.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rentwise.errors import (
    AppError,
    ConflictError,
    InternalError,
    InvalidArgumentError,
    PaymentNotCompletedError,
    PaymentNotFoundError,
)
from rentwise.extensions import db
from rentwise.gateways import get_gateway, to_minor_units
from rentwise.models import Booking, Notification, Payment, Property
from rentwise.models.base import utcnow
from rentwise.services.lifecycle import BookingLifecycle, PropertyLifecycle
from rentwise.services.notification_service import NotificationService


@dataclass(frozen=True)
class ReconciliationResult:
    payment_id: int
    payment_type: str
    transaction_id: str
    already_settled: bool = False


class ReconciliationService:
    @staticmethod
    def handle_notification(notification) -> Optional[ReconciliationResult]:
        """
        Apply a gateway callback. Returns None when the notification was
        acknowledged without any state change.

        Only persistence failures propagate (as InternalError) so the gateway
        sees a 5xx and redelivers.
        """
        if notification is None:
            current_app.logger.warning("Gateway callback could not be parsed; acknowledged without changes")
            return None
        if not notification.success or not notification.transaction_id:
            current_app.logger.info(
                "Gateway callback for transaction %s reports no success; nothing to settle",
                notification.transaction_id,
            )
            return None

        try:
            return ReconciliationService._reconcile(
                transaction_id=notification.transaction_id,
                order_id=notification.order_id,
                merchant_reference=notification.merchant_reference,
                amount_cents=notification.amount_cents,
            )
        except (PaymentNotFoundError, ConflictError) as exc:
            current_app.logger.warning(
                "Gateway callback for transaction %s (order %s) not applied: %s",
                notification.transaction_id,
                notification.order_id,
                exc.message,
            )
            return None

    @staticmethod
    def confirm_transaction(transaction_id, caller_id, payment_id=None) -> ReconciliationResult:
        transaction_id = str(transaction_id or "").strip()
        if not transaction_id:
            raise InvalidArgumentError("Transaction ID is required.")
        if payment_id is not None:
            try:
                payment_id = int(payment_id)
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError("Payment ID must be an integer.") from exc

        status = get_gateway().query_transaction(transaction_id)
        if not status.success:
            raise PaymentNotCompletedError("Payment failed or not completed.")

        return ReconciliationService._reconcile(
            transaction_id=transaction_id,
            order_id=status.order_id,
            merchant_reference=status.merchant_reference,
            amount_cents=status.amount_cents,
            caller_id=caller_id,
            payment_id=payment_id,
        )

    @staticmethod
    def _find_payment(order_id=None, merchant_reference=None, caller_id=None, payment_id=None):
        payment = None
        if order_id:
            payment = Payment.query.filter(Payment.gateway_order_id == str(order_id)).with_for_update().first()
            if payment is not None and merchant_reference and payment.merchant_reference != merchant_reference:
                current_app.logger.warning(
                    "Gateway order %s belongs to payment %s but reference %s names another payment",
                    order_id,
                    payment.id,
                    merchant_reference,
                )
                raise PaymentNotFoundError("No pending payment matches this transaction.")
        if payment is None and merchant_reference:
            payment = Payment.query.filter(Payment.merchant_reference == merchant_reference).with_for_update().first()
        # A caller-supplied payment id is only trusted when the gateway carried no correlation data at all.
        if payment is None and not order_id and not merchant_reference and payment_id is not None:
            candidate = Payment.query.filter(Payment.id == payment_id).with_for_update().first()
            if candidate is not None and caller_id in {candidate.owner_id, candidate.renter_id}:
                payment = candidate
        if payment is None:
            raise PaymentNotFoundError("No pending payment matches this transaction.")
        return payment

    @staticmethod
    def _reconcile(transaction_id, order_id=None, merchant_reference=None, amount_cents=None, caller_id=None, payment_id=None):
        try:
            payment = ReconciliationService._find_payment(order_id, merchant_reference, caller_id, payment_id)
        except PaymentNotFoundError:
            db.session.rollback()
            raise

        if payment.status == Payment.STATUS_PAID:
            result = ReconciliationService._settled_result(payment, transaction_id)
            db.session.rollback()
            return result
        if payment.status != Payment.STATUS_PENDING:
            current_app.logger.error(
                "Transaction %s succeeded for %s payment %s; manual refund required",
                transaction_id,
                payment.status,
                payment.id,
            )
            db.session.rollback()
            raise ConflictError("Payment is no longer pending.")
        if amount_cents is not None and int(amount_cents) != to_minor_units(payment.amount):
            current_app.logger.error(
                "Transaction %s amount %s does not match payment %s amount %s",
                transaction_id,
                amount_cents,
                payment.id,
                payment.amount,
            )
            db.session.rollback()
            raise ConflictError("Transaction amount does not match the payment.")

        holder = (
            Payment.query.with_entities(Payment.id)
            .filter(Payment.transaction_id == transaction_id, Payment.id != payment.id)
            .first()
        )
        if holder is not None:
            db.session.rollback()
            raise ConflictError("Transaction is already attached to another payment.")

        return ReconciliationService._commit(payment, transaction_id)

    @staticmethod
    def _commit(payment, transaction_id):
        payment_id = payment.id
        payment_type = payment.payment_type
        booking_id = payment.booking_id
        property_id = payment.property_id
        now = utcnow()

        try:
            claimed = db.session.execute(
                update(Payment)
                .where(
                    Payment.id == payment_id,
                    Payment.status == Payment.STATUS_PENDING,
                    Payment.transaction_id.is_(None),
                )
                .values(
                    status=Payment.STATUS_PAID,
                    is_confirmed=True,
                    transaction_id=transaction_id,
                    paid_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                # Another delivery settled this payment after we read it.
                db.session.rollback()
                settled = db.session.get(Payment, payment_id, populate_existing=True)
                result = ReconciliationService._settled_result(settled, transaction_id)
                db.session.rollback()
                return result

            if booking_id is not None:
                ReconciliationService._approve_booking(booking_id, payment_id)
            if property_id is not None:
                ReconciliationService._publish_property(property_id, payment_id)

            db.session.commit()
        except AppError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            current_app.logger.warning("Transaction %s already recorded on another payment", transaction_id)
            raise ConflictError("Transaction is already attached to another payment.") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Settling payment %s failed", payment_id)
            raise InternalError("Could not record the payment.") from exc

        current_app.logger.info("Payment %s (%s) settled by transaction %s", payment_id, payment_type, transaction_id)
        return ReconciliationResult(payment_id=payment_id, payment_type=payment_type, transaction_id=transaction_id)

    @staticmethod
    def _settled_result(payment, transaction_id):
        if payment is None or payment.status != Payment.STATUS_PAID:
            raise ConflictError("Payment is no longer pending.")
        if payment.transaction_id != transaction_id:
            current_app.logger.warning(
                "Payment %s already settled by transaction %s; ignoring %s",
                payment.id,
                payment.transaction_id,
                transaction_id,
            )
        else:
            current_app.logger.info("Payment %s already settled; duplicate delivery ignored", payment.id)
        return ReconciliationResult(
            payment_id=payment.id,
            payment_type=payment.payment_type,
            transaction_id=payment.transaction_id,
            already_settled=True,
        )

    @staticmethod
    def _approve_booking(booking_id, payment_id):
        booking = db.session.get(Booking, booking_id, with_for_update=True)
        if booking is None:
            raise ConflictError("Booking for this payment no longer exists.")
        if BookingLifecycle.approve(booking):
            property_ = booking.property
            NotificationService.push(
                booking.renter_id,
                "Booking confirmed",
                f"Payment received. Your booking #{booking.id} for {property_.title} is approved.",
                kind=Notification.KIND_PAYMENT,
                booking_id=booking.id,
                payment_id=payment_id,
            )
            NotificationService.push(
                property_.owner_id,
                "Booking paid",
                f"Booking #{booking.id} for {property_.title} has been paid.",
                kind=Notification.KIND_PAYMENT,
                booking_id=booking.id,
                payment_id=payment_id,
            )

    @staticmethod
    def _publish_property(property_id, payment_id):
        property_ = db.session.get(Property, property_id, with_for_update=True)
        if property_ is None:
            raise ConflictError("Property for this payment no longer exists.")
        if PropertyLifecycle.mark_advertised(property_):
            NotificationService.push(
                property_.owner_id,
                "Property published",
                f"{property_.title} is now visible to renters.",
                kind=Notification.KIND_LISTING,
                payment_id=payment_id,
            )
