from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    STATUS_PENDING = "pending"
    STATUS_PAID = "paid"
    STATUS_FAILED = "failed"

    TYPE_ADVERTISE = "advertise"
    TYPE_BOOKING = "booking"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    payment_type = db.Column(db.String(24), nullable=False, index=True)
    # Plain foreign keys only; the property and booking rows are owned elsewhere.
    property_id = db.Column(PKType, db.ForeignKey("properties.id"), nullable=True, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id"), nullable=True, index=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    renter_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    commission = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False)

    status = db.Column(db.String(24), nullable=False, default=STATUS_PENDING, index=True)
    is_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    transaction_id = db.Column(db.String(128), nullable=True, unique=True)

    gateway = db.Column(db.String(24), nullable=False)
    merchant_reference = db.Column(db.String(64), nullable=False, unique=True)
    gateway_order_id = db.Column(db.String(128), nullable=True, unique=True)
    redirect_url = db.Column(db.String(1000), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    failure_reason = db.Column(db.String(255), nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "(property_id IS NULL AND booking_id IS NOT NULL) OR (property_id IS NOT NULL AND booking_id IS NULL)",
            name="ck_payment_single_target",
        ),
        db.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        db.Index("ix_payments_status_created", "status", "created_at"),
    )
