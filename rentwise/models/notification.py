from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class Notification(TimestampMixin, db.Model):
    __tablename__ = "notifications"

    KIND_BOOKING = "booking"
    KIND_PAYMENT = "payment"
    KIND_LISTING = "listing"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = db.Column(db.String(24), nullable=False, default=KIND_BOOKING, index=True)
    title = db.Column(db.String(180), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Deep links for the client; cleared when the booking or payment is purged with its property.
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    payment_id = db.Column(PKType, db.ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)

    user = db.relationship("User", back_populates="notifications")

    __table_args__ = (db.Index("ix_notifications_user_read", "user_id", "is_read"),)
