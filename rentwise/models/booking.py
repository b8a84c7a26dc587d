from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_CANCELLED = "cancelled"
    STATUS_REJECTED = "rejected"
    STATUS_COMPLETED = "completed"
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED)

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    property_id = db.Column(PKType, db.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    renter_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(db.String(24), nullable=False, default=STATUS_PENDING, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    property = db.relationship("Property", back_populates="bookings")
    renter = db.relationship("User", back_populates="bookings")

    __table_args__ = (
        db.Index("ix_bookings_property_status", "property_id", "status"),
        db.Index("ix_bookings_renter_status", "renter_id", "status"),
    )
