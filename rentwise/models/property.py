from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class Property(TimestampMixin, db.Model):
    __tablename__ = "properties"

    STATUS_PENDING = "pending"
    STATUS_AVAILABLE = "available"
    STATUS_REJECTED = "rejected"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    rooms_count = db.Column(db.Integer, nullable=False, default=1)
    city = db.Column(db.String(120), nullable=True)
    region = db.Column(db.String(120), nullable=True)
    street = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(24), nullable=False, default=STATUS_PENDING, index=True)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship("User", back_populates="properties")
    images = db.relationship("PropertyImage", back_populates="property", cascade="all, delete-orphan")
    bookings = db.relationship("Booking", back_populates="property", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_properties_status_created", "status", "created_at"),
        db.CheckConstraint("price > 0", name="ck_property_price_positive"),
    )
