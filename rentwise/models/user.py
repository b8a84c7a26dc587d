from flask_login import UserMixin

from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    ROLES = {"owner", "renter", "admin"}

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)

    properties = db.relationship("Property", back_populates="owner", lazy="dynamic")
    bookings = db.relationship("Booking", back_populates="renter", lazy="dynamic")
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")

    @property
    def is_active(self):
        return bool(self.is_active_user)
