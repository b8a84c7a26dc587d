from rentwise.models.booking import Booking
from rentwise.models.notification import Notification
from rentwise.models.payment import Payment
from rentwise.models.property import Property
from rentwise.models.property_image import PropertyImage
from rentwise.models.user import User

__all__ = [
    "User",
    "Property",
    "PropertyImage",
    "Booking",
    "Payment",
    "Notification",
]
