from rentwise.services.auth_service import AuthService
from rentwise.services.booking_service import BookingService
from rentwise.services.file_service import FileService
from rentwise.services.lifecycle import BookingLifecycle, PropertyLifecycle
from rentwise.services.notification_service import NotificationService
from rentwise.services.payment_service import PaymentService
from rentwise.services.property_service import PropertyService
from rentwise.services.reconciliation_service import ReconciliationResult, ReconciliationService

__all__ = [
    "AuthService",
    "BookingLifecycle",
    "BookingService",
    "FileService",
    "NotificationService",
    "PaymentService",
    "PropertyLifecycle",
    "PropertyService",
    "ReconciliationResult",
    "ReconciliationService",
]
