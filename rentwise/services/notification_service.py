from rentwise.extensions import db
from rentwise.models import Notification


class NotificationService:
    @staticmethod
    def push(user_id, title, message, kind=Notification.KIND_BOOKING, booking_id=None, payment_id=None):
        """Queue a notification in the caller's transaction; the caller commits."""
        notification = Notification(
            user_id=user_id,
            kind=kind,
            title=title,
            message=message,
            booking_id=booking_id,
            payment_id=payment_id,
        )
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=20, unread_only=False):
        query = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            query = query.filter_by(is_read=False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def mark_all_read(user_id):
        updated = Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
        return updated
