from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from rentwise.services import NotificationService

api_notification_bp = Blueprint("api_notification", __name__)


@api_notification_bp.get("/me")
@login_required
def my_notifications():
    unread_only = request.args.get("unread", default=0, type=int) == 1
    items = NotificationService.latest_for_user(current_user.id, limit=20, unread_only=unread_only)
    return jsonify(
        {
            "unread": NotificationService.unread_count(current_user.id),
            "items": [
                {
                    "id": n.id,
                    "kind": n.kind,
                    "title": n.title,
                    "message": n.message,
                    "booking_id": n.booking_id,
                    "payment_id": n.payment_id,
                    "is_read": n.is_read,
                    "created_at": n.created_at.isoformat(),
                }
                for n in items
            ],
        }
    )


@api_notification_bp.post("/me/read")
@login_required
def mark_all_read():
    updated = NotificationService.mark_all_read(current_user.id)
    return jsonify({"ok": True, "updated": updated})
