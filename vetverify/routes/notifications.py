"""
Notification feed API routes.
"""

from flask import jsonify, request

from . import notifications_bp
from .helpers import services


@notifications_bp.route("/api/notifications/<user_id>")
def list_notifications(user_id):
    """Newest first. ?unread=1 for unread only."""
    feed = services().feed
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    items = feed.list_for_user(user_id, unread_only=unread_only)
    return jsonify({
        "items": [n.to_dict() for n in items],
        "unread_count": feed.unread_count(user_id),
    })


@notifications_bp.route("/api/notifications/<user_id>/<notification_id>/read", methods=["POST"])
def mark_read(user_id, notification_id):
    notification = services().feed.mark_read(user_id, notification_id)
    return jsonify(notification.to_dict())


@notifications_bp.route("/api/notifications/<user_id>/read-all", methods=["POST"])
def mark_all_read(user_id):
    changed = services().feed.mark_all_read(user_id)
    return jsonify({"changed": changed})
