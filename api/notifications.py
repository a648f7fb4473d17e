# api/notifications.py
"""
Notifications API
"""

from flask import Blueprint, g, jsonify
import logging

from core.database_models import db, Notification, utcnow
from core.errors import NotFoundError, ServiceError
from middleware.security import require_auth

notifications_bp = Blueprint('notifications', __name__)
logger = logging.getLogger(__name__)


@notifications_bp.route('/api/notifications', methods=['GET'])
@require_auth
def list_notifications():
    """Caller's notifications, unread first then newest first"""
    try:
        notifications = (
            db.session.query(Notification)
            .filter(Notification.user_id == g.current_user.id)
            .order_by(Notification.is_read.asc(), Notification.created_at.desc(), Notification.id.desc())
            .all()
        )
        return jsonify({
            'notifications': [n.to_dict() for n in notifications],
            'unreadCount': sum(1 for n in notifications if not n.is_read)
        })

    except Exception as e:
        logger.error(f"Error fetching notifications: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch notifications'}), 500


@notifications_bp.route('/api/notifications/<int:notification_id>/read', methods=['POST'])
@require_auth
def mark_read(notification_id):
    try:
        notification = (
            db.session.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == g.current_user.id)
            .first()
        )
        if notification is None:
            raise NotFoundError('Notification not found')

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.session.commit()

        return jsonify({'success': True, 'notification': notification.to_dict()})

    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error marking notification {notification_id} read: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update notification'}), 500
