"""Notification dispatch: append-only records, read by polling."""
import logging

from mediconnect.errors import NotFound, PermissionDenied, ValidationError
from mediconnect.extensions import db
from mediconnect.models.notification_models import Notification, NOTIFICATION_TYPES

logger = logging.getLogger(__name__)


def notify(recipient_id, notification_type, message, payload=None, commit=True):
    """Creates a notification.

    With commit=False the row joins the caller's transaction, so it is
    persisted if and only if the caller's own change is.
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type '{notification_type}'")
    if not message:
        raise ValidationError("Notification message is required")

    notification = Notification(
        user_id=recipient_id,
        type=notification_type,
        message=message,
        data=payload or {},
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
        logger.debug("Notification %s (%s) queued for user %s", notification.id, notification_type, recipient_id)
    return notification


def list_notifications(recipient_id, unread_only=False):
    query = Notification.query.filter_by(user_id=recipient_id)
    if unread_only:
        query = query.filter_by(read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(recipient_id):
    return Notification.query.filter_by(user_id=recipient_id, read=False).count()


def mark_read(notification_id, recipient_id=None):
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFound("Notification not found")
    if recipient_id is not None and notification.user_id != recipient_id:
        raise PermissionDenied("Not authorized to modify this notification")

    if not notification.read:
        notification.read = True
        db.session.commit()
    return notification


def mark_all_read(recipient_id):
    """Returns how many notifications changed."""
    count = Notification.query.filter_by(user_id=recipient_id, read=False).update(
        {'read': True}, synchronize_session=False
    )
    db.session.commit()
    return count
