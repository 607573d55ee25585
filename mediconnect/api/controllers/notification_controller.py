from flask import request, jsonify
from mediconnect import services
from mediconnect.utils.identity import current_actor

def get_notifications():
    actor = current_actor()
    unread_only = request.args.get('unread', 'false').lower() == 'true'
    notifications = services.list_notifications(actor.id, unread_only=unread_only)
    return jsonify({'notifications': [n.to_dict() for n in notifications]}), 200

def get_unread_count():
    actor = current_actor()
    return jsonify({'count': services.unread_count(actor.id)}), 200

def mark_notification_read(notification_id):
    actor = current_actor()
    notification = services.mark_read(notification_id, recipient_id=actor.id)
    return jsonify({'notification': notification.to_dict()}), 200

def mark_all_notifications_read():
    actor = current_actor()
    return jsonify({'modified_count': services.mark_all_read(actor.id)}), 200
