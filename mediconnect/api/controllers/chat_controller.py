# /mediconnect/api/controllers/chat_controller.py
from flask import jsonify
from mediconnect import services
from mediconnect.utils.identity import current_actor
from mediconnect.utils.request_util import json_object

def get_messages(appointment_id):
    """Chat history for an appointment, oldest first."""
    actor = current_actor()
    messages = services.list_messages(appointment_id, actor)
    return jsonify({'messages': [message.to_dict() for message in messages]}), 200

def send_message(appointment_id):
    actor = current_actor()
    data = json_object(required=False)
    message = services.send_message(
        appointment_id,
        actor,
        content=data.get('content'),
        file_url=data.get('file_url'),
        message_type=data.get('message_type', 'text'),
    )
    return jsonify({'message': message.to_dict()}), 201

def mark_messages_read(appointment_id):
    actor = current_actor()
    count = services.mark_messages_read(appointment_id, actor)
    return jsonify({'message': 'Messages marked as read', 'count': count}), 200

def update_permissions(appointment_id):
    """Doctor-only: set chat/video access and optionally send the video link."""
    actor = current_actor()
    data = json_object(required=False)
    appointment = services.set_permissions(
        appointment_id,
        actor,
        chat_unlocked=data.get('chat_unlocked'),
        video_unlocked=data.get('video_unlocked'),
        video=data.get('video'),
        auto_send=bool(data.get('auto_send', False)),
    )
    return jsonify({
        'message': 'Permissions updated',
        'appointment': appointment.to_dict(include_doctor_link=True),
    }), 200

def get_conversations():
    """One entry per appointment chat: last message and unread count."""
    actor = current_actor()
    return jsonify({'conversations': services.list_conversations(actor)}), 200
