"""Chat and video access for an appointment.

Doctors can always write and toggle access. Patients can always read the
history of their appointment but may only write while chat is unlocked.
"""
import logging
from datetime import datetime

from mediconnect.errors import InvalidTransition, PermissionDenied, ValidationError
from mediconnect.extensions import db
from mediconnect.models.appointment_models import Appointment
from mediconnect.models.chat_models import Message, MESSAGE_TYPES
from mediconnect.models.doctor_models import Doctor
from mediconnect.services import notifications
from mediconnect.services.booking import get_appointment
from mediconnect.utils.encryption_util import encryptor

logger = logging.getLogger(__name__)

VIDEO_FIELDS = {
    'provider': 'video_provider',
    'meeting_id': 'video_meeting_id',
    'doctor_link': 'video_doctor_link',
    'patient_link': 'video_patient_link',
}


def _require_assigned_doctor(appointment, actor):
    if not (actor.is_doctor and appointment.is_party(actor)):
        raise PermissionDenied("Only the assigned doctor can change chat or video access")


def _require_participant(appointment, actor):
    if actor.is_admin:
        return
    if not appointment.is_party(actor):
        raise PermissionDenied("You are not a participant of this appointment")


def set_permissions(appointment_id, actor, chat_unlocked=None, video_unlocked=None,
                    video=None, auto_send=False):
    """Updates the chat/video flags and the video meeting details.

    Returns the appointment. Flags left as None are not touched. With
    auto_send the patient gets a `video_link` notification carrying the
    patient join link.
    """
    appointment = get_appointment(appointment_id)
    _require_assigned_doctor(appointment, actor)

    unlocking = bool(chat_unlocked) or bool(video_unlocked)
    if unlocking and appointment.status in ('cancelled', 'completed'):
        raise InvalidTransition(f"Cannot unlock communication on a {appointment.status} appointment")

    if video is not None and not isinstance(video, dict):
        raise ValidationError("video must be an object")
    if video:
        unknown = set(video) - set(VIDEO_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown video fields: {', '.join(sorted(unknown))}")
        for key, column in VIDEO_FIELDS.items():
            if key in video:
                setattr(appointment, column, video[key] or None)

    if chat_unlocked is not None:
        previous = appointment.chat_unlocked
        appointment.chat_unlocked = bool(chat_unlocked)
        if appointment.chat_unlocked and not previous:
            notifications.notify(appointment.patient_id, 'chat_enabled',
                                 'Chat has been enabled for your appointment',
                                 payload={'appointment_id': appointment.id}, commit=False)
        elif previous and not appointment.chat_unlocked:
            notifications.notify(appointment.patient_id, 'chat_disabled',
                                 'Chat has been disabled for your appointment',
                                 payload={'appointment_id': appointment.id}, commit=False)

    if video_unlocked is not None:
        appointment.video_unlocked = bool(video_unlocked)
        if appointment.video_unlocked and not appointment.video_enabled:
            appointment.video_enabled_at = datetime.utcnow()
        elif not appointment.video_unlocked:
            appointment.video_enabled_at = None
        appointment.video_enabled = appointment.video_unlocked

    if auto_send:
        if not appointment.video_unlocked:
            db.session.rollback()
            raise ValidationError("Enable video before sending the meeting link")
        if not appointment.video_patient_link:
            db.session.rollback()
            raise ValidationError("A patient join link is required to send the meeting link")
        notifications.notify(
            appointment.patient_id,
            'video_link',
            f"Your video consultation link for {appointment.appointment_date.isoformat()} "
            f"at {appointment.appointment_time} is ready",
            payload={
                'appointment_id': appointment.id,
                'provider': appointment.video_provider,
                'meeting_id': appointment.video_meeting_id,
                'join_url': appointment.video_patient_link,
            },
            commit=False,
        )

    db.session.commit()
    logger.info("Permissions for appointment %s set: chat=%s video=%s",
                appointment.id, appointment.chat_unlocked, appointment.video_unlocked)
    return appointment


def send_message(appointment_id, actor, content=None, file_url=None, message_type='text'):
    appointment = get_appointment(appointment_id)
    if not appointment.is_party(actor):
        raise PermissionDenied("You are not a participant of this appointment")
    if actor.is_patient and not appointment.chat_unlocked:
        raise InvalidTransition(
            "Chat is disabled by the doctor. You can read messages but cannot send new messages."
        )

    content = (content or '').strip()
    if not content and not file_url:
        raise ValidationError("A message needs content or an attachment")
    if message_type not in MESSAGE_TYPES:
        raise ValidationError(f"Unknown message type '{message_type}'")

    message = Message(
        appointment_id=appointment.id,
        sender_id=actor.id,
        sender_role=actor.role,
        content=encryptor.encrypt(content) if content else '',
        file_url=file_url,
        message_type=message_type,
    )
    db.session.add(message)

    recipient_id = appointment.patient_id if actor.is_doctor else appointment.doctor.user_id
    notifications.notify(recipient_id, 'message', 'New message',
                         payload={'appointment_id': appointment.id}, commit=False)
    db.session.commit()
    return message


def list_messages(appointment_id, actor):
    """Full chat history, oldest first. Readable whatever the unlock flag says."""
    appointment = get_appointment(appointment_id)
    _require_participant(appointment, actor)
    return appointment.messages.order_by(Message.sent_at, Message.id).all()


def mark_messages_read(appointment_id, actor):
    appointment = get_appointment(appointment_id)
    _require_participant(appointment, actor)
    count = Message.query.filter(
        Message.appointment_id == appointment.id,
        Message.sender_id != actor.id,
        Message.is_read.is_(False),
    ).update({'is_read': True, 'read_at': datetime.utcnow()}, synchronize_session=False)
    db.session.commit()
    return count


def list_conversations(actor):
    """Latest message and unread count per appointment chat, most recent chat first.

    Patients and doctors see their own appointments; admins have no inbox.
    """
    query = Appointment.query.with_entities(Appointment.id)
    if actor.is_patient:
        query = query.filter(Appointment.patient_id == actor.id)
    elif actor.is_doctor:
        query = query.join(Appointment.doctor).filter(Doctor.user_id == actor.id)
    else:
        return []
    appointment_ids = [row.id for row in query.all()]
    if not appointment_ids:
        return []

    messages = Message.query.filter(Message.appointment_id.in_(appointment_ids)).order_by(
        Message.sent_at.desc(), Message.id.desc()
    ).all()

    conversations = {}
    for message in messages:
        conversation = conversations.setdefault(message.appointment_id, {
            'appointment_id': message.appointment_id,
            'last_message': message.to_dict(),
            'unread_count': 0,
        })
        if not message.is_read and message.sender_id != actor.id:
            conversation['unread_count'] += 1
    return list(conversations.values())
