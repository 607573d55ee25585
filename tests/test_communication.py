"""
Chat and video permissions
"""

import pytest

from mediconnect.errors import InvalidTransition, PermissionDenied, ValidationError
from mediconnect.extensions import db
from mediconnect.models.chat_models import Message
from mediconnect.models.notification_models import Notification
from mediconnect.services import booking, communication
from mediconnect.services.payments import confirm_payment
from mediconnect.utils.identity import Actor
from factories import book, make_doctor, reload

DOCTOR = Actor(100, 'doctor')
PATIENT = Actor(1, 'patient')


@pytest.fixture
def confirmed(app):
    doctor = make_doctor(user_id=DOCTOR.id)
    appointment = book(doctor.id, patient_id=PATIENT.id)
    confirm_payment(appointment.id, appointment.total_amount, 'gw-001')
    return appointment.id


def notices(user_id, notification_type):
    return Notification.query.filter_by(user_id=user_id, type=notification_type).all()


class TestChatPermissions:

    def test_locked_chat_keeps_history_readable(self, app, confirmed):
        """Scenario: doctor locks chat, patient cannot send but still reads history"""
        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=True)
        communication.send_message(confirmed, PATIENT, content='I have a fever')
        communication.send_message(confirmed, DOCTOR, content='Since when?')

        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=False)

        with pytest.raises(InvalidTransition):
            communication.send_message(confirmed, PATIENT, content='Two days')
        history = communication.list_messages(confirmed, PATIENT)
        assert [m.to_dict()['content'] for m in history] == ['I have a fever', 'Since when?']

    def test_patient_write_requires_unlock(self, app, confirmed):
        with pytest.raises(InvalidTransition):
            communication.send_message(confirmed, PATIENT, content='hello')

        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=True)
        message = communication.send_message(confirmed, PATIENT, content='hello')
        assert message.sender_role == 'patient'

    def test_doctor_can_always_write(self, app, confirmed):
        message = communication.send_message(confirmed, DOCTOR, content='Please fill the intake form')
        assert message.to_dict()['content'] == 'Please fill the intake form'

    def test_content_is_encrypted_at_rest(self, app, confirmed):
        message = communication.send_message(confirmed, DOCTOR, content='blood pressure 120/80')
        stored = db.session.get(Message, message.id).content

        assert stored != 'blood pressure 120/80'
        assert 'blood pressure' not in stored

    def test_message_notifies_the_other_party(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='hi')
        assert len(notices(PATIENT.id, 'message')) == 1

    def test_attachment_only_message(self, app, confirmed):
        message = communication.send_message(confirmed, DOCTOR, file_url='https://files.example/rx.pdf',
                                             message_type='file')
        assert message.to_dict()['content'] == ''

    def test_empty_message(self, app, confirmed):
        with pytest.raises(ValidationError):
            communication.send_message(confirmed, DOCTOR, content='   ')

    def test_toggle_notifies_patient_once(self, app, confirmed):
        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=True)
        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=True)
        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=False)

        assert len(notices(PATIENT.id, 'chat_enabled')) == 1
        assert len(notices(PATIENT.id, 'chat_disabled')) == 1

    def test_only_assigned_doctor_sets_permissions(self, app, confirmed):
        make_doctor(user_id=200)
        for actor in (PATIENT, Actor(200, 'doctor'), Actor(9, 'admin')):
            with pytest.raises(PermissionDenied):
                communication.set_permissions(confirmed, actor, chat_unlocked=True)
        assert not reload(confirmed).chat_unlocked

    def test_cannot_unlock_cancelled(self, app):
        doctor = make_doctor(user_id=DOCTOR.id)
        appointment = book(doctor.id, patient_id=PATIENT.id)
        booking.cancel_appointment(appointment.id, 'changed plans')

        with pytest.raises(InvalidTransition):
            communication.set_permissions(appointment.id, DOCTOR, chat_unlocked=True)

    def test_can_lock_cancelled(self, app):
        doctor = make_doctor(user_id=DOCTOR.id)
        appointment = book(doctor.id, patient_id=PATIENT.id)
        booking.cancel_appointment(appointment.id, 'changed plans')

        updated = communication.set_permissions(appointment.id, DOCTOR, chat_unlocked=False)
        assert not updated.chat_unlocked

    def test_strangers_cannot_read_or_write(self, app, confirmed):
        stranger = Actor(2, 'patient')
        with pytest.raises(PermissionDenied):
            communication.list_messages(confirmed, stranger)
        with pytest.raises(PermissionDenied):
            communication.send_message(confirmed, stranger, content='hi')

    def test_admin_can_read(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='hi')
        assert len(communication.list_messages(confirmed, Actor(9, 'admin'))) == 1

    def test_mark_messages_read(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='one')
        communication.send_message(confirmed, DOCTOR, content='two')

        assert communication.mark_messages_read(confirmed, DOCTOR) == 0
        assert communication.mark_messages_read(confirmed, PATIENT) == 2
        assert communication.mark_messages_read(confirmed, PATIENT) == 0


class TestVideoPermissions:

    VIDEO = {
        'provider': 'zoom',
        'meeting_id': '987654321',
        'doctor_link': 'https://zoom.example/s/987654321?role=host',
        'patient_link': 'https://zoom.example/j/987654321',
    }

    def test_auto_send_delivers_patient_link(self, app, confirmed):
        communication.set_permissions(confirmed, DOCTOR, video_unlocked=True, video=self.VIDEO,
                                      auto_send=True)

        sent = notices(PATIENT.id, 'video_link')
        assert len(sent) == 1
        assert sent[0].data['join_url'] == self.VIDEO['patient_link']
        assert self.VIDEO['doctor_link'] not in str(sent[0].data)

    def test_video_flags_stay_in_sync(self, app, confirmed):
        appointment = communication.set_permissions(confirmed, DOCTOR, video_unlocked=True)
        assert appointment.video_enabled
        assert appointment.video_enabled_at is not None

        appointment = communication.set_permissions(confirmed, DOCTOR, video_unlocked=False)
        assert not appointment.video_enabled
        assert appointment.video_enabled_at is None

    def test_auto_send_requires_patient_link(self, app, confirmed):
        with pytest.raises(ValidationError):
            communication.set_permissions(confirmed, DOCTOR, video_unlocked=True,
                                          video={'provider': 'zoom'}, auto_send=True)

        appointment = reload(confirmed)
        assert not appointment.video_unlocked
        assert appointment.video_provider is None
        assert notices(PATIENT.id, 'video_link') == []

    def test_auto_send_requires_unlocked_video(self, app, confirmed):
        with pytest.raises(ValidationError):
            communication.set_permissions(confirmed, DOCTOR, video=self.VIDEO, auto_send=True)

    def test_video_details_must_be_an_object(self, app, confirmed):
        for video in ([{'provider': 'zoom'}], 'zoom'):
            with pytest.raises(ValidationError):
                communication.set_permissions(confirmed, DOCTOR, video=video)
        assert reload(confirmed).video_provider is None

    def test_unknown_video_field(self, app, confirmed):
        with pytest.raises(ValidationError):
            communication.set_permissions(confirmed, DOCTOR, video={'password': 'secret'})

    def test_patient_view_hides_host_link(self, app, confirmed):
        appointment = communication.set_permissions(confirmed, DOCTOR, video_unlocked=True, video=self.VIDEO)

        assert 'doctor_link' not in appointment.to_dict()['video']
        assert appointment.to_dict(include_doctor_link=True)['video']['doctor_link'] == self.VIDEO['doctor_link']


class TestConversations:

    def test_lists_last_message_and_unread_count(self, app, confirmed):
        communication.set_permissions(confirmed, DOCTOR, chat_unlocked=True)
        communication.send_message(confirmed, DOCTOR, content='How are you feeling?')
        communication.send_message(confirmed, DOCTOR, content='Any fever?')

        [conversation] = communication.list_conversations(PATIENT)
        assert conversation['appointment_id'] == confirmed
        assert conversation['last_message']['content'] == 'Any fever?'
        assert conversation['unread_count'] == 2

        [doctor_view] = communication.list_conversations(DOCTOR)
        assert doctor_view['unread_count'] == 0

    def test_reading_clears_unread_count(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='hello')
        communication.mark_messages_read(confirmed, PATIENT)

        assert communication.list_conversations(PATIENT)[0]['unread_count'] == 0

    def test_most_recent_chat_first(self, app, confirmed):
        other = book(reload(confirmed).doctor_id, patient_id=PATIENT.id, clock='10:00')
        communication.send_message(confirmed, DOCTOR, content='first chat')
        communication.send_message(other.id, DOCTOR, content='second chat')

        listed = communication.list_conversations(PATIENT)
        assert [c['appointment_id'] for c in listed] == [other.id, confirmed]

    def test_appointments_without_messages_are_skipped(self, app, confirmed):
        assert communication.list_conversations(PATIENT) == []

    def test_other_patients_chats_are_hidden(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='private')
        assert communication.list_conversations(Actor(2, 'patient')) == []

    def test_admin_has_no_conversations(self, app, confirmed):
        communication.send_message(confirmed, DOCTOR, content='hi')
        assert communication.list_conversations(Actor(9, 'admin')) == []
