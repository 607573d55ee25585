"""Appointment creation, emergency preemption and lifecycle transitions.

Slot ownership is decided by the unique `active_slot_key` column, not by the
read that precedes each write: the reads only produce friendlier errors and
pick the appointment to preempt. State changes go through
`Appointment.compare_and_set`, so a transition that lost a race changes
nothing and surfaces as `InvalidTransition`.
"""
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from mediconnect.errors import InvalidTransition, NotFound, PermissionDenied, SlotConflict, ValidationError
from mediconnect.extensions import db
from mediconnect.models.appointment_models import (
    Appointment, ACTIVE_STATUSES, APPOINTMENT_TYPES, COMMUNICATION_LOCKED, PREEMPTED_NOTE,
)
from mediconnect.models.doctor_models import Doctor
from mediconnect.models.revenue_models import PlatformFeeSettings
from mediconnect.services import notifications
from mediconnect.services.availability import find_window, get_doctor, in_window
from mediconnect.utils.db_util import run_with_write_retry
from mediconnect.utils.time_util import parse_date, parse_slot_time, slot_datetime, to_money

logger = logging.getLogger(__name__)


def get_appointment(appointment_id):
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


def append_note(notes, note):
    return f"{notes} {note}".strip() if notes else note


def _resolve_base_amount(doctor, appointment_type, amount):
    if amount is None:
        amount = doctor.consultation_fee
        if appointment_type == 'emergency' and doctor.emergency_fee:
            amount = doctor.emergency_fee
    base = to_money(amount)
    if base <= 0:
        raise ValidationError("Appointment amount must be positive")
    return base


def create_appointment(doctor_id, patient_id, appointment_date, appointment_time,
                       appointment_type='scheduled', amount=None, now=None):
    """Books a slot and returns the new pending appointment.

    Scheduled bookings fail with SlotConflict when the slot is held. Emergency
    bookings cancel the holder, notify its patient and take the slot, all in
    one transaction.
    """
    if appointment_type not in APPOINTMENT_TYPES:
        raise ValidationError(f"Unknown appointment type '{appointment_type}'")

    doctor = get_doctor(doctor_id)
    if not doctor.is_verified:
        raise ValidationError("Doctor is not accepting bookings until verified")

    appointment_date = parse_date(appointment_date)
    appointment_time = parse_slot_time(appointment_time, current_app.config['SLOT_MINUTES'])
    now = now or datetime.now()
    if slot_datetime(appointment_date, appointment_time) < now:
        raise ValidationError("Cannot book a slot in the past")

    if appointment_type == 'scheduled':
        window = find_window(doctor.id, appointment_date)
        if window is None:
            raise ValidationError("Doctor is not available on this date")
        if not in_window(window, appointment_time):
            raise ValidationError("Selected time is outside doctor availability")

    base = _resolve_base_amount(doctor, appointment_type, amount)
    # Snapshot of the fee configuration, frozen on the record from here on
    fee = PlatformFeeSettings.current().compute_fee(base)

    fields = dict(
        doctor_id=doctor.id,
        patient_id=patient_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        appointment_type=appointment_type,
        base_amount=base,
        platform_fee=fee,
        total_amount=base + fee,
        status='pending',
        payment_status='pending',
        active_slot_key=Appointment.slot_key(doctor.id, appointment_date, appointment_time),
    )

    if appointment_type == 'scheduled':
        return run_with_write_retry(lambda: _book_free_slot(fields))
    return run_with_write_retry(lambda: _book_with_preemption(fields))


def _book_free_slot(fields):
    key = fields['active_slot_key']
    if Appointment.query.filter_by(active_slot_key=key).first():
        raise SlotConflict("This slot is already booked", details={'slot': key})

    appointment = Appointment(**fields)
    db.session.add(appointment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotConflict("This slot is already booked", details={'slot': key})

    logger.info("Appointment %s booked slot %s", appointment.id, key)
    return appointment


def _book_with_preemption(fields):
    key = fields['active_slot_key']
    attempts = current_app.config.get('DB_WRITE_ATTEMPTS', 5)

    for _ in range(attempts):
        holder = Appointment.query.filter_by(active_slot_key=key).first()
        if holder is not None:
            holder_id, holder_patient = holder.id, holder.patient_id
            preempted = Appointment.compare_and_set(
                holder_id,
                {'status': ACTIVE_STATUSES, 'active_slot_key': key},
                {
                    'status': 'cancelled',
                    'active_slot_key': None,
                    'cancellation_reason': PREEMPTED_NOTE,
                    'notes': append_note(holder.notes, PREEMPTED_NOTE),
                    **COMMUNICATION_LOCKED,
                },
            )
            if not preempted:
                # The holder moved on since we read it; look again
                db.session.rollback()
                continue
            notifications.notify(
                holder_patient,
                'preempted',
                f"Your appointment on {fields['appointment_date'].isoformat()} at "
                f"{fields['appointment_time']} was cancelled due to an emergency booking.",
                payload={
                    'appointment_id': holder_id,
                    'doctor_id': fields['doctor_id'],
                    'appointment_date': fields['appointment_date'].isoformat(),
                    'appointment_time': fields['appointment_time'],
                },
                commit=False,
            )

        appointment = Appointment(**fields)
        db.session.add(appointment)
        try:
            db.session.commit()
        except IntegrityError:
            # Another booking took the slot between our read and our insert
            db.session.rollback()
            continue

        if holder is not None:
            logger.info("Emergency appointment %s preempted appointment %s on slot %s",
                        appointment.id, holder_id, key)
        else:
            logger.info("Emergency appointment %s booked free slot %s", appointment.id, key)
        return appointment

    raise SlotConflict("Slot is under heavy contention, please retry", details={'slot': key})


def _ensure_party(appointment, actor):
    if actor is None or actor.is_admin:
        return
    if not appointment.is_party(actor):
        raise PermissionDenied("You are not a participant of this appointment")


def _other_parties(appointment, actor):
    """User ids to tell about a change made by `actor`; both parties when the actor is neither."""
    parties = [appointment.patient_id, appointment.doctor.user_id]
    if actor is not None and not actor.is_admin:
        parties = [user_id for user_id in parties if user_id != actor.id]
    return parties


def cancel_appointment(appointment_id, reason, actor=None):
    """Cancels a pending or confirmed appointment and frees its slot."""
    appointment = get_appointment(appointment_id)
    _ensure_party(appointment, actor)
    reason = (reason or '').strip() or 'cancelled'

    if actor is None or actor.is_admin:
        cancelled_by = 'the clinic'
    else:
        cancelled_by = f"the {actor.role}"
    message = (f"Your appointment on {appointment.appointment_date.isoformat()} at "
               f"{appointment.appointment_time} was cancelled by {cancelled_by}. Reason: {reason}")
    payload = {'appointment_id': appointment.id, 'reason': reason}
    recipients = _other_parties(appointment, actor)

    def _cancel():
        changed = Appointment.compare_and_set(
            appointment.id,
            {'status': ACTIVE_STATUSES},
            {
                'status': 'cancelled',
                'active_slot_key': None,
                'cancellation_reason': reason[:255],
                'notes': append_note(appointment.notes, f"Cancelled: {reason}"),
                **COMMUNICATION_LOCKED,
            },
        )
        if not changed:
            db.session.rollback()
            current = get_appointment(appointment.id)
            raise InvalidTransition(f"Cannot cancel an appointment that is {current.status}")
        for recipient_id in recipients:
            notifications.notify(recipient_id, 'generic', message, payload=payload, commit=False)
        db.session.commit()

    run_with_write_retry(_cancel)
    logger.info("Appointment %s cancelled: %s", appointment_id, reason)
    return get_appointment(appointment_id)


def complete_appointment(appointment_id, actor=None):
    """Marks a confirmed appointment as held. Chat locks once the consultation is over."""
    appointment = get_appointment(appointment_id)
    if actor is not None and not actor.is_admin:
        if not (actor.is_doctor and appointment.is_party(actor)):
            raise PermissionDenied("Only the assigned doctor can complete this appointment")

    def _complete():
        changed = Appointment.compare_and_set(
            appointment.id,
            {'status': 'confirmed', 'payment_status': 'paid'},
            {'status': 'completed', 'active_slot_key': None, 'chat_unlocked': False},
        )
        if not changed:
            db.session.rollback()
            current = get_appointment(appointment.id)
            raise InvalidTransition(f"Cannot complete an appointment that is {current.status}")
        db.session.commit()

    run_with_write_retry(_complete)
    logger.info("Appointment %s completed", appointment_id)
    return get_appointment(appointment_id)


def list_appointments(actor):
    """Appointments visible to the actor, newest slot first."""
    query = Appointment.query
    if actor.is_patient:
        query = query.filter(Appointment.patient_id == actor.id)
    elif actor.is_doctor:
        query = query.join(Appointment.doctor).filter(Doctor.user_id == actor.id)
    return query.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc()).all()


def get_appointment_for(appointment_id, actor):
    appointment = get_appointment(appointment_id)
    _ensure_party(appointment, actor)
    return appointment
