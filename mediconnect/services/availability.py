"""Slot candidates for one doctor and date, derived from the weekly template."""
from dataclasses import dataclass, asdict
from datetime import datetime

from flask import current_app

from mediconnect.errors import NotFound, ValidationError
from mediconnect.extensions import db
from mediconnect.models.appointment_models import Appointment, ACTIVE_STATUSES, APPOINTMENT_TYPES
from mediconnect.models.doctor_models import Doctor, AvailabilityWindow
from mediconnect.utils.time_util import (
    from_minutes, parse_clock, parse_date, parse_slot_time, slot_datetime, to_minutes,
)


@dataclass
class SlotCandidate:
    time: str
    available: bool
    in_window: bool
    occupied: bool
    is_past: bool
    will_preempt: bool = False

    def to_dict(self):
        return asdict(self)


def get_doctor(doctor_id):
    doctor = db.session.get(Doctor, doctor_id)
    if not doctor:
        raise NotFound(f"Doctor {doctor_id} not found")
    return doctor


def find_window(doctor_id, target_date):
    """The bookable window for the date's weekday, or None."""
    window = AvailabilityWindow.query.filter_by(
        doctor_id=doctor_id, day_of_week=target_date.weekday()
    ).first()
    if window and window.is_available:
        return window
    return None


def in_window(window, clock):
    if window is None:
        return False
    return to_minutes(window.start_time) <= to_minutes(clock) < to_minutes(window.end_time)


def occupied_times(doctor_id, target_date):
    rows = Appointment.query.with_entities(Appointment.appointment_time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == target_date,
        Appointment.status.in_(ACTIVE_STATUSES),
    ).all()
    return {row.appointment_time for row in rows}


def _candidate_times(window, slot_minutes):
    start = to_minutes(current_app.config['SLOT_DAY_START'])
    end = to_minutes(current_app.config['SLOT_DAY_END'])
    times = set(range(start, end + 1, slot_minutes))
    if window is not None:
        first = to_minutes(window.start_time)
        first += -first % slot_minutes
        times.update(range(first, to_minutes(window.end_time), slot_minutes))
    return [from_minutes(minutes) for minutes in sorted(times)]


def list_available_slots(doctor_id, target_date, appointment_type='scheduled', now=None):
    """Every candidate slot of the day, flagged for the requested booking type.

    Scheduled requests may only take free, future slots inside the window.
    Emergency requests may take any future slot; occupied ones are marked
    `will_preempt`.
    """
    if appointment_type not in APPOINTMENT_TYPES:
        raise ValidationError(f"Unknown appointment type '{appointment_type}'")
    get_doctor(doctor_id)
    target_date = parse_date(target_date)
    now = now or datetime.now()
    slot_minutes = current_app.config['SLOT_MINUTES']

    window = find_window(doctor_id, target_date)
    taken = occupied_times(doctor_id, target_date)
    emergency = appointment_type == 'emergency'

    slots = []
    for clock in _candidate_times(window, slot_minutes):
        past = slot_datetime(target_date, clock) < now
        occupied = clock in taken
        inside = in_window(window, clock)
        if emergency:
            available = not past
        else:
            available = inside and not occupied and not past
        slots.append(SlotCandidate(
            time=clock,
            available=available,
            in_window=inside,
            occupied=occupied,
            is_past=past,
            will_preempt=emergency and occupied and not past,
        ))
    return slots


def list_availability(doctor_id):
    get_doctor(doctor_id)
    return AvailabilityWindow.query.filter_by(doctor_id=doctor_id).order_by(AvailabilityWindow.day_of_week).all()


def set_availability(doctor_id, day_of_week, start_time, end_time, is_available=True):
    """Creates or replaces the doctor's window for one weekday."""
    get_doctor(doctor_id)
    try:
        day_of_week = int(day_of_week)
    except (TypeError, ValueError):
        raise ValidationError("day_of_week must be an integer between 0 (Monday) and 6 (Sunday)")
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be an integer between 0 (Monday) and 6 (Sunday)")

    slot_minutes = current_app.config['SLOT_MINUTES']
    start_time = parse_slot_time(start_time, slot_minutes)
    end_time = parse_clock(end_time)
    if to_minutes(end_time) <= to_minutes(start_time):
        raise ValidationError("end_time must be after start_time")

    window = AvailabilityWindow.query.filter_by(doctor_id=doctor_id, day_of_week=day_of_week).first()
    if not window:
        window = AvailabilityWindow(doctor_id=doctor_id, day_of_week=day_of_week)
        db.session.add(window)
    window.start_time = start_time
    window.end_time = end_time
    window.is_available = bool(is_available)
    db.session.commit()
    return window
