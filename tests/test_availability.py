"""
Slot listing and weekly availability windows
"""

from datetime import datetime

import pytest

from mediconnect.errors import NotFound, ValidationError
from mediconnect.services import booking
from mediconnect.services.availability import list_availability, list_available_slots, set_availability
from factories import BEFORE_MONDAY, MONDAY, TUESDAY, book, make_doctor


def slots_by_time(doctor_id, day=MONDAY, appointment_type='scheduled', now=BEFORE_MONDAY):
    return {slot.time: slot for slot in list_available_slots(doctor_id, day, appointment_type, now=now)}


class TestListAvailableSlots:

    def test_window_slots_are_available(self, app):
        """Slots inside the window are bookable, the window end is exclusive"""
        doctor = make_doctor()
        slots = slots_by_time(doctor.id)

        assert slots['09:00'].available
        assert slots['11:30'].available
        assert not slots['12:00'].available
        assert not slots['12:00'].in_window
        assert not slots['20:00'].available

    def test_default_grid_covers_the_day(self, app):
        """Candidates run from 09:00 to 20:00 in 30-minute steps"""
        doctor = make_doctor()
        times = list(slots_by_time(doctor.id))

        assert times[0] == '09:00'
        assert times[-1] == '20:00'
        assert len(times) == 23
        assert times == sorted(times)

    def test_booked_slot_is_unavailable_for_scheduled(self, app):
        """Scenario: once A books 09:00 the slot shows unavailable to others"""
        doctor = make_doctor()
        book(doctor.id, patient_id=1, clock='09:00')

        slot = slots_by_time(doctor.id)['09:00']
        assert slot.occupied
        assert not slot.available
        assert not slot.will_preempt

    def test_booked_slot_is_preemptable_for_emergency(self, app):
        doctor = make_doctor()
        book(doctor.id, patient_id=1, clock='09:00')

        slots = slots_by_time(doctor.id, appointment_type='emergency')
        assert slots['09:00'].available
        assert slots['09:00'].will_preempt
        assert not slots['09:30'].will_preempt

    def test_emergency_ignores_the_window(self, app):
        """Emergency bookings may take any future slot, even on a day without a window"""
        doctor = make_doctor()
        scheduled = slots_by_time(doctor.id, day=TUESDAY)
        emergency = slots_by_time(doctor.id, day=TUESDAY, appointment_type='emergency')

        assert not any(slot.available for slot in scheduled.values())
        assert all(slot.available for slot in emergency.values())

    def test_disabled_window_blocks_scheduled_bookings(self, app):
        doctor = make_doctor()
        set_availability(doctor.id, 0, '09:00', '12:00', is_available=False)

        assert not any(slot.available for slot in slots_by_time(doctor.id).values())

    def test_past_slots_are_unavailable(self, app):
        doctor = make_doctor()
        now = datetime(2030, 1, 7, 10, 10)

        for appointment_type in ('scheduled', 'emergency'):
            slots = slots_by_time(doctor.id, appointment_type=appointment_type, now=now)
            assert slots['10:00'].is_past
            assert not slots['10:00'].available
            assert slots['10:30'].available

    def test_window_outside_default_grid_adds_candidates(self, app):
        doctor = make_doctor(windows={0: ('07:00', '09:00')})
        slots = slots_by_time(doctor.id)

        assert slots['07:00'].available
        assert slots['08:30'].available
        assert not slots['09:00'].available

    def test_cancelled_appointment_frees_the_slot(self, app):
        doctor = make_doctor()
        appointment = book(doctor.id, patient_id=1, clock='09:00')
        booking.cancel_appointment(appointment.id, 'changed plans')

        assert slots_by_time(doctor.id)['09:00'].available

    def test_unknown_doctor(self, app):
        with pytest.raises(NotFound):
            list_available_slots(999, MONDAY)

    def test_unknown_appointment_type(self, app):
        doctor = make_doctor()
        with pytest.raises(ValidationError):
            list_available_slots(doctor.id, MONDAY, 'walk-in')

    def test_invalid_date(self, app):
        doctor = make_doctor()
        with pytest.raises(ValidationError):
            list_available_slots(doctor.id, '07/01/2030')


class TestSetAvailability:

    def test_replaces_existing_window(self, app):
        doctor = make_doctor()
        set_availability(doctor.id, 0, '13:00', '15:00')

        windows = list_availability(doctor.id)
        assert len(windows) == 1
        assert (windows[0].start_time, windows[0].end_time) == ('13:00', '15:00')

    def test_adds_new_weekday(self, app):
        doctor = make_doctor()
        set_availability(doctor.id, 1, '9:00', '10:00')

        windows = list_availability(doctor.id)
        assert [w.day_of_week for w in windows] == [0, 1]
        assert windows[1].start_time == '09:00'

    @pytest.mark.parametrize('day, start, end', [
        (0, '12:00', '09:00'),
        (0, '09:00', '09:00'),
        (7, '09:00', '10:00'),
        ('monday', '09:00', '10:00'),
        (0, '09:10', '10:00'),
        (0, '25:00', '26:00'),
    ])
    def test_rejects_invalid_windows(self, app, day, start, end):
        doctor = make_doctor()
        with pytest.raises(ValidationError):
            set_availability(doctor.id, day, start, end)
