"""
Staleness sweep for unpaid bookings
"""

from datetime import datetime

import pytest

from mediconnect.errors import InvalidTransition
from mediconnect.models.appointment_models import STALE_PAYMENT_NOTE
from mediconnect.services import communication, sweep
from mediconnect.services.payments import confirm_payment
from mediconnect.services.sweep import run_staleness_sweep
from mediconnect.utils.identity import Actor
from factories import book, make_doctor, reload, set_created_at

CREATED = datetime(2030, 1, 1, 10, 0, 0)


@pytest.fixture
def stale_booking(app):
    doctor = make_doctor()
    appointment = book(doctor.id, patient_id=1, clock='09:00')
    set_created_at(appointment.id, CREATED)
    return appointment.id


class TestStalenessSweep:

    def test_untouched_before_timeout(self, app, stale_booking):
        """Scenario: created at 10:00:00, still pending at 10:09:00"""
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 9, 0))

        assert result.cancelled == []
        assert reload(stale_booking).status == 'pending'

    def test_cancelled_after_timeout(self, app, stale_booking):
        """Scenario: cancelled by the sweep at 10:11:00"""
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        assert result.cancelled == [stale_booking]
        appointment = reload(stale_booking)
        assert appointment.status == 'cancelled'
        assert appointment.payment_status == 'pending'
        assert appointment.active_slot_key is None
        assert STALE_PAYMENT_NOTE in appointment.notes

    def test_cancelled_exactly_once(self, app, stale_booking):
        run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))
        notes = reload(stale_booking).notes

        second = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 30, 0))

        assert second.cancelled == []
        assert second.skipped == []
        assert reload(stale_booking).notes == notes

    def test_custom_timeout(self, app, stale_booking):
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 6, 0), timeout_minutes=5)
        assert result.cancelled == [stale_booking]

    def test_paid_appointment_is_kept(self, app, stale_booking):
        confirm_payment(stale_booking, '500.00', 'gw-001')

        result = run_staleness_sweep(now=datetime(2030, 1, 1, 11, 0, 0))

        assert result.cancelled == []
        assert reload(stale_booking).status == 'confirmed'

    def test_payment_after_sweep_is_rejected(self, app, stale_booking):
        run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        with pytest.raises(InvalidTransition):
            confirm_payment(stale_booking, '500.00', 'gw-001')

    def test_freed_slot_can_be_rebooked(self, app, stale_booking):
        run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        doctor_id = reload(stale_booking).doctor_id
        rebooked = book(doctor_id, patient_id=2, clock='09:00')
        assert rebooked.status == 'pending'

    def test_paid_between_listing_and_cancel_is_skipped(self, app, stale_booking, monkeypatch):
        """A candidate paid after the candidate query is left alone"""
        original = sweep._cancel_if_still_stale

        def pay_then_cancel(appointment_id, cutoff):
            confirm_payment(appointment_id, '500.00', 'gw-late')
            return original(appointment_id, cutoff)

        monkeypatch.setattr(sweep, '_cancel_if_still_stale', pay_then_cancel)
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        assert result.skipped == [stale_booking]
        assert reload(stale_booking).status == 'confirmed'

    def test_failure_on_one_item_does_not_stop_the_batch(self, app, stale_booking, monkeypatch):
        other = book(reload(stale_booking).doctor_id, patient_id=2, clock='09:30')
        set_created_at(other.id, CREATED)
        original = sweep._cancel_if_still_stale

        def flaky(appointment_id, cutoff):
            if appointment_id == stale_booking:
                raise RuntimeError("connection reset")
            return original(appointment_id, cutoff)

        monkeypatch.setattr(sweep, '_cancel_if_still_stale', flaky)
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        assert result.failed == [stale_booking]
        assert result.cancelled == [other.id]
        assert reload(stale_booking).status == 'pending'

    def test_result_serializes(self, app, stale_booking):
        result = run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        assert result.to_dict() == {
            'cutoff': '2030-01-01T10:01:00',
            'cancelled': [stale_booking],
            'skipped': [],
            'failed': [],
        }

    def test_sweep_locks_communication(self, app, stale_booking):
        appointment = reload(stale_booking)
        doctor_user = Actor(appointment.doctor.user_id, 'doctor')
        communication.set_permissions(stale_booking, doctor_user, chat_unlocked=True)

        run_staleness_sweep(now=datetime(2030, 1, 1, 10, 11, 0))

        assert not reload(stale_booking).chat_unlocked
