"""Cancels bookings left unpaid past the payment timeout.

Meant to be triggered by an external scheduler (see `flask sweep-stale`);
nothing here schedules itself.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app

from mediconnect.extensions import db
from mediconnect.models.appointment_models import Appointment, COMMUNICATION_LOCKED, STALE_PAYMENT_NOTE
from mediconnect.services.booking import append_note
from mediconnect.utils.db_util import run_with_write_retry

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    cutoff: datetime
    cancelled: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    def to_dict(self):
        return {
            'cutoff': self.cutoff.isoformat(),
            'cancelled': self.cancelled,
            'skipped': self.skipped,
            'failed': self.failed,
        }


def _cancel_if_still_stale(appointment_id, cutoff):
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return False
    changed = Appointment.compare_and_set(
        appointment_id,
        {'status': 'pending', 'payment_status': 'pending'},
        {
            'status': 'cancelled',
            'active_slot_key': None,
            'cancellation_reason': STALE_PAYMENT_NOTE,
            'notes': append_note(appointment.notes, STALE_PAYMENT_NOTE),
            **COMMUNICATION_LOCKED,
        },
        Appointment.created_at < cutoff,
    )
    if not changed:
        db.session.rollback()
        return False
    db.session.commit()
    return True


def run_staleness_sweep(now=None, timeout_minutes=None):
    """One pass over pending, unpaid appointments older than the timeout.

    Each candidate is cancelled through a compare-and-set on
    (status, payment_status); one that was paid in the meantime is skipped.
    A failure on one item is logged and the pass continues.
    """
    now = now or datetime.utcnow()
    if timeout_minutes is None:
        timeout_minutes = current_app.config['STALE_PAYMENT_TIMEOUT_MINUTES']
    cutoff = now - timedelta(minutes=timeout_minutes)
    result = SweepResult(cutoff=cutoff)

    candidates = [row.id for row in Appointment.query.with_entities(Appointment.id).filter(
        Appointment.status == 'pending',
        Appointment.payment_status == 'pending',
        Appointment.created_at < cutoff,
    ).order_by(Appointment.created_at).all()]

    if candidates:
        logger.info("[Auto-Cancel] Found %d unpaid appointments older than %s", len(candidates), cutoff)

    for appointment_id in candidates:
        try:
            cancelled = run_with_write_retry(lambda: _cancel_if_still_stale(appointment_id, cutoff))
        except Exception:
            db.session.rollback()
            logger.exception("[Auto-Cancel] Failed to cancel appointment %s", appointment_id)
            result.failed.append(appointment_id)
            continue

        if cancelled:
            logger.info("[Auto-Cancel] Cancelled appointment %s", appointment_id)
            result.cancelled.append(appointment_id)
        else:
            logger.info("[Auto-Cancel] Appointment %s changed before it could be cancelled; skipped", appointment_id)
            result.skipped.append(appointment_id)

    return result
