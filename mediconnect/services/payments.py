"""Payment gate: turns an external payment confirmation into a confirmed booking."""
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from mediconnect.errors import InvalidTransition, PaymentMismatch, ValidationError
from mediconnect.extensions import db
from mediconnect.models.appointment_models import Appointment, Payment
from mediconnect.models.doctor_models import Doctor
from mediconnect.services.booking import get_appointment
from mediconnect.utils.db_util import run_with_write_retry
from mediconnect.utils.time_util import to_money

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    appointment: Appointment
    payment: Payment
    replayed: bool


def _applied(appointment_id, reference):
    """The payment already recorded under `reference`, if any."""
    payment = Payment.query.filter_by(external_reference=reference).first()
    if payment and payment.appointment_id != appointment_id:
        raise ValidationError("Payment reference was already applied to another appointment")
    return payment


def confirm_payment(appointment_id, amount, external_reference):
    """Applies a gateway confirmation exactly once.

    A reference that was already applied returns the current state untouched.
    The pending -> confirmed/paid move is a single compare-and-set, so a
    concurrent staleness cancel and this confirmation cannot both win.
    """
    reference = str(external_reference or '').strip()
    if not reference:
        raise ValidationError("external_reference is required")
    amount = to_money(amount)

    def _confirm():
        appointment = get_appointment(appointment_id)

        existing = _applied(appointment.id, reference)
        if existing:
            logger.info("Payment %s for appointment %s replayed; ignoring", reference, appointment.id)
            return PaymentResult(appointment, existing, replayed=True)

        if amount != to_money(appointment.total_amount):
            raise PaymentMismatch(
                "Payment amount does not match the appointment total",
                details={'expected': float(appointment.total_amount), 'received': float(amount)},
            )

        values = {'status': 'confirmed', 'payment_status': 'paid'}
        if appointment.appointment_type == 'emergency':
            # Emergency consultations open chat and video as soon as they are paid
            values.update(chat_unlocked=True, video_unlocked=True,
                          video_enabled=True, video_enabled_at=datetime.utcnow())

        appointment_pk = appointment.id
        if not Appointment.compare_and_set(appointment_pk, {'status': 'pending', 'payment_status': 'pending'}, values):
            db.session.rollback()
            existing = _applied(appointment_pk, reference)
            if existing:
                return PaymentResult(get_appointment(appointment_pk), existing, replayed=True)
            current = get_appointment(appointment_pk)
            raise InvalidTransition(
                f"Cannot confirm payment for an appointment that is {current.status} "
                f"with payment {current.payment_status}"
            )

        payment = Payment(appointment_id=appointment_pk, amount=amount,
                          external_reference=reference, status='completed')
        db.session.add(payment)
        try:
            db.session.commit()
        except IntegrityError:
            # The same reference landed concurrently and won
            db.session.rollback()
            existing = _applied(appointment_pk, reference)
            if existing is None:
                raise
            return PaymentResult(get_appointment(appointment_pk), existing, replayed=True)

        logger.info("Payment %s confirmed appointment %s", reference, appointment_pk)
        return PaymentResult(get_appointment(appointment_pk), payment, replayed=False)

    return run_with_write_retry(_confirm)


def list_payments(actor):
    """Payment history, newest first: a patient's own payments, a doctor's received ones, or all for admins."""
    query = Payment.query.join(Payment.appointment)
    if actor.is_patient:
        query = query.filter(Appointment.patient_id == actor.id)
    elif actor.is_doctor:
        query = query.join(Appointment.doctor).filter(Doctor.user_id == actor.id)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
