"""Doctor earnings and settlements.

Figures are recomputed from appointments on every call; nothing is cached.
Fees are read from each appointment's frozen `platform_fee`, never from the
current fee settings.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from mediconnect.errors import ValidationError
from mediconnect.extensions import db
from mediconnect.models.appointment_models import Appointment
from mediconnect.models.doctor_models import Doctor
from mediconnect.models.revenue_models import Settlement, SETTLEMENT_METHODS
from mediconnect.services.availability import get_doctor
from mediconnect.utils.db_util import run_with_write_retry
from mediconnect.utils.time_util import parse_date, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


@dataclass
class RevenueSummary:
    doctor_id: int
    period_start: date | None
    period_end: date | None
    appointment_count: int
    earnings: Decimal
    platform_fees: Decimal
    gross: Decimal
    total_earnings: Decimal
    total_settled: Decimal
    outstanding: Decimal

    def to_dict(self):
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = float(value)
            elif isinstance(value, date):
                data[key] = value.isoformat()
        return data


def _earning_appointments(doctor_id, period_start=None, period_end=None):
    query = Appointment.query.filter(
        Appointment.doctor_id == doctor_id,
        or_(Appointment.status == 'completed', Appointment.payment_status == 'paid'),
    )
    if period_start is not None:
        query = query.filter(Appointment.appointment_date >= period_start)
    if period_end is not None:
        query = query.filter(Appointment.appointment_date <= period_end)
    return query.all()


def _sum(values):
    return sum((to_money(value) for value in values), ZERO)


def _total_settled(doctor_id):
    return _sum(row.amount for row in Settlement.query.with_entities(Settlement.amount)
                .filter(Settlement.doctor_id == doctor_id).all())


def _period(period_start, period_end):
    period_start = parse_date(period_start) if period_start else None
    period_end = parse_date(period_end) if period_end else None
    if period_start and period_end and period_end < period_start:
        raise ValidationError("period_end must not be before period_start")
    return period_start, period_end


def compute_revenue(doctor_id, period_start=None, period_end=None):
    """Earnings for appointments dated within the period (bounds inclusive, None is open)."""
    get_doctor(doctor_id)
    period_start, period_end = _period(period_start, period_end)

    in_period = _earning_appointments(doctor_id, period_start, period_end)
    earnings = _sum(appt.base_amount for appt in in_period)
    platform_fees = _sum(appt.platform_fee for appt in in_period)

    total_earnings = _sum(appt.base_amount for appt in _earning_appointments(doctor_id))
    total_settled = _total_settled(doctor_id)

    return RevenueSummary(
        doctor_id=doctor_id,
        period_start=period_start,
        period_end=period_end,
        appointment_count=len(in_period),
        earnings=earnings,
        platform_fees=platform_fees,
        gross=earnings + platform_fees,
        total_earnings=total_earnings,
        total_settled=total_settled,
        outstanding=total_earnings - total_settled,
    )


def record_settlement(doctor_id, amount, period_start, period_end, payment_method='bank_transfer',
                      transaction_reference=None, notes=None, settled_by=None):
    """Appends a settlement for the doctor.

    With ENFORCE_SETTLEMENT_CAP the doctor row is locked while the cap is
    checked, so concurrent settlements cannot jointly overpay.
    """
    get_doctor(doctor_id)
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Settlement amount must be positive")
    if not period_start or not period_end:
        raise ValidationError("period_start and period_end are required")
    period_start, period_end = _period(period_start, period_end)
    if payment_method not in SETTLEMENT_METHODS:
        raise ValidationError(f"Unknown payment method '{payment_method}'")

    def _record():
        if current_app.config.get('ENFORCE_SETTLEMENT_CAP', True):
            Doctor.query.filter_by(id=doctor_id).with_for_update().first()
            earned = _sum(appt.base_amount for appt in _earning_appointments(doctor_id))
            settled = _total_settled(doctor_id)
            if settled + amount > earned:
                raise ValidationError(
                    "Settlement exceeds the doctor's unsettled earnings",
                    details={'earned': float(earned), 'settled': float(settled),
                             'available': float(earned - settled)},
                )

        settlement = Settlement(
            doctor_id=doctor_id,
            amount=amount,
            period_start=period_start,
            period_end=period_end,
            payment_method=payment_method,
            transaction_reference=transaction_reference,
            notes=notes,
            settled_by=settled_by,
        )
        db.session.add(settlement)
        db.session.commit()
        return settlement

    settlement = run_with_write_retry(_record)
    logger.info("Settlement %s of %s recorded for doctor %s", settlement.id, amount, doctor_id)
    return settlement


def list_settlements(doctor_id):
    get_doctor(doctor_id)
    return Settlement.query.filter_by(doctor_id=doctor_id).order_by(
        Settlement.settled_at.desc(), Settlement.id.desc()
    ).all()
