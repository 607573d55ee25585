from flask import request, jsonify
from mediconnect import services
from mediconnect.extensions import db
from mediconnect.models.revenue_models import PlatformFeeSettings
from mediconnect.errors import ValidationError
from mediconnect.utils.identity import current_actor
from mediconnect.utils.request_util import json_object
from mediconnect.utils.time_util import to_money
from .appointment_controller import ensure_owns_doctor

def get_revenue(doctor_id):
    actor = current_actor()
    ensure_owns_doctor(actor, doctor_id)
    summary = services.compute_revenue(doctor_id, request.args.get('start'), request.args.get('end'))
    return jsonify({'revenue': summary.to_dict()}), 200

def get_settlements(doctor_id):
    actor = current_actor()
    ensure_owns_doctor(actor, doctor_id)
    settlements = services.list_settlements(doctor_id)
    return jsonify({'settlements': [s.to_dict() for s in settlements]}), 200

def create_settlement(doctor_id):
    """Admin-only: record a payout to a doctor."""
    actor = current_actor()
    data = json_object(required=False)

    required = ['amount', 'period_start', 'period_end']
    missing = [field for field in required if field not in data]
    if missing:
        return jsonify({'error': f"Missing required fields: {', '.join(missing)}"}), 400

    settlement = services.record_settlement(
        doctor_id,
        data['amount'],
        data['period_start'],
        data['period_end'],
        payment_method=data.get('payment_method', 'bank_transfer'),
        transaction_reference=data.get('transaction_reference'),
        notes=data.get('notes'),
        settled_by=actor.id,
    )
    return jsonify({'message': 'Settlement recorded', 'settlement': settlement.to_dict()}), 201

def get_platform_fees():
    return jsonify(PlatformFeeSettings.current().to_dict()), 200

def update_platform_fees():
    """Admin-only. Applies to bookings made from now on; existing appointments keep their fee."""
    actor = current_actor()
    data = json_object(required=False)
    settings = PlatformFeeSettings.current()

    if 'enabled' in data:
        settings.enabled = bool(data['enabled'])
    for field in ('percentage', 'fixed', 'min_fee', 'max_fee'):
        if field in data:
            value = to_money(data[field])
            if value < 0:
                raise ValidationError(f"{field} must not be negative")
            setattr(settings, field, value)
    if 'notes' in data:
        settings.notes = str(data['notes'] or '')
    settings.updated_by = actor.id

    db.session.commit()
    return jsonify(settings.to_dict()), 200
