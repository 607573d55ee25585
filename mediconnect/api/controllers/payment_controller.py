from flask import jsonify
from mediconnect import services
from mediconnect.errors import PermissionDenied
from mediconnect.services.booking import get_appointment
from mediconnect.utils.identity import current_actor
from mediconnect.utils.request_util import json_object

def confirm_payment():
    """Receives the payment gateway's confirmation for an appointment."""
    actor = current_actor()
    data = json_object(required=False)

    required = ['appointment_id', 'amount', 'external_reference']
    missing = [field for field in required if data.get(field) in (None, '')]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    appointment = get_appointment(data['appointment_id'])
    if actor.is_patient and appointment.patient_id != actor.id:
        raise PermissionDenied("You can only pay for your own appointments")

    result = services.confirm_payment(data['appointment_id'], data['amount'], data['external_reference'])
    status_code = 200 if result.replayed else 201
    return jsonify({
        "message": "Payment already applied" if result.replayed else "Payment confirmed",
        "replayed": result.replayed,
        "payment": result.payment.to_dict(),
        "appointment": result.appointment.to_dict(include_doctor_link=False),
    }), status_code

def get_payments():
    """Payment history visible to the caller."""
    actor = current_actor()
    payments = services.list_payments(actor)
    return jsonify({"payments": [payment.to_dict() for payment in payments]}), 200
