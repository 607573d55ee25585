from flask import request, jsonify
from mediconnect import services
from mediconnect.errors import PermissionDenied, ValidationError
from mediconnect.services.availability import get_doctor
from mediconnect.services.booking import get_appointment_for, list_appointments
from mediconnect.utils.identity import current_actor
from mediconnect.utils.request_util import json_object

def _serialize(appointment, actor):
    # Only the doctor side ever sees the host link
    return appointment.to_dict(include_doctor_link=not actor.is_patient)

def ensure_owns_doctor(actor, doctor_id):
    """Admins may act on any doctor; a doctor only on their own record."""
    doctor = get_doctor(doctor_id)
    if actor.is_admin:
        return doctor
    if not (actor.is_doctor and doctor.user_id == actor.id):
        raise PermissionDenied("You can only manage your own doctor profile")
    return doctor

def create_appointment():
    """Books a slot. Patients book for themselves; admins book on a patient's behalf."""
    actor = current_actor()
    data = json_object()

    required = ['doctor_id', 'appointment_date', 'appointment_time']
    missing = [field for field in required if field not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    if actor.is_patient:
        patient_id = actor.id
    elif actor.is_admin:
        patient_id = data.get('patient_id')
        if not patient_id:
            return jsonify({"error": "As an admin, you must provide a patient_id"}), 400
    else:
        return jsonify({"error": "Only patients can create appointments"}), 403

    appointment = services.create_appointment(
        doctor_id=data['doctor_id'],
        patient_id=patient_id,
        appointment_date=data['appointment_date'],
        appointment_time=data['appointment_time'],
        appointment_type=data.get('appointment_type', 'scheduled'),
        amount=data.get('amount'),
    )
    return jsonify({"message": "Appointment created successfully", "appointment": _serialize(appointment, actor)}), 201

def get_appointments():
    actor = current_actor()
    return jsonify({"appointments": [_serialize(appt, actor) for appt in list_appointments(actor)]}), 200

def get_appointment_by_id(appointment_id):
    actor = current_actor()
    appointment = get_appointment_for(appointment_id, actor)
    return jsonify({"appointment": _serialize(appointment, actor)}), 200

def cancel_appointment(appointment_id):
    actor = current_actor()
    data = json_object(required=False)
    appointment = services.cancel_appointment(appointment_id, data.get('reason'), actor=actor)
    return jsonify({"message": "Appointment cancelled", "appointment": _serialize(appointment, actor)}), 200

def complete_appointment(appointment_id):
    actor = current_actor()
    appointment = services.complete_appointment(appointment_id, actor=actor)
    return jsonify({"message": "Appointment marked as completed", "appointment": _serialize(appointment, actor)}), 200

def get_available_slots(doctor_id):
    date_arg = request.args.get('date')
    if not date_arg:
        return jsonify({"error": "date query parameter is required"}), 400
    slots = services.list_available_slots(doctor_id, date_arg, request.args.get('type', 'scheduled'))
    return jsonify({"doctor_id": doctor_id, "date": date_arg, "slots": [slot.to_dict() for slot in slots]}), 200

def get_availability(doctor_id):
    windows = services.list_availability(doctor_id)
    return jsonify({"availability": [window.to_dict() for window in windows]}), 200

def update_availability(doctor_id):
    """Replaces one or more weekday windows: {"windows": [{day_of_week, start_time, end_time, is_available}]}."""
    actor = current_actor()
    ensure_owns_doctor(actor, doctor_id)
    data = json_object()
    entries = data.get('windows', [data])
    if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
        raise ValidationError("windows must be a list of objects")

    windows = []
    for entry in entries:
        for field in ('day_of_week', 'start_time', 'end_time'):
            if field not in entry:
                return jsonify({"error": f"Missing required field: {field}"}), 400
        windows.append(services.set_availability(
            doctor_id,
            entry['day_of_week'],
            entry['start_time'],
            entry['end_time'],
            entry.get('is_available', True),
        ))
    return jsonify({"availability": [window.to_dict() for window in windows]}), 200
