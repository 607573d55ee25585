# /mediconnect/api/routes.py

from flask_jwt_extended import jwt_required
from . import api_bp
from mediconnect.extensions import limiter
from mediconnect.utils.decorators import audit_log, require_role
from .controllers import (
    appointment_controller, payment_controller, chat_controller,
    notification_controller, revenue_controller,
)


# --- Availability Endpoints ---
@api_bp.route('/doctors/<int:doctor_id>/slots', methods=['GET'])
@jwt_required()
def get_slots_route(doctor_id):
    return appointment_controller.get_available_slots(doctor_id)

@api_bp.route('/doctors/<int:doctor_id>/availability', methods=['GET'])
@jwt_required()
def get_availability_route(doctor_id):
    return appointment_controller.get_availability(doctor_id)

@api_bp.route('/doctors/<int:doctor_id>/availability', methods=['PUT'])
@jwt_required()
@require_role('doctor', 'admin')
@audit_log("UPDATE_AVAILABILITY", "availability")
def update_availability_route(doctor_id):
    return appointment_controller.update_availability(doctor_id)


# --- Appointment Endpoints ---
@api_bp.route('/appointments', methods=['POST'])
@jwt_required()
@limiter.limit("20 per minute")
@require_role('patient', 'admin')
@audit_log("CREATE_APPOINTMENT", "appointments")
def create_appointment_route():
    return appointment_controller.create_appointment()

@api_bp.route('/appointments', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ALL_APPOINTMENTS", "appointments")
def get_appointments_route():
    return appointment_controller.get_appointments()

@api_bp.route('/appointments/<int:appointment_id>', methods=['GET'])
@jwt_required()
@audit_log("VIEW_APPOINTMENT_DETAIL", "appointments")
def get_appointment_route(appointment_id):
    return appointment_controller.get_appointment_by_id(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>/cancel', methods=['POST'])
@jwt_required()
@audit_log("CANCEL_APPOINTMENT", "appointments")
def cancel_appointment_route(appointment_id):
    return appointment_controller.cancel_appointment(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>/complete', methods=['POST'])
@jwt_required()
@require_role('doctor', 'admin')
@audit_log("COMPLETE_APPOINTMENT", "appointments")
def complete_appointment_route(appointment_id):
    return appointment_controller.complete_appointment(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>/permissions', methods=['PUT'])
@jwt_required()
@require_role('doctor')
@audit_log("UPDATE_COMMUNICATION_PERMISSIONS", "appointments")
def update_permissions_route(appointment_id):
    return chat_controller.update_permissions(appointment_id)


# --- Chat Endpoints ---
@api_bp.route('/appointments/<int:appointment_id>/messages', methods=['GET'])
@jwt_required()
@audit_log("VIEW_CHAT_HISTORY", "chat")
def get_messages_route(appointment_id):
    return chat_controller.get_messages(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>/messages', methods=['POST'])
@jwt_required()
@limiter.limit("60 per minute")
@audit_log("SEND_CHAT_MESSAGE", "chat")
def send_message_route(appointment_id):
    return chat_controller.send_message(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>/messages/read', methods=['PUT'])
@jwt_required()
def mark_messages_read_route(appointment_id):
    return chat_controller.mark_messages_read(appointment_id)

@api_bp.route('/conversations', methods=['GET'])
@jwt_required()
@audit_log("VIEW_CONVERSATIONS", "chat")
def get_conversations_route():
    return chat_controller.get_conversations()


# --- Payment Endpoints ---
@api_bp.route('/payments/confirm', methods=['POST'])
@jwt_required()
@limiter.limit("30 per minute")
@require_role('patient', 'admin')
@audit_log("CONFIRM_PAYMENT", "payments")
def confirm_payment_route():
    return payment_controller.confirm_payment()

@api_bp.route('/payments', methods=['GET'])
@jwt_required()
@audit_log("VIEW_PAYMENTS", "payments")
def get_payments_route():
    return payment_controller.get_payments()


# --- Notification Endpoints ---
@api_bp.route('/notifications', methods=['GET'])
@jwt_required()
def get_notifications_route():
    return notification_controller.get_notifications()

@api_bp.route('/notifications/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count_route():
    return notification_controller.get_unread_count()

@api_bp.route('/notifications/<int:notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_notification_read_route(notification_id):
    return notification_controller.mark_notification_read(notification_id)

@api_bp.route('/notifications/mark-all-read', methods=['PUT'])
@jwt_required()
def mark_all_notifications_read_route():
    return notification_controller.mark_all_notifications_read()


# --- Revenue & Settlement Endpoints ---
@api_bp.route('/doctors/<int:doctor_id>/revenue', methods=['GET'])
@jwt_required()
@require_role('doctor', 'admin')
@audit_log("VIEW_REVENUE", "revenue")
def get_revenue_route(doctor_id):
    return revenue_controller.get_revenue(doctor_id)

@api_bp.route('/doctors/<int:doctor_id>/settlements', methods=['GET'])
@jwt_required()
@require_role('doctor', 'admin')
@audit_log("VIEW_SETTLEMENTS", "settlements")
def get_settlements_route(doctor_id):
    return revenue_controller.get_settlements(doctor_id)

@api_bp.route('/doctors/<int:doctor_id>/settlements', methods=['POST'])
@jwt_required()
@require_role('admin')
@audit_log("RECORD_SETTLEMENT", "settlements")
def create_settlement_route(doctor_id):
    return revenue_controller.create_settlement(doctor_id)


# --- Platform Settings Endpoints ---
@api_bp.route('/settings/platform-fees', methods=['GET'])
@jwt_required()
@require_role('admin')
def get_platform_fees_route():
    return revenue_controller.get_platform_fees()

@api_bp.route('/settings/platform-fees', methods=['PUT'])
@jwt_required()
@require_role('admin')
@audit_log("UPDATE_PLATFORM_FEES", "settings")
def update_platform_fees_route():
    return revenue_controller.update_platform_fees()
