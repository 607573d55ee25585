"""The scheduling core, callable without the HTTP layer (inside an app context)."""
from mediconnect.services.availability import list_available_slots, list_availability, set_availability
from mediconnect.services.booking import (
    cancel_appointment, complete_appointment, create_appointment, get_appointment,
)
from mediconnect.services.communication import (
    list_conversations, list_messages, mark_messages_read, send_message, set_permissions,
)
from mediconnect.services.notifications import (
    list_notifications, mark_all_read, mark_read, notify, unread_count,
)
from mediconnect.services.payments import confirm_payment, list_payments
from mediconnect.services.revenue import compute_revenue, list_settlements, record_settlement
from mediconnect.services.sweep import run_staleness_sweep
