from mediconnect.models.doctor_models import Doctor, AvailabilityWindow
from mediconnect.models.appointment_models import Appointment, Payment
from mediconnect.models.chat_models import Message
from mediconnect.models.notification_models import Notification
from mediconnect.models.revenue_models import Settlement, PlatformFeeSettings
from mediconnect.models.system_models import AuditLog
