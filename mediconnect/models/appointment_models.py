from datetime import datetime
from mediconnect.extensions import db

APPOINTMENT_TYPES = ('scheduled', 'emergency')
APPOINTMENT_STATUSES = ('pending', 'confirmed', 'completed', 'cancelled')
PAYMENT_STATUSES = ('pending', 'paid', 'failed')

# Statuses that hold a slot
ACTIVE_STATUSES = ('pending', 'confirmed')

PREEMPTED_NOTE = 'Preempted by emergency'
STALE_PAYMENT_NOTE = 'auto-cancelled: unpaid'

# Applied with every cancellation: a cancelled appointment keeps no chat or video access
COMMUNICATION_LOCKED = {'chat_unlocked': False, 'video_unlocked': False, 'video_enabled': False}


class Appointment(db.Model):
    """A booking of one doctor slot by one patient."""
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)

    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    # Opaque user id handed over by the identity provider
    patient_id = db.Column(db.Integer, nullable=False, index=True)

    appointment_date = db.Column(db.Date, nullable=False)
    appointment_time = db.Column(db.String(5), nullable=False)  # slot start, 'HH:MM'
    appointment_type = db.Column(db.String(20), nullable=False, default='scheduled')

    # Frozen at booking time, never recomputed
    base_amount = db.Column(db.Numeric(10, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default='pending')
    payment_status = db.Column(db.String(20), nullable=False, default='pending')

    # '<doctor>:<date>:<time>' while the appointment holds its slot, NULL otherwise.
    # The unique index is what keeps a slot to one active appointment.
    active_slot_key = db.Column(db.String(64), unique=True, nullable=True)

    chat_unlocked = db.Column(db.Boolean, nullable=False, default=False)
    video_unlocked = db.Column(db.Boolean, nullable=False, default=False)

    # Video meeting
    video_provider = db.Column(db.String(50))  # e.g., 'zoom', 'meet'
    video_meeting_id = db.Column(db.String(255))
    video_doctor_link = db.Column(db.String(1024))
    video_patient_link = db.Column(db.String(1024))
    video_enabled = db.Column(db.Boolean, nullable=False, default=False)
    video_enabled_at = db.Column(db.DateTime)

    notes = db.Column(db.Text, default='')
    cancellation_reason = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    doctor = db.relationship('Doctor', back_populates='appointments')
    payments = db.relationship('Payment', back_populates='appointment', lazy='dynamic')
    messages = db.relationship('Message', back_populates='appointment', lazy='dynamic',
                               order_by='Message.sent_at')

    __table_args__ = (
        db.Index('ix_appointments_doctor_slot', 'doctor_id', 'appointment_date', 'appointment_time'),
        db.Index('ix_appointments_unpaid', 'status', 'payment_status', 'created_at'),
    )

    @staticmethod
    def slot_key(doctor_id, appointment_date, appointment_time):
        return f"{doctor_id}:{appointment_date.isoformat()}:{appointment_time}"

    @classmethod
    def compare_and_set(cls, appointment_id, expected, values, *criteria):
        """Applies `values` only if the row still matches `expected`.

        `expected` maps column names to a value or a tuple of accepted values.
        Runs as one UPDATE statement and returns True when a row changed. The
        caller owns the commit.
        """
        query = cls.query.filter(cls.id == appointment_id, *criteria)
        for column, accepted in expected.items():
            attr = getattr(cls, column)
            if isinstance(accepted, (tuple, list, set)):
                query = query.filter(attr.in_(list(accepted)))
            else:
                query = query.filter(attr == accepted)
        return query.update(values, synchronize_session=False) == 1

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def is_party(self, actor):
        """True when the actor is this appointment's patient or assigned doctor."""
        if actor.is_patient:
            return self.patient_id == actor.id
        if actor.is_doctor:
            return self.doctor is not None and self.doctor.user_id == actor.id
        return False

    def video_to_dict(self, include_doctor_link=False):
        data = {
            'provider': self.video_provider,
            'meeting_id': self.video_meeting_id,
            'patient_link': self.video_patient_link,
            'enabled': self.video_enabled,
            'enabled_at': self.video_enabled_at.isoformat() if self.video_enabled_at else None,
        }
        if include_doctor_link:
            data['doctor_link'] = self.video_doctor_link
        return data

    def to_dict(self, include_doctor_link=False):
        """Convert appointment to dictionary format for API responses."""
        return {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'patient_id': self.patient_id,
            'appointment_date': self.appointment_date.isoformat(),
            'appointment_time': self.appointment_time,
            'appointment_type': self.appointment_type,
            'base_amount': float(self.base_amount),
            'platform_fee': float(self.platform_fee),
            'total_amount': float(self.total_amount),
            'status': self.status,
            'payment_status': self.payment_status,
            'chat_unlocked': self.chat_unlocked,
            'video_unlocked': self.video_unlocked,
            'video': self.video_to_dict(include_doctor_link=include_doctor_link),
            'notes': self.notes,
            'cancellation_reason': self.cancellation_reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Payment(db.Model):
    """An external payment confirmation applied to an appointment.

    One row per gateway reference; the unique reference is what makes
    replayed confirmations harmless.
    """
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    external_reference = db.Column(db.String(255), nullable=False, unique=True)
    status = db.Column(db.String(20), nullable=False, default='completed')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    appointment = db.relationship('Appointment', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'amount': float(self.amount),
            'external_reference': self.external_reference,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
