from datetime import datetime
from mediconnect.extensions import db

class Doctor(db.Model):
    """Reference record for a clinician who can be booked.

    Profile details live with the profile service; the scheduling core only
    needs the owning user account, the fees and the verification flag.
    """
    __tablename__ = 'doctors'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255))
    specialization = db.Column(db.String(100))
    consultation_fee = db.Column(db.Numeric(10, 2), nullable=False)
    emergency_fee = db.Column(db.Numeric(10, 2), default=0)
    is_verified = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    availability_windows = db.relationship('AvailabilityWindow', back_populates='doctor',
                                           lazy='dynamic', cascade="all, delete-orphan")
    appointments = db.relationship('Appointment', back_populates='doctor', lazy='dynamic')
    settlements = db.relationship('Settlement', back_populates='doctor', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'full_name': self.full_name,
            'specialization': self.specialization,
            'consultation_fee': float(self.consultation_fee) if self.consultation_fee is not None else None,
            'emergency_fee': float(self.emergency_fee) if self.emergency_fee is not None else None,
            'is_verified': self.is_verified,
        }


class AvailabilityWindow(db.Model):
    """One row of a doctor's weekly template. day_of_week follows date.weekday(): 0 is Monday."""
    __tablename__ = 'availability_windows'

    id = db.Column(db.Integer, primary_key=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.String(5), nullable=False)  # 'HH:MM'
    end_time = db.Column(db.String(5), nullable=False)  # exclusive
    is_available = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    doctor = db.relationship('Doctor', back_populates='availability_windows')

    __table_args__ = (
        db.UniqueConstraint('doctor_id', 'day_of_week', name='unique_doctor_weekday'),
        db.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='valid_day_of_week'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'day_of_week': self.day_of_week,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'is_available': self.is_available,
        }
