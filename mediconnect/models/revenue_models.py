from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.exc import IntegrityError
from mediconnect.extensions import db

SETTLEMENT_METHODS = ('bank_transfer', 'check', 'cash', 'other')
PLATFORM_FEES_KEY = 'platform_fees'

class Settlement(db.Model):
    """A payout from the platform to a doctor. Rows are appended, never edited."""
    __tablename__ = 'settlements'

    id = db.Column(db.Integer, primary_key=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(30), nullable=False, default='bank_transfer')
    transaction_reference = db.Column(db.String(255))
    notes = db.Column(db.Text)
    settled_by = db.Column(db.Integer)  # admin user id
    settled_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    doctor = db.relationship('Doctor', back_populates='settlements')

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='positive_settlement_amount'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'amount': float(self.amount),
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'payment_method': self.payment_method,
            'transaction_reference': self.transaction_reference,
            'notes': self.notes,
            'settled_by': self.settled_by,
            'settled_at': self.settled_at.isoformat() if self.settled_at else None,
        }


class PlatformFeeSettings(db.Model):
    """Platform fee configuration. Read once per booking; bookings keep their own copy of the fee."""
    __tablename__ = 'platform_fee_settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(50), unique=True, nullable=False, default=PLATFORM_FEES_KEY)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # 5 means 5%
    fixed = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    min_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    max_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)  # 0 means no cap
    notes = db.Column(db.Text, default='')
    updated_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def current(cls):
        """Returns the settings row, creating the default one if missing."""
        settings = cls.query.filter_by(key=PLATFORM_FEES_KEY).first()
        if not settings:
            settings = cls(key=PLATFORM_FEES_KEY, enabled=True, percentage=0, fixed=0, min_fee=0, max_fee=0)
            db.session.add(settings)
            try:
                db.session.commit()
            except IntegrityError:
                # Created concurrently by another request
                db.session.rollback()
                settings = cls.query.filter_by(key=PLATFORM_FEES_KEY).one()
        return settings

    def compute_fee(self, base_amount):
        if not self.enabled:
            return Decimal('0.00')

        base = Decimal(str(base_amount))
        fee = base * Decimal(str(self.percentage)) / 100 + Decimal(str(self.fixed))

        min_fee = Decimal(str(self.min_fee or 0))
        max_fee = Decimal(str(self.max_fee or 0))
        if min_fee > 0:
            fee = max(fee, min_fee)
        if max_fee > 0:
            fee = min(fee, max_fee)

        return fee.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def to_dict(self):
        return {
            'enabled': self.enabled,
            'percentage': float(self.percentage),
            'fixed': float(self.fixed),
            'min_fee': float(self.min_fee),
            'max_fee': float(self.max_fee),
            'notes': self.notes,
            'updated_by': self.updated_by,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
