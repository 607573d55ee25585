# /mediconnect/models/chat_models.py
from datetime import datetime
from mediconnect.extensions import db
from mediconnect.utils.encryption_util import encryptor

MESSAGE_TYPES = ('text', 'image', 'file')

class Message(db.Model):
    """Model for storing encrypted chat messages within one appointment."""
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=False, index=True)

    sender_id = db.Column(db.Integer, nullable=False)
    sender_role = db.Column(db.String(20), nullable=False)

    # Encrypted message content
    content = db.Column(db.Text, nullable=False, default='')
    # Attachment location in object storage; never fetched by this service
    file_url = db.Column(db.String(1024))
    message_type = db.Column(db.String(20), default='text')

    is_read = db.Column(db.Boolean, default=False)
    sent_at = db.Column(db.DateTime, default=datetime.utcnow)
    read_at = db.Column(db.DateTime)

    appointment = db.relationship('Appointment', back_populates='messages')

    def to_dict(self, decrypt_content=True):
        """Convert message to dictionary format for API responses."""
        data = {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'sender_id': self.sender_id,
            'sender_role': self.sender_role,
            'message_type': self.message_type,
            'file_url': self.file_url,
            'is_read': self.is_read,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'read_at': self.read_at.isoformat() if self.read_at else None,
        }

        if decrypt_content:
            decrypted = encryptor.decrypt(self.content) if self.content else ''
            data['content'] = decrypted if decrypted is not None else '[Decryption Error]'
        else:
            data['content'] = '[Encrypted]'

        return data
