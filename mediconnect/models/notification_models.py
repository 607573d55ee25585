from datetime import datetime
from mediconnect.extensions import db

NOTIFICATION_TYPES = ('preempted', 'video_link', 'chat_enabled', 'chat_disabled', 'message', 'generic')

class Notification(db.Model):
    """A pull-delivered notice for one recipient. Only `read` ever changes."""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False, default='generic')
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, default=dict)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'message': self.message,
            'data': self.data or {},
            'read': self.read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
