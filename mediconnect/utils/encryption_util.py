# /mediconnect/utils/encryption_util.py
from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

class MessageEncryptor:
    """
    Encrypts chat message bodies at rest.
    It must be initialized with the Flask app to load the key.
    """
    def __init__(self, app=None):
        self.fernet = None
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Builds the Fernet suite from CHAT_ENCRYPTION_KEY."""
        key = app.config.get('CHAT_ENCRYPTION_KEY')
        if not key:
            raise ValueError("CHAT_ENCRYPTION_KEY not set in the Flask application config.")

        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, data: str) -> str:
        if self.fernet is None:
            raise RuntimeError("MessageEncryptor has not been initialized with an app.")

        if not isinstance(data, str):
            data = str(data)

        return self.fernet.encrypt(data.encode('utf-8')).decode('utf-8')

    def decrypt(self, token: str) -> str | None:
        """Decrypts a stored token; returns None when the token cannot be read."""
        if self.fernet is None:
            raise RuntimeError("MessageEncryptor has not been initialized with an app.")

        if not token:
            return None

        try:
            return self.fernet.decrypt(token.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            current_app.logger.error("Message decryption failed: invalid token.")
            return None

# Single, uninitialized instance imported by other modules.
encryptor = MessageEncryptor()
