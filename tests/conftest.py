"""
Pytest configuration for the scheduling service tests
"""

import pytest
from cryptography.fernet import Fernet

from mediconnect import create_app
from mediconnect.extensions import db
from mediconnect.models.revenue_models import PlatformFeeSettings


@pytest.fixture
def app(tmp_path):
    """App bound to a throwaway SQLite file, so worker threads share one database."""
    app = create_app('testing', {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'scheduling.db'}",
        'CHAT_ENCRYPTION_KEY': Fernet.generate_key().decode(),
        'JWT_SECRET_KEY': 'test-jwt-secret-key-with-enough-length',
        'LOG_DIR': str(tmp_path / 'logs'),
    })

    with app.app_context():
        db.create_all()
        PlatformFeeSettings.current()
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fee_settings(app):
    """Returns a setter for the platform fee configuration."""
    def _set(**values):
        settings = PlatformFeeSettings.current()
        for key, value in values.items():
            setattr(settings, key, value)
        db.session.commit()
        return settings
    return _set
