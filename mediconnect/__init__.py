from flask import Flask
from mediconnect.extensions import db, migrate, jwt, limiter, cors
from mediconnect.utils.encryption_util import encryptor
from mediconnect.utils.error_handlers import register_error_handlers
from mediconnect.commands import register_commands
from config import config


def create_app(config_name='default', test_config=None):
    app = Flask(__name__)
    config_class = config[config_name]
    app.config.from_object(config_class)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(app,
                  origins=app.config['ALLOWED_ORIGINS'],
                  supports_credentials=True,
                  allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
                  methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])

    encryptor.init_app(app)

    config_class.init_app(app)

    # Make every model visible to create_all / Flask-Migrate
    from mediconnect import models  # noqa: F401

    from mediconnect.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    register_error_handlers(app)
    register_commands(app)

    return app
