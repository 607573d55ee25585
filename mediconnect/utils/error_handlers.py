# /mediconnect/utils/error_handlers.py
from flask import jsonify, current_app
from mediconnect.extensions import db
from mediconnect.errors import SchedulingError

def register_error_handlers(app):
    @app.errorhandler(SchedulingError)
    def scheduling_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': 'Too many requests', 'message': str(error.description)}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        current_app.audit_logger.error(f"Internal server error: {str(error)}")
        return jsonify({'error': 'Internal server error'}), 500
