from functools import wraps
from flask import request, current_app, jsonify, make_response
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from sqlalchemy.exc import SQLAlchemyError
from mediconnect.models.system_models import AuditLog
from mediconnect.extensions import db

def _current_identity():
    try:
        identity = get_jwt_identity()
        role = get_jwt().get('role') if identity is not None else None
    except RuntimeError:
        # No verified JWT on this request
        return None, None
    return (int(identity) if identity is not None else None), role

def _write_audit_entry(action, resource, resource_id, success, details):
    actor_id, actor_role = _current_identity()
    log_entry = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        resource=resource,
        resource_id=resource_id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
        success=success,
        details=details
    )
    try:
        db.session.add(log_entry)
        db.session.commit()
    except SQLAlchemyError as db_error:
        current_app.audit_logger.error(f"Failed to log audit entry due to DB error: {db_error}")
        db.session.rollback()

    log = current_app.audit_logger.info if success else current_app.audit_logger.error
    log(f"Action='{action}', Resource='{resource}', ResourceID='{resource_id}', "
        f"ActorID='{actor_id}', Role='{actor_role}', Success='{success}', Details='{details}'")

def audit_log(action, resource):
    """Logs user actions for HIPAA compliance."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            resource_id = next((str(v) for k, v in kwargs.items() if k.endswith('_id')), None)
            try:
                response = make_response(f(*args, **kwargs))
            except Exception as e:
                db.session.rollback()
                _write_audit_entry(action, resource, resource_id, False, f"An error occurred: {str(e)}")
                raise

            success = response.status_code < 400
            _write_audit_entry(action, resource, resource_id, success,
                               f"Request completed. Status: {response.status_code}")
            return response

        return decorated_function
    return decorator

def require_role(*roles):
    """Rejects callers whose token does not carry one of `roles`."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            if get_jwt().get('role') not in roles:
                return jsonify({'error': 'Permission denied'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
