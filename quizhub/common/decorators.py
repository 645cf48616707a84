from functools import wraps
from flask import jsonify
from flask_login import current_user

from quizhub.security.security_logger import SecurityLogger


def role_required(*roles):
    """Decorator to require an authenticated user with one of ``roles``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401
            if getattr(current_user, 'role', None) not in roles:
                SecurityLogger.log_unauthorized_access(f.__name__, current_user.id)
                return jsonify({
                    'success': False,
                    'error': f'This action is only available to: {", ".join(roles)}',
                    'reason': 'WrongRole',
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


teacher_required = role_required('teacher')
student_required = role_required('student')
