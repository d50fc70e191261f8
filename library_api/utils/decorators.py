from functools import wraps
from flask import jsonify
from flask_jwt_extended import current_user, verify_jwt_in_request


def role_required(*roles):
    """Compares the stored role, not the ``role`` claim of the token."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if current_user.role not in roles:
                return jsonify({"success": False, "message": "You are not authorized to perform this action."}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
