from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity
from academy.extensions import db
from academy.models import User


def get_current_user():
    """Load the user behind the current JWT, or None for anonymous requests."""
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def role_required(*roles):
    """Reject the request unless the caller's stored role is one of ``roles``.

    The role is read from the database rather than the token claim so that a
    demotion takes effect before the token expires. Must be stacked under
    ``@jwt_required()``.
    """
    def wrapper(fn):
        @wraps(fn)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user or user.role not in roles:
                return jsonify({"error": "Unauthorized"}), 403
            return fn(*args, **kwargs)
        return decorated
    return wrapper
