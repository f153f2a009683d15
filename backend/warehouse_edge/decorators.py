# Overview: Request identity and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .extensions import db
from .models import User


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_user(f):
    """
    Resolve the acting user from the X-User-Id header.

    Sets g.current_user to the User row. Returns 401 when the header is
    missing or names no known user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get("X-User-Id") or "").strip()
        if not user_id:
            return jsonify({"error": "X-User-Id header required"}), 401

        user = db.session.get(User, user_id)
        if user is None:
            current_app.logger.warning("Unknown user id %s on %s %s", user_id, request.method, request.path)
            return jsonify({"error": "Unknown user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_capability(check, message: str):
    """
    Require a permission_service predicate to hold for g.current_user.

    Must be stacked below @require_user.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if not check(user):
                current_app.logger.warning(
                    "Denied %s %s for user %s (role %s)",
                    request.method, request.path, user.id, user.role,
                )
                return jsonify({"error": "Permission denied", "message": message}), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
