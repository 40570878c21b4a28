from functools import wraps
from flask import g, jsonify, request

from utils.audit import log_event

STUDENT = "STUDENT"
ADMIN = "ADMIN"


def has_role(role_name: str) -> bool:
    user = g.get("user")
    return bool(user and user.has_role(role_name))


def require_roles(*role_names: str):
    """
    Students and admins see different halves of the portal, e.g.
    @require_roles(ADMIN) on the triage endpoints.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = g.get("user")
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not any(user.has_role(name) for name in role_names):
                log_event(
                    "ACCESS_DENIED",
                    user_id=user.id,
                    metadata={"path": request.path, "required": list(role_names)},
                )
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
