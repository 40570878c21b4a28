from functools import wraps
from flask import g, jsonify
from models import db
from models.user import User
from security.session import get_session_from_request


def load_current_user():
    """Resolves the session cookie into g.user / g.session (both None when anonymous)."""
    g.user = None
    g.session = None

    sess = get_session_from_request()
    if not sess:
        return

    user = db.session.get(User, sess.user_id)
    if user is None:
        # account removed while the session was still live
        sess.revoked = True
        db.session.commit()
        return

    g.session = sess
    g.user = user


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
