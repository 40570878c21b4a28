from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.csrf import issue_csrf_token, clear_csrf_token
from security.login_guard import normalize_identifier, format_remaining
from security.password import hash_password, verify_password
from security.password_policy import validate_password, password_strength
from security.rbac import STUDENT
from security.session import (
    create_session,
    revoke_session,
    revoke_all_sessions,
    set_session_cookie,
    clear_session_cookie,
    request_token,
)
from security import totp
from utils.audit import log_event
from utils.auth_context import login_required
from utils.seed import get_or_create_role


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _guard():
    return current_app.extensions["login_guard"]


def _user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "roles": [r.name for r in user.roles],
        "mfa_enabled": user.mfa_enabled,
    }


def _locked_response(seconds_left: int):
    return jsonify(
        error=f"Too many failed attempts. Try again in {format_remaining(seconds_left)}.",
        retry_after_seconds=seconds_left,
        retry_after=format_remaining(seconds_left),
    ), 429


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = normalize_identifier(data.get("email"))
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip() or None

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if full_name and len(full_name) > 120:
        return jsonify(error="Invalid full_name"), 400
    valid, errors = validate_password(password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name)
    db.session.add(user)
    db.session.flush()
    user.roles.append(get_or_create_role(STUDENT))
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id)
    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = normalize_identifier(data.get("email"))
    password = data.get("password") or ""
    otp = str(data.get("otp") or "").strip()

    if not email:
        return jsonify(error="email is required"), 400

    guard = _guard()

    locked, seconds_left = guard.check_lockout(email)
    if locked:
        log_event("LOGIN_LOCKED", metadata={"email": email, "seconds_left": seconds_left})
        return _locked_response(seconds_left)

    user = User.query.filter_by(email=email).first()
    credentials_ok = user is not None and verify_password(password, user.password_hash)

    if credentials_ok and user.mfa_enabled:
        if not otp:
            # password was right; the client still has to ask for the code
            return jsonify(error="Two-factor code required", mfa_required=True), 401
        credentials_ok = totp.verify_code(user.mfa_secret, otp)

    if not credentials_ok:
        locked_now, attempts_remaining = guard.record_outcome(email, success=False)
        log_event(
            "LOGIN_FAIL",
            user_id=user.id if user else None,
            metadata={"email": email, "attempts_remaining": attempts_remaining, "locked_now": locked_now},
        )
        if locked_now:
            _, seconds_left = guard.check_lockout(email)
            return _locked_response(seconds_left)
        return jsonify(error="Invalid credentials", attempts_remaining=attempts_remaining), 401

    guard.record_outcome(email, success=True)

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK", user=_user_summary(user))
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/lockout")
def lockout_status():
    email = normalize_identifier(request.args.get("email"))
    if not email:
        return jsonify(error="email is required"), 400
    locked, seconds_left = _guard().check_lockout(email)
    return jsonify(locked=locked, retry_after_seconds=seconds_left, retry_after=format_remaining(seconds_left)), 200


@auth_bp.post("/password_strength")
def check_password_strength():
    data = request.get_json(silent=True) or {}
    return jsonify(password_strength(data.get("password") or "")), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_summary(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(request_token())
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    clear_session_cookie(resp)
    clear_csrf_token(resp)
    return resp, 200


@auth_bp.post("/mfa/setup")
@login_required
def mfa_setup():
    if g.user.mfa_enabled:
        return jsonify(error="Two-factor authentication is already enabled"), 409

    secret = totp.new_secret()
    g.user.mfa_secret = secret
    db.session.commit()

    log_event("MFA_SETUP_START", user_id=g.user.id)
    return jsonify(secret=secret, otpauth_uri=totp.provisioning_uri(secret, g.user.email)), 200


@auth_bp.post("/mfa/enable")
@login_required
def mfa_enable():
    data = request.get_json(silent=True) or {}
    if g.user.mfa_enabled:
        return jsonify(error="Two-factor authentication is already enabled"), 409
    if not g.user.mfa_secret:
        return jsonify(error="Start two-factor setup first"), 400
    if not totp.verify_code(g.user.mfa_secret, data.get("code")):
        log_event("MFA_ENABLE_FAIL", user_id=g.user.id)
        return jsonify(error="Invalid verification code"), 400

    g.user.mfa_enabled = True
    db.session.commit()
    log_event("MFA_ENABLED", user_id=g.user.id)
    return jsonify(message="Two-factor authentication enabled"), 200


@auth_bp.post("/mfa/disable")
@login_required
def mfa_disable():
    data = request.get_json(silent=True) or {}
    if not g.user.mfa_enabled:
        return jsonify(error="Two-factor authentication is not enabled"), 400
    if not totp.verify_code(g.user.mfa_secret, data.get("code")):
        log_event("MFA_DISABLE_FAIL", user_id=g.user.id)
        return jsonify(error="Invalid verification code"), 400

    g.user.mfa_enabled = False
    g.user.mfa_secret = None
    db.session.commit()
    log_event("MFA_DISABLED", user_id=g.user.id)
    return jsonify(message="Two-factor authentication disabled"), 200
