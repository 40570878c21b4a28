import pyotp
import pytest

from conftest import STUDENT_EMAIL, PASSWORD, login, csrf_headers, make_user
from models.audit_log import AuditLog
from models.login_attempt import LoginAttempt
from security.rbac import ADMIN


def test_register_creates_student(client, app):
    resp = client.post("/auth/register", json={
        "email": " New.Student@College.edu ",
        "password": "Abcdef#1",
        "full_name": "New Student",
    })
    assert resp.status_code == 201

    resp = login(client, "new.student@college.edu", "Abcdef#1")
    assert resp.status_code == 200
    assert resp.get_json()["user"]["roles"] == ["STUDENT"]


def test_register_rejects_weak_password(client):
    resp = client.post("/auth/register", json={"email": "x@college.edu", "password": "abc"})
    assert resp.status_code == 400
    details = resp.get_json()["details"]
    assert "At least 6 characters" in details
    assert "Contains special character" in details


def test_register_rejects_bad_email_and_duplicates(client, student_id):
    assert client.post("/auth/register", json={"email": "nope", "password": PASSWORD}).status_code == 400
    resp = client.post("/auth/register", json={"email": STUDENT_EMAIL.upper(), "password": PASSWORD})
    assert resp.status_code == 409


def test_login_sets_session_and_csrf_cookies(client, student_id):
    resp = login(client, STUDENT_EMAIL)
    assert resp.status_code == 200
    assert client.get_cookie("grievance_session") is not None
    assert client.get_cookie("csrf_token") is not None

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.get_json()["email"] == STUDENT_EMAIL


def test_login_is_case_insensitive(client, student_id):
    assert login(client, "Student@College.EDU").status_code == 200


def test_me_requires_login(client):
    assert client.get("/auth/me").status_code == 401


def test_failed_logins_count_down_then_lock(client, student_id, clock):
    for expected in (4, 3, 2, 1):
        resp = login(client, STUDENT_EMAIL, "wrong-password")
        assert resp.status_code == 401
        assert resp.get_json()["attempts_remaining"] == expected

    resp = login(client, STUDENT_EMAIL, "wrong-password")
    assert resp.status_code == 429
    body = resp.get_json()
    assert body["retry_after_seconds"] == 900
    assert body["retry_after"] == "15:00"

    # correct password is refused while locked
    clock.advance(minutes=14, seconds=59)
    resp = login(client, STUDENT_EMAIL)
    assert resp.status_code == 429
    assert resp.get_json()["retry_after"] == "00:01"

    clock.advance(seconds=2)
    assert login(client, STUDENT_EMAIL).status_code == 200


def test_unknown_email_is_tracked_too(client):
    for _ in range(5):
        resp = login(client, "ghost@college.edu", "whatever")
    assert resp.status_code == 429


def test_success_resets_attempts(client, student_id):
    for _ in range(3):
        login(client, STUDENT_EMAIL, "wrong-password")
    assert login(client, STUDENT_EMAIL).status_code == 200

    resp = login(client, STUDENT_EMAIL, "wrong-password")
    assert resp.get_json()["attempts_remaining"] == 4


@pytest.mark.parametrize("password", [12345, ["Secret#123"], {"p": 1}])
def test_non_string_password_counts_as_failure(client, student_id, password):
    resp = login(client, STUDENT_EMAIL, password)
    assert resp.status_code == 401
    assert resp.get_json()["attempts_remaining"] == 4


@pytest.mark.parametrize("email", ["", "   ", None, 42])
def test_login_without_email_is_rejected(client, app, email):
    for _ in range(6):
        resp = client.post("/auth/login", json={"email": email, "password": "whatever"})
        assert resp.status_code == 400
    with app.app_context():
        assert LoginAttempt.query.count() == 0


def test_lockout_is_per_email(client, student_id, app):
    make_user(app, "other@college.edu")
    for _ in range(5):
        login(client, STUDENT_EMAIL, "wrong-password")
    assert login(client, "other@college.edu").status_code == 200


def test_lockout_status_endpoint(client, student_id):
    resp = client.get("/auth/lockout", query_string={"email": STUDENT_EMAIL})
    assert resp.get_json() == {"locked": False, "retry_after_seconds": 0, "retry_after": "00:00"}

    for _ in range(5):
        login(client, STUDENT_EMAIL, "wrong-password")
    resp = client.get("/auth/lockout", query_string={"email": STUDENT_EMAIL})
    assert resp.get_json()["locked"] is True

    assert client.get("/auth/lockout").status_code == 400


def test_login_events_are_audited(client, student_id, app):
    login(client, STUDENT_EMAIL, "wrong-password")
    login(client, STUDENT_EMAIL)
    with app.app_context():
        actions = [row.action for row in AuditLog.query.order_by(AuditLog.id).all()]
    assert actions == ["LOGIN_FAIL", "LOGIN_SUCCESS"]


def test_logout_revokes_session(student_client):
    resp = student_client.post("/auth/logout", headers=csrf_headers(student_client))
    assert resp.status_code == 200
    assert student_client.get("/auth/me").status_code == 401


def test_state_change_without_csrf_is_rejected(student_client):
    assert student_client.post("/auth/logout").status_code == 403


def test_new_login_revokes_older_sessions(app, student_id):
    first = app.test_client()
    second = app.test_client()
    login(first, STUDENT_EMAIL)
    login(second, STUDENT_EMAIL)
    assert first.get("/auth/me").status_code == 401
    assert second.get("/auth/me").status_code == 200


def test_password_strength(client):
    body = client.post("/auth/password_strength", json={"password": "abc"}).get_json()
    assert body["level"] == "weak"
    assert body["valid"] is False

    body = client.post("/auth/password_strength", json={"password": "Abcdef#1"}).get_json()
    assert body["level"] == "strong"
    assert body["percentage"] == 100


class TestTwoFactor:
    def _enable(self, client):
        secret = client.post("/auth/mfa/setup", headers=csrf_headers(client)).get_json()["secret"]
        resp = client.post(
            "/auth/mfa/enable",
            json={"code": pyotp.TOTP(secret).now()},
            headers=csrf_headers(client),
        )
        assert resp.status_code == 200
        return secret

    def test_setup_returns_provisioning_uri(self, student_client):
        body = student_client.post("/auth/mfa/setup", headers=csrf_headers(student_client)).get_json()
        assert body["otpauth_uri"].startswith("otpauth://totp/")
        assert student_client.get("/auth/me").get_json()["mfa_enabled"] is False

    def test_enable_rejects_wrong_code(self, student_client):
        student_client.post("/auth/mfa/setup", headers=csrf_headers(student_client))
        resp = student_client.post("/auth/mfa/enable", json={"code": "000000"}, headers=csrf_headers(student_client))
        assert resp.status_code == 400

    def test_login_requires_code_once_enabled(self, app, student_client):
        secret = self._enable(student_client)
        client = app.test_client()

        resp = login(client, STUDENT_EMAIL)
        assert resp.status_code == 401
        assert resp.get_json()["mfa_required"] is True

        resp = login(client, STUDENT_EMAIL, otp="12345x")
        assert resp.status_code == 401
        # the missing code did not count, the bad one did
        assert resp.get_json()["attempts_remaining"] == 4

        assert login(client, STUDENT_EMAIL, otp=pyotp.TOTP(secret).now()).status_code == 200

    def test_numeric_code_counts_as_failure(self, app, student_client):
        self._enable(student_client)
        client = app.test_client()

        resp = login(client, STUDENT_EMAIL, otp=999999999)
        assert resp.status_code == 401
        assert resp.get_json()["attempts_remaining"] == 4

    def test_disable(self, student_client):
        secret = self._enable(student_client)
        resp = student_client.post(
            "/auth/mfa/disable",
            json={"code": pyotp.TOTP(secret).now()},
            headers=csrf_headers(student_client),
        )
        assert resp.status_code == 200
        assert student_client.get("/auth/me").get_json()["mfa_enabled"] is False


def test_create_admin_cli(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-admin", "boss@college.edu"])
    assert result.exit_code != 0

    result = runner.invoke(args=["create-admin", "boss@college.edu", "--password", "Boss#2026"])
    assert result.exit_code == 0
    assert "created" in result.output

    client = app.test_client()
    assert ADMIN in login(client, "boss@college.edu", "Boss#2026").get_json()["user"]["roles"]


def test_create_admin_cli_promotes_existing_user(app, student_id):
    result = app.test_cli_runner().invoke(args=["create-admin", STUDENT_EMAIL])
    assert result.exit_code == 0

    client = app.test_client()
    roles = login(client, STUDENT_EMAIL).get_json()["user"]["roles"]
    assert set(roles) == {"STUDENT", "ADMIN"}
