from datetime import datetime, timedelta

import pytest
import requests

from app import create_app
from config import TestConfig
from models import db
from models.user import User
from security import password as password_module
from security.login_guard import LoginAttemptGuard, DatabaseAttemptStore
from security.password import hash_password
from security.rbac import STUDENT, ADMIN
from utils.seed import get_or_create_role

STUDENT_EMAIL = "student@college.edu"
ADMIN_EMAIL = "admin@college.edu"
PASSWORD = "Secret#123"


class FakeClock:
    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    @property
    def text(self):
        return str(self._payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(password_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=True)
def offline_language_apis(monkeypatch):
    """Any real network call from the language helpers fails like an unreachable host."""
    def _offline(*args, **kwargs):
        raise requests.ConnectionError("network disabled in tests")

    monkeypatch.setattr(requests, "post", _offline)
    monkeypatch.setattr(requests, "get", _offline)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(tmp_path, clock):
    app = create_app(TestConfig, login_guard=LoginAttemptGuard(DatabaseAttemptStore(), clock=clock))
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, email, password=PASSWORD, roles=(STUDENT,), full_name=None):
    with app.app_context():
        user = User(email=email, password_hash=hash_password(password), full_name=full_name)
        for name in roles:
            user.roles.append(get_or_create_role(name))
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, email, password=PASSWORD, **extra):
    return client.post("/auth/login", json={"email": email, "password": password, **extra})


def csrf_headers(client):
    cookie = client.get_cookie("csrf_token")
    return {"X-CSRF-Token": cookie.value if cookie else ""}


@pytest.fixture
def student_id(app):
    return make_user(app, STUDENT_EMAIL, full_name="Asha Rao")


@pytest.fixture
def admin_id(app):
    return make_user(app, ADMIN_EMAIL, roles=(ADMIN,), full_name="Administrator")


@pytest.fixture
def student_client(app, student_id):
    c = app.test_client()
    assert login(c, STUDENT_EMAIL).status_code == 200
    return c


@pytest.fixture
def admin_client(app, admin_id):
    c = app.test_client()
    assert login(c, ADMIN_EMAIL).status_code == 200
    return c
