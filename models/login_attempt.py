from models.db import db
from utils.clock import utcnow

class LoginAttempt(db.Model):
    """Persisted attempt record for the login guard, one row per normalized email."""

    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), unique=True, nullable=False, index=True)

    attempts = db.Column(db.Integer, default=0, nullable=False)
    lockout_until = db.Column(db.DateTime, nullable=True)
    last_attempt = db.Column(db.DateTime, nullable=True)

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
