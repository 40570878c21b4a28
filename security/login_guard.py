"""
Per-email login lockout.

The guard counts consecutive failed logins for an identifier inside a sliding
window and locks the identifier for a fixed period once the threshold is hit.
Expiry of both the window and the lockout is evaluated lazily whenever a record
is read; nothing runs in the background.

The guard is advisory: the login route must call check_lockout() before it
verifies credentials and record_outcome() once the result is known.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

from models import db
from models.login_attempt import LoginAttempt
from utils.clock import utcnow

MAX_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)
ATTEMPT_WINDOW = timedelta(minutes=30)


def normalize_identifier(value: str) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def format_remaining(seconds: int) -> str:
    """Render a lockout countdown as mm:ss."""
    seconds = max(int(seconds), 0)
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass
class AttemptRecord:
    attempts: int = 0
    lockout_until: Optional[datetime] = None
    last_attempt: Optional[datetime] = None

    def to_value(self) -> dict:
        return {
            "attempts": self.attempts,
            "lockout_until": self.lockout_until.isoformat() if self.lockout_until else None,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
        }


class LockoutStatus(NamedTuple):
    locked: bool
    remaining_seconds: int


class OutcomeResult(NamedTuple):
    locked: bool
    attempts_remaining: int


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if value.tzinfo is not None:
        # the clock is naive UTC
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_record(raw) -> Optional[AttemptRecord]:
    """
    Builds an AttemptRecord from a stored value.
    Returns None for anything malformed so callers fall back to zero-state.
    """
    if not isinstance(raw, dict):
        return None
    try:
        attempts = raw.get("attempts")
        if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 0:
            return None
        return AttemptRecord(
            attempts=attempts,
            lockout_until=_parse_timestamp(raw.get("lockout_until")),
            last_attempt=_parse_timestamp(raw.get("last_attempt")),
        )
    except (TypeError, ValueError):
        return None


class MemoryAttemptStore:
    """Process-local store. Used by tests and single-process deployments."""

    def __init__(self):
        self._data = {}

    def get(self, key: str):
        return self._data.get(key)

    def set(self, key: str, value: dict) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class DatabaseAttemptStore:
    """Stores attempt records in the login_attempts table (shared by every app worker)."""

    def get(self, key: str):
        row = LoginAttempt.query.filter_by(identifier=key).first()
        if not row:
            return None
        return {
            "attempts": row.attempts,
            "lockout_until": row.lockout_until,
            "last_attempt": row.last_attempt,
        }

    def set(self, key: str, value: dict) -> None:
        row = LoginAttempt.query.filter_by(identifier=key).first()
        if not row:
            row = LoginAttempt(identifier=key)
            db.session.add(row)
        row.attempts = value["attempts"]
        row.lockout_until = _parse_timestamp(value.get("lockout_until"))
        row.last_attempt = _parse_timestamp(value.get("last_attempt"))
        db.session.commit()

    def delete(self, key: str) -> None:
        LoginAttempt.query.filter_by(identifier=key).delete()
        db.session.commit()


class LoginAttemptGuard:
    def __init__(self, store=None, clock: Callable[[], datetime] = utcnow):
        self.store = store if store is not None else MemoryAttemptStore()
        self.clock = clock

    def get_status(self, identifier: str) -> AttemptRecord:
        """Current record for identifier, or a zero-state record if absent, corrupt or stale."""
        key = normalize_identifier(identifier)
        record = parse_record(self.store.get(key))
        if record is None or record.last_attempt is None:
            return AttemptRecord()

        if self.clock() - record.last_attempt > ATTEMPT_WINDOW:
            return AttemptRecord()
        return record

    def check_lockout(self, identifier: str) -> LockoutStatus:
        record = self.get_status(identifier)
        now = self.clock()
        if record.lockout_until is None or record.lockout_until <= now:
            return LockoutStatus(False, 0)

        seconds = math.ceil((record.lockout_until - now).total_seconds())
        return LockoutStatus(True, max(seconds, 1))

    def record_outcome(self, identifier: str, success: bool) -> OutcomeResult:
        """
        Updates the record after an authentication attempt.

        While locked nothing changes, whatever the outcome. A success clears
        the record; a failure increments the counter and starts the lockout
        once MAX_ATTEMPTS is reached.
        """
        key = normalize_identifier(identifier)

        if self.check_lockout(key).locked:
            return OutcomeResult(True, 0)

        if success:
            self.store.delete(key)
            return OutcomeResult(False, MAX_ATTEMPTS)

        now = self.clock()
        record = self.get_status(key)
        record.attempts += 1
        record.last_attempt = now

        locked = False
        if record.attempts >= MAX_ATTEMPTS:
            record.lockout_until = now + LOCKOUT_DURATION
            locked = True

        self.store.set(key, record.to_value())

        if locked:
            return OutcomeResult(True, 0)
        return OutcomeResult(False, MAX_ATTEMPTS - record.attempts)
