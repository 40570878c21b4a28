from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC, matching how DateTime columns are stored in SQLite
    return datetime.now(timezone.utc).replace(tzinfo=None)
