# utils/timeutils.py
from datetime import datetime, timezone


def utc_today() -> str:
    """YYYY-MM-DD in UTC."""
    return datetime.now(timezone.utc).date().isoformat()
