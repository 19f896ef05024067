from datetime import datetime, timezone, tzinfo
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: str, default_tz: tzinfo = timezone.utc) -> datetime:
    """
    Parse an ISO-8601 date-time such as ``2025-03-08T21:00:00+09:00``
    and return it in UTC. Values without an offset are read in
    ``default_tz``.

    Raises ValueError when the text is not a date-time.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("empty date-time")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed.astimezone(timezone.utc)


def schedule_start(date: str, time: str, zone: tzinfo) -> datetime:
    """Start of a schedule given as local ``YYYY-MM-DD`` and ``HH:MM``, in UTC."""
    local = datetime.strptime(f"{date} {time}", "%Y-%m-%d %H:%M").replace(tzinfo=zone)
    return local.astimezone(timezone.utc)
