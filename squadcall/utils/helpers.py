from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.
    Naive timestamps are read as UTC. Returns None when unparseable.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def format_call_time(value: datetime, tz_name: str) -> str:
    """'Monday, March 3 at 6:30 PM EST' in the squad's timezone; UTC on a bad zone name."""
    value = as_utc(value)
    try:
        local = value.astimezone(ZoneInfo(tz_name or "UTC"))
    except Exception:
        local = value
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{local.strftime('%A, %B')} {local.day} at {hour}:{local.strftime('%M %p %Z')}".rstrip()
