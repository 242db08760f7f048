"""
Conversion between the user's wall-clock time and absolute UTC instants.

DST rule for local times that do not map to exactly one instant:
- ambiguous (clocks fall back, the hour repeats): the first occurrence wins,
  i.e. the offset in force before the transition (``fold=0``);
- nonexistent (clocks spring forward, the hour is skipped): the time is read
  with the offset in force before the transition, which moves it forward by
  the size of the gap (02:30 becomes 03:30 on a one-hour gap).
"""
from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ValueError for unknown names."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz_name!r}") from exc


def parse_local(value: Union[str, datetime]) -> datetime:
    """Parse a naive ISO-8601 date-time such as ``2026-02-19T18:00``."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except (AttributeError, ValueError) as exc:
            raise ValueError(f"Not a local date-time: {value!r}") from exc
    if parsed.tzinfo is not None:
        raise ValueError(f"Expected a local date-time without offset: {value!r}")
    return parsed


# PUBLIC_INTERFACE
def to_absolute(local: Union[str, datetime], tz_name: str) -> datetime:
    """Convert a naive local date-time in ``tz_name`` into an aware UTC datetime."""
    wall = parse_local(local).replace(tzinfo=get_zone(tz_name), fold=0)
    return wall.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def to_local(instant: datetime, tz_name: str) -> datetime:
    """Convert an absolute instant into a naive wall-clock datetime in ``tz_name``."""
    return ensure_utc(instant).astimezone(get_zone(tz_name)).replace(tzinfo=None)


# PUBLIC_INTERFACE
def local_now(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Current wall-clock time in ``tz_name``, truncated to the minute."""
    current = now or utcnow()
    return to_local(current, tz_name).replace(second=0, microsecond=0)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Tag naive values (as read back from SQLite) as UTC; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
