"""
Timezone-aware helpers for instants and local civil time.

Instants are stored and returned as UTC strings with millisecond precision
and a Z suffix (e.g. 2024-01-15T13:30:00.000Z). Strings without an offset
are read as local civil time in the configured zone, or in the zone of the
server process when none is configured.
"""
from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


def local_timezone() -> Optional[tzinfo]:
    """Return the configured zone, or None for the process-local zone."""
    name = get_settings().timezone
    return ZoneInfo(name) if name else None


def now_local() -> datetime:
    return datetime.now(timezone.utc).astimezone(local_timezone())


def today_local() -> date:
    return now_local().date()


def to_local(value: datetime) -> datetime:
    """Convert an aware datetime to local civil time (still aware)."""
    return value.astimezone(local_timezone())


def localize(naive: datetime) -> datetime:
    """Attach the local zone to a naive local civil datetime."""
    zone = local_timezone()
    if zone is None:
        # astimezone() on a naive value treats it as system local time
        return naive.astimezone()
    return naive.replace(tzinfo=zone)


def timezone_name(at: Optional[datetime] = None) -> str:
    zone = local_timezone()
    if isinstance(zone, ZoneInfo):
        return zone.key
    return to_local(at or datetime.now(timezone.utc)).tzname() or "UTC"


def timezone_offset(at: Optional[datetime] = None) -> str:
    """Render the local UTC offset at `at` as +HH:MM / -HH:MM (DST-aware)."""
    offset = to_local(at or datetime.now(timezone.utc)).utcoffset()
    total_minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def parse_instant(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware datetime.
    Accepts Z, +HH:MM or no offset; offset-less values are local civil time.
    Returns None for anything that does not parse, or that falls outside the
    datetime range once converted to UTC or local time.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    try:
        if parsed.tzinfo is None:
            parsed = localize(parsed)
        parsed.astimezone(timezone.utc)
        to_local(parsed)
    except (OverflowError, ValueError):
        return None
    return parsed


def to_instant_string(value: datetime) -> str:
    """Render an aware datetime as a canonical UTC instant string."""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_instant(value) -> Optional[str]:
    """Parse and re-render an instant, or None when it does not parse."""
    parsed = parse_instant(value)
    return to_instant_string(parsed) if parsed else None


def local_date_of(value: datetime) -> date:
    return to_local(value).date()


def combine_date_and_time(day: date, clock: time) -> datetime:
    """Build an aware instant from a local calendar date and time of day."""
    return localize(datetime.combine(day, clock.replace(tzinfo=None)))


def format_local(value: datetime) -> str:
    """Local civil time without offset, e.g. 2024-01-15T14:00:00."""
    return to_local(value).strftime("%Y-%m-%dT%H:%M:%S")


def format_human(value: datetime) -> str:
    """Short local rendering for prompts, e.g. Mon, Jan 15, 14:00."""
    local = to_local(value)
    return f"{local.strftime('%a, %b')} {local.day}, {local.strftime('%H:%M')}"
