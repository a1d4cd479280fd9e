from datetime import datetime, date, time, tzinfo
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from medreminder.core.config import Settings, settings as default_settings


def get_zoneinfo(settings: Optional[Settings] = None) -> Optional[tzinfo]:
    """Configured zone, or None to follow the device's current local zone."""
    tz_name = getattr(settings or default_settings, "TIMEZONE", None)
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def now_local(settings: Optional[Settings] = None) -> datetime:
    """
    Current wall-clock time as an aware datetime.
    Without a configured zone the system local zone is used, so a device
    zone change (travel) takes effect on the next call.
    """
    tz = get_zoneinfo(settings)
    return datetime.now(tz) if tz else datetime.now().astimezone()


def local_datetime(day: date, at: time, tz: Optional[tzinfo] = None) -> datetime:
    """
    Build an aware datetime for a wall-clock time on a calendar day.
    - With a ZoneInfo the zone's own DST rules apply
    - Without one the naive value is interpreted as system local time
    """
    if isinstance(tz, ZoneInfo):
        return datetime.combine(day, at, tzinfo=tz)
    naive = datetime.combine(day, at)
    if tz is not None:
        # Fixed-offset zones (e.g. timezone.utc) carry no DST rules
        return naive.replace(tzinfo=tz)
    return naive.astimezone()


def isoformat_instant(dt: datetime) -> str:
    """ISO-8601 instant with an explicit offset, as carried in notification payloads."""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.isoformat()
