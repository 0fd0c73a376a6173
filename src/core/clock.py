"""Logical-day arithmetic for the daily refresh boundary."""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def logical_day_for(
    now_utc: datetime,
    offset_hours: int = 4,
    boundary_hour: int = 4,
) -> datetime:
    """Return the logical day containing ``now_utc`` as a UTC-midnight timestamp.

    A logical day starts at ``boundary_hour`` local time in a fixed
    ``offset_hours`` zone. With the defaults (UTC+4, 04:00), 03:59 local still
    belongs to the previous day and 04:00 local starts a new one.

    The result is aligned to UTC midnight so it can be compared for equality
    with a stored value without redoing the timezone math.
    """
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    local = now_utc.astimezone(timezone.utc) + timedelta(hours=offset_hours)
    day = (local - timedelta(hours=boundary_hour)).date()
    return datetime.combine(day, time(0), tzinfo=timezone.utc)


def logical_date_for(
    now_utc: datetime,
    offset_hours: int = 4,
    boundary_hour: int = 4,
) -> date:
    return logical_day_for(now_utc, offset_hours, boundary_hour).date()
