"""
Time Period Calculator

Pure, timezone-aware arithmetic for the business calendar. The business
runs on UTC+3 and its day turns over at 06:00 local (03:00 UTC), so a
night shift that ends at 06:00 belongs to the day it started in.
"""

from datetime import date, datetime, time, timedelta, timezone

from engines.schemas.time_periods import MINUTES_PER_DAY, ShiftType, ShiftWindow

BUSINESS_TZ = timezone(timedelta(hours=3), "UTC+03:00")
DAY_CUTOVER_HOUR = 6
DEFAULT_START_LEAD_MINUTES = 30


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(instant: datetime) -> datetime:
    # Naive datetimes are read as UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_business_time(instant: datetime) -> datetime:
    return _as_utc(instant).astimezone(BUSINESS_TZ)


def minute_of_day(instant: datetime) -> int:
    local = to_business_time(instant)
    return local.hour * 60 + local.minute


def shift_type_of(instant: datetime) -> ShiftType:
    """
    Classify an instant by its local hour.

    MORNING [06, 14), DAY [14, 22), NIGHT [22, 06) wrapping into the next
    calendar day. Every instant maps to exactly one type.
    """
    hour = to_business_time(instant).hour
    if 6 <= hour < 14:
        return ShiftType.MORNING
    if 14 <= hour < 22:
        return ShiftType.DAY
    return ShiftType.NIGHT


def canonical_day(instant: datetime) -> date:
    """Calendar date of the 06:00 local cutover that began the instant's day."""
    local = to_business_time(instant)
    return (local - timedelta(hours=DAY_CUTOVER_HOUR)).date()


def day_start(day: date) -> datetime:
    local = datetime.combine(day, time(hour=DAY_CUTOVER_HOUR), tzinfo=BUSINESS_TZ)
    return local.astimezone(timezone.utc)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) of a canonical day, in UTC."""
    return day_start(day), day_start(day + timedelta(days=1))


def current_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    return day_bounds(canonical_day(now))


def week_bounds(now: datetime) -> tuple[datetime, datetime]:
    day = canonical_day(now)
    monday = day - timedelta(days=day.weekday())
    return day_start(monday), day_start(monday + timedelta(days=7))


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    first = canonical_day(now).replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return day_start(first), day_start(next_first)


def is_time_in_window(instant: datetime, window: ShiftWindow) -> bool:
    return window.contains(minute_of_day(instant))


def is_within_start_window(
    now: datetime,
    window: ShiftWindow,
    lead_minutes: int = DEFAULT_START_LEAD_MINUTES,
) -> bool:
    """
    Whether a shift may be started at ``now``.

    A processor may start up to ``lead_minutes`` before the scheduled start.
    A window that starts at midnight opens at 23:30 the previous evening.
    Overnight windows are open from start until end with no lead.
    """
    minute = minute_of_day(now)

    if window.start_minute == 0:
        return minute >= MINUTES_PER_DAY - lead_minutes or window.contains(minute)

    if window.crosses_midnight:
        return window.contains(minute)

    return max(0, window.start_minute - lead_minutes) <= minute < window.end_minute


def scheduled_bounds(shift_date: date, window: ShiftWindow) -> tuple[datetime, datetime]:
    """
    Absolute UTC start/end of a window on a canonical day.

    Windows starting before the 06:00 cutover fall on the following calendar
    date, which is still inside the same canonical day.
    """
    start_date = shift_date
    if window.start_minute < DAY_CUTOVER_HOUR * 60:
        start_date = shift_date + timedelta(days=1)

    local_start = datetime.combine(start_date, time(), tzinfo=BUSINESS_TZ) + timedelta(
        minutes=window.start_minute
    )
    start = local_start.astimezone(timezone.utc)
    return start, start + timedelta(minutes=window.duration_minutes)


def shift_date_for(
    now: datetime,
    window: ShiftWindow,
    lead_minutes: int = DEFAULT_START_LEAD_MINUTES,
) -> date:
    """
    Canonical day of the window instance a start at ``now`` belongs to.

    An early start (within the lead) is keyed to the upcoming window, so a
    05:35 start of a 06:00 shift lands on the day that begins at 06:00.
    """
    now = _as_utc(now)
    today = canonical_day(now)
    lead = timedelta(minutes=lead_minutes)

    for day in (today, today + timedelta(days=1), today - timedelta(days=1)):
        start, end = scheduled_bounds(day, window)
        if start - lead <= now < end:
            return day
    return today
