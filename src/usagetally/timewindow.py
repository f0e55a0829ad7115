from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, NamedTuple

from usagetally.models import TimeRange


class TimeWindows(NamedTuple):
    today: "TimeRange"
    week: "TimeRange"
    month: "TimeRange"


# providers call a Clock to get the windows to bucket into
Clock = Callable[[], TimeWindows]


def _local_midnight(day: "date", tz: "tzinfo | None") -> "datetime":
    """
    returns midnight of the given wall-clock day as an aware UTC
    instant. Localizing the naive midnight (instead of subtracting
    hours from now) keeps the boundary right across DST changes.
    """
    naive = datetime(day.year, day.month, day.day)
    if tz is None:
        local = naive.astimezone()
    else:
        local = naive.replace(tzinfo=tz)
    return local.astimezone(timezone.utc)


def local_time_ranges(
    now: "datetime | None" = None,
    tz: "tzinfo | None" = None,
) -> "TimeWindows":
    """
    computes the today, this-week and this-month ranges anchored to
    the user's local calendar. Boundaries are local midnights
    converted to UTC, since source timestamps are compared in UTC.
    Weeks start on Sunday. All three ranges end at now.

    tz defaults to the host's local zone.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    local_now = now.astimezone(tz) if tz is not None else now.astimezone()
    local_today = local_now.date()

    # date.weekday() is Monday=0, shift so Sunday=0
    days_since_sunday = (local_today.weekday() + 1) % 7
    week_day = local_today - timedelta(days=days_since_sunday)
    month_day = local_today.replace(day=1)

    return TimeWindows(
        today=TimeRange(_local_midnight(local_today, tz), now),
        week=TimeRange(_local_midnight(week_day, tz), now),
        month=TimeRange(_local_midnight(month_day, tz), now),
    )
