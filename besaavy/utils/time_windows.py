"""Wall-clock window arithmetic: HH:MM parsing and overnight-aware range checks."""

import re
from datetime import datetime, timedelta
from typing import Optional

import pytz

from besaavy.core.errors import TimeFormatError
from besaavy.core.settings import settings
from besaavy.core.utils import WEEKDAY_NAMES

_HHMM = re.compile(r"([0-9]{2}):([0-9]{2})")


# Used by: db/models.py validators, baby_schedule.py, delay_arbiter.py, notification_scheduler.py
def parse_time(value: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    match = _HHMM.fullmatch(value) if isinstance(value, str) else None
    if not match:
        raise TimeFormatError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise TimeFormatError(f"Invalid time {value!r}, out of range")
    return hours * 60 + minutes


def is_in_range(point: float, start: float, end: float) -> bool:
    """Inclusive range test. start > end means the window wraps midnight."""
    if start <= end:
        return start <= point <= end
    return point >= start or point <= end


def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


# Used by: baby_schedule.py (hour-granularity conflict checks)
def is_hour_in_window(hour: int, start: str, end: str) -> bool:
    return is_in_range(hour * 60, parse_time(start), parse_time(end))


# Used by: delay_arbiter.py, notification_scheduler.py (quiet hours)
def is_in_window(moment: datetime, start: str, end: str) -> bool:
    return is_in_range(minutes_of_day(moment), parse_time(start), parse_time(end))


def day_name(moment: datetime) -> str:
    return WEEKDAY_NAMES[moment.weekday()]


def sunday_first_weekday(moment: datetime) -> int:
    """0=Sunday .. 6=Saturday."""
    return (moment.weekday() + 1) % 7


def at_hour(hour: int, now: datetime) -> datetime:
    """Today's slot for `hour`; an elapsed slot rolls to tomorrow, the running hour stays now."""
    if hour == now.hour:
        return now
    slot = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if slot <= now:
        slot += timedelta(days=1)
    return slot


def next_occurrence(hour: int, now: datetime, minute: int = 0) -> datetime:
    """Next wall-clock HH:MM strictly after now."""
    slot = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if slot <= now:
        slot += timedelta(days=1)
    return slot


def ensure_hhmm(value: Optional[str]) -> Optional[str]:
    """Validate and return the string unchanged, for pydantic validators."""
    if value is None:
        return None
    parse_time(value)
    return value


def _local_timezone():
    return pytz.timezone(settings.NOTIFICATION_TIMEZONE)


# Used by: smart_timing.py, notification_scheduler.py, api routers (default clock)
def local_now() -> datetime:
    """Naive wall-clock time in the notification timezone."""
    return datetime.now(pytz.utc).astimezone(_local_timezone()).replace(tzinfo=None)


# Used by: notification_scheduler.py (timestamps posted by clients)
def to_local(moment: datetime) -> datetime:
    """Naive local wall-clock time; naive input is assumed to be local already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(_local_timezone()).replace(tzinfo=None)
