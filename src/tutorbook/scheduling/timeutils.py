"""Clock-free helpers for weekday keys and HH:MM wall-clock times."""

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

MINUTES_PER_DAY = 24 * 60


def weekday_key(day: date) -> str:
    """Map a date to its availability key (date.weekday(): 0=Monday)."""
    return WEEKDAYS[day.weekday()]


def to_minutes(hhmm: str) -> int:
    """Parse "HH:MM" into minutes since midnight."""
    try:
        hours, minutes = hhmm.split(":")
        value = int(hours) * 60 + int(minutes)
    except ValueError:
        raise ValueError(f"Invalid HH:MM time: {hhmm!r}") from None
    if not 0 <= value < MINUTES_PER_DAY or int(minutes) >= 60:
        raise ValueError(f"Invalid HH:MM time: {hhmm!r}")
    return value


def from_minutes(value: int) -> str:
    if not 0 <= value <= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range: {value}")
    # 24:00 is only reachable as a range end; clamp to the last minute
    value = min(value, MINUTES_PER_DAY - 1)
    return f"{value // 60:02d}:{value % 60:02d}"


def duration_minutes(start: str, end: str) -> int:
    return to_minutes(end) - to_minutes(start)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap: touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def combine(day: date, hhmm: str) -> datetime:
    minutes = to_minutes(hhmm)
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def format_time(value: datetime | time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def week_start(day: date) -> date:
    """Return the Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def date_range(start: date, days: int) -> Iterator[date]:
    """Yield `days` consecutive dates beginning at `start`."""
    for offset in range(days):
        yield start + timedelta(days=offset)
