"""Availability resolver: weekly availability minus booked sessions -> bookable slots.

The resolver is a pure function of its arguments. It never reads the clock and
never caches booked sessions; callers re-fetch them for every invocation.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from tutorbook.schemas.scheduling import BookedSession, BookingSlot, WeeklyAvailability
from tutorbook.scheduling.timeutils import (
    date_range,
    from_minutes,
    overlaps,
    to_minutes,
    weekday_key,
)

DEFAULT_GRANULARITY_MINUTES = 30


def has_availability(availability: WeeklyAvailability | None) -> bool:
    """False when the tutor has not configured any weekly ranges at all.

    This is distinct from "no free slots in the requested window".
    """
    return availability is not None and availability.has_any_ranges


def _index_booked(
    booked_sessions: Iterable[BookedSession],
) -> dict[date, list[tuple[int, int]]]:
    booked: dict[date, list[tuple[int, int]]] = defaultdict(list)
    for session in booked_sessions:
        booked[session.day].append((to_minutes(session.start), to_minutes(session.end)))
    return booked


def generate_available_slots(
    availability: WeeklyAvailability | None,
    booked_sessions: Iterable[BookedSession],
    start_date: date,
    horizon_days: int,
    *,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    tutor_id: str | None = None,
    include_unavailable: bool = False,
) -> list[BookingSlot]:
    """Expand weekly availability into concrete slots for [start_date, start_date + horizon_days).

    Each availability range is cut into whole units of `granularity_minutes`;
    a trailing remainder shorter than one unit is dropped. A unit that overlaps
    any booked session on its date, even partially, is unavailable. Unavailable
    units are omitted unless `include_unavailable` is set, in which case they
    are kept with ``available=False`` (grid rendering needs them).

    Output is ordered by (date, start) and no unit crosses midnight.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    if horizon_days < 0:
        raise ValueError("horizon_days must not be negative")
    if availability is None or not availability.has_any_ranges:
        return []

    booked = _index_booked(booked_sessions)
    slots: list[BookingSlot] = []

    for day in date_range(start_date, horizon_days):
        taken = booked.get(day, [])
        for time_range in availability.ranges_for(weekday_key(day)):
            range_end = to_minutes(time_range.end)
            unit_start = to_minutes(time_range.start)
            while unit_start + granularity_minutes <= range_end:
                unit_end = unit_start + granularity_minutes
                free = not any(overlaps(unit_start, unit_end, b_start, b_end) for b_start, b_end in taken)
                if free or include_unavailable:
                    slots.append(
                        BookingSlot(
                            day=day,
                            start=from_minutes(unit_start),
                            end=from_minutes(unit_end),
                            available=free,
                            tutor_id=tutor_id,
                        )
                    )
                unit_start = unit_end

    return slots
