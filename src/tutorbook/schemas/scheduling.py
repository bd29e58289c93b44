from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from tutorbook.scheduling.timeutils import (
    HHMM_PATTERN,
    WEEKDAYS,
    duration_minutes,
    format_time,
    to_minutes,
)


class TimeRange(BaseModel):
    start: str = Field(pattern=HHMM_PATTERN)
    end: str = Field(pattern=HHMM_PATTERN)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError(f"Range start {self.start} must be before end {self.end}")
        return self


class WeeklyAvailability(BaseModel):
    """Recurring weekly availability: ordered, non-overlapping ranges per weekday."""

    monday: list[TimeRange] = Field(default_factory=list)
    tuesday: list[TimeRange] = Field(default_factory=list)
    wednesday: list[TimeRange] = Field(default_factory=list)
    thursday: list[TimeRange] = Field(default_factory=list)
    friday: list[TimeRange] = Field(default_factory=list)
    saturday: list[TimeRange] = Field(default_factory=list)
    sunday: list[TimeRange] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sort_and_check_overlap(self) -> "WeeklyAvailability":
        for weekday in WEEKDAYS:
            ranges = sorted(getattr(self, weekday), key=lambda r: to_minutes(r.start))
            for previous, current in zip(ranges, ranges[1:]):
                if to_minutes(current.start) < to_minutes(previous.end):
                    raise ValueError(
                        f"Overlapping ranges on {weekday}: "
                        f"{previous.start}-{previous.end} and {current.start}-{current.end}"
                    )
            setattr(self, weekday, ranges)
        return self

    def ranges_for(self, weekday: str) -> list[TimeRange]:
        if weekday not in WEEKDAYS:
            raise KeyError(weekday)
        return getattr(self, weekday)  # type: ignore[no-any-return]

    @property
    def has_any_ranges(self) -> bool:
        return any(self.ranges_for(weekday) for weekday in WEEKDAYS)


class BookingSlot(BaseModel):
    """One concrete bookable unit on one date. Generated, never stored."""

    day: date
    start: str = Field(pattern=HHMM_PATTERN)
    end: str = Field(pattern=HHMM_PATTERN)
    available: bool = True
    tutor_id: str | None = None

    model_config = {"frozen": True}

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.start, self.end)

    @property
    def key(self) -> tuple[date, str]:
        return (self.day, self.start)


class BookedSession(BaseModel):
    """An already-reserved interval that subtracts from availability."""

    day: date
    start: str = Field(pattern=HHMM_PATTERN)
    end: str = Field(pattern=HHMM_PATTERN)

    model_config = {"frozen": True}

    @classmethod
    def from_datetimes(cls, start_time: datetime, end_time: datetime) -> "BookedSession":
        """Build from stored session timestamps, clipped to the start day."""
        end = format_time(end_time) if end_time.date() == start_time.date() else "23:59"
        return cls(day=start_time.date(), start=format_time(start_time), end=end)


class SlotsResponse(BaseModel):
    tutor_id: str
    start_date: date
    horizon_days: int
    has_availability: bool
    slots: list[BookingSlot]
