"""Pure calendar domain logic - no I/O dependencies."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from .errors import ConfigurationError


@dataclass
class Event:
    """A calendar event."""

    title: str
    start: datetime
    end: datetime | None
    all_day: bool
    declined: bool = False
    location: str = ""
    calendar: str = ""
    source: str = ""

    def counts_as_busy(self) -> bool:
        """Timed events the user has not declined block focus time."""
        return not self.all_day and not self.declined and self.end is not None


@dataclass
class TimeSlot:
    """A span of time within a day."""

    start: datetime
    end: datetime

    def duration_minutes(self) -> int:
        return minutes_between(self.start, self.end)

    def clip(self, start: datetime, end: datetime) -> "TimeSlot | None":
        """Portion of [start, end) inside this slot, or None when they don't overlap."""
        clipped_start = max(start, self.start)
        clipped_end = min(end, self.end)
        if clipped_end <= clipped_start:
            return None
        return TimeSlot(start=clipped_start, end=clipped_end)


def minutes_between(start: datetime, end: datetime) -> int:
    return max(0, round((end - start).total_seconds() / 60))


def work_window(
    target_date: date,
    work_start: int = 9,
    work_end: int = 18,
    tz: tzinfo | None = None,
) -> TimeSlot:
    """
    The [work_start, work_end) window on a date, in the given timezone.

    Raises ConfigurationError for an empty or inverted window.
    """
    if work_end <= work_start:
        raise ConfigurationError(
            f"Invalid workday window: end hour ({work_end}) must be after start hour ({work_start})"
        )
    if not (0 <= work_start <= 23 and 1 <= work_end <= 24):
        raise ConfigurationError(f"Invalid workday window: {work_start}-{work_end}")

    start = datetime.combine(target_date, time(work_start, 0), tzinfo=tz)
    if work_end == 24:
        end = datetime.combine(target_date + timedelta(days=1), time(0, 0), tzinfo=tz)
    else:
        end = datetime.combine(target_date, time(work_end, 0), tzinfo=tz)
    return TimeSlot(start=start, end=end)


def busy_minutes(events: list[Event], window: TimeSlot) -> int:
    """
    Minutes of the window covered by busy events.

    All-day and declined events are ignored. Each event is clipped to the
    window on its own, so overlapping meetings are each counted.

    Pure function - no I/O.
    """
    total = 0
    for event in events:
        if not event.counts_as_busy():
            continue
        clipped = window.clip(event.start, event.end)
        if clipped:
            total += clipped.duration_minutes()
    return total
