"""Capacity planning and defer advice - no I/O dependencies."""

from dataclasses import dataclass
from datetime import date, tzinfo
from enum import Enum

from .calendar import Event, busy_minutes, work_window
from .ranking import ScoredTask


class DayStatus(Enum):
    """Whether today's selected work fits in the free focus time."""

    BALANCED = "balanced_day"
    CONSTRAINED = "constrained_day"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CapacitySnapshot:
    """Free focus time versus the effort of the selected tasks."""

    available: bool
    free_minutes: int | None
    required_minutes: int
    busy_minutes: int | None
    status: DayStatus

    @property
    def is_constrained(self) -> bool:
        return self.available and self.status == DayStatus.CONSTRAINED


def required_minutes(selected: list[ScoredTask]) -> int:
    return sum(t.estimated_minutes for t in selected)


def unavailable_capacity(selected: list[ScoredTask]) -> CapacitySnapshot:
    """Snapshot used when no calendar is configured or reachable."""
    return CapacitySnapshot(
        available=False,
        free_minutes=None,
        required_minutes=required_minutes(selected),
        busy_minutes=None,
        status=DayStatus.UNKNOWN,
    )


def estimate_capacity(
    selected: list[ScoredTask],
    events: list[Event],
    target_date: date,
    work_start: int = 9,
    work_end: int = 18,
    focus_buffer_minutes: int = 60,
    tz: tzinfo | None = None,
) -> CapacitySnapshot:
    """
    Estimate free focus minutes in the work window and compare to planned effort.

    Raises ConfigurationError when the work window is invalid.
    Pure function - no I/O.
    """
    window = work_window(target_date, work_start, work_end, tz)
    busy = busy_minutes(events, window)

    free_before_buffer = max(0, window.duration_minutes() - busy)
    free = max(0, free_before_buffer - focus_buffer_minutes)
    required = required_minutes(selected)

    return CapacitySnapshot(
        available=True,
        free_minutes=free,
        required_minutes=required,
        busy_minutes=busy,
        status=DayStatus.BALANCED if required <= free else DayStatus.CONSTRAINED,
    )


def pick_defer_candidate(
    selected: list[ScoredTask],
    capacity: CapacitySnapshot,
) -> ScoredTask | None:
    """Lowest-scoring selected task, but only on a constrained day."""
    if not capacity.is_constrained or not selected:
        return None
    return min(selected, key=lambda t: t.score)
