"""Functional core - pure business logic with no I/O."""

from .tasks import Task, PropertyNames, filter_digest_candidates
from .ranking import Bucket, RankingSettings, ScoredTask, pick_top, rank_tasks, score_and_rank
from .calendar import Event, TimeSlot, busy_minutes, work_window
from .capacity import CapacitySnapshot, DayStatus, estimate_capacity, pick_defer_candidate
from .digest import Digest, DigestMode, EveningProgress, assemble_digest, format_digest_text
from .actions import ActionKind, PendingAction, TaskUpdate, build_task_update, shift_iso_date

__all__ = [
    # Tasks
    "Task",
    "PropertyNames",
    "filter_digest_candidates",
    # Ranking
    "Bucket",
    "RankingSettings",
    "ScoredTask",
    "pick_top",
    "rank_tasks",
    "score_and_rank",
    # Calendar
    "Event",
    "TimeSlot",
    "busy_minutes",
    "work_window",
    # Capacity
    "CapacitySnapshot",
    "DayStatus",
    "estimate_capacity",
    "pick_defer_candidate",
    # Digest
    "Digest",
    "DigestMode",
    "EveningProgress",
    "assemble_digest",
    "format_digest_text",
    # Actions
    "ActionKind",
    "PendingAction",
    "TaskUpdate",
    "build_task_update",
    "shift_iso_date",
]
