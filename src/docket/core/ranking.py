"""Deterministic scoring, bucketing and top-N selection - no I/O dependencies."""

import math
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from .tasks import Task

TOP_LIMIT = 3

PRIORITY_TO_NUMERIC = {
    "p0": 5,
    "p1": 4,
    "p2": 3,
    "p3": 2,
}
UNKNOWN_PRIORITY_VALUE = 1


class Bucket(Enum):
    """Coarse due-date urgency classification."""

    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    LATER = "later"


BUCKET_ORDER = {
    Bucket.OVERDUE: 0,
    Bucket.DUE_TODAY: 1,
    Bucket.DUE_SOON: 2,
    Bucket.LATER: 3,
}


@dataclass(frozen=True)
class RankingSettings:
    """Scoring weights and selection limits."""

    w_priority: float = 0.5
    w_due: float = 0.35
    w_stale: float = 0.15
    overdue_boost: float = 0.0
    staleness_cap_days: int = 30
    due_soon_days: int = 3
    max_per_project: int = 2


@dataclass(frozen=True)
class ScoredTask:
    """A task plus the fields derived for one digest computation."""

    task: Task
    due_in_days: int
    bucket: Bucket
    days_since_last_touch: int
    score: float = 0.0
    p_score: float = 0.0
    d_score: float = 0.0
    s_score: float = 0.0

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def project(self) -> str:
        return self.task.project

    @property
    def priority(self) -> str:
        return self.task.priority

    @property
    def due_date(self) -> date:
        return self.task.due_date

    @property
    def estimated_minutes(self) -> int:
        return self.task.estimated_minutes

    @property
    def is_overdue(self) -> bool:
        return self.due_in_days < 0


def priority_value(priority: str) -> int:
    """Numeric weight of a priority tag; unrecognized tags rank below all known ones."""
    return PRIORITY_TO_NUMERIC.get((priority or "").strip().lower(), UNKNOWN_PRIORITY_VALUE)


def bucket_for(due_in_days: int, due_soon_days: int = 3) -> Bucket:
    if due_in_days < 0:
        return Bucket.OVERDUE
    if due_in_days == 0:
        return Bucket.DUE_TODAY
    if due_in_days <= due_soon_days:
        return Bucket.DUE_SOON
    return Bucket.LATER


def preprocess_task(task: Task, today: date, due_soon_days: int = 3) -> ScoredTask:
    """
    Compute due offset, bucket and staleness relative to today.

    The task must have a due date; undated tasks are excluded upstream.
    """
    if task.due_date is None:
        raise ValueError(f"Task {task.id} has no due date")

    due_in_days = (task.due_date - today).days

    touched = task.last_edited_at or task.created_at
    touch_date = touched.date() if touched else today
    days_since_last_touch = max(0, (today - touch_date).days)

    return ScoredTask(
        task=task,
        due_in_days=due_in_days,
        bucket=bucket_for(due_in_days, due_soon_days),
        days_since_last_touch=days_since_last_touch,
    )


def score_task(task: ScoredTask, settings: RankingSettings | None = None) -> ScoredTask:
    """
    Weighted priority, due-date and staleness score.

    Due score saturates at 1 for due-today and overdue work and decays
    harmonically after that. Staleness grows logarithmically up to the cap.
    """
    settings = settings or RankingSettings()

    p_score = priority_value(task.priority) / 5
    d_score = 1 / (max(task.due_in_days, 0) + 1)
    stale_raw = math.log1p(task.days_since_last_touch)
    stale_den = math.log1p(max(1, settings.staleness_cap_days))
    s_score = min(1.0, stale_raw / stale_den)

    score = (
        settings.w_priority * p_score
        + settings.w_due * d_score
        + settings.w_stale * s_score
    )
    if task.is_overdue:
        score += settings.overdue_boost

    return replace(task, score=score, p_score=p_score, d_score=d_score, s_score=s_score)


def rank_key(task: ScoredTask) -> tuple[int, float, str, str, str]:
    # Bucket, score descending, due date, title; id keeps the order total
    return (
        BUCKET_ORDER[task.bucket],
        -task.score,
        task.due_date.isoformat(),
        task.title,
        task.id,
    )


def rank_tasks(tasks: list[ScoredTask]) -> list[ScoredTask]:
    """
    Total order over scored tasks. Input order never affects the result.

    Pure function - no I/O.
    """
    return sorted(tasks, key=rank_key)


def pick_top(
    ranked: list[ScoredTask],
    max_per_project: int = 2,
    limit: int = TOP_LIMIT,
) -> list[ScoredTask]:
    """
    Greedy top selection with a per-project cap.

    Tasks skipped for diversity refill any open slots afterwards, in
    ranked order, so min(limit, len(ranked)) tasks always come back.
    """
    selected: list[ScoredTask] = []
    skipped: list[ScoredTask] = []
    per_project: dict[str, int] = {}

    for task in ranked:
        if len(selected) >= limit:
            break
        count = per_project.get(task.project, 0)
        if count < max_per_project:
            selected.append(task)
            per_project[task.project] = count + 1
        else:
            skipped.append(task)

    for task in skipped:
        if len(selected) >= limit:
            break
        selected.append(task)

    return selected


def score_and_rank(
    tasks: list[Task],
    today: date,
    settings: RankingSettings | None = None,
) -> list[ScoredTask]:
    """Preprocess, score and rank in one pass."""
    settings = settings or RankingSettings()
    scored = [score_task(preprocess_task(t, today, settings.due_soon_days), settings) for t in tasks]
    return rank_tasks(scored)
