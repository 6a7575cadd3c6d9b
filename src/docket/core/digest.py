"""Pure digest assembly and rendering - no I/O dependencies."""

import json
import re
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from enum import Enum

from .calendar import Event
from .capacity import (
    CapacitySnapshot,
    DayStatus,
    estimate_capacity,
    pick_defer_candidate,
    unavailable_capacity,
)
from .ranking import Bucket, RankingSettings, ScoredTask, TOP_LIMIT, pick_top

SUMMARY_MAX_CHARS = 120
NO_BLOCKERS_SUMMARY = "no immediate blockers"


class DigestMode(Enum):
    MORNING = "morning"
    EVENING = "evening"


@dataclass(frozen=True)
class EveningProgress:
    """End-of-day counts shown on the evening sweep."""

    completed_today: int
    pending_due_today: int


@dataclass(frozen=True)
class Digest:
    """The assembled output of one ranking pass. Rendering happens elsewhere."""

    mode: DigestMode
    today: date
    ranked: list[ScoredTask]
    top3: list[ScoredTask]
    capacity: CapacitySnapshot
    suggested_defer: ScoredTask | None
    ai_summary: str = ""
    evening_progress: EveningProgress | None = None

    def in_bucket(self, bucket: Bucket) -> list[ScoredTask]:
        return [t for t in self.ranked if t.bucket == bucket]


def assemble_digest(
    ranked: list[ScoredTask],
    events: list[Event] | None,
    *,
    mode: DigestMode,
    today: date,
    settings: RankingSettings | None = None,
    work_start: int = 9,
    work_end: int = 18,
    focus_buffer_minutes: int = 60,
    tz: tzinfo | None = None,
    ai_summary: str = "",
    evening_progress: EveningProgress | None = None,
) -> Digest:
    """
    Select the top tasks, plan capacity and pick a defer candidate.

    `events` is None when no calendar is available, which leaves capacity
    unknown. An invalid work window raises ConfigurationError.

    Pure function - no I/O.
    """
    settings = settings or RankingSettings()
    top3 = pick_top(ranked, max_per_project=settings.max_per_project, limit=TOP_LIMIT)

    if events is None:
        capacity = unavailable_capacity(top3)
    else:
        capacity = estimate_capacity(
            top3,
            events,
            target_date=today,
            work_start=work_start,
            work_end=work_end,
            focus_buffer_minutes=focus_buffer_minutes,
            tz=tz,
        )

    return Digest(
        mode=mode,
        today=today,
        ranked=ranked,
        top3=top3,
        capacity=capacity,
        suggested_defer=pick_defer_candidate(top3, capacity),
        ai_summary=ai_summary,
        evening_progress=evening_progress,
    )


# ============== Text rendering ==============


def truncate(value: str, max_len: int) -> str:
    """Trim text to max_len characters, marking the cut with '...'."""
    text = (value or "").strip()
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - 3)] + "..."


def due_phrase(due_in_days: int) -> str:
    if due_in_days < 0:
        return f"{-due_in_days}d late"
    if due_in_days == 0:
        return "due today"
    if due_in_days == 1:
        return "due tomorrow"
    return f"due in {due_in_days}d"


def format_minutes(minutes: int | None) -> str:
    if minutes is None:
        return "n/a"
    return f"{minutes // 60}h {minutes % 60}m"


def format_date_display(day: date) -> str:
    """e.g. 'Feb 27, 2026'."""
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def priority_tag(priority: str) -> str:
    text = (priority or "").strip()
    return f"[{text.upper()}]" if text else "[P?]"


def format_task_compact(task: ScoredTask) -> str:
    """One-line task summary: tag, title, project, due phrase and estimate."""
    return " | ".join(
        [
            f"{priority_tag(task.priority)} {truncate(task.title, 54)}",
            truncate(task.project, 18),
            due_phrase(task.due_in_days),
            format_minutes(task.estimated_minutes),
        ]
    )


class _LineBuffer:
    """Collects lines until the cap is reached; later lines are dropped."""

    def __init__(self, max_lines: int):
        self.max_lines = max_lines
        self.lines: list[str] = []

    def add(self, line: str) -> None:
        if len(self.lines) < self.max_lines:
            self.lines.append(line)

    def add_section(self, title: str, tasks: list[ScoredTask], max_tasks: int) -> None:
        if not tasks:
            return
        self.add(f"{title} ({len(tasks)})")
        visible = tasks[:max_tasks]
        for task in visible:
            self.add(f"- {format_task_compact(task)}")
        overflow = len(tasks) - len(visible)
        if overflow > 0:
            self.add(f"- +{overflow} more")

    def text(self) -> str:
        return "\n".join(self.lines)


def format_digest_text(
    digest: Digest,
    max_lines: int = 15,
    max_tasks_per_section: int = 2,
) -> str:
    """
    Render a digest as compact plain text for chat and webhooks.

    Pure function - no I/O.
    """
    out = _LineBuffer(max_lines)

    out.add(f"DAILY DIGEST | {format_date_display(digest.today)}")
    if digest.mode == DigestMode.EVENING:
        out.add("MODE | EVENING SWEEP")
        progress = digest.evening_progress
        if progress:
            out.add(
                f"PROGRESS | done {progress.completed_today} | pending today {progress.pending_due_today}"
            )

    out.add_section("OVERDUE", digest.in_bucket(Bucket.OVERDUE), max_tasks_per_section)
    out.add_section("DUE TODAY", digest.in_bucket(Bucket.DUE_TODAY), max_tasks_per_section)
    out.add_section("DUE SOON", digest.in_bucket(Bucket.DUE_SOON), max_tasks_per_section)

    if digest.top3:
        out.add("TOP 3")
        for i, task in enumerate(digest.top3, start=1):
            out.add(f"{i}. {format_task_compact(task)}")

    capacity = digest.capacity
    if capacity.available:
        status = "BALANCED" if capacity.status == DayStatus.BALANCED else "CONSTRAINED"
        out.add("CAPACITY")
        out.add(
            f"Free {format_minutes(capacity.free_minutes)} | Planned {format_minutes(capacity.required_minutes)}"
        )
        out.add(f"Status {status}")

    if digest.suggested_defer:
        out.add(f"DEFER CANDIDATE | {format_task_compact(digest.suggested_defer)}")

    if digest.ai_summary:
        out.add(f"AI NOTE | {digest.ai_summary}")

    return out.text()


# ============== Daily log record ==============


@dataclass(frozen=True)
class DigestLogRecord:
    """Observability record written once per day and mode."""

    date: str
    mode: str
    task_count: int
    overdue_count: int
    due_soon_count: int
    top3_ids: list[str]
    free_minutes: int | None
    required_minutes: int
    day_status: str

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "mode": self.mode,
            "task_count": self.task_count,
            "overdue_count": self.overdue_count,
            "due_soon_count": self.due_soon_count,
            "top3_ids": list(self.top3_ids),
            "free_minutes": self.free_minutes,
            "required_minutes": self.required_minutes,
            "day_status": self.day_status,
        }


def build_log_record(digest: Digest) -> DigestLogRecord:
    """Due-soon count includes tasks due today."""
    return DigestLogRecord(
        date=digest.today.isoformat(),
        mode=digest.mode.value,
        task_count=len(digest.ranked),
        overdue_count=len(digest.in_bucket(Bucket.OVERDUE)),
        due_soon_count=len(digest.in_bucket(Bucket.DUE_TODAY)) + len(digest.in_bucket(Bucket.DUE_SOON)),
        top3_ids=[t.id for t in digest.top3],
        free_minutes=digest.capacity.free_minutes,
        required_minutes=digest.capacity.required_minutes,
        day_status=digest.capacity.status.value,
    )


def scored_task_to_dict(task: ScoredTask) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "priority": task.priority,
        "project": task.project,
        "due_date": task.due_date.isoformat(),
        "due_in_days": task.due_in_days,
        "bucket": task.bucket.value,
        "days_since_last_touch": task.days_since_last_touch,
        "estimated_minutes": task.estimated_minutes,
        "score": round(task.score, 4),
        "url": task.task.url,
    }


def digest_to_dict(digest: Digest) -> dict:
    """JSON-friendly view of a digest, used by `docket digest --json`."""
    capacity = digest.capacity
    progress = digest.evening_progress
    return {
        "mode": digest.mode.value,
        "today": digest.today.isoformat(),
        "ranked": [scored_task_to_dict(t) for t in digest.ranked],
        "top3": [scored_task_to_dict(t) for t in digest.top3],
        "capacity": {
            "available": capacity.available,
            "free_minutes": capacity.free_minutes,
            "required_minutes": capacity.required_minutes,
            "busy_minutes": capacity.busy_minutes,
            "status": capacity.status.value,
        },
        "suggested_defer": scored_task_to_dict(digest.suggested_defer) if digest.suggested_defer else None,
        "ai_summary": digest.ai_summary,
        "evening_progress": (
            {"completed_today": progress.completed_today, "pending_due_today": progress.pending_due_today}
            if progress
            else None
        ),
    }


# ============== AI summary prompt ==============


def build_summary_prompt(
    ranked: list[ScoredTask],
    today: date,
    window_days: int = 3,
    max_tasks: int = 12,
) -> str | None:
    """
    Compact prompt over the tasks due within the window.

    Returns None when no task is in scope; callers use NO_BLOCKERS_SUMMARY.
    """
    horizon = today + timedelta(days=window_days)
    scoped = [
        {"t": truncate(t.title, 70), "d": t.due_date.isoformat(), "p": t.priority}
        for t in ranked
        if t.due_date <= horizon
    ][:max_tasks]

    if not scoped:
        return None

    return (
        f"Return minified JSON only with key s. s must be <={SUMMARY_MAX_CHARS} chars and concrete.\n"
        f"tasks={json.dumps(scoped, separators=(',', ':'))}"
    )


def sanitize_summary(value) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", value).strip()[:SUMMARY_MAX_CHARS]


def parse_summary(text: str) -> str:
    """Pull `s` out of a JSON reply, or fall back to the raw text."""
    raw = (text or "").strip()
    # Models sometimes fence JSON despite being asked not to
    if raw.startswith("```"):
        raw = raw.strip("`").removeprefix("json").strip()
    try:
        parsed = json.loads(raw)
    except ValueError:
        return sanitize_summary(raw)
    if isinstance(parsed, dict):
        return sanitize_summary(parsed.get("s"))
    return sanitize_summary(raw)
