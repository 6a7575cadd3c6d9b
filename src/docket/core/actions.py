"""Pending action model and mutation derivation - no I/O dependencies."""

import re
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from .errors import ValidationError
from .tasks import Task, parse_datetime

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DEFER_DAY_CHOICES = (1, 2, 3, 7)
DEFAULT_TTL_MINUTES = 30


class ActionKind(Enum):
    """Quick actions a user can take on a task from the digest."""

    DONE = "done"
    RESCHEDULE = "reschedule"
    DEFER = "defer"
    SWEEP = "sweep"

    @property
    def needs_confirmation(self) -> bool:
        return self in PENDING_KINDS


# Sweep only acknowledges; it never creates a pending action
PENDING_KINDS = frozenset({ActionKind.DONE, ActionKind.RESCHEDULE, ActionKind.DEFER})


def is_iso_date(value) -> bool:
    """True for a real calendar date written as YYYY-MM-DD."""
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def shift_iso_date(iso_date: str, days: int) -> str:
    """Move a YYYY-MM-DD date by whole calendar days."""
    return (date.fromisoformat(iso_date) + timedelta(days=days)).isoformat()


def parse_defer_days(value) -> int:
    """Positive whole number of days, from an int or a digit string."""
    if isinstance(value, bool):
        raise ValidationError("Invalid defer days.")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError("Invalid defer days.")
    return value


def validate_details(action: ActionKind, details: dict | None) -> dict:
    """
    Check and normalize the payload a proposal carries.

    DONE takes nothing, RESCHEDULE a `target_date`, DEFER a `days` count.
    Raises ValidationError before anything is stored.
    """
    details = details or {}
    match action:
        case ActionKind.DONE:
            return {}
        case ActionKind.RESCHEDULE:
            target = details.get("target_date")
            if not is_iso_date(target):
                raise ValidationError("Invalid target date. Use YYYY-MM-DD.")
            return {"target_date": target}
        case ActionKind.DEFER:
            return {"days": parse_defer_days(details.get("days"))}
        case _:
            raise ValidationError(f"Action '{action.value}' does not need confirmation.")


@dataclass(frozen=True)
class PendingAction:
    """A proposed task mutation waiting for its proposer to confirm it."""

    id: str
    action: ActionKind
    task_id: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    details: dict = field(default_factory=dict)

    def is_expired(self, as_of: datetime) -> bool:
        return as_of >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action.value,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "details": dict(self.details),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingAction":
        """Inverse of to_dict. Raises KeyError/ValueError on malformed entries."""
        created_at = parse_datetime(data["created_at"])
        expires_at = parse_datetime(data["expires_at"])
        if created_at is None or expires_at is None:
            raise ValueError(f"Bad timestamps on pending action {data.get('id')}")
        return cls(
            id=data["id"],
            action=ActionKind(data["action"]),
            task_id=data["task_id"],
            user_id=str(data["user_id"]),
            details=dict(data.get("details") or {}),
            created_at=created_at,
            expires_at=expires_at,
        )


def new_pending_id() -> str:
    return f"pa_{secrets.token_urlsafe(8)}"


def create_pending_action(
    action: ActionKind,
    task_id: str,
    user_id: str | int,
    details: dict | None = None,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    as_of: datetime | None = None,
) -> PendingAction:
    """Validate a proposal and stamp it with an id and expiry."""
    if not task_id:
        raise ValidationError("A task is required.")
    clean = validate_details(action, details)
    now = as_of or datetime.now(timezone.utc)
    return PendingAction(
        id=new_pending_id(),
        action=action,
        task_id=task_id,
        user_id=str(user_id),
        details=clean,
        created_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
    )


@dataclass(frozen=True)
class TaskUpdate:
    """Concrete change to apply to a task, plus a line describing it."""

    task_id: str
    summary: str
    is_done: bool | None = None
    due_date: str | None = None


def build_task_update(action: ActionKind, task: Task, details: dict) -> TaskUpdate:
    """
    Turn a confirmed action into a TaskUpdate against the task's current state.

    DEFER shifts from the task's current due date, not the one seen at
    proposal time.
    """
    match action:
        case ActionKind.DONE:
            return TaskUpdate(task_id=task.id, summary=f"Marked done: {task.title}", is_done=True)
        case ActionKind.RESCHEDULE:
            target = details.get("target_date")
            if not is_iso_date(target):
                raise ValidationError("Invalid target date. Use YYYY-MM-DD.")
            return TaskUpdate(
                task_id=task.id,
                summary=f"Rescheduled: {task.title} -> {target}",
                due_date=target,
            )
        case ActionKind.DEFER:
            days = parse_defer_days(details.get("days"))
            if task.due_iso is None:
                raise ValidationError("Task has no valid due date to defer.")
            target = shift_iso_date(task.due_iso, days)
            return TaskUpdate(
                task_id=task.id,
                summary=f"Deferred: {task.title} +{days}d -> {target}",
                due_date=target,
            )
        case _:
            raise ValueError(f"Unsupported action: {action}")
