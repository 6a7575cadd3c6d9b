"""Pure task domain logic - no I/O dependencies."""

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone

UNASSIGNED_PROJECT = "unassigned"
MIN_ESTIMATED_MINUTES = 5
MAX_ESTIMATED_MINUTES = 8 * 60


@dataclass(frozen=True)
class PropertyNames:
    """Names of the task database columns that feed a Task."""

    title: str = "Task"
    priority: str = "Priority"
    status: str = "Status"
    due: str = "Due"
    done: str = "done"
    project: str = "Project"
    estimated_minutes: str = "estimated_minutes"
    created: str = "Created time"
    last_edited: str = "Last edited time"


@dataclass(frozen=True)
class Task:
    """A task as read from the task source."""

    id: str
    title: str
    priority: str
    status: str = ""
    due_date: date | None = None
    is_done: bool = False
    project: str = UNASSIGNED_PROJECT
    estimated_minutes: int = 30
    created_at: datetime | None = None
    last_edited_at: datetime | None = None
    url: str = ""
    relation_project_ids: tuple[str, ...] = ()

    @property
    def due_iso(self) -> str | None:
        return self.due_date.isoformat() if self.due_date else None

    def is_closed(self, closed_statuses: tuple[str, ...] = ("done",)) -> bool:
        """Done checkbox ticked, or status is one of the closed values."""
        if self.is_done:
            return True
        return self.status.strip().lower() in closed_statuses

    def is_high_priority(self, high_priority_values: tuple[str, ...] = ("p0",)) -> bool:
        return self.priority.strip().lower() in high_priority_values

    @classmethod
    def from_page(
        cls,
        page: dict,
        names: PropertyNames | None = None,
        default_minutes: int = 30,
    ) -> "Task":
        """Create Task from a Notion page object."""
        names = names or PropertyNames()
        relation_ids = relation_property(page, names.project)
        project = text_property(page, names.project) or ",".join(relation_ids)

        return cls(
            id=page["id"],
            title=text_property(page, names.title) or "Untitled",
            priority=(text_property(page, names.priority) or "").lower(),
            status=text_property(page, names.status) or "",
            due_date=date_property(page, names.due),
            is_done=checkbox_property(page, names.done),
            project=normalize_project(project),
            estimated_minutes=clamp_minutes(
                number_property(page, names.estimated_minutes), default_minutes
            ),
            created_at=datetime_property(page, names.created)
            or parse_datetime(page.get("created_time")),
            last_edited_at=datetime_property(page, names.last_edited)
            or parse_datetime(page.get("last_edited_time")),
            url=page.get("url") or "",
            relation_project_ids=relation_ids,
        )


# ============== Typed property extraction ==============
#
# Each extractor understands a fixed set of Notion property types and
# returns None (or an empty value) for anything else.


def _property(page: dict, name: str) -> dict | None:
    prop = (page.get("properties") or {}).get(name)
    return prop if isinstance(prop, dict) else None


def _plain_text(parts) -> str:
    if not isinstance(parts, list):
        return ""
    return "".join(p.get("plain_text", "") for p in parts if isinstance(p, dict)).strip()


def text_property(page: dict, name: str) -> str | None:
    """Text from title, rich_text, select, status or multi_select properties."""
    prop = _property(page, name)
    if prop is None:
        return None

    match prop.get("type"):
        case "title" | "rich_text" as kind:
            return _plain_text(prop.get(kind))
        case "select" | "status" as kind:
            option = prop.get(kind)
            return option.get("name") if isinstance(option, dict) else None
        case "multi_select":
            options = prop.get("multi_select") or []
            return ",".join(o.get("name", "") for o in options if isinstance(o, dict))
        case _:
            return None


def relation_property(page: dict, name: str) -> tuple[str, ...]:
    """Referenced page ids of a relation property."""
    prop = _property(page, name)
    if prop is None or prop.get("type") != "relation":
        return ()
    items = prop.get("relation") or []
    return tuple(item["id"] for item in items if isinstance(item, dict) and item.get("id"))


def date_property(page: dict, name: str) -> date | None:
    """Calendar date of a date, created_time or last_edited_time property."""
    raw = _raw_date(page, name)
    return parse_date(raw)


def datetime_property(page: dict, name: str) -> datetime | None:
    raw = _raw_date(page, name)
    return parse_datetime(raw)


def _raw_date(page: dict, name: str) -> str | None:
    prop = _property(page, name)
    if prop is None:
        return None

    match prop.get("type"):
        case "date":
            value = prop.get("date")
            return value.get("start") if isinstance(value, dict) else None
        case "created_time" | "last_edited_time" as kind:
            return prop.get(kind)
        case _:
            return None


def number_property(page: dict, name: str) -> float | None:
    """Number property, or a number typed into a text property."""
    prop = _property(page, name)
    if prop is None:
        return None

    if prop.get("type") == "number":
        value = prop.get("number")
        return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None

    text = text_property(page, name)
    if not text:
        return None
    try:
        return float(text.split()[0])
    except ValueError:
        return None


def checkbox_property(page: dict, name: str) -> bool:
    prop = _property(page, name)
    if prop is None or prop.get("type") != "checkbox":
        return False
    return prop.get("checkbox") is True


# ============== Normalization ==============


def parse_date(value: str | None) -> date | None:
    """Leading YYYY-MM-DD of an ISO date or datetime string."""
    if not value or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """Timezone-aware datetime from an ISO string; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_project(value: str | None) -> str:
    text = (value or "").strip()
    return text or UNASSIGNED_PROJECT


def clamp_minutes(value: float | None, fallback: int) -> int:
    """Round an effort estimate and clamp it to [5, 480] minutes."""
    if value is None or not math.isfinite(value) or value <= 0:
        value = fallback
    return max(MIN_ESTIMATED_MINUTES, min(MAX_ESTIMATED_MINUTES, round(value)))


# ============== Filtering ==============


def filter_digest_candidates(
    tasks: list[Task],
    high_priority_values: tuple[str, ...] = ("p0",),
    closed_statuses: tuple[str, ...] = ("done",),
) -> list[Task]:
    """
    Keep open, high-priority tasks that have a due date.

    Pure function - no I/O.
    """
    return [
        t
        for t in tasks
        if t.due_date is not None
        and not t.is_closed(closed_statuses)
        and t.is_high_priority(high_priority_values)
    ]


def count_completed(tasks: list[Task], closed_statuses: tuple[str, ...] = ("done",)) -> int:
    return sum(1 for t in tasks if t.is_closed(closed_statuses))


def count_open(tasks: list[Task], closed_statuses: tuple[str, ...] = ("done",)) -> int:
    return sum(1 for t in tasks if not t.is_closed(closed_statuses))
