"""Task repository interface."""

from datetime import date
from typing import Protocol

from docket.core.actions import TaskUpdate
from docket.core.tasks import Task


class TaskRepository(Protocol):
    """Interface for reading and updating tasks in any backend."""

    def fetch_due_by(self, cutoff: date) -> list[Task]:
        """Fetch tasks due on or before a date, all pages."""
        ...

    def fetch_due_on(self, target_date: date) -> list[Task]:
        """Fetch tasks due exactly on a date."""
        ...

    def fetch_edited_on(self, target_date: date) -> list[Task]:
        """Fetch tasks last edited on a date."""
        ...

    def get(self, task_id: str) -> Task:
        """Fetch one task. Raises NotFoundError if it does not exist."""
        ...

    def update(self, change: TaskUpdate) -> None:
        """Apply a change to a task. Raises UpstreamError on failure."""
        ...
