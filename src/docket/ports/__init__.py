"""Ports - interfaces/protocols for external dependencies."""

from .task_repo import TaskRepository
from .calendar_repo import CalendarRepository
from .llm_service import LLMService
from .state_store import PendingActionStore
from .digest_sink import DigestLog, Notifier

__all__ = [
    "TaskRepository",
    "CalendarRepository",
    "LLMService",
    "PendingActionStore",
    "DigestLog",
    "Notifier",
]
