"""Adapters - I/O implementations of ports."""

from .notion_api import NotionAdapter
from .google_calendar import GoogleCalendarAdapter
from .claude_cli import ClaudeCLIService
from .gemini_api import GeminiService
from .file_state_store import FilePendingActionStore
from .file_digest_log import FileDigestLog
from .webhook_notifier import WebhookNotifier

__all__ = [
    "NotionAdapter",
    "GoogleCalendarAdapter",
    "ClaudeCLIService",
    "GeminiService",
    "FilePendingActionStore",
    "FileDigestLog",
    "WebhookNotifier",
]
