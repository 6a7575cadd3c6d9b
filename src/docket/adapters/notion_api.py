"""Notion API adapter - HTTP client for task fetching and updates."""

import logging
from dataclasses import replace
from datetime import date, timedelta

import requests

from docket.config import Config
from docket.core.actions import TaskUpdate
from docket.core.errors import ConfigurationError, NotFoundError, UpstreamError
from docket.core.tasks import Task, normalize_project, text_property

logger = logging.getLogger(__name__)

API_BASE = "https://api.notion.com/v1"
PAGE_SIZE = 100


class NotionAdapter:
    """
    Notion database adapter.

    Implements TaskRepository protocol. Handles paging, relation lookups
    and page updates. No ranking logic - just I/O and field mapping.
    """

    def __init__(
        self,
        config: Config,
        session: requests.Session | None = None,
        timeout: int = 30,
    ):
        if not config.notion_api_key or not config.notion_database_id:
            raise ConfigurationError("NOTION_API_KEY and NOTION_DATABASE_ID must be configured")
        self.config = config
        self.names = config.property_names
        self.timeout = timeout
        self._session = session or requests.Session()
        self._project_names: dict[str, str] = {}

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.notion_api_key}",
            "Notion-Version": self.config.notion_version,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, endpoint: str, payload: dict | None = None) -> dict:
        """Make authenticated API request. Transport failures become UpstreamError."""
        try:
            resp = self._session.request(
                method,
                f"{API_BASE}{endpoint}",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Notion {method} {endpoint} failed: {e}")
            raise UpstreamError(f"Task source request failed: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"Task source returned 404 for {endpoint}")
        if not resp.ok:
            logger.error(f"Notion {method} {endpoint} returned {resp.status_code}: {resp.text}")
            raise UpstreamError(f"Task source request failed ({resp.status_code})")
        return resp.json()

    def _query(self, filter_: dict) -> list[dict]:
        """Run a database query and follow the cursor through every page."""
        pages: list[dict] = []
        cursor = None
        while True:
            payload = {"filter": filter_, "page_size": PAGE_SIZE}
            if cursor:
                payload["start_cursor"] = cursor
            data = self._request("POST", f"/databases/{self.config.notion_database_id}/query", payload)
            pages.extend(data.get("results", []))
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")
            if not cursor:
                break
        return pages

    def _to_task(self, page: dict) -> Task:
        return Task.from_page(page, self.names, self.config.default_estimated_minutes)

    def _project_name(self, page_id: str) -> str:
        """Title of a related page, cached per id. Falls back to the id."""
        if page_id in self._project_names:
            return self._project_names[page_id]

        name = page_id
        try:
            page = self._request("GET", f"/pages/{page_id}")
        except (UpstreamError, NotFoundError) as e:
            logger.warning(f"Could not resolve project {page_id}: {e}")
        else:
            for prop_name, prop in (page.get("properties") or {}).items():
                if isinstance(prop, dict) and prop.get("type") == "title":
                    name = text_property(page, prop_name) or page_id
                    break
        self._project_names[page_id] = name
        return name

    def _resolve_projects(self, tasks: list[Task]) -> list[Task]:
        """Replace relation ids in project labels with page titles."""
        resolved = []
        for task in tasks:
            if task.relation_project_ids:
                names = [self._project_name(pid) for pid in task.relation_project_ids]
                task = replace(task, project=normalize_project(", ".join(names)))
            resolved.append(task)
        return resolved

    def _due_filter(self, **condition) -> dict:
        return {"property": self.names.due, "date": condition}

    def fetch_due_by(self, cutoff: date) -> list[Task]:
        """Fetch tasks due on or before cutoff, with project names resolved."""
        pages = self._query(self._due_filter(on_or_before=cutoff.isoformat()))
        tasks = [self._to_task(p) for p in pages]
        logger.info(f"Fetched {len(tasks)} tasks due by {cutoff}")
        return self._resolve_projects(tasks)

    def fetch_due_on(self, target_date: date) -> list[Task]:
        pages = self._query(self._due_filter(equals=target_date.isoformat()))
        return [self._to_task(p) for p in pages]

    def fetch_edited_on(self, target_date: date) -> list[Task]:
        next_day = target_date + timedelta(days=1)
        pages = self._query(
            {
                "and": [
                    {"timestamp": "last_edited_time", "last_edited_time": {"on_or_after": target_date.isoformat()}},
                    {"timestamp": "last_edited_time", "last_edited_time": {"before": next_day.isoformat()}},
                ]
            }
        )
        return [self._to_task(p) for p in pages]

    def get(self, task_id: str) -> Task:
        """Fetch one page. Raises NotFoundError if it is gone."""
        page = self._request("GET", f"/pages/{task_id}")
        if page.get("archived") or page.get("in_trash"):
            raise NotFoundError(f"Task {task_id} no longer exists")
        return self._to_task(page)

    def update_properties(self, change: TaskUpdate) -> dict:
        """Notion property payload for a change."""
        properties: dict = {}
        if change.is_done is not None:
            properties[self.names.done] = {"checkbox": change.is_done}
        if change.due_date is not None:
            properties[self.names.due] = {"date": {"start": change.due_date}}
        return properties

    def update(self, change: TaskUpdate) -> None:
        properties = self.update_properties(change)
        if not properties:
            raise ValueError(f"Empty update for task {change.task_id}")
        self._request("PATCH", f"/pages/{change.task_id}", {"properties": properties})
        logger.info(f"Updated task {change.task_id}: {change.summary}")
