"""JSON file storage for pending actions."""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

from docket.core.actions import PendingAction

logger = logging.getLogger(__name__)


class FilePendingActionStore:
    """
    Pending actions in a single JSON file: {"pending": {id: entry}}.

    Implements PendingActionStore protocol. Each call holds a process-local
    lock across the whole load-mutate-save, and saves replace the file
    atomically so a crash never leaves a half-written store.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Pending action store {self.path} is corrupt, starting empty: {e}")
            return {}
        if not isinstance(data, dict) or not isinstance(data.get("pending"), dict):
            return {}
        return data["pending"]

    def _save(self, pending: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"pending": pending}, f, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    @staticmethod
    def _decode(raw: dict) -> PendingAction | None:
        try:
            return PendingAction.from_dict(raw)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Dropping malformed pending action: {e}")
            return None

    def put(self, entry: PendingAction) -> None:
        with self._lock:
            pending = self._load()
            pending[entry.id] = entry.to_dict()
            self._save(pending)

    def get(self, pending_id: str) -> PendingAction | None:
        with self._lock:
            raw = self._load().get(pending_id)
        return self._decode(raw) if raw else None

    def delete(self, pending_id: str) -> None:
        with self._lock:
            pending = self._load()
            if pending.pop(pending_id, None) is not None:
                self._save(pending)

    def prune_expired(self, as_of: datetime) -> int:
        with self._lock:
            pending = self._load()
            keep = {}
            for pid, raw in pending.items():
                entry = self._decode(raw)
                if entry is not None and not entry.is_expired(as_of):
                    keep[pid] = raw
            removed = len(pending) - len(keep)
            if removed:
                self._save(keep)
                logger.info(f"Pruned {removed} expired pending action(s)")
        return removed

    def list_all(self) -> list[PendingAction]:
        with self._lock:
            pending = self._load()
        entries = [self._decode(raw) for raw in pending.values()]
        return sorted((e for e in entries if e is not None), key=lambda e: e.created_at)
