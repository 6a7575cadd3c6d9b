"""File-based digest log adapter."""

import json
from pathlib import Path

from docket.core.digest import DigestLogRecord


class FileDigestLog:
    """
    One JSON file per day and mode.

    Implements DigestLog protocol. Re-running the same day and mode
    overwrites the earlier record.
    """

    def __init__(self, log_dir: Path | str):
        self.log_dir = Path(log_dir).expanduser()

    def path_for(self, record: DigestLogRecord) -> Path:
        return self.log_dir / f"{record.date}-{record.mode}.json"

    def write(self, record: DigestLogRecord) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(record).write_text(json.dumps(record.to_dict(), indent=2) + "\n")
