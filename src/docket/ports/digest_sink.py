"""Digest output interfaces."""

from typing import Protocol

from docket.core.digest import DigestLogRecord


class DigestLog(Protocol):
    """Where the per-run observability record goes."""

    def write(self, record: DigestLogRecord) -> None:
        ...


class Notifier(Protocol):
    """Posts rendered digest text somewhere a human will read it."""

    def post(self, text: str) -> None:
        ...
