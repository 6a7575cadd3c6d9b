"""Pending action storage interface."""

from datetime import datetime
from typing import Protocol

from docket.core.actions import PendingAction


class PendingActionStore(Protocol):
    """
    Durable id -> PendingAction mapping.

    Every call is a full load-mutate-save against the backing store.
    """

    def put(self, entry: PendingAction) -> None:
        ...

    def get(self, pending_id: str) -> PendingAction | None:
        ...

    def delete(self, pending_id: str) -> None:
        ...

    def prune_expired(self, as_of: datetime) -> int:
        """Remove entries with expires_at <= as_of. Returns how many went."""
        ...

    def list_all(self) -> list[PendingAction]:
        ...
