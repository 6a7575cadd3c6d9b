"""Confirm/cancel gate in front of every task mutation."""

import logging
from datetime import datetime, timezone

from .core.actions import (
    DEFAULT_TTL_MINUTES,
    ActionKind,
    PendingAction,
    build_task_update,
    create_pending_action,
)
from .core.errors import ActionExpiredError, AuthorizationError, NotFoundError, ValidationError
from .ports.state_store import PendingActionStore
from .ports.task_repo import TaskRepository

logger = logging.getLogger(__name__)

NOT_PENDING_MESSAGE = "This action is no longer pending. Please start over."
WRONG_USER_MESSAGE = "Only the user who initiated this action can confirm it."
EXPIRED_MESSAGE = "This confirmation has expired. Please start over."
CANCELED_MESSAGE = "Canceled. No Notion changes were made."
DRY_RUN_SUFFIX = " (DRY_RUN)"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ActionStateMachine:
    """
    Proposed -> Confirmed | Canceled | Expired.

    The store is re-read on every call, so ownership and expiry are
    checked against whatever is persisted at that moment.
    """

    def __init__(
        self,
        store: PendingActionStore,
        tasks: TaskRepository,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        dry_run: bool = False,
    ):
        self.store = store
        self.tasks = tasks
        self.ttl_minutes = ttl_minutes
        self.dry_run = dry_run

    def propose(
        self,
        action: ActionKind,
        task_id: str,
        user_id: str | int,
        details: dict | None = None,
        as_of: datetime | None = None,
    ) -> PendingAction:
        """Validate and persist a proposal. Raises ValidationError, storing nothing."""
        if not action.needs_confirmation:
            raise ValidationError(f"Action '{action.value}' does not need confirmation.")

        entry = create_pending_action(
            action,
            task_id,
            user_id,
            details,
            ttl_minutes=self.ttl_minutes,
            as_of=as_of or _now(),
        )
        self.store.put(entry)
        logger.info(f"Proposed {entry.action.value} on task {entry.task_id} as {entry.id} by user {entry.user_id}")
        return entry

    def _claim(self, pending_id: str, user_id: str | int, as_of: datetime) -> PendingAction:
        """Look up an entry the caller may act on; absent, foreign and expired raise."""
        entry = self.store.get(pending_id)
        if entry is None:
            raise NotFoundError(NOT_PENDING_MESSAGE)

        if entry.user_id != str(user_id):
            logger.warning(f"User {user_id} tried to act on {pending_id} owned by {entry.user_id}")
            raise AuthorizationError(WRONG_USER_MESSAGE)

        if entry.is_expired(as_of):
            self.store.delete(pending_id)
            logger.info(f"Pending action {pending_id} expired at {entry.expires_at.isoformat()}")
            raise ActionExpiredError(EXPIRED_MESSAGE)

        return entry

    def confirm(self, pending_id: str, user_id: str | int, as_of: datetime | None = None) -> str:
        """
        Apply a pending action and return a one-line summary of the change.

        The task is re-fetched so the change is computed from its current
        state. In dry-run mode the change is logged instead of applied.
        The entry is only removed once the change has gone through, so an
        upstream failure leaves it in place for a retry.
        """
        entry = self._claim(pending_id, user_id, as_of or _now())

        task = self.tasks.get(entry.task_id)
        change = build_task_update(entry.action, task, entry.details)

        if self.dry_run:
            logger.info(f"DRY_RUN enabled. Would apply to {change.task_id}: {change}")
            summary = change.summary + DRY_RUN_SUFFIX
        else:
            self.tasks.update(change)
            summary = change.summary

        self.store.delete(entry.id)
        logger.info(f"Confirmed {entry.id}: {summary}")
        return summary

    def cancel(self, pending_id: str, user_id: str | int, as_of: datetime | None = None) -> str:
        entry = self._claim(pending_id, user_id, as_of or _now())
        self.store.delete(entry.id)
        logger.info(f"Canceled {entry.id}")
        return CANCELED_MESSAGE

    def prune_expired(self, as_of: datetime | None = None) -> int:
        return self.store.prune_expired(as_of or _now())

    def list_pending(self) -> list[PendingAction]:
        return self.store.list_all()
