"""Tests for the confirm/cancel gate."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from docket.adapters.file_state_store import FilePendingActionStore
from docket.core.actions import ActionKind
from docket.core.errors import (
    ActionExpiredError,
    AuthorizationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from docket.core.tasks import Task
from docket.state_machine import CANCELED_MESSAGE, ActionStateMachine


@pytest.fixture
def now():
    return datetime(2026, 2, 27, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    return FilePendingActionStore(tmp_path / "pending-actions.json")


@pytest.fixture
def tasks():
    repo = MagicMock()
    repo.get.return_value = Task(id="task-1", title="Write report", priority="p0", due_date=date(2026, 2, 27))
    return repo


@pytest.fixture
def machine(store, tasks):
    return ActionStateMachine(store, tasks, ttl_minutes=30)


class TestPropose:
    def test_persists_entry(self, machine, store, now):
        entry = machine.propose(ActionKind.DONE, "task-1", 7, as_of=now)

        assert store.get(entry.id) == entry
        assert entry.user_id == "7"

    def test_invalid_details_store_nothing(self, machine, store, now):
        with pytest.raises(ValidationError):
            machine.propose(ActionKind.DEFER, "task-1", 7, {"days": 0}, as_of=now)
        assert store.list_all() == []

    def test_sweep_rejected(self, machine, now):
        with pytest.raises(ValidationError):
            machine.propose(ActionKind.SWEEP, "task-1", 7, as_of=now)


class TestConfirm:
    def test_defer_end_to_end(self, machine, store, tasks, now):
        entry = machine.propose(ActionKind.DEFER, "task-1", "u1", {"days": 3}, as_of=now)

        summary = machine.confirm(entry.id, "u1", as_of=now + timedelta(minutes=5))

        change = tasks.update.call_args.args[0]
        assert change.task_id == "task-1"
        assert change.due_date == "2026-03-02"
        assert summary == "Deferred: Write report +3d -> 2026-03-02"
        assert store.get(entry.id) is None

    def test_done(self, machine, tasks, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        assert machine.confirm(entry.id, "u1", as_of=now) == "Marked done: Write report"
        assert tasks.update.call_args.args[0].is_done is True

    def test_wrong_user_keeps_entry(self, machine, store, tasks, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        with pytest.raises(AuthorizationError):
            machine.confirm(entry.id, "intruder", as_of=now)

        assert store.get(entry.id) == entry
        tasks.update.assert_not_called()

    def test_second_confirm_not_found(self, machine, tasks, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)
        machine.confirm(entry.id, "u1", as_of=now)

        with pytest.raises(NotFoundError):
            machine.confirm(entry.id, "u1", as_of=now)
        assert tasks.update.call_count == 1

    def test_expired_is_deleted(self, machine, store, tasks, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        with pytest.raises(ActionExpiredError):
            machine.confirm(entry.id, "u1", as_of=now + timedelta(minutes=30))

        assert store.get(entry.id) is None
        tasks.update.assert_not_called()

    def test_upstream_failure_keeps_entry(self, machine, store, tasks, now):
        tasks.update.side_effect = UpstreamError("boom")
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        with pytest.raises(UpstreamError):
            machine.confirm(entry.id, "u1", as_of=now)

        assert store.get(entry.id) == entry

    def test_dry_run_skips_update(self, store, tasks, now):
        machine = ActionStateMachine(store, tasks, dry_run=True)
        entry = machine.propose(ActionKind.RESCHEDULE, "task-1", "u1", {"target_date": "2026-03-10"}, as_of=now)

        summary = machine.confirm(entry.id, "u1", as_of=now)

        assert summary == "Rescheduled: Write report -> 2026-03-10 (DRY_RUN)"
        tasks.update.assert_not_called()
        assert store.get(entry.id) is None


class TestCancel:
    def test_cancel(self, machine, store, tasks, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        assert machine.cancel(entry.id, "u1", as_of=now) == CANCELED_MESSAGE
        assert store.get(entry.id) is None
        tasks.update.assert_not_called()

    def test_cancel_wrong_user(self, machine, store, now):
        entry = machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now)

        with pytest.raises(AuthorizationError):
            machine.cancel(entry.id, "u2", as_of=now)
        assert store.get(entry.id) is not None

    def test_prune_and_list(self, machine, now):
        machine.propose(ActionKind.DONE, "task-1", "u1", as_of=now - timedelta(hours=1))
        kept = machine.propose(ActionKind.DONE, "task-2", "u1", as_of=now)

        assert machine.prune_expired(as_of=now) == 1
        assert machine.list_pending() == [kept]
