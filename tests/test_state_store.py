"""Tests for the JSON file pending action store."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from docket.adapters.file_state_store import FilePendingActionStore
from docket.core.actions import ActionKind, create_pending_action


@pytest.fixture
def now():
    return datetime(2026, 2, 27, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    return FilePendingActionStore(tmp_path / "state" / "pending-actions.json")


@pytest.fixture
def make_entry(now):
    def _make(task_id="task-1", minutes_ago=0, ttl=30):
        return create_pending_action(
            ActionKind.DONE, task_id, "u1", ttl_minutes=ttl, as_of=now - timedelta(minutes=minutes_ago)
        )
    return _make


class TestFilePendingActionStore:
    def test_put_get(self, store, make_entry):
        entry = make_entry()
        store.put(entry)

        assert store.get(entry.id) == entry
        assert store.get("pa_missing") is None

    def test_file_layout(self, store, make_entry):
        entry = make_entry()
        store.put(entry)

        data = json.loads(store.path.read_text())

        assert list(data) == ["pending"]
        assert data["pending"][entry.id]["task_id"] == "task-1"

    def test_persists_across_instances(self, store, make_entry):
        entry = make_entry()
        store.put(entry)

        assert FilePendingActionStore(store.path).get(entry.id) == entry

    def test_delete(self, store, make_entry):
        entry = make_entry()
        store.put(entry)
        store.delete(entry.id)
        store.delete(entry.id)

        assert store.get(entry.id) is None

    def test_prune_expired(self, store, make_entry, now):
        stale = make_entry("old", minutes_ago=45)
        fresh = make_entry("new", minutes_ago=5)
        store.put(stale)
        store.put(fresh)

        removed = store.prune_expired(now)

        assert removed == 1
        assert store.get(stale.id) is None
        assert store.get(fresh.id) == fresh

    def test_prune_nothing(self, store, make_entry, now):
        store.put(make_entry())
        assert store.prune_expired(now) == 0

    def test_list_all_sorted(self, store, make_entry):
        later = make_entry("b", minutes_ago=1)
        earlier = make_entry("a", minutes_ago=10)
        store.put(later)
        store.put(earlier)

        assert [e.task_id for e in store.list_all()] == ["a", "b"]

    def test_missing_file_is_empty(self, store):
        assert store.list_all() == []

    def test_corrupt_file_treated_as_empty(self, store, make_entry):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        assert store.list_all() == []

        entry = make_entry()
        store.put(entry)
        assert store.get(entry.id) == entry

    def test_undecodable_file_treated_as_empty(self, store, now):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b'{"pending": {"\xff\xfe": 1}}')

        assert store.prune_expired(now) == 0
        assert store.list_all() == []

    def test_malformed_entry_dropped(self, store, make_entry, now):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"pending": {"pa_bad": {"id": "pa_bad"}}}))

        assert store.get("pa_bad") is None
        assert store.prune_expired(now) == 1

    def test_no_temp_files_left(self, store, make_entry):
        store.put(make_entry())
        assert [p.name for p in store.path.parent.iterdir()] == ["pending-actions.json"]
