"""Tests for the webhook notifier and the daily digest log."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from docket.adapters.file_digest_log import FileDigestLog
from docket.adapters.webhook_notifier import WebhookNotifier
from docket.core.digest import DigestLogRecord
from docket.core.errors import ConfigurationError, UpstreamError


@pytest.fixture
def session():
    s = MagicMock()
    s.post.return_value = MagicMock(ok=True, status_code=204)
    return s


class TestWebhookNotifier:
    def test_discord_payload_truncated(self, session):
        notifier = WebhookNotifier("discord", "https://discord.test/hook", session=session)

        notifier.post("x" * 3000)

        content = session.post.call_args.kwargs["json"]["content"]
        assert len(content) == 1990
        assert content.endswith("...")

    def test_slack_payload(self, session):
        notifier = WebhookNotifier("slack", "https://hooks.slack.test/abc", session=session)

        notifier.post("hello")

        assert session.post.call_args.args[0] == "https://hooks.slack.test/abc"
        assert session.post.call_args.kwargs["json"] == {"text": "hello"}

    def test_invalid_kind(self, session):
        with pytest.raises(ConfigurationError):
            WebhookNotifier("teams", "https://x", session=session)

    def test_missing_url(self, session):
        with pytest.raises(ConfigurationError, match="SLACK_WEBHOOK_URL"):
            WebhookNotifier("slack", "", session=session)

    def test_http_failure(self, session):
        session.post.return_value = MagicMock(ok=False, status_code=400, text="bad")

        with pytest.raises(UpstreamError):
            WebhookNotifier("slack", "https://x", session=session).post("hi")

    def test_transport_failure(self, session):
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(UpstreamError):
            WebhookNotifier("discord", "https://x", session=session).post("hi")


class TestFileDigestLog:
    @pytest.fixture
    def record(self):
        return DigestLogRecord(
            date="2026-02-27",
            mode="morning",
            task_count=4,
            overdue_count=1,
            due_soon_count=2,
            top3_ids=["a", "b", "c"],
            free_minutes=None,
            required_minutes=90,
            day_status="unknown",
        )

    def test_writes_one_file_per_day_and_mode(self, tmp_path, record):
        log = FileDigestLog(tmp_path / "logs")

        log.write(record)

        path = tmp_path / "logs" / "2026-02-27-morning.json"
        assert log.path_for(record) == path
        assert json.loads(path.read_text())["top3_ids"] == ["a", "b", "c"]

    def test_rerun_overwrites(self, tmp_path, record):
        log = FileDigestLog(tmp_path)
        log.write(record)
        log.write(DigestLogRecord(**{**record.to_dict(), "task_count": 9}))

        assert json.loads(log.path_for(record).read_text())["task_count"] == 9
        assert len(list(tmp_path.iterdir())) == 1
