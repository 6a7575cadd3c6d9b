"""Tests for Telegram application wiring and scheduled pushes."""

import asyncio
import json
from dataclasses import replace
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.error import TelegramError

from docket.adapters.file_digest_log import FileDigestLog
from docket.config import Config
from docket.core.digest import DigestMode
from docket.core.errors import ConfigurationError
from docket.core.tasks import Task
from docket.telegram_bot import (
    AuthFilter,
    build_services,
    create_application,
    send_scheduled_digest,
    setup_scheduler,
)


@pytest.fixture
def config():
    return Config(
        notion_api_key="k",
        notion_database_id="db",
        telegram_bot_token="123456:TEST-token",
        telegram_allowed_users=(1, 2),
    )


@pytest.fixture
def services(config):
    tasks = MagicMock()
    tasks.fetch_due_by.return_value = [Task(id="a", title="Ship it", priority="p0", due_date=date(2026, 2, 27))]
    tasks.fetch_edited_on.return_value = []
    tasks.fetch_due_on.return_value = []
    return {"config": config, "tasks": tasks, "calendar": None, "llm": None, "machine": MagicMock()}


class TestAuthFilter:
    def test_allowlist(self):
        update = MagicMock()
        update.effective_user.id = 1
        assert AuthFilter((1,)).check_update(update)
        update.effective_user.id = 5
        assert not AuthFilter((1,)).check_update(update)

    def test_open_when_unset(self):
        assert AuthFilter(()).check_update(MagicMock())


class TestCreateApplication:
    def test_requires_token(self, services):
        with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN"):
            create_application(Config(notion_api_key="k", notion_database_id="db"), services)

    def test_services_in_bot_data(self, config, services):
        app = create_application(config, services)
        assert app.bot_data["machine"] is services["machine"]
        assert app.handlers


class TestScheduler:
    def test_jobs(self, config, services):
        app = create_application(config, services)

        scheduler = setup_scheduler(app, config)

        assert sorted(job.id for job in scheduler.get_jobs()) == ["evening_digest", "morning_digest"]

    def test_no_users_no_jobs(self, services):
        config = Config(notion_api_key="k", notion_database_id="db", telegram_bot_token="123456:TEST-token")
        app = create_application(config, services)

        assert setup_scheduler(app, config).get_jobs() == []

    def test_bad_time_skipped(self, config, services):
        bad = replace(config, evening_time="seven")
        app = create_application(bad, services)

        assert [job.id for job in setup_scheduler(app, bad).get_jobs()] == ["morning_digest"]


class TestScheduledDigest:
    def test_one_failed_user_does_not_stop_others(self, services):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=[TelegramError("blocked"), None])

        asyncio.run(send_scheduled_digest(bot, services, DigestMode.EVENING))

        assert [c.kwargs["chat_id"] for c in bot.send_message.call_args_list] == [1, 2]
        assert bot.send_message.call_args.kwargs["reply_markup"] is not None

    def test_task_source_failure_sends_nothing(self, services):
        services["tasks"].fetch_due_by.side_effect = RuntimeError("down")
        bot = MagicMock()
        bot.send_message = AsyncMock()

        asyncio.run(send_scheduled_digest(bot, services, DigestMode.MORNING))

        bot.send_message.assert_not_called()

    def test_writes_daily_log_record(self, services, tmp_path):
        services["digest_log"] = FileDigestLog(tmp_path / "logs")
        bot = MagicMock()
        bot.send_message = AsyncMock()

        asyncio.run(send_scheduled_digest(bot, services, DigestMode.MORNING))

        [log_file] = (tmp_path / "logs").iterdir()
        assert log_file.name.endswith("-morning.json")
        assert json.loads(log_file.read_text())["top3_ids"] == ["a"]
        assert bot.send_message.await_count == 2

    def test_log_failure_still_sends(self, services):
        services["digest_log"] = MagicMock()
        services["digest_log"].write.side_effect = OSError("disk full")
        bot = MagicMock()
        bot.send_message = AsyncMock()

        asyncio.run(send_scheduled_digest(bot, services, DigestMode.EVENING))

        assert bot.send_message.await_count == 2


class TestBuildServices:
    @patch("docket.telegram_bot.get_task_repo")
    def test_includes_digest_log(self, mock_repo, tmp_path):
        config = Config(notion_api_key="k", notion_database_id="db", log_dir=str(tmp_path / "logs"))

        services = build_services(config)

        assert services["digest_log"].log_dir == tmp_path / "logs"
        assert services["tasks"] is mock_repo.return_value
