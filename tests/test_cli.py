"""Tests for the click CLI."""

import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from docket.cli import main
from docket.config import Config
from docket.core.actions import ActionKind, create_pending_action
from docket.core.errors import AuthorizationError, ConfigurationError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config():
    return Config(notion_api_key="k", notion_database_id="db")


@pytest.fixture
def entry():
    return create_pending_action(
        ActionKind.DEFER,
        "task-1",
        "cli",
        {"days": 3},
        as_of=datetime(2026, 2, 27, 9, 0, tzinfo=timezone.utc),
    )


class TestDigestCommand:
    @patch("docket.cli.run_digest", return_value=["DAILY DIGEST | Feb 27, 2026"])
    @patch("docket.cli.load_config")
    def test_prints_digest(self, mock_load, mock_run, runner, config):
        mock_load.return_value = config

        result = runner.invoke(main, ["digest", "--mode", "both", "--no-publish"])

        assert result.exit_code == 0
        assert "DAILY DIGEST" in result.output
        mock_run.assert_called_once_with(config, "both", publish=False)

    @patch("docket.cli.run_digest", return_value=[])
    @patch("docket.cli.load_config")
    def test_skipped(self, mock_load, mock_run, runner, config):
        mock_load.return_value = config

        result = runner.invoke(main, ["digest"])

        assert result.exit_code == 0
        assert "Skipped morning" in result.output

    @patch("docket.cli.load_config")
    def test_missing_config_fails(self, mock_load, runner):
        mock_load.return_value = Config()

        result = runner.invoke(main, ["digest"])

        assert result.exit_code == 1
        assert "NOTION_API_KEY" in result.output


class TestActionCommands:
    @patch("docket.cli.get_action_machine")
    @patch("docket.cli.load_config")
    def test_propose(self, mock_load, mock_machine, runner, config, entry):
        mock_load.return_value = config
        mock_machine.return_value.propose.return_value = entry

        result = runner.invoke(main, ["propose", "defer", "task-1", "--days", "3"])

        assert result.exit_code == 0
        assert entry.id in result.output
        mock_machine.return_value.propose.assert_called_once_with(ActionKind.DEFER, "task-1", "cli", {"days": "3"})

    @patch("docket.cli.load_config")
    def test_propose_rejects_sweep(self, mock_load, runner, config):
        mock_load.return_value = config

        result = runner.invoke(main, ["propose", "sweep", "task-1"])

        assert result.exit_code == 2

    @patch("docket.cli.get_action_machine")
    @patch("docket.cli.load_config")
    def test_confirm(self, mock_load, mock_machine, runner, config):
        mock_load.return_value = config
        machine = mock_machine.return_value
        machine.confirm.return_value = "Deferred: Write report +3d -> 2026-03-02"

        result = runner.invoke(main, ["confirm", "pa_x"])

        assert result.exit_code == 0
        assert "Deferred: Write report +3d -> 2026-03-02" in result.output
        machine.prune_expired.assert_called_once()
        machine.confirm.assert_called_once_with("pa_x", "cli")

    @patch("docket.cli.get_action_machine")
    @patch("docket.cli.load_config")
    def test_confirm_wrong_user(self, mock_load, mock_machine, runner, config):
        mock_load.return_value = config
        mock_machine.return_value.confirm.side_effect = AuthorizationError("Only the user who initiated this action can confirm it.")

        result = runner.invoke(main, ["confirm", "pa_x", "--user", "someone"])

        assert result.exit_code == 1
        assert "Only the user who initiated" in result.output

    @patch("docket.cli.get_action_machine")
    @patch("docket.cli.load_config")
    def test_pending_json(self, mock_load, mock_machine, runner, config, entry):
        mock_load.return_value = config
        mock_machine.return_value.list_pending.return_value = [entry]

        result = runner.invoke(main, ["pending", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output)[0]["id"] == entry.id

    @patch("docket.cli.get_action_machine")
    @patch("docket.cli.load_config")
    def test_pending_empty(self, mock_load, mock_machine, runner, config):
        mock_load.return_value = config
        mock_machine.return_value.list_pending.return_value = []

        result = runner.invoke(main, ["pending"])

        assert "Nothing pending." in result.output


class TestCalAuth:
    @patch("docket.cli.load_config")
    def test_requires_client_secret(self, mock_load, runner):
        mock_load.return_value = Config()

        result = runner.invoke(main, ["cal-auth"])

        assert result.exit_code == 1
        assert "GOOGLE_CLIENT_SECRET_FILE" in result.output


class TestBotCommand:
    @patch("docket.telegram_bot.run_bot", side_effect=ConfigurationError("Missing required configuration: TELEGRAM_BOT_TOKEN"))
    @patch("docket.cli.load_config")
    def test_config_error(self, mock_load, mock_run, runner, config):
        mock_load.return_value = config

        result = runner.invoke(main, ["bot"])

        assert result.exit_code == 1
        assert "TELEGRAM_BOT_TOKEN" in result.output
