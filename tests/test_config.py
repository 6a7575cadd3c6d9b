"""Tests for configuration loading and validation."""

from dataclasses import replace
from pathlib import Path

import pytest

from docket.config import Config, load_config, parse_config_lines, validate_config
from docket.core.errors import ConfigurationError


@pytest.fixture
def conf_file(tmp_path):
    def _write(text: str) -> Path:
        path = tmp_path / "docket.conf"
        path.write_text(text)
        return path
    return _write


class TestParseConfigLines:
    def test_comments_and_quotes(self):
        raw = parse_config_lines(
            [
                "# comment",
                "",
                'NOTION_API_KEY="secret#hash" # trailing',
                "TIMEZONE=Europe/Berlin # inline",
                "not a pair",
            ]
        )
        assert raw == {"notion_api_key": "secret#hash", "timezone": "Europe/Berlin"}


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.conf", environ={})
        assert config == Config()
        assert config.morning_hour == 9
        assert config.evening_hour == 19

    def test_typed_values(self, conf_file):
        path = conf_file(
            "\n".join(
                [
                    "DUE_WINDOW_DAYS=5",
                    "W_PRIORITY=0.6",
                    "DRY_RUN=true",
                    "HIGH_PRIORITY_VALUES=P0, p1",
                    "TELEGRAM_ALLOWED_USERS=123, abc, 456",
                    "NOTIFIER=Slack",
                    "EVENING_TIME=20:30",
                ]
            )
        )

        config = load_config(path, environ={})

        assert config.due_window_days == 5
        assert config.w_priority == 0.6
        assert config.dry_run is True
        assert config.high_priority_values == ("p0", "p1")
        assert config.telegram_allowed_users == (123, 456)
        assert config.notifier == "slack"
        assert config.evening_hour == 20

    def test_bad_number_falls_back(self, conf_file):
        config = load_config(conf_file("FOCUS_BUFFER_MINUTES=lots"), environ={})
        assert config.focus_buffer_minutes == 60

    def test_environment_wins(self, conf_file):
        path = conf_file("NOTION_DATABASE_ID=from-file\nWORKDAY_START_HOUR=8")

        config = load_config(path, environ={"NOTION_DATABASE_ID": "from-env"})

        assert config.notion_database_id == "from-env"
        assert config.workday_start_hour == 8

    def test_property_names(self, conf_file):
        config = load_config(conf_file("NOTION_DUE_PROP=Deadline"), environ={})
        assert config.property_names.due == "Deadline"

    def test_paths(self, tmp_path):
        config = Config(state_file=str(tmp_path / "s.json"), log_dir=str(tmp_path / "logs"))
        assert config.state_path == tmp_path / "s.json"
        assert config.log_path == tmp_path / "logs"


class TestValidateConfig:
    @pytest.fixture
    def base(self):
        return Config(notion_api_key="k", notion_database_id="db")

    def test_missing_notion(self):
        with pytest.raises(ConfigurationError, match="NOTION_API_KEY, NOTION_DATABASE_ID"):
            validate_config(Config())

    def test_minimal_ok(self, base):
        validate_config(base, digest=True)

    def test_invalid_notifier(self, base):
        with pytest.raises(ConfigurationError, match="Invalid NOTIFIER"):
            validate_config(replace(base, notifier="teams"))

    def test_invalid_provider(self, base):
        with pytest.raises(ConfigurationError, match="AI_SUMMARY_PROVIDER"):
            validate_config(replace(base, ai_summary_provider="gpt"))

    def test_webhook_required_for_digest(self, base):
        config = replace(base, notifier="discord")
        with pytest.raises(ConfigurationError, match="DISCORD_WEBHOOK_URL"):
            validate_config(config, digest=True)

    def test_webhook_not_required_in_dry_run(self, base):
        validate_config(replace(base, notifier="discord", dry_run=True), digest=True)

    def test_bot_token_required(self, base):
        with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN"):
            validate_config(base, bot=True)
