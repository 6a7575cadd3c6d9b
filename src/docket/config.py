"""Configuration management for Docket."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

from .core.errors import ConfigurationError
from .core.tasks import PropertyNames

logger = logging.getLogger(__name__)

DOCKET_HOME = Path(os.environ.get("DOCKET_HOME", Path.home() / "docket"))
CONFIG_FILE = DOCKET_HOME / "config" / "docket.conf"
DATA_DIR = DOCKET_HOME / "data"

NOTIFIERS = ("discord", "slack")
SUMMARY_PROVIDERS = ("claude", "gemini")

INT_KEYS = {
    "due_window_days",
    "due_soon_days",
    "staleness_cap_days",
    "top3_max_per_project",
    "default_estimated_minutes",
    "workday_start_hour",
    "workday_end_hour",
    "focus_buffer_minutes",
    "ai_summary_window_days",
    "ai_summary_max_tasks",
    "max_digest_lines",
    "max_tasks_per_section",
    "action_ttl_minutes",
    "max_action_tasks",
}
FLOAT_KEYS = {"w_priority", "w_due", "w_stale", "overdue_boost"}
BOOL_KEYS = {"dry_run", "enforce_local_hour"}
LIST_KEYS = {"high_priority_values", "closed_status_values"}


@dataclass(frozen=True)
class Config:
    """Docket configuration. Built once at startup and passed around."""

    # Notion task source
    notion_api_key: str = ""
    notion_database_id: str = ""
    notion_version: str = "2022-06-28"
    notion_task_prop: str = "Task"
    notion_priority_prop: str = "Priority"
    notion_status_prop: str = "Status"
    notion_due_prop: str = "Due"
    notion_done_checkbox_prop: str = "done"
    notion_project_prop: str = "Project"
    notion_estimated_minutes_prop: str = "estimated_minutes"
    notion_created_time_prop: str = "Created time"
    notion_last_edited_prop: str = "Last edited time"
    # Ranking
    timezone: str = "America/Los_Angeles"
    due_window_days: int = 7
    due_soon_days: int = 3
    w_priority: float = 0.5
    w_due: float = 0.35
    w_stale: float = 0.15
    overdue_boost: float = 0.0
    staleness_cap_days: int = 30
    top3_max_per_project: int = 2
    default_estimated_minutes: int = 30
    high_priority_values: tuple[str, ...] = ("p0",)
    closed_status_values: tuple[str, ...] = ("done",)
    # Calendar capacity
    google_calendar_id: str = ""
    google_service_account_file: str = ""
    google_token_dir: str = ""
    google_client_secret_file: str = ""
    workday_start_hour: int = 9
    workday_end_hour: int = 18
    focus_buffer_minutes: int = 60
    # AI summary
    ai_summary_provider: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    ai_summary_window_days: int = 3
    ai_summary_max_tasks: int = 12
    # Scheduling and publishing
    morning_time: str = "09:00"
    evening_time: str = "19:00"
    enforce_local_hour: bool = False
    dry_run: bool = False
    notifier: str = ""
    discord_webhook_url: str = ""
    slack_webhook_url: str = ""
    max_digest_lines: int = 15
    max_tasks_per_section: int = 2
    log_dir: str = ""
    # Telegram bot
    telegram_bot_token: str = ""
    telegram_allowed_users: tuple[int, ...] = ()
    action_ttl_minutes: int = 30
    max_action_tasks: int = 10
    state_file: str = ""

    @property
    def property_names(self) -> PropertyNames:
        return PropertyNames(
            title=self.notion_task_prop,
            priority=self.notion_priority_prop,
            status=self.notion_status_prop,
            due=self.notion_due_prop,
            done=self.notion_done_checkbox_prop,
            project=self.notion_project_prop,
            estimated_minutes=self.notion_estimated_minutes_prop,
            created=self.notion_created_time_prop,
            last_edited=self.notion_last_edited_prop,
        )

    @property
    def morning_hour(self) -> int:
        return parse_hour(self.morning_time, 9)

    @property
    def evening_hour(self) -> int:
        return parse_hour(self.evening_time, 19)

    @property
    def calendar_configured(self) -> bool:
        return bool(self.google_calendar_id and (self.google_service_account_file or self.google_token_dir))

    @property
    def webhook_url(self) -> str:
        match self.notifier:
            case "discord":
                return self.discord_webhook_url
            case "slack":
                return self.slack_webhook_url
            case _:
                return ""

    @property
    def state_path(self) -> Path:
        if self.state_file:
            return Path(self.state_file).expanduser()
        return DATA_DIR / "pending-actions.json"

    @property
    def log_path(self) -> Path:
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return DATA_DIR / "logs"


def parse_hour(value: str, fallback: int) -> int:
    """Hour from 'HH:MM' or 'HH'."""
    try:
        return int(value.split(":")[0])
    except (ValueError, AttributeError):
        logger.warning(f"Invalid time '{value}', using {fallback:02d}:00")
        return fallback


def parse_time(value: str) -> tuple[int, int]:
    """(hour, minute) from 'HH:MM'. Raises ValueError."""
    hour, minute = map(int, value.split(":"))
    return hour, minute


def _unquote(value: str) -> str:
    """Handle quoted values with inline comments: "value" # comment"""
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        if end_quote != -1:
            return value[1:end_quote]
        return value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        return value.split("#")[0].strip()
    return value


def _csv(value: str) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in value.split(",") if v.strip())


def _coerce(key: str, value: str, default):
    """Typed value for a key; unparseable numbers fall back to the default."""
    if key in INT_KEYS:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key.upper()}: '{value}', using {default}")
            return default
    if key in FLOAT_KEYS:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid number for {key.upper()}: '{value}', using {default}")
            return default
    if key in BOOL_KEYS:
        return value.strip().lower() in ("1", "true", "yes", "on")
    if key in LIST_KEYS:
        return _csv(value)
    return value


def parse_config_lines(lines: list[str]) -> dict[str, str]:
    """KEY=value pairs from a docket.conf file, keys lower-cased."""
    raw: dict[str, str] = {}
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        raw[key.strip().lower()] = _unquote(value.strip())
    return raw


def load_config(config_file: Path | None = None, environ: dict | None = None) -> Config:
    """
    Load configuration from docket.conf, then apply environment overrides.

    An environment variable named like the upper-cased key wins over the file.
    """
    config_file = config_file or CONFIG_FILE
    environ = os.environ if environ is None else environ

    raw: dict[str, str] = {}
    if config_file.exists():
        raw.update(parse_config_lines(config_file.read_text().splitlines()))

    defaults = Config()
    values = {}
    for f in fields(Config):
        value = environ.get(f.name.upper(), raw.get(f.name))
        if value is None:
            continue

        match f.name:
            case "telegram_allowed_users":
                users = []
                for u in value.split(","):
                    u = u.strip()
                    if not u:
                        continue
                    try:
                        users.append(int(u))
                    except ValueError:
                        logger.warning(f"Ignoring non-numeric Telegram user id: '{u}'")
                values[f.name] = tuple(users)
            case "notifier" | "ai_summary_provider":
                values[f.name] = value.strip().lower()
            case _:
                values[f.name] = _coerce(f.name, value, getattr(defaults, f.name))

    return Config(**values)


def validate_config(config: Config, *, digest: bool = False, bot: bool = False) -> None:
    """
    Fail fast on configuration the requested code path cannot run without.

    Raises ConfigurationError listing every missing key at once.
    """
    missing = []
    if not config.notion_api_key:
        missing.append("NOTION_API_KEY")
    if not config.notion_database_id:
        missing.append("NOTION_DATABASE_ID")

    if config.notifier and config.notifier not in NOTIFIERS:
        raise ConfigurationError(f'Invalid NOTIFIER "{config.notifier}". Use "discord" or "slack".')
    if config.ai_summary_provider and config.ai_summary_provider not in SUMMARY_PROVIDERS:
        raise ConfigurationError(
            f'Invalid AI_SUMMARY_PROVIDER "{config.ai_summary_provider}". Use "claude" or "gemini".'
        )

    if digest and config.notifier and not config.dry_run and not config.webhook_url:
        missing.append(f"{config.notifier.upper()}_WEBHOOK_URL")

    if bot and not config.telegram_bot_token:
        missing.append("TELEGRAM_BOT_TOKEN")

    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    if config.workday_end_hour <= config.workday_start_hour:
        logger.warning(
            "WORKDAY_END_HOUR must be after WORKDAY_START_HOUR; capacity will be unavailable"
        )
