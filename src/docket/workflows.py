"""Shared workflow layer between CLI and Telegram.

Builds adapters from configuration, computes digests and publishes them.
"""

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from .adapters.claude_cli import ClaudeCLIService
from .adapters.file_digest_log import FileDigestLog
from .adapters.file_state_store import FilePendingActionStore
from .adapters.gemini_api import GeminiService
from .adapters.google_calendar import GoogleCalendarAdapter
from .adapters.notion_api import NotionAdapter
from .adapters.webhook_notifier import WebhookNotifier
from .config import DOCKET_HOME, Config
from .core.digest import (
    NO_BLOCKERS_SUMMARY,
    Digest,
    DigestMode,
    EveningProgress,
    assemble_digest,
    build_log_record,
    build_summary_prompt,
    format_digest_text,
    parse_summary,
)
from .core.errors import ConfigurationError, UpstreamError
from .core.ranking import RankingSettings, ScoredTask, score_and_rank
from .core.tasks import count_completed, count_open, filter_digest_candidates
from .ports.calendar_repo import CalendarRepository
from .ports.digest_sink import DigestLog, Notifier
from .ports.llm_service import LLMService
from .ports.task_repo import TaskRepository
from .state_machine import ActionStateMachine

logger = logging.getLogger(__name__)

RUN_MODES = ("morning", "evening", "both")


# ============== Wiring ==============


def get_task_repo(config: Config) -> NotionAdapter:
    return NotionAdapter(config)


def get_calendar(config: Config) -> GoogleCalendarAdapter | None:
    """Calendar adapter, or None when capacity planning is not configured."""
    if not config.calendar_configured:
        return None
    return GoogleCalendarAdapter(
        calendar_id=config.google_calendar_id,
        service_account_file=config.google_service_account_file,
        token_dir=config.google_token_dir,
        client_secret_file=config.google_client_secret_file,
        timezone=config.timezone,
    )


def get_summarizer(config: Config) -> LLMService | None:
    match config.ai_summary_provider:
        case "claude":
            return ClaudeCLIService(cwd=DOCKET_HOME if DOCKET_HOME.exists() else None)
        case "gemini":
            if not config.gemini_api_key:
                logger.warning("AI_SUMMARY_PROVIDER=gemini but GEMINI_API_KEY is empty; summary disabled")
                return None
            return GeminiService(api_key=config.gemini_api_key, model=config.gemini_model)
        case _:
            return None


def get_notifier(config: Config) -> WebhookNotifier | None:
    if not config.notifier:
        return None
    return WebhookNotifier(config.notifier, config.webhook_url)


def get_digest_log(config: Config) -> FileDigestLog:
    return FileDigestLog(config.log_path)


def get_state_store(config: Config) -> FilePendingActionStore:
    return FilePendingActionStore(config.state_path)


def get_action_machine(config: Config, tasks: TaskRepository | None = None) -> ActionStateMachine:
    return ActionStateMachine(
        store=get_state_store(config),
        tasks=tasks or get_task_repo(config),
        ttl_minutes=config.action_ttl_minutes,
        dry_run=config.dry_run,
    )


def ranking_settings(config: Config) -> RankingSettings:
    return RankingSettings(
        w_priority=config.w_priority,
        w_due=config.w_due,
        w_stale=config.w_stale,
        overdue_boost=config.overdue_boost,
        staleness_cap_days=config.staleness_cap_days,
        due_soon_days=config.due_soon_days,
        max_per_project=config.top3_max_per_project,
    )


def local_now(config: Config) -> datetime:
    return datetime.now(ZoneInfo(config.timezone))


# ============== Digest ==============


def summarize_tasks(config: Config, ranked: list[ScoredTask], today: date, llm: LLMService | None) -> str:
    """Best-effort AI note. Any failure, or no summarizer, gives ''."""
    if llm is None:
        return ""

    prompt = build_summary_prompt(
        ranked,
        today,
        window_days=config.ai_summary_window_days,
        max_tasks=config.ai_summary_max_tasks,
    )
    if prompt is None:
        return NO_BLOCKERS_SUMMARY

    try:
        return parse_summary(llm.generate(prompt))
    except Exception as e:
        logger.warning(f"AI summary skipped: {e}")
        return ""


def fetch_evening_progress(config: Config, tasks: TaskRepository, today: date) -> EveningProgress:
    closed = config.closed_status_values
    return EveningProgress(
        completed_today=count_completed(tasks.fetch_edited_on(today), closed),
        pending_due_today=count_open(tasks.fetch_due_on(today), closed),
    )


def compute_digest(
    config: Config,
    mode: DigestMode,
    tasks: TaskRepository,
    calendar: CalendarRepository | None = None,
    llm: LLMService | None = None,
    as_of: datetime | None = None,
) -> Digest:
    """
    Fetch, rank and assemble one digest.

    Task-source failures propagate. Calendar problems are logged and leave
    capacity unknown so the digest still goes out.
    """
    now = as_of or local_now(config)
    today = now.date()
    settings = ranking_settings(config)

    cutoff = today if mode == DigestMode.EVENING else today + timedelta(days=config.due_window_days)
    candidates = filter_digest_candidates(
        tasks.fetch_due_by(cutoff),
        config.high_priority_values,
        config.closed_status_values,
    )
    ranked = score_and_rank(candidates, today, settings)
    logger.info(f"{mode.value} digest: {len(ranked)} candidate tasks")

    progress = fetch_evening_progress(config, tasks, today) if mode == DigestMode.EVENING else None

    events = None
    if calendar is not None:
        try:
            events = calendar.fetch_day(today)
        except (UpstreamError, ConfigurationError) as e:
            logger.warning(f"Calendar unavailable, capacity unknown: {e}")

    tz = ZoneInfo(config.timezone)
    assemble = dict(
        mode=mode,
        today=today,
        settings=settings,
        work_start=config.workday_start_hour,
        work_end=config.workday_end_hour,
        focus_buffer_minutes=config.focus_buffer_minutes,
        tz=tz,
        ai_summary=summarize_tasks(config, ranked, today, llm),
        evening_progress=progress,
    )
    try:
        return assemble_digest(ranked, events, **assemble)
    except ConfigurationError as e:
        logger.error(f"Capacity disabled: {e}")
        return assemble_digest(ranked, None, **assemble)


def render_digest(config: Config, digest: Digest) -> str:
    return format_digest_text(
        digest,
        max_lines=config.max_digest_lines,
        max_tasks_per_section=config.max_tasks_per_section,
    )


def publish_digest(
    config: Config,
    digest: Digest,
    notifier: Notifier | None,
    digest_log: DigestLog | None,
) -> str:
    """Post the rendered digest (or log it on dry runs) and write the log record."""
    text = render_digest(config, digest)

    if notifier is None:
        logger.info("No notifier configured; digest not posted")
    elif config.dry_run:
        logger.info(f"DRY_RUN enabled. {config.notifier.upper()} message:\n{text}")
    else:
        notifier.post(text)

    if digest_log is not None:
        digest_log.write(build_log_record(digest))
    return text


def should_run_now(config: Config, mode: str, as_of: datetime | None = None) -> bool:
    """Local-hour gate for cron-driven runs."""
    hour = (as_of or local_now(config)).hour
    match mode:
        case "morning":
            return hour == config.morning_hour
        case "evening":
            return hour == config.evening_hour
        case _:
            return hour in (config.morning_hour, config.evening_hour)


def resolve_modes(mode: str) -> list[DigestMode]:
    match mode.strip().lower():
        case "morning":
            return [DigestMode.MORNING]
        case "evening":
            return [DigestMode.EVENING]
        case "both":
            return [DigestMode.MORNING, DigestMode.EVENING]
        case _:
            raise ConfigurationError(f'Invalid MODE "{mode}". Use morning, evening, or both.')


def run_digest(config: Config, mode: str = "both", publish: bool = True) -> list[str]:
    """
    Compute and publish digests for a run mode. Returns the rendered texts.

    With enforce_local_hour set, runs outside the configured hour do nothing.
    """
    modes = resolve_modes(mode)
    if config.enforce_local_hour and not should_run_now(config, mode):
        logger.info(f"Skipping {mode}: local hour check failed in {config.timezone}")
        return []

    tasks = get_task_repo(config)
    calendar = get_calendar(config)
    llm = get_summarizer(config)
    notifier = get_notifier(config) if publish else None
    digest_log = get_digest_log(config) if publish else None

    texts = []
    for digest_mode in modes:
        digest = compute_digest(config, digest_mode, tasks, calendar, llm)
        texts.append(publish_digest(config, digest, notifier, digest_log))
    return texts
