"""Docket Telegram Bot."""

import asyncio
import logging

from telegram import Bot, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Config, load_config, parse_time, validate_config
from .core.digest import DigestMode, build_log_record
from .telegram_format import action_keyboard, digest_markdown, send_markdown
from .telegram_handlers import (
    action_button_handler,
    action_command_handler,
    cancel_handler,
    confirm_handler,
    defer_days_handler,
    digest_handler,
    evening_handler,
    help_handler,
    reschedule_cancel_handler,
    reschedule_date_handler,
    reschedule_pick_handler,
    start_handler,
    task_pick_handler,
)
from .telegram_states import RescheduleStates
from .workflows import (
    compute_digest,
    get_action_machine,
    get_calendar,
    get_digest_log,
    get_summarizer,
    get_task_repo,
    render_digest,
)

logger = logging.getLogger(__name__)


class AuthFilter(filters.BaseFilter):
    """Filter to only allow authorized users."""

    def __init__(self, allowed_users: tuple[int, ...]):
        super().__init__()
        self.allowed_users = allowed_users

    def check_update(self, update: Update) -> bool:
        if not self.allowed_users:
            return True  # No restriction if no users configured
        user = update.effective_user
        if user is None:
            return False
        return user.id in self.allowed_users


def build_services(config: Config) -> dict:
    """Adapters shared by every handler, stored in bot_data."""
    tasks = get_task_repo(config)
    return {
        "config": config,
        "tasks": tasks,
        "calendar": get_calendar(config),
        "llm": get_summarizer(config),
        "machine": get_action_machine(config, tasks),
        "digest_log": get_digest_log(config),
    }


def create_application(config: Config | None = None, services: dict | None = None) -> Application:
    """Create and configure the Telegram bot application."""
    if config is None:
        config = load_config()
    validate_config(config, bot=True)

    app = Application.builder().token(config.telegram_bot_token).build()
    app.bot_data.update(services or build_services(config))

    auth_filter = AuthFilter(config.telegram_allowed_users)

    app.add_handler(CommandHandler("start", start_handler, filters=auth_filter))
    app.add_handler(CommandHandler("help", help_handler, filters=auth_filter))
    app.add_handler(CommandHandler("digest", digest_handler, filters=auth_filter))
    app.add_handler(CommandHandler("evening", evening_handler, filters=auth_filter))
    app.add_handler(
        CommandHandler(["done", "defer", "reschedule"], action_command_handler, filters=auth_filter)
    )

    # Reschedule needs a typed date, so it runs as a conversation
    reschedule_conv = ConversationHandler(
        entry_points=[CallbackQueryHandler(reschedule_pick_handler, pattern=r"^task:reschedule:")],
        states={
            RescheduleStates.TARGET_DATE: [
                MessageHandler(filters.TEXT & ~filters.COMMAND & auth_filter, reschedule_date_handler),
            ],
        },
        fallbacks=[CommandHandler("cancel", reschedule_cancel_handler)],
        per_user=True,
    )
    app.add_handler(reschedule_conv)

    app.add_handler(CallbackQueryHandler(action_button_handler, pattern=r"^act:"))
    app.add_handler(CallbackQueryHandler(task_pick_handler, pattern=r"^task:(done|defer):"))
    app.add_handler(CallbackQueryHandler(defer_days_handler, pattern=r"^days:"))
    app.add_handler(CallbackQueryHandler(confirm_handler, pattern=r"^confirm:"))
    app.add_handler(CallbackQueryHandler(cancel_handler, pattern=r"^cancel:"))

    # Handle unauthorized access attempts
    async def unauthorized_handler(update: Update, context):
        user = update.effective_user
        logger.warning(f"Unauthorized access attempt from user {user.id} ({user.username})")
        await update.message.reply_text(
            "Unauthorized. This bot is private.\n"
            "If you're the owner, add your Telegram user ID to TELEGRAM_ALLOWED_USERS in docket.conf"
        )

    if config.telegram_allowed_users:
        app.add_handler(MessageHandler(~auth_filter & filters.ALL, unauthorized_handler))

    return app


def setup_scheduler(app: Application, config: Config) -> AsyncIOScheduler:
    """Schedule morning and evening digest pushes."""
    scheduler = AsyncIOScheduler(timezone=config.timezone)

    if not config.telegram_allowed_users:
        logger.info("No TELEGRAM_ALLOWED_USERS; scheduled digests disabled")
        return scheduler

    for mode, at in ((DigestMode.MORNING, config.morning_time), (DigestMode.EVENING, config.evening_time)):
        if not at:
            continue
        try:
            hour, minute = parse_time(at)
        except ValueError:
            logger.warning(f"Invalid {mode.value} time format: {at}")
            continue
        scheduler.add_job(
            send_scheduled_digest,
            CronTrigger(hour=hour, minute=minute),
            args=[app.bot, app.bot_data, mode],
            id=f"{mode.value}_digest",
        )
        logger.info(f"Scheduled {mode.value} digest at {hour:02d}:{minute:02d}")

    return scheduler


async def send_scheduled_digest(bot: Bot, services: dict, mode: DigestMode):
    """Push a digest to every allowed user and write the day's log record."""
    config = services["config"]
    logger.info(f"Sending scheduled {mode.value} digest")

    try:
        digest = await asyncio.to_thread(
            compute_digest, config, mode, services["tasks"], services.get("calendar"), services.get("llm")
        )
    except Exception as e:
        logger.error(f"Error generating {mode.value} digest: {e}")
        return

    digest_log = services.get("digest_log")
    if digest_log is not None:
        try:
            await asyncio.to_thread(digest_log.write, build_log_record(digest))
        except OSError as e:
            logger.error(f"Failed to write {mode.value} digest log: {e}")

    text = digest_markdown(render_digest(config, digest))
    markup = action_keyboard() if mode == DigestMode.EVENING else None
    for user_id in config.telegram_allowed_users:
        try:
            await send_markdown(bot, text, chat_id=user_id, reply_markup=markup)
        except TelegramError as e:
            logger.error(f"Failed to send digest to user {user_id}: {e}")


def run_bot(config: Config | None = None):
    """Run the Telegram bot."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    config = config or load_config()
    app = create_application(config)
    scheduler = setup_scheduler(app, config)

    async def post_init(application: Application) -> None:
        """Start scheduler after event loop is running."""
        scheduler.start()
        logger.info("Scheduler started")

    app.post_init = post_init

    if config.telegram_allowed_users:
        logger.info(f"Bot authorized for users: {list(config.telegram_allowed_users)}")
    else:
        logger.warning("No TELEGRAM_ALLOWED_USERS configured - bot is open to anyone!")

    logger.info("Starting Docket Telegram bot...")
    app.run_polling(allowed_updates=Update.ALL_TYPES)
