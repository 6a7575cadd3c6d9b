"""Telegram command handlers."""

import asyncio
import logging

from telegram import Update
from telegram.ext import ContextTypes, ConversationHandler

from .core.actions import ActionKind
from .core.digest import DigestMode
from .core.errors import AuthorizationError, DocketError, ValidationError
from .telegram_format import (
    action_keyboard,
    confirm_keyboard,
    defer_days_keyboard,
    digest_markdown,
    send_markdown,
    task_picker_keyboard,
)
from .telegram_states import RescheduleStates
from .workflows import compute_digest, render_digest

logger = logging.getLogger(__name__)

ACTION_FAILED = "Action failed. Check logs and try again."
NO_TASKS = "No actionable evening tasks found."
SWEEP_REPLY = "Sweep confirmed. No Notion changes were made."
UNAUTHORIZED = "Unauthorized. This bot is private."


def _services(context: ContextTypes.DEFAULT_TYPE) -> dict:
    return context.bot_data


def _is_allowed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    """Callback queries bypass command filters, so check the allowlist here too."""
    allowed = _services(context)["config"].telegram_allowed_users
    if not allowed:
        return True
    user = update.effective_user
    return user is not None and user.id in allowed


async def _prune(context: ContextTypes.DEFAULT_TYPE) -> None:
    await asyncio.to_thread(_services(context)["machine"].prune_expired)


async def _actionable_tasks(context: ContextTypes.DEFAULT_TYPE):
    """First ranked tasks of an evening digest, for the task picker."""
    services = _services(context)
    config = services["config"]
    digest = await asyncio.to_thread(
        compute_digest, config, DigestMode.EVENING, services["tasks"], services.get("calendar"), None
    )
    return digest.ranked[: max(1, config.max_action_tasks)]


async def _answer_error(update: Update, error: Exception) -> None:
    """Report a failure on whatever the update came from."""
    if isinstance(error, DocketError):
        message = str(error)
    else:
        logger.exception("Telegram interaction failed", exc_info=error)
        message = ACTION_FAILED

    query = update.callback_query
    if query is not None:
        if isinstance(error, AuthorizationError):
            await query.answer(message, show_alert=True)
            return
        await query.answer()
        await query.edit_message_text(message)
    elif update.message is not None:
        await update.message.reply_text(message)


# ============== Simple Commands ==============


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command."""
    await update.message.reply_text(
        "Hi! I'm Docket, your daily task digest.\n\n"
        "Commands:\n"
        "/digest - Today's ranked digest\n"
        "/evening - Evening sweep with quick actions\n"
        "/done - Mark a task done\n"
        "/defer - Push a task back by days\n"
        "/reschedule - Move a task to a new date\n"
        "/help - Show all commands"
    )


async def help_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /help command."""
    await send_markdown(
        update.message,
        "**Docket Commands**\n\n"
        "/digest - Overdue, due today and due soon, with top 3 and capacity\n"
        "/evening - Evening sweep with Sweep / Reschedule / Defer / Mark Done\n"
        "/done - Mark a task done\n"
        "/defer - Defer a task by 1, 2, 3 or 7 days\n"
        "/reschedule - Reschedule a task to a YYYY-MM-DD date\n"
        "/cancel - Cancel a reschedule in progress\n\n"
        "Every change asks for confirmation first.",
    )


async def digest_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /digest command - morning digest on demand."""
    services = _services(context)
    config = services["config"]
    await update.message.reply_text("Building your digest...")
    try:
        digest = await asyncio.to_thread(
            compute_digest,
            config,
            DigestMode.MORNING,
            services["tasks"],
            services.get("calendar"),
            services.get("llm"),
        )
    except Exception as e:
        await _answer_error(update, e)
        return
    await send_markdown(update.message, digest_markdown(render_digest(config, digest)))


async def evening_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /evening command - evening digest plus action buttons."""
    services = _services(context)
    config = services["config"]
    try:
        await _prune(context)
        digest = await asyncio.to_thread(
            compute_digest,
            config,
            DigestMode.EVENING,
            services["tasks"],
            services.get("calendar"),
            services.get("llm"),
        )
    except Exception as e:
        await _answer_error(update, e)
        return
    text = digest_markdown(render_digest(config, digest)) + "\n\nChoose an action below to update Notion safely."
    await send_markdown(update.message, text, reply_markup=action_keyboard())


async def action_command_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /done, /defer and /reschedule - show the task picker."""
    command = update.message.text.split()[0].lstrip("/").split("@")[0]
    kind = ActionKind(command)
    try:
        await _prune(context)
        tasks = await _actionable_tasks(context)
    except Exception as e:
        await _answer_error(update, e)
        return

    if not tasks:
        await update.message.reply_text(NO_TASKS)
        return
    await update.message.reply_text(f"Select a task to {kind.value}.", reply_markup=task_picker_keyboard(tasks, kind))


# ============== Inline Buttons ==============


async def action_button_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle evening buttons (act:<kind>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return

    kind = ActionKind(query.data.split(":", 1)[1])
    try:
        await _prune(context)
        if kind == ActionKind.SWEEP:
            await query.answer()
            await query.message.reply_text(SWEEP_REPLY)
            return

        tasks = await _actionable_tasks(context)
    except Exception as e:
        await _answer_error(update, e)
        return

    await query.answer()
    if not tasks:
        await query.message.reply_text(NO_TASKS)
        return
    await query.message.reply_text(f"Select a task to {kind.value}.", reply_markup=task_picker_keyboard(tasks, kind))


async def task_pick_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle a picked task for done or defer (task:<kind>:<task_id>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return

    _, kind_value, task_id = query.data.split(":", 2)
    kind = ActionKind(kind_value)
    machine = _services(context)["machine"]

    try:
        await _prune(context)
        if kind == ActionKind.DEFER:
            await query.answer()
            await query.edit_message_text("Pick how many days to defer.", reply_markup=defer_days_keyboard(task_id))
            return

        pending = await asyncio.to_thread(machine.propose, ActionKind.DONE, task_id, update.effective_user.id)
    except Exception as e:
        await _answer_error(update, e)
        return

    await query.answer()
    await query.edit_message_text("Confirm marking this task done?", reply_markup=confirm_keyboard(pending.id))


async def defer_days_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle defer day choice (days:<task_id>:<n>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return

    _, task_id, days = query.data.rsplit(":", 2)
    machine = _services(context)["machine"]
    try:
        await _prune(context)
        pending = await asyncio.to_thread(
            machine.propose, ActionKind.DEFER, task_id, update.effective_user.id, {"days": days}
        )
    except Exception as e:
        await _answer_error(update, e)
        return

    await query.answer()
    await query.edit_message_text(
        f"Confirm deferring by +{pending.details['days']} day(s)?",
        reply_markup=confirm_keyboard(pending.id),
    )


async def confirm_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle Confirm (confirm:<pending_id>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return

    pending_id = query.data.split(":", 1)[1]
    machine = _services(context)["machine"]
    try:
        await _prune(context)
        summary = await asyncio.to_thread(machine.confirm, pending_id, update.effective_user.id)
    except Exception as e:
        await _answer_error(update, e)
        return

    await query.answer()
    await query.edit_message_text(summary)


async def cancel_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle Cancel (cancel:<pending_id>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return

    pending_id = query.data.split(":", 1)[1]
    machine = _services(context)["machine"]
    try:
        await _prune(context)
        message = await asyncio.to_thread(machine.cancel, pending_id, update.effective_user.id)
    except Exception as e:
        await _answer_error(update, e)
        return

    await query.answer()
    await query.edit_message_text(message)


# ============== Reschedule Conversation ==============


async def reschedule_pick_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Entry point: a task was picked for reschedule (task:reschedule:<task_id>)."""
    query = update.callback_query
    if not _is_allowed(update, context):
        await query.answer(UNAUTHORIZED, show_alert=True)
        return ConversationHandler.END

    task_id = query.data.split(":", 2)[2]
    context.user_data["reschedule_task_id"] = task_id
    await query.answer()
    await query.edit_message_text("Send the new due date (YYYY-MM-DD), or /cancel.")
    return RescheduleStates.TARGET_DATE


async def reschedule_date_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Typed target date. Bad input keeps the conversation open for another try."""
    task_id = context.user_data.get("reschedule_task_id")
    if not task_id:
        await update.message.reply_text("No task selected. Use /reschedule to start over.")
        return ConversationHandler.END

    target_date = update.message.text.strip()
    machine = _services(context)["machine"]
    try:
        await _prune(context)
        pending = await asyncio.to_thread(
            machine.propose,
            ActionKind.RESCHEDULE,
            task_id,
            update.effective_user.id,
            {"target_date": target_date},
        )
    except ValidationError:
        await update.message.reply_text("Invalid date format. Use YYYY-MM-DD.")
        return RescheduleStates.TARGET_DATE
    except Exception as e:
        await _answer_error(update, e)
        context.user_data.pop("reschedule_task_id", None)
        return ConversationHandler.END

    context.user_data.pop("reschedule_task_id", None)
    await update.message.reply_text(
        f"Confirm rescheduling to {pending.details['target_date']}?",
        reply_markup=confirm_keyboard(pending.id),
    )
    return ConversationHandler.END


async def reschedule_cancel_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Cancel the reschedule conversation."""
    context.user_data.pop("reschedule_task_id", None)
    await update.message.reply_text("Reschedule cancelled.")
    return ConversationHandler.END
