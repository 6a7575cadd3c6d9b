"""Telegram message formatting utilities."""

import telegramify_markdown
from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from .core.actions import DEFER_DAY_CHOICES, ActionKind
from .core.digest import truncate
from .core.ranking import ScoredTask

TELEGRAM_CHUNK = 4000


async def send_markdown(bot_or_msg, text: str, *, chat_id: int | None = None, reply_markup=None):
    """Send markdown text to Telegram, converting to MarkdownV2.

    bot_or_msg: a Bot instance (pass chat_id) or an Update.message (calls reply_text).
    reply_markup, if given, is attached to the last chunk.
    """
    converted = telegramify_markdown.markdownify(text)
    chunks = [converted[i : i + TELEGRAM_CHUNK] for i in range(0, len(converted), TELEGRAM_CHUNK)]
    for i, chunk in enumerate(chunks):
        markup = reply_markup if i == len(chunks) - 1 else None
        if chat_id is not None:
            await bot_or_msg.send_message(chat_id=chat_id, text=chunk, parse_mode="MarkdownV2", reply_markup=markup)
        else:
            await bot_or_msg.reply_text(chunk, parse_mode="MarkdownV2", reply_markup=markup)


def digest_markdown(text: str) -> str:
    """Digest text in a fenced block so columns line up."""
    return f"```\n{text}\n```"


# ============== Keyboards ==============
#
# Callback data layout (Telegram caps it at 64 bytes):
#   act:<kind>              evening action buttons
#   task:<kind>:<task_id>   task picker
#   days:<task_id>:<n>      defer day picker
#   confirm:<pending_id> / cancel:<pending_id>


def action_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Sweep", callback_data=f"act:{ActionKind.SWEEP.value}"),
                InlineKeyboardButton("Reschedule", callback_data=f"act:{ActionKind.RESCHEDULE.value}"),
            ],
            [
                InlineKeyboardButton("Defer", callback_data=f"act:{ActionKind.DEFER.value}"),
                InlineKeyboardButton("Mark Done", callback_data=f"act:{ActionKind.DONE.value}"),
            ],
        ]
    )


def task_button_label(task: ScoredTask) -> str:
    return f"{truncate(task.title, 40) or 'Untitled'} | {truncate(task.project, 16)} | {task.due_date.isoformat()}"


def task_picker_keyboard(tasks: list[ScoredTask], kind: ActionKind) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(task_button_label(t), callback_data=f"task:{kind.value}:{t.id}")] for t in tasks]
    )


def defer_days_keyboard(task_id: str) -> InlineKeyboardMarkup:
    buttons = [
        InlineKeyboardButton(f"+{n} day{'s' if n > 1 else ''}", callback_data=f"days:{task_id}:{n}")
        for n in DEFER_DAY_CHOICES
    ]
    return InlineKeyboardMarkup([buttons])


def confirm_keyboard(pending_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Confirm", callback_data=f"confirm:{pending_id}"),
                InlineKeyboardButton("Cancel", callback_data=f"cancel:{pending_id}"),
            ]
        ]
    )
