"""Conversation states for Telegram bot."""

from enum import IntEnum, auto


class RescheduleStates(IntEnum):
    """States for the reschedule conversation."""

    TARGET_DATE = auto()
