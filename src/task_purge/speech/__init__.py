"""Spoken reminders: message composition, utterance players and the notifier."""

from task_purge.speech.generator import MessageGenerator, build_fallback_message
from task_purge.speech.notifier import Announcement, Notifier
from task_purge.speech.player import (
    CommandPlayer,
    LogPlayer,
    SerializedPlayer,
    UtterancePlayer,
    build_player,
)

__all__ = [
    "Announcement",
    "CommandPlayer",
    "LogPlayer",
    "MessageGenerator",
    "Notifier",
    "SerializedPlayer",
    "UtterancePlayer",
    "build_fallback_message",
    "build_player",
]
