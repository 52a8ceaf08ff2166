"""Message generation backend: short spoken reminders via Gemini.

Public API:
    generate_reminder(client, request, timeout_seconds) -> str
"""

from task_purge.generation.client import get_gemini_client, reset_client
from task_purge.generation.processor import generate_reminder
from task_purge.generation.schemas import ReminderRequest, ReminderResponse

__all__ = [
    "get_gemini_client",
    "generate_reminder",
    "reset_client",
    "ReminderRequest",
    "ReminderResponse",
]
