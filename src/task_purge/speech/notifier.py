"""Spoken announcements of urgent tasks.

Announcements are strictly sequential: two overlapping utterances cannot be
understood. A failing utterance is recorded and the batch moves on.
"""

import asyncio
import logging
from dataclasses import dataclass

from task_purge.models.task import UrgentTask
from task_purge.speech.generator import MessageGenerator, build_fallback_message
from task_purge.speech.player import UtterancePlayer

logger = logging.getLogger(__name__)


@dataclass
class Announcement:
    """Outcome of announcing one task."""

    task: UrgentTask
    message: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Notifier:
    """Turns urgent tasks into spoken reminders.

    Args:
        player: Utterance player that voices the text.
        generator: Optional generation backend client. Without one the
            fallback template is used unconditionally.
        pause_seconds: Silence inserted between consecutive utterances.
    """

    def __init__(
        self,
        player: UtterancePlayer,
        generator: MessageGenerator | None = None,
        pause_seconds: float = 0.5,
    ) -> None:
        self._player = player
        self._generator = generator
        self._pause_seconds = pause_seconds

    async def aclose(self) -> None:
        if self._generator is not None:
            await self._generator.aclose()

    async def compose(self, task: UrgentTask) -> str:
        """Return the reminder text for a task. Never empty, never raises on generation failure."""
        if self._generator is not None:
            message = await self._generator.generate(task)
            if message:
                return message
        return build_fallback_message(task)

    async def announce(self, task: UrgentTask) -> str:
        """Speak one reminder and return its text. Player failures propagate."""
        message = await self.compose(task)
        await self._player.speak(message)
        return message

    async def announce_all(self, tasks: list[UrgentTask]) -> list[Announcement]:
        """Speak reminders one at a time in the given order."""
        announcements: list[Announcement] = []
        for index, task in enumerate(tasks):
            if index:
                await asyncio.sleep(self._pause_seconds)
            message = await self.compose(task)
            try:
                await self._player.speak(message)
            except Exception as exc:
                logger.warning(
                    "Failed to announce task %s (%s): %s", task.name, task.id, exc, exc_info=True
                )
                announcements.append(Announcement(task=task, message=message, error=exc))
                continue
            announcements.append(Announcement(task=task, message=message))
        return announcements
