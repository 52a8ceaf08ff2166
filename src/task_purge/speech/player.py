"""Utterance players: the capability that actually voices a reminder."""

import asyncio
import logging
import shlex
from typing import Protocol

from task_purge.config import AppConfig
from task_purge.errors import UtteranceError

logger = logging.getLogger(__name__)


class UtterancePlayer(Protocol):
    """Speak one text; return when playback completes, raise UtteranceError on failure."""

    async def speak(self, text: str) -> None: ...


class LogPlayer:
    """Player for headless deployments: logs the utterance instead of voicing it."""

    def __init__(self) -> None:
        self.spoken: list[str] = []

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        logger.info("Reminder: %s", text)


class CommandPlayer:
    """Voice text through a local TTS command (``say``, ``espeak-ng -v ja`` ...).

    The text is appended as the last argument. Playback completes when the
    process exits.
    """

    def __init__(self, command: list[str], timeout_seconds: float = 30.0) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = command
        self._timeout = timeout_seconds

    async def speak(self, text: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                text,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise UtteranceError(f"音声コマンドを起動できません: {self._command[0]}") from exc

        try:
            async with asyncio.timeout(self._timeout):
                _, stderr = await process.communicate()
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise UtteranceError("音声の再生がタイムアウトしました。") from exc

        if process.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            logger.warning("Speech command exited with %d: %s", process.returncode, detail)
            raise UtteranceError()


def build_player(config: AppConfig) -> UtterancePlayer:
    """CommandPlayer when ``speech_command`` is configured, LogPlayer otherwise."""
    if config.speech_command.strip():
        return CommandPlayer(shlex.split(config.speech_command))
    return LogPlayer()


class SerializedPlayer:
    """Shares one player between monitors: utterances never overlap.

    Each monitor already speaks its batch sequentially; this lock keeps two
    monitors cycling at the same time from talking over each other.
    """

    def __init__(self, player: UtterancePlayer) -> None:
        self._player = player
        self._lock = asyncio.Lock()

    async def speak(self, text: str) -> None:
        async with self._lock:
            await self._player.speak(text)
