"""One Monitor per user inside the web process."""

import asyncio
import logging

from task_purge.boards.client import BoardClient
from task_purge.config import AppConfig
from task_purge.errors import ConfigError
from task_purge.models.settings import MonitorSettings
from task_purge.models.state import MonitorPhase, MonitorState
from task_purge.monitor.scheduler import Monitor
from task_purge.speech.generator import MessageGenerator
from task_purge.speech.notifier import Notifier
from task_purge.speech.player import SerializedPlayer, UtterancePlayer
from task_purge.store import SettingsStore

logger = logging.getLogger(__name__)


def build_monitor(
    settings: MonitorSettings, config: AppConfig, player: UtterancePlayer
) -> Monitor:
    """Wire a Monitor from settings: board client, optional generator, notifier."""
    generator = (
        MessageGenerator(settings.generation_api_key, config=config)
        if settings.generation_api_key
        else None
    )
    notifier = Notifier(player, generator=generator, pause_seconds=config.announce_pause_seconds)
    board_client = BoardClient(settings.access_token, config=config)
    return Monitor(settings, board_client=board_client, notifier=notifier, config=config)


class MonitorRegistry:
    """Owns the monitors started through the HTTP surface.

    Starts are serialized per user only: one user's first cycle never holds
    up another user's start. All monitors speak through one player, wrapped
    so that utterances from different monitors never overlap.
    """

    def __init__(self, store: SettingsStore, config: AppConfig, player: UtterancePlayer) -> None:
        self._store = store
        self._config = config
        self._player = SerializedPlayer(player)
        self._monitors: dict[str, Monitor] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def player(self) -> UtterancePlayer:
        return self._player

    def get(self, user_id: str) -> Monitor | None:
        return self._monitors.get(user_id)

    async def start(self, user_id: str) -> MonitorState:
        """Start (or return) the user's monitor using their latest stored settings.

        Raises:
            ConfigError: no settings stored, or stored settings incomplete.
        """
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            return await self._start(user_id)

    async def _start(self, user_id: str) -> MonitorState:
        existing = self._monitors.get(user_id)
        if existing is not None and existing.state.phase is not MonitorPhase.STOPPED:
            return existing.state

        settings = await self._store.load(user_id)
        if settings is None:
            raise ConfigError("設定が未完了です。管理画面から設定してください。")

        if existing is not None:
            # Replace the stopped monitor so corrected settings take effect.
            self._monitors.pop(user_id, None)
            await existing.aclose()

        monitor = build_monitor(settings, self._config, self._player)
        self._monitors[user_id] = monitor
        try:
            await monitor.start()
        except ConfigError:
            self._monitors.pop(user_id, None)
            await monitor.aclose()
            raise
        return monitor.state

    async def stop(self, user_id: str) -> MonitorState | None:
        monitor = self._monitors.get(user_id)
        if monitor is None:
            return None
        await monitor.stop()
        return monitor.state

    def status(self, user_id: str) -> MonitorState | None:
        monitor = self._monitors.get(user_id)
        return monitor.state if monitor is not None else None

    async def aclose(self) -> None:
        """Stop every monitor and release their clients (application shutdown)."""
        monitors = list(self._monitors.values())
        self._monitors.clear()
        for monitor in monitors:
            await monitor.aclose()
        logger.info("Closed %d monitor(s)", len(monitors))
