"""Monitor: the polling state machine.

States: stopped -> running <-> checking -> stopped.

A Monitor owns two timers while running: the repeating cycle trigger and the
one-second countdown tick. Timer ticks spawn cycles without awaiting them, so
the single-flight flag is what keeps cycles from overlapping when a cycle
(fetch + classify + announce) outlasts the poll interval.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from task_purge.boards.aggregator import fetch_all_urgent_sources, fetch_single_board
from task_purge.boards.client import BoardClient
from task_purge.classifier import DuePolicy, filter_urgent, today_in
from task_purge.config import AppConfig, get_config
from task_purge.errors import ConfigError, TaskPurgeError
from task_purge.models.settings import MonitorSettings
from task_purge.models.state import EventKind, MonitorEvent, MonitorPhase, MonitorState
from task_purge.models.task import RawTask, UrgentTask
from task_purge.monitor.render import format_countdown
from task_purge.speech.notifier import Notifier
from task_purge.vocabulary import Vocabulary, load_vocabulary

logger = logging.getLogger(__name__)

Listener = Callable[[MonitorEvent], None]


def validate_settings(settings: MonitorSettings, config: AppConfig) -> None:
    """Raise ConfigError unless the settings can drive a monitor."""
    if not settings.is_complete:
        raise ConfigError()
    low, high = config.poll_interval_min_ms, config.poll_interval_max_ms
    if not low <= settings.poll_interval_ms <= high:
        raise ConfigError(
            f"チェック間隔は{low // 1000}秒から{high // 1000}秒の間で設定してください。"
        )


class Monitor:
    """Polls the board API for one watched person and announces urgent tasks.

    Multiple monitors are fully independent; all state lives on the instance.
    The Monitor takes ownership of ``board_client`` and ``notifier`` and closes
    them in ``aclose()``.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        board_client: BoardClient,
        notifier: Notifier,
        config: AppConfig | None = None,
        vocabulary: Vocabulary | None = None,
    ) -> None:
        self._settings = settings
        self._board_client = board_client
        self._notifier = notifier
        self._config = config or get_config()
        self._vocabulary = vocabulary or load_vocabulary()

        self._state = MonitorState()
        self._checking = False
        self._listeners: list[Listener] = []
        self._cycle_timer: asyncio.Task | None = None
        self._countdown_timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        # Bumped by stop(); a start() whose run was stopped meanwhile must not arm timers.
        self._run_id = 0

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def state(self) -> MonitorState:
        """Snapshot of the current state (mutating it has no effect on the monitor)."""
        return self._state.model_copy(deep=True)

    @property
    def interval_seconds(self) -> float:
        return self._settings.poll_interval_ms / 1000

    @property
    def policy(self) -> DuePolicy:
        return DuePolicy.STRICT if self._settings.single_board else DuePolicy.INCLUSIVE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener on the event channel. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- lifecycle --

    async def start(self) -> None:
        """Run one cycle immediately, then arm the cycle and countdown timers.

        Raises:
            ConfigError: settings incomplete or poll interval out of bounds.
        """
        validate_settings(self._settings, self._config)
        if self._state.phase is not MonitorPhase.STOPPED:
            logger.info("Monitor already started (phase=%s)", self._state.phase.value)
            return

        self._set_phase(MonitorPhase.RUNNING)
        logger.info(
            "Monitor started",
            extra={
                "watched_user_id": self._settings.watched_user_id,
                "interval_ms": self._settings.poll_interval_ms,
                "board_id": self._settings.board_id,
            },
        )

        run_id = self._run_id
        await self.check()

        # stop() (and possibly another start()) ran while the first cycle was in flight
        if run_id != self._run_id or self._state.phase is MonitorPhase.STOPPED:
            return
        if self._cycle_timer is not None:
            return
        if self._state.next_check_at is None:
            self._state.next_check_at = _now() + timedelta(seconds=self.interval_seconds)
        self._cycle_timer = asyncio.create_task(self._run_cycle_timer())
        self._countdown_timer = asyncio.create_task(self._run_countdown())

    async def stop(self) -> None:
        """Cancel both timers and transition to stopped.

        An in-flight cycle is not aborted: it runs to completion and its result
        is rendered, but nothing further is scheduled. No-op when stopped.
        """
        self._run_id += 1
        timers = [t for t in (self._cycle_timer, self._countdown_timer) if t is not None]
        self._cycle_timer = None
        self._countdown_timer = None
        # A listener may call stop() from inside a timer task; cancel that one last.
        current = asyncio.current_task()
        others = [t for t in timers if t is not current]
        for timer in others:
            timer.cancel()
        await asyncio.gather(*others, return_exceptions=True)

        if self._state.phase is not MonitorPhase.STOPPED:
            self._state.next_check_at = None
            self._state.countdown = format_countdown(None)
            self._set_phase(MonitorPhase.STOPPED)
            logger.info(
                "Monitor stopped", extra={"watched_user_id": self._settings.watched_user_id}
            )

        if current in timers:
            current.cancel()

    async def aclose(self) -> None:
        """Stop, wait for in-flight cycles, release the board client and notifier."""
        await self.stop()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        await self._board_client.aclose()
        await self._notifier.aclose()

    # -- cycle --

    async def check(self) -> list[UrgentTask] | None:
        """Run one fetch -> classify -> render -> announce cycle.

        Returns the urgent tasks, or None when the cycle was skipped (another
        cycle in flight, or monitor stopped) or failed. Failures are recorded
        in ``last_error`` and published; they never propagate.
        """
        if self._checking:
            logger.info("Previous cycle still in flight, skipping tick")
            return None
        if self._state.phase is MonitorPhase.STOPPED:
            return None

        self._checking = True
        self._set_phase(MonitorPhase.CHECKING)
        tasks: list[UrgentTask] | None = None
        try:
            tasks = await self._run_cycle()
        except TaskPurgeError as exc:
            self._record_failure(exc)
        except Exception as exc:
            logger.exception("Unexpected error in monitor cycle")
            self._record_failure(exc)
        else:
            self._state.last_error = None
        finally:
            self._checking = False
            self._state.last_checked_at = _now()
            if self._state.phase is MonitorPhase.CHECKING:
                self._state.next_check_at = _now() + timedelta(seconds=self.interval_seconds)
                self._set_phase(MonitorPhase.RUNNING)

        if tasks is not None:
            self._emit(EventKind.CYCLE_COMPLETED, tasks=tasks)
        return tasks

    async def _run_cycle(self) -> list[UrgentTask]:
        raw_tasks = await self._fetch()
        today = today_in(self._config.reference_timezone)
        urgent = filter_urgent(
            raw_tasks,
            self._settings,
            today=today,
            policy=self.policy,
            vocabulary=self._vocabulary,
            timezone_name=self._config.reference_timezone,
        )

        self._state.tasks = urgent
        self._emit(EventKind.TASKS_RENDERED, tasks=urgent)

        if urgent:
            announcements = await self._notifier.announce_all(urgent)
            failed = [a for a in announcements if not a.ok]
            if failed:
                logger.warning(
                    "Some reminders could not be spoken",
                    extra={"failed": len(failed), "total": len(announcements)},
                )
        return urgent

    async def _fetch(self) -> list[RawTask]:
        if self._settings.board_id:
            return await fetch_single_board(self._board_client, self._settings.board_id)
        return await fetch_all_urgent_sources(self._board_client, self._vocabulary)

    def _record_failure(self, exc: Exception) -> None:
        self._state.last_error = str(exc) or type(exc).__name__
        logger.warning(
            "Monitor cycle failed: %s",
            self._state.last_error,
            extra={"error_type": type(exc).__name__},
        )
        self._emit(EventKind.CYCLE_FAILED, error=self._state.last_error)

    # -- timers --

    async def _run_cycle_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            task = asyncio.create_task(self.check())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _run_countdown(self) -> None:
        while True:
            await asyncio.sleep(self._config.countdown_tick_seconds)
            countdown = self.countdown_text()
            self._state.countdown = countdown
            self._emit(EventKind.COUNTDOWN, countdown=countdown)

    def countdown_text(self, now: datetime | None = None) -> str:
        """Display text for the time left until ``next_check_at``."""
        if self._state.phase is MonitorPhase.STOPPED or self._state.next_check_at is None:
            return format_countdown(None)
        remaining = (self._state.next_check_at - (now or _now())).total_seconds()
        return format_countdown(remaining)

    # -- event channel --

    def _set_phase(self, phase: MonitorPhase) -> None:
        self._state.phase = phase
        self._emit(EventKind.PHASE_CHANGED)

    def _emit(
        self,
        kind: EventKind,
        *,
        tasks: list[UrgentTask] | None = None,
        error: str | None = None,
        countdown: str | None = None,
    ) -> None:
        if not self._listeners:
            return
        event = MonitorEvent(
            kind=kind,
            state=self.state,
            tasks=list(tasks or []),
            error=error,
            countdown=countdown,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning("Monitor listener failed on %s", kind.value, exc_info=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)
