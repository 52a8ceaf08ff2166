"""Monitor state machine tests: cycles, single-flight, failures and timers."""

import asyncio
import json
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from task_purge.config import AppConfig
from task_purge.errors import ConfigError, TransportError, UtteranceError
from task_purge.models.settings import MonitorSettings
from task_purge.models.state import EventKind, MonitorPhase
from task_purge.models.task import Board, ColumnValue, RawTask, TaskPriority
from task_purge.monitor.scheduler import Monitor, validate_settings
from task_purge.speech.notifier import Notifier
from task_purge.speech.player import LogPlayer

TODAY = date(2026, 10, 16)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr("task_purge.monitor.scheduler.today_in", lambda tz: TODAY)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(poll_interval_min_ms=1, countdown_tick_seconds=0.01, announce_pause_seconds=0)


def _raw(
    name: str = "Ship deck",
    due: date = TODAY,
    priority: str = "緊急",
    status: str = "進行中",
    assignee: int = 1001,
    board_name: str = "",
) -> RawTask:
    person = json.dumps({"personsAndTeams": [{"id": assignee, "kind": "person"}]})
    return RawTask(
        id=name,
        name=name,
        board_name=board_name,
        column_values=[
            ColumnValue(column_id="priority", text=priority),
            ColumnValue(column_id="date4", text=due.isoformat()),
            ColumnValue(column_id="status", text=status),
            ColumnValue(column_id="person", text="Alice", raw_value=person),
        ],
    )


def _settings(**kwargs) -> MonitorSettings:
    defaults = {"access_token": "tok", "watched_user_id": "1001"}
    defaults.update(kwargs)
    return MonitorSettings(**defaults)


def _board_client(tasks: list[RawTask] | None = None) -> AsyncMock:
    client = AsyncMock()
    client.list_boards.return_value = [Board(id="b1", name="Launch")]
    client.fetch_board_tasks.return_value = tasks if tasks is not None else [_raw()]
    return client


def _monitor(config, settings=None, client=None, player=None) -> tuple[Monitor, LogPlayer]:
    player = player or LogPlayer()
    monitor = Monitor(
        settings or _settings(),
        board_client=client or _board_client(),
        notifier=Notifier(player, pause_seconds=0),
        config=config,
    )
    return monitor, player


# -- validation --


def test_validate_rejects_incomplete_settings(config):
    with pytest.raises(ConfigError):
        validate_settings(_settings(watched_user_id=""), config)


def test_validate_rejects_out_of_range_interval():
    config = AppConfig(poll_interval_min_ms=60_000, poll_interval_max_ms=3_600_000)
    with pytest.raises(ConfigError):
        validate_settings(_settings(poll_interval_ms=1_000), config)
    with pytest.raises(ConfigError):
        validate_settings(_settings(poll_interval_ms=7_200_000), config)
    validate_settings(_settings(poll_interval_ms=900_000), config)


async def test_start_with_incomplete_settings_fails(config):
    client = _board_client()
    monitor, _ = _monitor(config, settings=_settings(access_token=""), client=client)

    with pytest.raises(ConfigError):
        await monitor.start()

    assert monitor.state.phase is MonitorPhase.STOPPED
    client.list_boards.assert_not_awaited()


# -- cycle --


async def test_end_to_end_cycle_announces_urgent_task(config):
    monitor, player = _monitor(config)
    try:
        await monitor.start()

        state = monitor.state
        assert state.phase is MonitorPhase.RUNNING
        assert [t.name for t in state.tasks] == ["Ship deck"]
        assert state.tasks[0].board_name == "Launch"
        assert state.tasks[0].priority is TaskPriority.CRITICAL
        assert state.tasks[0].overdue is False
        assert player.spoken == ["Launch — Ship deck, 今日が期限です。"]
        assert state.next_check_at is not None
        assert state.last_error is None
    finally:
        await monitor.aclose()


async def test_multi_board_mode_includes_overdue(config):
    client = _board_client([_raw(due=TODAY - timedelta(days=2))])
    monitor, player = _monitor(config, client=client)
    try:
        tasks = await _first_cycle(monitor)
    finally:
        await monitor.aclose()

    assert len(tasks) == 1
    assert tasks[0].overdue is True
    assert player.spoken == ["Launch — Ship deck, 期限が過ぎています。"]


async def test_single_board_mode_only_today(config):
    client = _board_client([_raw(name="late", due=TODAY - timedelta(days=1)), _raw(name="now")])
    monitor, _ = _monitor(config, settings=_settings(board_id="b9"), client=client)
    try:
        tasks = await _first_cycle(monitor)
    finally:
        await monitor.aclose()

    assert [t.name for t in tasks] == ["now"]
    client.fetch_board_tasks.assert_awaited_once_with("b9")
    client.list_boards.assert_not_awaited()


async def test_no_urgent_tasks_announces_nothing(config):
    client = _board_client([_raw(status="完了"), _raw(name="other", assignee=7)])
    monitor, player = _monitor(config, client=client)
    try:
        await monitor.start()
    finally:
        await monitor.aclose()

    assert monitor.state.tasks == []
    assert player.spoken == []


async def test_tasks_rendered_before_announcement(config):
    player = LogPlayer()
    monitor, _ = _monitor(config, player=player)
    seen: list[tuple[EventKind, int]] = []
    monitor.subscribe(lambda event: seen.append((event.kind, len(player.spoken))))
    try:
        await monitor.start()
    finally:
        await monitor.aclose()

    rendered = [spoken for kind, spoken in seen if kind is EventKind.TASKS_RENDERED]
    completed = [spoken for kind, spoken in seen if kind is EventKind.CYCLE_COMPLETED]
    assert rendered == [0]
    assert completed == [1]


async def test_failed_cycle_records_error_and_keeps_running(config):
    client = _board_client()
    client.list_boards.side_effect = TransportError("network down")
    monitor, player = _monitor(config, client=client)
    errors: list[str] = []
    monitor.subscribe(
        lambda event: errors.append(event.error) if event.kind is EventKind.CYCLE_FAILED else None
    )
    try:
        await monitor.start()

        state = monitor.state
        assert state.phase is MonitorPhase.RUNNING
        assert state.last_error == "network down"
        assert state.next_check_at is not None
        assert errors == ["network down"]
        assert player.spoken == []

        # the next successful cycle clears the error
        client.list_boards.side_effect = None
        assert await monitor.check() is not None
        assert monitor.state.last_error is None
    finally:
        await monitor.aclose()


async def test_unexpected_error_is_recorded(config):
    client = _board_client()
    client.fetch_board_tasks.side_effect = KeyError("boom")
    monitor, _ = _monitor(config, settings=_settings(board_id="b1"), client=client)
    try:
        assert await _first_cycle(monitor) is None
        assert monitor.state.last_error
        assert monitor.state.phase is MonitorPhase.RUNNING
    finally:
        await monitor.aclose()


async def test_utterance_failure_does_not_fail_cycle(config):
    class BrokenPlayer:
        async def speak(self, text: str) -> None:
            raise UtteranceError()

    monitor = Monitor(
        _settings(),
        board_client=_board_client([_raw(name="one"), _raw(name="two")]),
        notifier=Notifier(BrokenPlayer(), pause_seconds=0),
        config=config,
    )
    try:
        await monitor.start()
        assert monitor.state.last_error is None
        assert [t.name for t in monitor.state.tasks] == ["one", "two"]
    finally:
        await monitor.aclose()


async def test_overlapping_checks_are_single_flight(config):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_fetch(board_id: str) -> list[RawTask]:
        entered.set()
        await release.wait()
        return [_raw()]

    client = _board_client()
    client.fetch_board_tasks.side_effect = slow_fetch
    monitor, _ = _monitor(config, client=client)
    phases: list[MonitorPhase] = []
    monitor.subscribe(
        lambda e: phases.append(e.state.phase) if e.kind is EventKind.PHASE_CHANGED else None
    )
    try:
        starting = asyncio.create_task(monitor.start())
        await entered.wait()

        assert await monitor.check() is None
        assert await monitor.check() is None

        release.set()
        await starting
    finally:
        await monitor.aclose()

    assert phases.count(MonitorPhase.CHECKING) == 1
    assert client.fetch_board_tasks.await_count == 1


async def test_stop_during_cycle_lets_it_finish(config):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_fetch(board_id: str) -> list[RawTask]:
        entered.set()
        await release.wait()
        return [_raw()]

    client = _board_client()
    client.fetch_board_tasks.side_effect = slow_fetch
    monitor, player = _monitor(config, client=client)
    try:
        starting = asyncio.create_task(monitor.start())
        await entered.wait()

        await monitor.stop()
        assert monitor.state.phase is MonitorPhase.STOPPED

        release.set()
        await starting

        state = monitor.state
        assert state.phase is MonitorPhase.STOPPED
        assert state.next_check_at is None
        assert [t.name for t in state.tasks] == ["Ship deck"]
        assert len(player.spoken) == 1
        assert await monitor.check() is None
    finally:
        await monitor.aclose()


def _timer_tasks() -> list[asyncio.Task]:
    names = {"Monitor._run_cycle_timer", "Monitor._run_countdown"}
    return [
        t for t in asyncio.all_tasks() if not t.done() and t.get_coro().__qualname__ in names
    ]


async def test_restart_during_first_cycle_leaves_one_timer_pair(config):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def parked_listing():
        entered.set()
        await release.wait()
        return [Board(id="b1", name="Launch")]

    client = _board_client([])
    client.list_boards.side_effect = parked_listing
    monitor, _ = _monitor(config, settings=_settings(poll_interval_ms=20), client=client)
    try:
        first = asyncio.create_task(monitor.start())
        await entered.wait()

        await monitor.stop()
        await monitor.start()
        assert monitor.state.phase is MonitorPhase.RUNNING
        assert monitor.state.next_check_at is not None

        release.set()
        await first
        assert len(_timer_tasks()) == 2

        await monitor.stop()
        await asyncio.sleep(0)
        assert _timer_tasks() == []

        calls = client.list_boards.await_count
        await asyncio.sleep(0.1)
        assert client.list_boards.await_count == calls
    finally:
        release.set()
        await monitor.aclose()


async def test_stop_is_idempotent(config):
    monitor, _ = _monitor(config)
    await monitor.stop()
    await monitor.start()
    await monitor.stop()
    await monitor.stop()

    state = monitor.state
    assert state.phase is MonitorPhase.STOPPED
    assert state.countdown == "--:--"
    await monitor.aclose()


async def test_start_twice_is_noop(config):
    client = _board_client()
    monitor, _ = _monitor(config, client=client)
    try:
        await monitor.start()
        await monitor.start()
        assert client.list_boards.await_count == 1
    finally:
        await monitor.aclose()


async def test_state_is_a_snapshot(config):
    monitor, _ = _monitor(config)
    try:
        await monitor.start()
        snapshot = monitor.state
        snapshot.tasks.clear()
        assert len(monitor.state.tasks) == 1
    finally:
        await monitor.aclose()


# -- timers --


async def test_cycle_timer_repeats(config):
    client = _board_client([])
    monitor, _ = _monitor(config, settings=_settings(poll_interval_ms=20), client=client)
    try:
        await monitor.start()
        await asyncio.sleep(0.2)
        assert client.list_boards.await_count >= 3
    finally:
        await monitor.aclose()

    calls = client.list_boards.await_count
    await asyncio.sleep(0.1)
    assert client.list_boards.await_count == calls


async def test_countdown_ticks_publish_events(config):
    monitor, _ = _monitor(config)
    ticks: list[str] = []
    monitor.subscribe(lambda e: ticks.append(e.countdown) if e.kind is EventKind.COUNTDOWN else None)
    try:
        await monitor.start()
        await asyncio.sleep(0.1)
    finally:
        await monitor.aclose()

    assert ticks
    assert all(t.count(":") == 1 for t in ticks)
    assert monitor.state.countdown == "--:--"


async def test_countdown_text(config):
    monitor, _ = _monitor(config)
    assert monitor.countdown_text() == "--:--"
    try:
        await monitor.start()
        next_check_at = monitor.state.next_check_at
        assert monitor.countdown_text(now=next_check_at - timedelta(seconds=65)) == "01:05"
        assert monitor.countdown_text(now=next_check_at) == "確認中..."
    finally:
        await monitor.aclose()
    assert monitor.countdown_text() == "--:--"


async def test_listener_errors_do_not_break_monitor(config):
    monitor, player = _monitor(config)

    def broken(event):
        raise RuntimeError("listener bug")

    monitor.subscribe(broken)
    try:
        await monitor.start()
        assert player.spoken
    finally:
        await monitor.aclose()


async def test_unsubscribe(config):
    monitor, _ = _monitor(config)
    events = []
    unsubscribe = monitor.subscribe(events.append)
    unsubscribe()
    try:
        await monitor.start()
    finally:
        await monitor.aclose()
    assert events == []


async def test_monitors_are_independent(config):
    first, first_player = _monitor(config)
    second_client = _board_client([])
    second, second_player = _monitor(config, client=second_client)
    try:
        await first.start()
        await second.start()
        await first.stop()

        assert first.state.phase is MonitorPhase.STOPPED
        assert second.state.phase is MonitorPhase.RUNNING
        assert len(first_player.spoken) == 1
        assert second_player.spoken == []
    finally:
        await first.aclose()
        await second.aclose()


async def test_aclose_releases_clients(config):
    client = _board_client()
    monitor, _ = _monitor(config, client=client)
    await monitor.start()
    await monitor.aclose()

    client.aclose.assert_awaited_once()
    assert monitor.state.phase is MonitorPhase.STOPPED


async def _first_cycle(monitor: Monitor):
    """Run the first cycle through start() and return its result."""
    results = []
    monitor.subscribe(
        lambda e: results.append(e.tasks) if e.kind is EventKind.CYCLE_COMPLETED else None
    )
    await monitor.start()
    return results[0] if results else None
