"""Utterance player tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from task_purge.config import AppConfig
from task_purge.errors import UtteranceError
from task_purge.speech.player import CommandPlayer, LogPlayer, SerializedPlayer, build_player


def _process(returncode: int, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(None, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


async def test_log_player_records_text():
    player = LogPlayer()
    await player.speak("hello")
    assert player.spoken == ["hello"]


async def test_command_player_appends_text():
    with patch(
        "task_purge.speech.player.asyncio.create_subprocess_exec",
        new_callable=AsyncMock,
        return_value=_process(0),
    ) as mock_exec:
        await CommandPlayer(["say", "-v", "Kyoko"]).speak("今日が期限です。")

    args = mock_exec.await_args.args
    assert args == ("say", "-v", "Kyoko", "今日が期限です。")


async def test_command_player_nonzero_exit_raises():
    with patch(
        "task_purge.speech.player.asyncio.create_subprocess_exec",
        new_callable=AsyncMock,
        return_value=_process(1, b"no voice"),
    ):
        with pytest.raises(UtteranceError):
            await CommandPlayer(["say"]).speak("hi")


async def test_command_player_missing_binary_raises():
    with patch(
        "task_purge.speech.player.asyncio.create_subprocess_exec",
        new_callable=AsyncMock,
        side_effect=FileNotFoundError("say"),
    ):
        with pytest.raises(UtteranceError):
            await CommandPlayer(["say"]).speak("hi")


async def test_command_player_timeout_kills_process():
    process = _process(0)

    async def hang():
        await asyncio.sleep(5)

    process.communicate = AsyncMock(side_effect=hang)
    with patch(
        "task_purge.speech.player.asyncio.create_subprocess_exec",
        new_callable=AsyncMock,
        return_value=process,
    ):
        with pytest.raises(UtteranceError):
            await CommandPlayer(["say"], timeout_seconds=0.05).speak("hi")

    process.kill.assert_called_once()


def test_command_player_requires_command():
    with pytest.raises(ValueError):
        CommandPlayer([])


def test_build_player_selects_command_player():
    assert isinstance(build_player(AppConfig(speech_command="espeak-ng -v ja")), CommandPlayer)
    assert isinstance(build_player(AppConfig(speech_command="")), LogPlayer)


async def test_serialized_player_never_overlaps():
    class SlowPlayer:
        def __init__(self) -> None:
            self.spoken: list[str] = []
            self.active = 0
            self.max_active = 0

        async def speak(self, text: str) -> None:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            await asyncio.sleep(0.01)
            self.spoken.append(text)
            self.active -= 1

    inner = SlowPlayer()
    player = SerializedPlayer(inner)

    await asyncio.gather(player.speak("one"), player.speak("two"), player.speak("three"))

    assert inner.max_active == 1
    assert sorted(inner.spoken) == ["one", "three", "two"]


async def test_serialized_player_releases_after_failure():
    class FlakyPlayer:
        def __init__(self) -> None:
            self.calls = 0

        async def speak(self, text: str) -> None:
            self.calls += 1
            if self.calls == 1:
                raise UtteranceError()

    player = SerializedPlayer(FlakyPlayer())
    with pytest.raises(UtteranceError):
        await player.speak("one")
    await player.speak("two")
