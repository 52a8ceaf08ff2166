"""Reminder text: remote generation with a deterministic fallback template."""

import asyncio
import logging

import httpx

from task_purge.config import AppConfig, get_config
from task_purge.models.task import UrgentTask

logger = logging.getLogger(__name__)

DUE_TODAY_PHRASE = "今日が期限です。"
OVERDUE_PHRASE = "期限が過ぎています。"


def build_fallback_message(task: UrgentTask) -> str:
    """Deterministic reminder: ``<board> — <task>, <phrase>`` (board omitted when empty)."""
    phrase = OVERDUE_PHRASE if task.overdue else DUE_TODAY_PHRASE
    if task.board_name:
        return f"{task.board_name} — {task.name}, {phrase}"
    return f"{task.name}, {phrase}"


class MessageGenerator:
    """Client for the message-generation backend.

    Every failure is soft: ``generate`` returns None and the caller falls back
    to the template. The timeout is a hard wall-clock budget around the whole
    request, not only the socket timeouts.
    """

    def __init__(
        self,
        api_key: str,
        config: AppConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_config()
        self._api_key = api_key
        self._timeout = self._config.generation_timeout_seconds
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def generate(self, task: UrgentTask) -> str | None:
        """Ask the backend for a short reminder. Returns None on any failure."""
        body = {
            "boardName": task.board_name,
            "taskName": task.name,
            "priority": task.priority.value,
            "isOverdue": task.overdue,
        }
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._http.post(
                    self._config.generation_api_url,
                    json=body,
                    headers={"X-Api-Key": self._api_key},
                )
        except TimeoutError:
            logger.warning("Message generation timed out after %.1fs: %s", self._timeout, task.name)
            return None
        except httpx.HTTPError as exc:
            logger.warning("Message generation request failed: %s (%s)", task.name, exc)
            return None

        if not response.is_success:
            logger.warning(
                "Message generation returned HTTP %d: %s", response.status_code, task.name
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Message generation returned non-JSON body: %s", task.name)
            return None

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str) or not message.strip():
            logger.warning("Message generation returned no text: %s", task.name)
            return None
        return message.strip()
