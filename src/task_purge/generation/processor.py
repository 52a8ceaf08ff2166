"""Reminder generation via Gemini with retries under a hard timeout."""

import asyncio
import logging

from google import genai
from google.genai import types
from google.genai.errors import ClientError, ServerError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from task_purge.errors import GenerationError
from task_purge.generation.prompts import GEMINI_MODEL, MAX_OUTPUT_TOKENS, build_reminder_prompt
from task_purge.generation.schemas import ReminderRequest

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    """Server errors (5xx) and rate limits (429) are transient; everything else is not."""
    if isinstance(error, ServerError):
        return True
    if isinstance(error, ClientError) and error.code == 429:
        return True
    return False


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential_jitter(initial=0.5, max=2, jitter=0.5),
    stop=stop_after_attempt(3),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _call_gemini(client: genai.Client, prompt: str) -> object:
    """Call Gemini for a plain-text reminder, retrying on transient errors."""
    return await client.aio.models.generate_content(
        model=GEMINI_MODEL,
        contents=prompt,
        config=types.GenerateContentConfig(
            max_output_tokens=MAX_OUTPUT_TOKENS,
            temperature=1.0,
        ),
    )


async def generate_reminder(
    client: genai.Client, request: ReminderRequest, timeout_seconds: float
) -> str:
    """Generate a short spoken reminder for one task.

    Raises:
        TimeoutError: the whole generation (retries included) exceeded the budget.
        GenerationError: the model returned no text.
        APIError: on non-retryable or exhausted Gemini API errors.
    """
    prompt = build_reminder_prompt(request)
    async with asyncio.timeout(timeout_seconds):
        response = await _call_gemini(client, prompt)

    message = (getattr(response, "text", None) or "").strip()
    if not message:
        raise GenerationError()

    logger.info(
        "Reminder generated",
        extra={"task": request.task_name, "overdue": request.is_overdue, "chars": len(message)},
    )
    return message
