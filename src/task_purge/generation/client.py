"""Gemini client used by the reminder endpoint.

Built lazily on the first request so the service starts (and serves the
monitor routes) without GEMINI_API_KEY. The client's own HTTP timeout is the
endpoint's generation budget; retries live in ``processor.py``.
"""

import functools

from google import genai
from google.genai import types

from task_purge.config import get_config
from task_purge.errors import GenerationError


@functools.lru_cache(maxsize=1)
def get_gemini_client() -> genai.Client:
    """Shared genai.Client for the process.

    Raises:
        GenerationError: GEMINI_API_KEY is not configured.
    """
    config = get_config()
    if not config.gemini_api_key:
        raise GenerationError("GEMINI_API_KEY が設定されていません。")
    timeout_ms = int(config.generation_timeout_seconds * 1000)
    return genai.Client(
        api_key=config.gemini_api_key,
        http_options=types.HttpOptions(timeout=timeout_ms),
    )


def reset_client() -> None:
    """Drop the shared client so the next call rebuilds it from current config."""
    get_gemini_client.cache_clear()
