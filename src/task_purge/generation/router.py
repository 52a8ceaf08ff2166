"""Message-generation endpoint guarded by an API key header."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from google.genai.errors import APIError, ClientError

from task_purge.config import get_config
from task_purge.errors import GenerationError
from task_purge.generation.client import get_gemini_client
from task_purge.generation.processor import generate_reminder
from task_purge.generation.schemas import ReminderRequest, ReminderResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generation"])


async def verify_generation_key(request: Request) -> None:
    """Compare the X-Api-Key header against the configured generation key.

    Raises HTTPException 403 if the header is missing, empty, or mismatched,
    or if no key is configured.
    """
    config = get_config()
    key = request.headers.get("X-Api-Key", "")
    if not config.generation_api_key or key != config.generation_api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")


@router.post("/message", response_model=ReminderResponse)
async def generate_message(
    body: ReminderRequest, _: None = Depends(verify_generation_key)
) -> ReminderResponse:
    """Generate a short reminder message for a task."""
    config = get_config()
    try:
        message = await generate_reminder(
            get_gemini_client(), body, config.generation_timeout_seconds
        )
    except TimeoutError:
        logger.warning("Reminder generation timed out: %s", body.task_name)
        raise HTTPException(status_code=504, detail="Request timeout")
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    except ClientError as exc:
        if exc.code == 429:
            raise HTTPException(status_code=429, detail="Rate limit exceeded")
        logger.error("Gemini rejected reminder request", exc_info=True)
        raise HTTPException(status_code=502, detail="Model API error")
    except APIError:
        logger.error("Gemini API error generating reminder", exc_info=True)
        raise HTTPException(status_code=502, detail="Model API error")
    return ReminderResponse(message=message)
