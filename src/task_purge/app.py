"""FastAPI application: health, settings, board lookups, monitor control and message generation."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request

from task_purge.boards.client import BoardClient
from task_purge.config import get_config
from task_purge.errors import (
    AuthError,
    ConfigError,
    RateLimitError,
    TaskPurgeError,
    UtteranceError,
)
from task_purge.generation.router import router as generation_router
from task_purge.logging_config import configure_logging
from task_purge.models.settings import MonitorSettings
from task_purge.models.state import MonitorState
from task_purge.monitor.registry import MonitorRegistry
from task_purge.monitor.render import render_tasks
from task_purge.speech.player import build_player
from task_purge.store import JsonFileSettingsStore

SPEECH_TEST_MESSAGE = "音声テストです。タスクが残っています。"

# Masked by GET /settings; a PUT that omits them keeps the stored values.
_CREDENTIAL_FIELDS = ("access_token", "generation_api_key")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and build the settings store and monitor registry."""
    config = get_config()
    configure_logging(config.log_level)
    store = JsonFileSettingsStore(config.settings_store_path)
    app.state.config = config
    app.state.store = store
    app.state.registry = MonitorRegistry(store, config, build_player(config))
    yield
    await app.state.registry.aclose()


app = FastAPI(
    title="Task Purge",
    lifespan=lifespan,
)
app.include_router(generation_router)


async def verify_control_secret(request: Request) -> None:
    """Verify the control secret header for protected endpoints.

    Compares the X-Control-Secret header against the configured secret.
    Raises HTTPException 403 if the header is missing, empty, or mismatched.
    """
    config = get_config()
    secret = request.headers.get("X-Control-Secret", "")
    if not config.control_secret or secret != config.control_secret:
        raise HTTPException(status_code=403, detail="Invalid control secret")


def _state_body(state: MonitorState) -> dict:
    body = state.model_dump(mode="json", by_alias=True)
    body["lines"] = render_tasks(state.tasks)
    return body


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "task-purge",
        "version": "0.1.0",
    }


@app.get("/settings/{user_id}", dependencies=[Depends(verify_control_secret)])
async def read_settings(user_id: str, request: Request):
    """Return stored settings with credentials masked."""
    settings = await request.app.state.store.load(user_id)
    if settings is None:
        raise HTTPException(status_code=404, detail="Settings not found")
    body = settings.model_dump(
        mode="json", by_alias=True, exclude={"access_token", "generation_api_key"}
    )
    body["hasAccessToken"] = bool(settings.access_token)
    body["hasGenerationApiKey"] = bool(settings.generation_api_key)
    body["configured"] = settings.is_complete
    return body


@app.put("/settings/{user_id}", dependencies=[Depends(verify_control_secret)])
async def write_settings(user_id: str, settings: MonitorSettings, request: Request):
    """Upsert the user's settings. Takes effect on the next monitor start.

    Credentials missing from the body are kept from the stored document. A
    newly supplied access token is checked against the board API first.
    """
    store = request.app.state.store
    token_supplied = "access_token" in settings.model_fields_set and bool(settings.access_token)
    stored = await store.load(user_id)
    if stored is not None:
        kept = {
            field: getattr(stored, field)
            for field in _CREDENTIAL_FIELDS
            if field not in settings.model_fields_set
        }
        settings = settings.model_copy(update=kept)

    if token_supplied:
        try:
            async with BoardClient(settings.access_token, config=get_config()) as client:
                valid = await client.validate_token()
        except TaskPurgeError as exc:
            raise _board_http_error(exc)
        if not valid:
            raise HTTPException(status_code=400, detail=AuthError().message)

    await store.save(user_id, settings)
    return {"status": "saved", "configured": settings.is_complete}


@app.post("/monitors/{user_id}/start", dependencies=[Depends(verify_control_secret)])
async def start_monitor(user_id: str, request: Request):
    """Start monitoring; returns after the first cycle completes."""
    try:
        state = await request.app.state.registry.start(user_id)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return _state_body(state)


@app.post("/monitors/{user_id}/stop", dependencies=[Depends(verify_control_secret)])
async def stop_monitor(user_id: str, request: Request):
    """Stop monitoring. An in-flight cycle still runs to completion."""
    state = await request.app.state.registry.stop(user_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return _state_body(state)


@app.get("/monitors/{user_id}", dependencies=[Depends(verify_control_secret)])
async def monitor_status(user_id: str, request: Request):
    """Current phase, countdown, last error and rendered task lines."""
    state = request.app.state.registry.status(user_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return _state_body(state)


def _board_http_error(exc: TaskPurgeError) -> HTTPException:
    if isinstance(exc, AuthError):
        return HTTPException(status_code=401, detail=exc.message)
    if isinstance(exc, RateLimitError):
        return HTTPException(status_code=429, detail=exc.message)
    return HTTPException(status_code=502, detail=exc.message)


async def board_token(x_board_token: str = Header(default="")) -> str:
    """Board API token supplied by the settings screen before it is saved."""
    if not x_board_token.strip():
        raise HTTPException(status_code=400, detail="X-Board-Token header is required")
    return x_board_token.strip()


@app.get("/boards", dependencies=[Depends(verify_control_secret)])
async def list_boards(token: str = Depends(board_token)):
    """Boards visible to the token, for picking a single board."""
    try:
        async with BoardClient(token, config=get_config()) as client:
            boards = await client.list_boards()
    except TaskPurgeError as exc:
        raise _board_http_error(exc)
    return [board.model_dump() for board in boards]


@app.get("/boards/{board_id}/columns", dependencies=[Depends(verify_control_secret)])
async def list_board_columns(board_id: str, token: str = Depends(board_token)):
    """Columns of one board, for pinning explicit column ids."""
    try:
        async with BoardClient(token, config=get_config()) as client:
            columns = await client.list_columns(board_id)
    except TaskPurgeError as exc:
        raise _board_http_error(exc)
    return [column.model_dump() for column in columns]


@app.get("/boards/{board_id}/subscribers", dependencies=[Depends(verify_control_secret)])
async def list_board_subscribers(board_id: str, token: str = Depends(board_token)):
    """People subscribed to a board, for picking the watched person."""
    try:
        async with BoardClient(token, config=get_config()) as client:
            users = await client.list_subscribers(board_id)
    except TaskPurgeError as exc:
        raise _board_http_error(exc)
    return [user.model_dump() for user in users]


@app.post("/speech/test", dependencies=[Depends(verify_control_secret)])
async def speak_test_phrase(request: Request):
    """Speak a fixed test phrase through the shared player."""
    try:
        await request.app.state.registry.player.speak(SPEECH_TEST_MESSAGE)
    except UtteranceError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    return {"status": "spoken", "message": SPEECH_TEST_MESSAGE}
