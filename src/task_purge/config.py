"""Application configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Service configuration loaded from environment variables and .env file.

    Per-user values (access token, watched person, poll interval) live in the
    settings store, not here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Board API (monday.com GraphQL)
    board_api_url: str = "https://api.monday.com/v2"
    board_api_version: str = "2024-10"
    board_request_timeout_seconds: float = 30.0
    board_list_limit: int = 50
    board_page_limit: int = 500

    # Message generation
    generation_api_url: str = "http://localhost:8080/api/message"
    generation_timeout_seconds: float = 5.0
    generation_api_key: str = ""
    gemini_api_key: str = ""

    # Monitor
    announce_pause_seconds: float = 0.5
    countdown_tick_seconds: float = 1.0
    reference_timezone: str = "Asia/Tokyo"
    poll_interval_min_ms: int = 60_000
    poll_interval_max_ms: int = 3_600_000

    # Storage and speech
    settings_store_path: str = ".task_purge/settings.json"
    speech_command: str = ""

    # App
    control_secret: str = ""
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8080


@lru_cache
def get_config() -> AppConfig:
    """Return cached application config. Lazy initialization to avoid import-time errors."""
    return AppConfig()
