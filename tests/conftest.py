"""Shared test fixtures."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from task_purge.app import app
from task_purge.config import AppConfig

CONTROL_SECRET = "test-secret"


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Config with a control secret and a throwaway settings file."""
    return AppConfig(
        control_secret=CONTROL_SECRET,
        settings_store_path=str(tmp_path / "settings.json"),
    )


@pytest.fixture
def client(app_config: AppConfig):
    """TestClient with the lifespan running (store and registry on app.state)."""
    with (
        patch("task_purge.app.get_config", return_value=app_config),
        TestClient(app) as test_client,
    ):
        yield test_client
