from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings, get_settings
from app.main import create_app
from tests.helpers import TEST_SECRET, login_headers


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}"


@pytest.fixture
def settings_env(monkeypatch, database_url) -> Settings:
    """Point the application at a throwaway SQLite database."""
    monkeypatch.setenv("EXCEL_VAULT_DATABASE_URL", database_url)
    monkeypatch.setenv("EXCEL_VAULT_SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("EXCEL_VAULT_ENVIRONMENT", "test")
    monkeypatch.setenv("EXCEL_VAULT_STATIC_DIR", "")
    monkeypatch.setenv("EXCEL_VAULT_DB_RETRY_DELAY_SECONDS", "0")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def make_settings(database_url):
    def _make(**overrides) -> Settings:
        values = {
            "database_url": database_url,
            "secret_key": TEST_SECRET,
            "environment": "test",
            "db_retry_delay_seconds": 0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def client(settings_env):
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client) -> dict:
    return login_headers(client, "admin123")


@pytest.fixture
def guest_headers(client) -> dict:
    return login_headers(client, "guest123")
