import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from alerta.core import settings as settings_module
from alerta.core.env import load_env

pytestmark = pytest.mark.no_db_cleanup

STRONG_SECRET = "test-session-secret-0123456789abcdef0123456789abcd"


@pytest.fixture(autouse=True)
def _fresh_settings():
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


def _configure_env(monkeypatch, tmp_path: Path, **overrides) -> None:
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SESSION_SECRET", STRONG_SECRET)
    for key, value in overrides.items():
        monkeypatch.setenv(key, value)


def test_invalid_numbers_fall_back_to_defaults(monkeypatch, tmp_path):
    _configure_env(
        monkeypatch,
        tmp_path,
        RATE_LIMIT_MAX_REQUESTS="lots",
        RATE_LIMIT_WINDOW_SECONDS="0",
        QUERY_CACHE_MAX_AGE_SECONDS="-5",
    )

    settings = settings_module.get_settings()

    assert settings.rate_limit_max_requests == 100
    assert settings.rate_limit_window_seconds == 60
    assert settings.query_cache_max_age_seconds == 24 * 60 * 60
    assert settings.query_cache_buster == "v1"


def test_plain_database_urls_use_async_drivers(monkeypatch, tmp_path):
    _configure_env(monkeypatch, tmp_path, DATABASE_URL="postgres://u:p@db:5432/alerta")

    settings = settings_module.get_settings()

    assert settings.database_url_async == "postgresql+asyncpg://u:p@db:5432/alerta"


def test_unknown_environment_is_development(monkeypatch, tmp_path):
    _configure_env(monkeypatch, tmp_path, ENVIRONMENT="qa")
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)

    settings = settings_module.get_settings()

    assert settings.environment == "development"
    assert settings.rate_limit_enabled is True
    assert settings.docs_enabled is True


@pytest.mark.parametrize("secret", ["change-me", "too-short"])
def test_weak_session_secret_is_rejected(monkeypatch, tmp_path, secret):
    _configure_env(monkeypatch, tmp_path, SESSION_SECRET=secret)

    with pytest.raises(ValueError):
        settings_module.get_settings()


def test_production_requires_database_url(monkeypatch, tmp_path):
    _configure_env(monkeypatch, tmp_path, ENVIRONMENT="production", DATABASE_URL="")

    with pytest.raises(RuntimeError):
        settings_module.get_settings()


def test_dotenv_never_overrides_shell(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nexport ALERTA_FROM_FILE='archivo'\nALERTA_SHELL=archivo\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ALERTA_SHELL", "shell")
    monkeypatch.delenv("ALERTA_FROM_FILE", raising=False)

    load_env(env_file)

    assert os.environ["ALERTA_FROM_FILE"] == "archivo"
    assert os.environ["ALERTA_SHELL"] == "shell"
    monkeypatch.delenv("ALERTA_FROM_FILE")


def test_create_app_registers_routes(monkeypatch, tmp_path):
    _configure_env(monkeypatch, tmp_path, DOCS_ENABLED="0")
    from alerta.apps.admin_ui import app as app_module

    app = app_module.create_app()
    paths = {route.path for route in app.routes if hasattr(route, "path")}

    assert {"/login", "/health", "/api/auth/login", "/api/admin/bulk-import-users"} <= paths
    assert "/docs" not in paths

    response = TestClient(app).get("/login")
    assert response.status_code == 200
    assert "/api/auth/login" in response.text
