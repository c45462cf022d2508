import os
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="alerta-tests-"))

TEST_ENV = {
    "ENVIRONMENT": "test",
    "DATA_DIR": str(_TMP_DIR),
    "DATABASE_URL": f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}",
    "REDIS_URL": "",
    "RATE_LIMIT_ENABLED": "false",
    "LOG_LEVEL": "WARNING",
    "BOOTSTRAP_ADMIN_EMAIL": "",
    "BOOTSTRAP_ADMIN_PASSWORD": "",
    "SESSION_SECRET": "test-session-secret-0123456789abcdef0123456789abcd",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value

import httpx  # noqa: E402

from alerta.core.auth import create_access_token  # noqa: E402
from alerta.core.db import async_session, init_models  # noqa: E402
from alerta.core.settings import get_settings  # noqa: E402
from alerta.domain.base import Base  # noqa: E402


async def _wipe_db():
    """Delete every row, children first."""
    async with async_session() as session:
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(table.delete())
        await session.commit()


@pytest.fixture(autouse=True)
async def _clean_database_between_tests(request):
    """Create the schema once and wipe all tables before each test."""
    if "no_db_cleanup" in request.keywords:
        return
    await init_models()
    await _wipe_db()


@pytest.fixture
def app():
    from alerta.apps.admin_ui.app import create_app

    application = create_app()
    # The lifespan is not run under ASGITransport; keep the cache in memory.
    application.state.query_cache.persister = None
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


def _login_as(http_client: httpx.AsyncClient, profile: dict) -> httpx.AsyncClient:
    """Attach an access-token cookie for ``profile`` to the client."""
    token = create_access_token(
        {"sub": profile["id"], "role": profile["role"], "email": profile["email"]}
    )
    http_client.cookies.set(get_settings().auth_cookie_name, token)
    return http_client


@pytest.fixture
def login_as():
    return _login_as


@pytest.fixture
def make_profile():
    from alerta.apps.admin_ui.services.profiles import create_profile

    counter = {"n": 0}

    async def _make(role: str = "Admin", **overrides) -> dict:
        counter["n"] += 1
        data = {
            "name": f"Usuario {counter['n']}",
            "email": f"user{counter['n']}@colegio.edu",
            "password": "secreto123",
            "role": role,
        }
        data.update(overrides)
        return await create_profile(**data)

    return _make


@pytest.fixture
async def admin(make_profile):
    return await make_profile("Admin", name="Ada Admin", email="admin@colegio.edu")


@pytest.fixture
async def admin_client(client, admin):
    return _login_as(client, admin)
