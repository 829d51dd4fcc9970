"""Integration-test fixtures.

Requires live PostgreSQL (migrated with `alembic upgrade head`) and Redis, e.g.
`docker compose up -d`. All integration tests share a single event-loop so that
the module-level SQLAlchemy async engine pool and Redis pool remain valid across
the entire test session.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.cm_common.redis_client import close_redis
from src.main import app

ADMIN_EMAIL = "treasurer@example.org"
ADMIN_TOKEN = "integration-admin-token"
CRON_SECRET = "integration-cron-secret"


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    settings.ADMIN_TOKEN = ADMIN_TOKEN
    settings.ADMIN_EMAILS = ADMIN_EMAIL
    settings.CRON_SECRET = CRON_SECRET
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await close_redis()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN, "X-Admin-Email": ADMIN_EMAIL}
