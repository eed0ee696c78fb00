import os

import pytest_asyncio
from redis.asyncio import Redis

from tests.integration.db_fixtures import (  # noqa: F401
    pool,
    truncate_outbox,
    truncate_users,
    truncate_watermarks,
)

# These talk to the real Postgres and Redis from docker compose.
if os.environ.get("RUN_INTEGRATION") != "1":
    collect_ignore_glob = ["test_*.py"]


@pytest_asyncio.fixture
async def redis_client():
    url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
    r = Redis.from_url(url, encoding="utf-8", decode_responses=True)
    try:
        yield r
    finally:
        await r.aclose()
