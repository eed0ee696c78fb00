import asyncio
import time

import pytest_asyncio
from psycopg_pool import AsyncConnectionPool

from gatekeeper.infrastructure.db.pool import close_pool, open_pool


async def _wait_pool_ready(p: AsyncConnectionPool, timeout: float = 30.0) -> None:
    """Retry a trivial SELECT until Postgres accepts connections."""
    deadline = time.monotonic() + timeout
    last_exc: Exception | None = None
    while time.monotonic() < deadline:
        try:
            async with p.connection(timeout=1) as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1;")
                    await cur.fetchone()
            return
        except Exception as e:  # noqa: BLE001
            last_exc = e
            await asyncio.sleep(0.5)
    if last_exc:
        raise last_exc
    raise TimeoutError("database not ready")


async def _truncate(p: AsyncConnectionPool, *tables: str) -> None:
    async with p.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                for table in tables:
                    await cur.execute(f"TRUNCATE {table} RESTART IDENTITY CASCADE;")


@pytest_asyncio.fixture
async def pool() -> AsyncConnectionPool:
    # function scoped: the pool's connections belong to the test's event loop
    p = await open_pool()
    await _wait_pool_ready(p)
    try:
        yield p
    finally:
        await close_pool()


@pytest_asyncio.fixture
async def truncate_outbox(pool: AsyncConnectionPool):
    await _truncate(pool, "outbox")
    yield
    await _truncate(pool, "outbox")


@pytest_asyncio.fixture
async def truncate_users(pool: AsyncConnectionPool):
    await _truncate(pool, "users")
    yield
    await _truncate(pool, "users")


@pytest_asyncio.fixture
async def truncate_watermarks(pool: AsyncConnectionPool):
    await _truncate(pool, "admin_watermarks", "orders", "contacts")
    yield
    await _truncate(pool, "admin_watermarks", "orders", "contacts")
