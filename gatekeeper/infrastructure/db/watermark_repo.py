from __future__ import annotations

from datetime import datetime

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from gatekeeper.domain.entities import NotificationCategory, Watermark
from gatekeeper.domain.ports.watermark_repository import WatermarkRepositoryPort


class PgWatermarkRepository(WatermarkRepositoryPort):
    """
    Single-row table ``admin_watermarks`` (id = 1). Each call runs in its own
    short transaction; watermarks never need to commit together with anything.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def get_or_create(self, now: datetime) -> Watermark:
        query = """
        WITH ins AS (
            INSERT INTO admin_watermarks
                (id, orders, reservations, payments, messages, products, created_at)
            VALUES (1, %(now)s, %(now)s, %(now)s, %(now)s, %(now)s, %(now)s)
            ON CONFLICT (id) DO NOTHING
            RETURNING orders, reservations, payments, messages, products, created_at
        )
        SELECT * FROM ins
        UNION ALL
        SELECT orders, reservations, payments, messages, products, created_at
        FROM admin_watermarks
        WHERE id = 1 AND NOT EXISTS (SELECT 1 FROM ins)
        LIMIT 1;
        """
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(query, {"now": now})
                    row = await cur.fetchone()

        orders, reservations, payments, messages, products, created_at = row
        return Watermark(
            orders=orders,
            reservations=reservations,
            payments=payments,
            messages=messages,
            products=products,
            created_at=created_at,
        )

    async def set(self, category: NotificationCategory, when: datetime) -> None:
        query = sql.SQL(
            "UPDATE admin_watermarks SET {col} = %s, updated_at = NOW() WHERE id = 1"
        ).format(col=sql.Identifier(category.value))
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(query, (when,))
