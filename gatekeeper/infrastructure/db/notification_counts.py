from __future__ import annotations

from datetime import datetime

from psycopg_pool import AsyncConnectionPool

from gatekeeper.domain.entities import NotificationCategory
from gatekeeper.domain.ports.notification_counts import NotificationCountsPort

# Tables are owned by the ordering platform; only their created_at and
# status columns are read here.
_COUNT_SQL: dict[NotificationCategory, str] = {
    NotificationCategory.ORDERS: (
        "SELECT COUNT(*) FROM orders WHERE status = 'Pending' AND created_at > %s"
    ),
    NotificationCategory.RESERVATIONS: (
        "SELECT COUNT(*) FROM reservations WHERE status = 'Pending' AND created_at > %s"
    ),
    NotificationCategory.PAYMENTS: (
        "SELECT COUNT(*) FROM payments WHERE status = 'Pending' AND created_at > %s"
    ),
    NotificationCategory.MESSAGES: (
        "SELECT COUNT(*) FROM contacts WHERE read = FALSE AND created_at > %s"
    ),
    NotificationCategory.PRODUCTS: (
        "SELECT COUNT(*) FROM products WHERE created_at > %s"
    ),
}


class PgNotificationCounts(NotificationCountsPort):
    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def count_since(self, category: NotificationCategory, since: datetime) -> int:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(_COUNT_SQL[category], (since,))
                row = await cur.fetchone()
        return int(row[0]) if row else 0
