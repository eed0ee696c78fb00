from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from gatekeeper.domain.entities import NotificationCategory, Watermark
from gatekeeper.domain.ports.watermark_repository import WatermarkRepositoryPort
from gatekeeper.domain.services import utcnow

logger = logging.getLogger(__name__)


class WatermarkTracker:
    """
    Per-category "last seen" instants for the admin console.

    Anything created after a category's watermark counts as unseen; the
    counting itself belongs to the dashboard query path.
    """

    def __init__(
        self,
        repository: WatermarkRepositoryPort,
        *,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._now = now

    async def snapshot(self) -> Watermark:
        return await self._repository.get_or_create(self._now())

    async def get_watermark(self, category: NotificationCategory) -> datetime:
        watermark = await self.snapshot()
        return watermark.get(category)

    async def mark_seen(self, category: NotificationCategory) -> datetime:
        now = self._now()
        await self._repository.get_or_create(now)
        await self._repository.set(category, now)
        logger.info("section marked as seen", extra={"section": category.value})
        return now
