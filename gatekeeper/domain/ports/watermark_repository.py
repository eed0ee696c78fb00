from __future__ import annotations

from datetime import datetime
from typing import Protocol

from gatekeeper.domain.entities import NotificationCategory, Watermark


class WatermarkRepositoryPort(Protocol):
    async def get_or_create(self, now: datetime) -> Watermark:
        """Return the singleton watermark, creating it stamped with ``now``."""

    async def set(self, category: NotificationCategory, when: datetime) -> None:
        """Move one category's watermark to ``when``."""
