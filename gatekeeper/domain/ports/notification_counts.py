from __future__ import annotations

from datetime import datetime
from typing import Protocol

from gatekeeper.domain.entities import NotificationCategory


class NotificationCountsPort(Protocol):
    async def count_since(self, category: NotificationCategory, since: datetime) -> int:
        """Number of notifiable events in ``category`` created strictly after ``since``."""
