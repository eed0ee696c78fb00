from __future__ import annotations

from gatekeeper.application.watermarks import WatermarkTracker
from gatekeeper.domain.entities import NotificationCategory
from gatekeeper.domain.ports.notification_counts import NotificationCountsPort


async def unseen_counts(
    tracker: WatermarkTracker, counts: NotificationCountsPort
) -> dict[str, int]:
    watermark = await tracker.snapshot()
    result: dict[str, int] = {}
    for category in NotificationCategory:
        result[category.value] = await counts.count_since(
            category, watermark.get(category)
        )
    result["total"] = sum(result.values())
    return result
