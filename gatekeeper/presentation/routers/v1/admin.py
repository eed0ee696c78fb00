from typing import Annotated

from fastapi import APIRouter, Depends

from gatekeeper.application.dashboard import unseen_counts
from gatekeeper.application.watermarks import WatermarkTracker
from gatekeeper.coordination import Coordination
from gatekeeper.domain.ports.notification_counts import NotificationCountsPort
from gatekeeper.presentation.dependencies import (
    get_coordination,
    get_notification_counts,
    get_watermark_tracker,
    require_admin,
)
from gatekeeper.schemas.requests import SeenIn
from gatekeeper.schemas.responses import (
    PendingApprovalStatusOut,
    PresentAdminOut,
    RealtimeStatusOut,
    SeenOut,
)

router = APIRouter(
    prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)]
)


@router.post("/dashboard/seen", response_model=SeenOut)
async def post_dashboard_seen(
    body: SeenIn,
    tracker: Annotated[WatermarkTracker, Depends(get_watermark_tracker)],
):
    seen_at = await tracker.mark_seen(body.section)
    return SeenOut(message=f"{body.section.value} marked as seen", seen_at=seen_at)


@router.get("/dashboard/notifications")
async def get_dashboard_notifications(
    tracker: Annotated[WatermarkTracker, Depends(get_watermark_tracker)],
    counts: Annotated[NotificationCountsPort, Depends(get_notification_counts)],
) -> dict[str, int]:
    return await unseen_counts(tracker, counts)


@router.get("/realtime/status", response_model=RealtimeStatusOut)
def get_realtime_status(
    coordination: Annotated[Coordination, Depends(get_coordination)],
):
    return RealtimeStatusOut(
        connections=len(coordination.hub),
        present_admins=[
            PresentAdminOut(
                id=r.admin_id, name=r.display_name, connected_at=r.connected_at
            )
            for r in coordination.presence.records()
        ],
        pending_approvals=[
            PendingApprovalStatusOut(
                approval_id=p.approval_id,
                requesting_admin_name=p.requesting_admin_name,
                requester_attached=p.requester_channel_address is not None,
            )
            for p in coordination.approvals.pending_approvals()
        ],
    )
