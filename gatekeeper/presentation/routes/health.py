from typing import Annotated

from fastapi import APIRouter, Depends

from gatekeeper.coordination import Coordination
from gatekeeper.presentation.dependencies import get_coordination

router = APIRouter()


@router.get("/healthz")
def healthz(
    coordination: Annotated[Coordination, Depends(get_coordination)],
) -> dict:
    return {
        "status": "ok",
        "realtimeConnections": len(coordination.hub),
        "adminsPresent": len(coordination.presence),
        "pendingApprovals": len(coordination.pending_approvals),
        "sweeperRunning": coordination.sweeper.running,
    }
