from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _CamelOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageOut(BaseModel):
    message: str


class SignupOut(BaseModel):
    email: str = Field(..., description="Where the verification code was sent")
    message: str = "verification code sent"


class UserOut(_CamelOut):
    id: str
    name: str
    email: str
    role: str
    is_admin: bool = Field(..., alias="isAdmin")


class AuthOut(BaseModel):
    user: UserOut
    token: str


class PendingApprovalOut(_CamelOut):
    status: Literal["pending_approval"] = "pending_approval"
    approval_id: str = Field(..., alias="approvalId")
    message: str = "waiting for an administrator to approve this login"


class VerifyResetOut(_CamelOut):
    verified: bool = True
    reset_token: str = Field(..., alias="resetToken")


class SeenOut(_CamelOut):
    message: str
    seen_at: datetime = Field(..., alias="seenAt")


class PresentAdminOut(_CamelOut):
    id: str
    name: str
    connected_at: datetime = Field(..., alias="connectedAt")


class PendingApprovalStatusOut(_CamelOut):
    approval_id: str = Field(..., alias="approvalId")
    requesting_admin_name: str = Field(..., alias="requestingAdminName")
    requester_attached: bool = Field(..., alias="requesterAttached")


class RealtimeStatusOut(_CamelOut):
    connections: int
    present_admins: list[PresentAdminOut] = Field(..., alias="presentAdmins")
    pending_approvals: list[PendingApprovalStatusOut] = Field(
        ..., alias="pendingApprovals"
    )
