from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from gatekeeper.domain.errors import InvalidStatusTransition

Role = Literal["user", "admin"]


@dataclass
class User:
    id: str | None = None
    email: str | None = None
    name: str = ""
    role: Role = "user"
    is_active: bool = True
    created_at: datetime | None = None

    def __post_init__(self):
        if self.email:
            self.email = self.email.strip().lower()
            if not self.email:
                raise ValueError("email cannot be empty")
        else:
            raise ValueError("email is required")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isAdmin": self.is_admin,
        }


class Purpose(str, Enum):
    SIGNUP = "signup"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class VerificationTicket:
    salt_b64: str
    digest_b64: str
    purpose: Purpose
    last_sent_at: datetime


@dataclass(frozen=True)
class PendingAccount:
    name: str
    email: str
    password_hash: str
    role: Role = "user"


@dataclass(frozen=True)
class ResetGrant:
    email: str
    token: str


@dataclass(frozen=True)
class AdminPresenceRecord:
    admin_id: str
    channel_address: str
    display_name: str
    connected_at: datetime


class ApprovalState(str, Enum):
    DIRECT = "direct"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalEvent(str, Enum):
    SKIP = "skip"
    PARK = "park"
    APPROVE = "approve"
    REJECT = "reject"
    TIMEOUT = "timeout"


# None is the state of a login attempt that has passed credential checks
# but has not been routed yet.
_TRANSITIONS: dict[tuple[ApprovalState | None, ApprovalEvent], ApprovalState] = {
    (None, ApprovalEvent.SKIP): ApprovalState.DIRECT,
    (None, ApprovalEvent.PARK): ApprovalState.AWAITING_APPROVAL,
    (ApprovalState.AWAITING_APPROVAL, ApprovalEvent.APPROVE): ApprovalState.APPROVED,
    (ApprovalState.AWAITING_APPROVAL, ApprovalEvent.REJECT): ApprovalState.REJECTED,
    (ApprovalState.AWAITING_APPROVAL, ApprovalEvent.TIMEOUT): ApprovalState.EXPIRED,
}

TERMINAL_STATES = frozenset(
    {
        ApprovalState.DIRECT,
        ApprovalState.APPROVED,
        ApprovalState.REJECTED,
        ApprovalState.EXPIRED,
    }
)


def transition(state: ApprovalState | None, event: ApprovalEvent) -> ApprovalState:
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidStatusTransition(f"{event.value} not allowed from {state}")


@dataclass
class PendingApproval:
    approval_id: str
    requesting_admin_id: str
    requesting_admin_name: str
    requesting_admin_email: str
    requesting_admin_role: Role = "admin"
    requester_channel_address: str | None = None
    approver_address: str | None = None
    state: ApprovalState = ApprovalState.AWAITING_APPROVAL

    def resolve(self, event: ApprovalEvent) -> ApprovalState:
        self.state = transition(self.state, event)
        return self.state

    def requester(self) -> User:
        return User(
            id=self.requesting_admin_id,
            email=self.requesting_admin_email,
            name=self.requesting_admin_name,
            role=self.requesting_admin_role,
        )


class NotificationCategory(str, Enum):
    ORDERS = "orders"
    RESERVATIONS = "reservations"
    PAYMENTS = "payments"
    MESSAGES = "messages"
    PRODUCTS = "products"


@dataclass
class Watermark:
    orders: datetime
    reservations: datetime
    payments: datetime
    messages: datetime
    products: datetime
    created_at: datetime | None = None

    @classmethod
    def starting_at(cls, when: datetime) -> "Watermark":
        return cls(
            orders=when,
            reservations=when,
            payments=when,
            messages=when,
            products=when,
            created_at=when,
        )

    def get(self, category: NotificationCategory) -> datetime:
        return getattr(self, category.value)

    def mark(self, category: NotificationCategory, when: datetime) -> None:
        setattr(self, category.value, when)

    def as_dict(self) -> dict[NotificationCategory, datetime]:
        return {c: self.get(c) for c in NotificationCategory}


@dataclass(frozen=True)
class LoginOutcome:
    state: ApprovalState
    user: User
    token: str | None = None
    approval_id: str | None = None

    @property
    def pending(self) -> bool:
        return self.state == ApprovalState.AWAITING_APPROVAL


@dataclass(frozen=True)
class OutboundMessage:
    """A realtime push: exactly one of ``address`` or ``group`` is set."""

    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    address: str | None = None
    group: str | None = None

    def __post_init__(self):
        if (self.address is None) == (self.group is None):
            raise ValueError("exactly one of address or group is required")

    def frame(self) -> dict[str, Any]:
        return {"event": self.event, "data": self.payload}
