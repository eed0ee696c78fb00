from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from gatekeeper.application.login_approval import LoginApprovalCoordinator
from gatekeeper.application.presence import AdminPresenceRegistry
from gatekeeper.application.verification import VerificationCoordinator
from gatekeeper.domain.entities import (
    PendingAccount,
    PendingApproval,
    ResetGrant,
    VerificationTicket,
)
from gatekeeper.domain.services import utcnow
from gatekeeper.infrastructure.memory.staging_store import StagingStore
from gatekeeper.infrastructure.memory.sweeper import PeriodicSweeper
from gatekeeper.infrastructure.realtime.hub import WebSocketHub
from gatekeeper.infrastructure.security.tokens import JwtTokenIssuer
from gatekeeper.settings import Settings


@dataclass
class Coordination:
    """Process-wide transient state, built once per application."""

    tickets: StagingStore[VerificationTicket]
    pending_signups: StagingStore[PendingAccount]
    reset_grants: StagingStore[ResetGrant]
    pending_approvals: StagingStore[PendingApproval]
    verification: VerificationCoordinator
    presence: AdminPresenceRegistry
    hub: WebSocketHub
    tokens: JwtTokenIssuer
    approvals: LoginApprovalCoordinator
    sweeper: PeriodicSweeper


def build_coordination(
    settings: Settings, *, now: Callable[[], datetime] = utcnow
) -> Coordination:
    tickets: StagingStore[VerificationTicket] = StagingStore("tickets", now=now)
    pending_signups: StagingStore[PendingAccount] = StagingStore(
        "pending_signups", now=now
    )
    reset_grants: StagingStore[ResetGrant] = StagingStore("reset_grants", now=now)
    pending_approvals: StagingStore[PendingApproval] = StagingStore(
        "pending_approvals", now=now
    )

    presence = AdminPresenceRegistry(now=now)
    hub = WebSocketHub()
    tokens = JwtTokenIssuer(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.jwt_ttl_seconds,
    )
    verification = VerificationCoordinator(
        tickets,
        code_ttl_seconds=settings.code_ttl_seconds,
        resend_cooldown_seconds=settings.resend_cooldown_seconds,
        max_attempts=settings.code_max_attempts,
        now=now,
    )
    approvals = LoginApprovalCoordinator(
        presence=presence,
        pending=pending_approvals,
        notifier=hub,
        tokens=tokens,
        approval_ttl_seconds=settings.approval_ttl_seconds,
    )
    sweeper = PeriodicSweeper(
        [tickets, pending_signups, reset_grants, pending_approvals],
        interval_seconds=settings.sweep_interval_seconds,
    )
    return Coordination(
        tickets=tickets,
        pending_signups=pending_signups,
        reset_grants=reset_grants,
        pending_approvals=pending_approvals,
        verification=verification,
        presence=presence,
        hub=hub,
        tokens=tokens,
        approvals=approvals,
        sweeper=sweeper,
    )
