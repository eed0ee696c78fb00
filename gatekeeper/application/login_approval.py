"""
Out-of-band approval of administrator logins.

An administrator logging in while a *different* administrator holds a live
realtime connection does not get a token right away. The login is parked
under an opaque approval id and the earliest-connected administrator is
asked to approve or reject it. The decision resolves the parked login
exactly once; a parked login nobody decides on expires silently, so the
requester observes failure by timeout rather than by an explicit rejection.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable

from gatekeeper.application.presence import AdminPresenceRegistry
from gatekeeper.domain.entities import (
    ApprovalEvent,
    ApprovalState,
    LoginOutcome,
    OutboundMessage,
    PendingApproval,
    User,
    transition,
)
from gatekeeper.domain.errors import ApprovalNotFound, NotFound, Unauthorized
from gatekeeper.domain.ports.notifier import NotifierPort
from gatekeeper.infrastructure.memory.staging_store import StagedEntry, StagingStore
from gatekeeper.infrastructure.security.tokens import JwtTokenIssuer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    approval_id: str
    state: ApprovalState
    requesting_admin_name: str
    delivered: bool


def _new_approval_id() -> str:
    return str(uuid.uuid4())


class LoginApprovalCoordinator:
    def __init__(
        self,
        *,
        presence: AdminPresenceRegistry,
        pending: StagingStore[PendingApproval],
        notifier: NotifierPort,
        tokens: JwtTokenIssuer,
        approval_ttl_seconds: int = 300,
        id_factory: Callable[[], str] = _new_approval_id,
    ) -> None:
        self._presence = presence
        self._pending = pending
        self._notifier = notifier
        self._tokens = tokens
        self._ttl = timedelta(seconds=approval_ttl_seconds)
        self._new_id = id_factory
        self._pending.set_expiry_hook(self._on_expired)

    def begin(self, user: User) -> LoginOutcome:
        """
        Route a credential-valid login. Returns a DIRECT outcome carrying a
        token, or an AWAITING_APPROVAL outcome carrying the approval id.
        """
        if not self._needs_approval(user):
            return self._direct(user)

        try:
            approver = self._presence.first_present()
        except NotFound:
            # the last admin left between the presence check and now
            return self._direct(user)

        state = transition(None, ApprovalEvent.PARK)
        approval_id = self._new_id()
        pending = PendingApproval(
            approval_id=approval_id,
            requesting_admin_id=str(user.id),
            requesting_admin_name=user.name,
            requesting_admin_email=str(user.email),
            requesting_admin_role=user.role,
            approver_address=approver.channel_address,
            state=state,
        )
        self._pending.put(approval_id, pending, self._ttl)

        logger.info(
            "admin login parked for approval",
            extra={
                "approval_id": approval_id,
                "requesting_admin_id": user.id,
                "approver_id": approver.admin_id,
            },
        )
        self._notifier.send(
            OutboundMessage(
                event="login_approval_request",
                payload={
                    "approvalId": approval_id,
                    "requestingAdminName": user.name,
                },
                address=approver.channel_address,
            )
        )
        return LoginOutcome(state=state, user=user, approval_id=approval_id)

    def attach_requester(self, approval_id: str, channel_address: str) -> None:
        """Bind the requester's connection so the decision can be pushed to it."""
        try:
            self._pending.update(
                approval_id,
                lambda p: replace(p, requester_channel_address=channel_address),
            )
        except NotFound:
            raise ApprovalNotFound(approval_id)
        logger.info(
            "pending requester attached",
            extra={"approval_id": approval_id, "address": channel_address},
        )

    def detach_address(self, channel_address: str) -> int:
        """Forget a disconnected requester address; its decision push will be dropped."""
        detached = 0
        with self._pending.transaction() as tx:
            for entry in tx.live_entries():
                if entry.value.requester_channel_address == channel_address:
                    tx.update(
                        entry.key,
                        lambda p: replace(p, requester_channel_address=None),
                    )
                    detached += 1
        return detached

    def approver_left(self, channel_address: str) -> list[str]:
        """
        Approvals whose notified approver just disconnected. They are not
        reassigned: any present admin may still decide, otherwise they expire.
        """
        orphaned = [
            p.approval_id
            for p in self._pending.values()
            if p.approver_address == channel_address
        ]
        for approval_id in orphaned:
            logger.warning(
                "approver disconnected before deciding",
                extra={"approval_id": approval_id, "address": channel_address},
            )
        return orphaned

    def decide(self, approval_id: str, approved: bool, approver: User) -> Decision:
        if not approver.is_admin or not self._presence.is_present(str(approver.id)):
            raise Unauthorized("only a connected administrator can decide logins")

        # pop is the single point of resolution: a second decision, or one
        # arriving after expiry, finds nothing
        try:
            pending = self._pending.pop(approval_id)
        except NotFound:
            raise ApprovalNotFound(approval_id)

        if approved:
            state = pending.resolve(ApprovalEvent.APPROVE)
            requester = pending.requester()
            message_event = "login_approved"
            payload = {
                "token": self._tokens.issue(requester),
                "user": requester.public(),
            }
        else:
            state = pending.resolve(ApprovalEvent.REJECT)
            message_event = "login_rejected"
            payload = {"message": f"Login rejected by {approver.name}."}

        delivered = False
        if pending.requester_channel_address:
            delivered = self._notifier.send(
                OutboundMessage(
                    event=message_event,
                    payload=payload,
                    address=pending.requester_channel_address,
                )
            )
        logger.info(
            "admin login decided",
            extra={
                "approval_id": approval_id,
                "state": state.value,
                "approver_id": approver.id,
                "delivered": delivered,
            },
        )
        return Decision(
            approval_id=approval_id,
            state=state,
            requesting_admin_name=pending.requesting_admin_name,
            delivered=delivered,
        )

    def pending_approvals(self) -> list[PendingApproval]:
        return self._pending.values()

    def _needs_approval(self, user: User) -> bool:
        if not user.is_admin:
            return False
        if not self._presence.any_present():
            return False
        return not self._presence.is_present(str(user.id))

    def _direct(self, user: User) -> LoginOutcome:
        state = transition(None, ApprovalEvent.SKIP)
        return LoginOutcome(state=state, user=user, token=self._tokens.issue(user))

    def _on_expired(self, entry: StagedEntry[PendingApproval]) -> None:
        state = entry.value.resolve(ApprovalEvent.TIMEOUT)
        logger.warning(
            "admin login approval expired without a decision",
            extra={
                "approval_id": entry.key,
                "state": state.value,
                "requesting_admin_id": entry.value.requesting_admin_id,
            },
        )
