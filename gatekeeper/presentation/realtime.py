"""
Realtime channel: one WebSocket per client, JSON frames ``{"event", "data"}``.

Client events:
    authenticate           {token}
    register_pending_user  {approvalId}
    login_decision         {approvalId, approved}
    ping

Every frame the server writes, replies included, goes through the hub's
per-connection queue so a connection only ever has one writer.
"""
import asyncio
import json
import logging
from contextlib import suppress
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from gatekeeper.coordination import Coordination
from gatekeeper.domain.entities import OutboundMessage
from gatekeeper.domain.errors import ApprovalNotFound, Unauthorized
from gatekeeper.domain.ports.token_revocations import TokenRevocationsPort
from gatekeeper.domain.services import utcnow
from gatekeeper.infrastructure.realtime.hub import ADMINS_GROUP
from gatekeeper.presentation.dependencies import (
    get_coordination,
    get_token_revocations,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class _Session:
    def __init__(
        self,
        address: str,
        coordination: Coordination,
        revocations: TokenRevocationsPort,
    ) -> None:
        self.address = address
        self.coordination = coordination
        self.revocations = revocations

    def reply(self, event: str, payload: dict[str, Any]) -> None:
        self.coordination.hub.send(
            OutboundMessage(event=event, payload=payload, address=self.address)
        )

    def error(self, message: str) -> None:
        self.reply("error", {"message": message})

    def leave_admins(self) -> None:
        """Drop any admin standing this connection holds."""
        self.coordination.hub.leave(self.address, ADMINS_GROUP)
        if self.coordination.presence.unregister(self.address):
            self.coordination.approvals.approver_left(self.address)

    async def handle(self, event: str, data: dict[str, Any]) -> None:
        if event == "authenticate":
            await self.authenticate(data)
        elif event == "register_pending_user":
            self.register_pending_user(data)
        elif event == "login_decision":
            self.login_decision(data)
        elif event == "ping":
            self.reply("pong", {"timestamp": utcnow().isoformat()})
        else:
            self.error(f"unknown event: {event}")

    async def authenticate(self, data: dict[str, Any]) -> None:
        try:
            claims = self.coordination.tokens.decode(str(data.get("token") or ""))
        except Unauthorized as e:
            self.reply("authentication_error", {"message": str(e)})
            return
        if await self.revocations.is_revoked(claims.jti):
            self.reply("authentication_error", {"message": "invalid or expired token"})
            return

        user = claims.to_user()
        # a connection carries one identity at a time
        self.leave_admins()
        self.coordination.hub.bind(self.address, user)
        if user.is_admin:
            self.coordination.hub.join(self.address, ADMINS_GROUP)
            self.coordination.presence.register(str(user.id), self.address, user.name)
        self.reply(
            "authenticated",
            {"success": True, "identity": user.id, "role": user.role, "name": user.name},
        )

    def register_pending_user(self, data: dict[str, Any]) -> None:
        approval_id = str(data.get("approvalId") or "")
        try:
            self.coordination.approvals.attach_requester(approval_id, self.address)
        except ApprovalNotFound:
            self.error("approval not found or expired")
            return
        self.reply("pending_user_registered", {"approvalId": approval_id})

    def login_decision(self, data: dict[str, Any]) -> None:
        approver = self.coordination.hub.user_at(self.address)
        if approver is None:
            self.error("authenticate first")
            return
        approval_id = str(data.get("approvalId") or "")
        try:
            decision = self.coordination.approvals.decide(
                approval_id, bool(data.get("approved")), approver
            )
        except ApprovalNotFound:
            self.error("approval not found or expired")
            return
        except Unauthorized as e:
            self.error(str(e))
            return
        self.reply(
            "login_decision_recorded",
            {
                "approvalId": approval_id,
                "state": decision.state.value,
                "requestingAdminName": decision.requesting_admin_name,
                "delivered": decision.delivered,
            },
        )


def _parse(raw: str) -> tuple[str, dict[str, Any]] | None:
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    data = frame.get("data")
    return frame["event"], data if isinstance(data, dict) else {}


@router.websocket("/ws")
async def realtime(
    websocket: WebSocket,
    coordination: Coordination = Depends(get_coordination),
    revocations: TokenRevocationsPort = Depends(get_token_revocations),
):
    await websocket.accept()
    hub = coordination.hub
    conn = hub.open()
    writer = asyncio.create_task(hub.drain(conn, websocket.send_json))
    session = _Session(conn.address, coordination, revocations)

    try:
        while True:
            raw = await websocket.receive_text()
            parsed = _parse(raw)
            if parsed is None:
                session.error("frames must be JSON objects with an event name")
                continue
            await session.handle(*parsed)
    except WebSocketDisconnect:
        pass
    finally:
        hub.close(conn.address)
        session.leave_admins()
        detached = coordination.approvals.detach_address(conn.address)
        if detached:
            logger.info(
                "pending requester disconnected",
                extra={"address": conn.address, "approvals": detached},
            )
        writer.cancel()
        with suppress(asyncio.CancelledError):
            await writer
