from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from gatekeeper.domain.entities import OutboundMessage, User
from gatekeeper.domain.errors import DeliveryFailed
from gatekeeper.domain.ports.notifier import NotifierPort

logger = logging.getLogger(__name__)

ADMINS_GROUP = "admins"


@dataclass
class Connection:
    address: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    user: User | None = None
    groups: set[str] = field(default_factory=set)


class WebSocketHub(NotifierPort):
    """
    Registry of open realtime connections and their outgoing queues.

    Each connection has one queue drained by one writer (``drain``), so
    frames to a single connection leave in the order they were sent.
    ``send`` only schedules a put on the connection's own loop; callers on
    other loops or threads (sync endpoints run in a threadpool) never wait
    for the network.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def open(self) -> Connection:
        """Register a new connection. Must be called from the loop that serves it."""
        conn = Connection(
            address=uuid.uuid4().hex,
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(),
        )
        with self._lock:
            self._connections[conn.address] = conn
        logger.info("realtime connection opened", extra={"address": conn.address})
        return conn

    def close(self, address: str) -> Connection | None:
        with self._lock:
            conn = self._connections.pop(address, None)
        if conn is None:
            return None
        try:
            self._enqueue(conn, None)
        except DeliveryFailed:
            pass
        logger.info("realtime connection closed", extra={"address": address})
        return conn

    def bind(self, address: str, user: User) -> None:
        with self._lock:
            conn = self._connections.get(address)
            if conn is not None:
                conn.user = user

    def join(self, address: str, group: str) -> None:
        with self._lock:
            conn = self._connections.get(address)
            if conn is not None:
                conn.groups.add(group)

    def leave(self, address: str, group: str) -> None:
        with self._lock:
            conn = self._connections.get(address)
            if conn is not None:
                conn.groups.discard(group)

    def user_at(self, address: str) -> User | None:
        with self._lock:
            conn = self._connections.get(address)
            return conn.user if conn else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def send(self, message: OutboundMessage) -> bool:
        frame = message.frame()
        try:
            targets = self._targets(message)
        except DeliveryFailed as e:
            logger.warning(
                "push dropped", extra={"event": message.event, "reason": str(e)}
            )
            return False

        delivered = False
        for conn in targets:
            try:
                self._enqueue(conn, frame)
                delivered = True
            except DeliveryFailed as e:
                logger.warning(
                    "push dropped",
                    extra={
                        "event": message.event,
                        "address": conn.address,
                        "reason": str(e),
                    },
                )
        return delivered

    async def drain(
        self,
        conn: Connection,
        write: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        """Write queued frames for ``conn`` until it is closed."""
        while True:
            frame = await conn.queue.get()
            if frame is None:
                return
            try:
                await write(frame)
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "push dropped",
                    extra={
                        "event": frame.get("event"),
                        "address": conn.address,
                        "reason": f"{DeliveryFailed.__name__}: {e!r}",
                    },
                )
                return

    def _targets(self, message: OutboundMessage) -> list[Connection]:
        with self._lock:
            if message.address is not None:
                conn = self._connections.get(message.address)
                if conn is None:
                    raise DeliveryFailed(f"no connection at {message.address}")
                return [conn]
            members = [
                c for c in self._connections.values() if message.group in c.groups
            ]
        if not members:
            raise DeliveryFailed(f"group {message.group} is empty")
        return members

    @staticmethod
    def _enqueue(conn: Connection, frame: dict[str, Any] | None) -> None:
        try:
            conn.loop.call_soon_threadsafe(conn.queue.put_nowait, frame)
        except RuntimeError as e:
            # the serving loop is already closed
            raise DeliveryFailed(str(e)) from e
