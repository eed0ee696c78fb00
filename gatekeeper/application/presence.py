from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from gatekeeper.domain.entities import AdminPresenceRecord
from gatekeeper.domain.errors import NotFound
from gatekeeper.domain.services import utcnow

logger = logging.getLogger(__name__)


class AdminPresenceRegistry:
    """
    Administrators that currently hold a live realtime connection.

    Records are kept in registration order; ``first_present`` is the
    earliest one still connected.
    """

    def __init__(self, *, now: Callable[[], datetime] = utcnow) -> None:
        self._now = now
        self._by_admin: dict[str, AdminPresenceRecord] = {}
        self._lock = threading.Lock()

    def register(
        self, admin_id: str, channel_address: str, display_name: str
    ) -> AdminPresenceRecord:
        record = AdminPresenceRecord(
            admin_id=admin_id,
            channel_address=channel_address,
            display_name=display_name,
            connected_at=self._now(),
        )
        with self._lock:
            # one record per address; re-authenticating replaces the old identity
            for other in [
                r for r in self._by_admin.values() if r.channel_address == channel_address
            ]:
                del self._by_admin[other.admin_id]
            # re-insert so a reconnect moves to the back of the queue
            self._by_admin.pop(admin_id, None)
            self._by_admin[admin_id] = record
        logger.info(
            "admin present",
            extra={"admin_id": admin_id, "address": channel_address},
        )
        return record

    def unregister(self, channel_address: str) -> list[AdminPresenceRecord]:
        with self._lock:
            removed = [
                r for r in self._by_admin.values() if r.channel_address == channel_address
            ]
            for record in removed:
                del self._by_admin[record.admin_id]
        for record in removed:
            logger.info(
                "admin left",
                extra={"admin_id": record.admin_id, "address": channel_address},
            )
        return removed

    def any_present(self) -> bool:
        with self._lock:
            return bool(self._by_admin)

    def is_present(self, admin_id: str) -> bool:
        with self._lock:
            return admin_id in self._by_admin

    def first_present(self) -> AdminPresenceRecord:
        with self._lock:
            for record in self._by_admin.values():
                return record
        raise NotFound("no administrator present")

    def records(self) -> list[AdminPresenceRecord]:
        with self._lock:
            return list(self._by_admin.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_admin)
