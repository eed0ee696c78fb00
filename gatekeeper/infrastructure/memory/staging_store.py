"""
In-process TTL store for state that is not durable yet (codes, staged
signups, parked admin logins).

Every operation goes through a single lock. Critical sections are short,
never await, and never call back into user code except ``update``'s
function, so a plain ``threading.Lock`` is safe from event-loop code and
from FastAPI's threadpool alike.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Generic, Iterator, TypeVar

from gatekeeper.domain.errors import NotFound
from gatekeeper.domain.services import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StagedEntry(Generic[T]):
    key: str
    value: T
    created_at: datetime
    expires_at: datetime
    attempts: int = 0

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class _LockedView(Generic[T]):
    """Operations on the store while its lock is held. Only valid inside ``transaction()``."""

    def __init__(self, store: "StagingStore[T]") -> None:
        self._store = store
        self.evicted: list[StagedEntry[T]] = []

    def get_entry(self, key: str) -> StagedEntry[T]:
        entries = self._store._entries
        entry = entries.get(key)
        if entry is None:
            raise NotFound(key)
        if entry.expired(self._store._now()):
            del entries[key]
            self.evicted.append(entry)
            raise NotFound(key)
        return entry

    def get(self, key: str) -> T:
        return self.get_entry(key).value

    def put(self, key: str, value: T, ttl: timedelta) -> StagedEntry[T]:
        now = self._store._now()
        entry = StagedEntry(key=key, value=value, created_at=now, expires_at=now + ttl)
        self._store._entries[key] = entry
        return entry

    def touch(self, key: str) -> int:
        entry = self.get_entry(key)
        bumped = replace(entry, attempts=entry.attempts + 1)
        self._store._entries[key] = bumped
        return bumped.attempts

    def update(self, key: str, fn: Callable[[T], T]) -> T:
        entry = self.get_entry(key)
        value = fn(entry.value)
        self._store._entries[key] = replace(entry, value=value)
        return value

    def remove(self, key: str) -> None:
        self._store._entries.pop(key, None)

    def pop(self, key: str) -> T:
        value = self.get(key)
        del self._store._entries[key]
        return value

    def sweep(self) -> int:
        now = self._store._now()
        entries = self._store._entries
        expired = [e for e in entries.values() if e.expired(now)]
        for e in expired:
            del entries[e.key]
        self.evicted.extend(expired)
        return len(expired)

    def live_entries(self) -> list[StagedEntry[T]]:
        now = self._store._now()
        return [e for e in self._store._entries.values() if not e.expired(now)]


class StagingStore(Generic[T]):
    """
    Keyed store of values with an expiry instant and an attempt counter.

    ``get`` on an entry past ``expires_at`` behaves exactly like a missing key,
    whether or not the periodic sweep has run yet.
    """

    def __init__(
        self, name: str, *, now: Callable[[], datetime] = utcnow
    ) -> None:
        self.name = name
        self._now = now
        self._entries: dict[str, StagedEntry[T]] = {}
        self._lock = threading.Lock()
        self._on_expire: Callable[[StagedEntry[T]], None] | None = None

    def set_expiry_hook(self, fn: Callable[[StagedEntry[T]], None] | None) -> None:
        """Called, outside the lock, for each entry dropped because it expired."""
        self._on_expire = fn

    @contextmanager
    def transaction(self) -> Iterator[_LockedView[T]]:
        view = _LockedView(self)
        try:
            with self._lock:
                yield view
        finally:
            self._notify_expired(view.evicted)

    def _notify_expired(self, entries: list[StagedEntry[T]]) -> None:
        if self._on_expire is None:
            return
        for entry in entries:
            try:
                self._on_expire(entry)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "expiry hook failed", extra={"store": self.name, "key": entry.key}
                )

    def put(self, key: str, value: T, ttl: timedelta) -> None:
        with self.transaction() as tx:
            tx.put(key, value, ttl)

    def get(self, key: str) -> T:
        with self.transaction() as tx:
            return tx.get(key)

    def get_entry(self, key: str) -> StagedEntry[T]:
        with self.transaction() as tx:
            return tx.get_entry(key)

    def touch(self, key: str) -> int:
        with self.transaction() as tx:
            return tx.touch(key)

    def update(self, key: str, fn: Callable[[T], T]) -> T:
        with self.transaction() as tx:
            return tx.update(key, fn)

    def remove(self, key: str) -> None:
        with self.transaction() as tx:
            tx.remove(key)

    def pop(self, key: str) -> T:
        with self.transaction() as tx:
            return tx.pop(key)

    def sweep(self) -> int:
        with self.transaction() as tx:
            removed = tx.sweep()
        if removed:
            logger.info(
                "staging store swept", extra={"store": self.name, "removed": removed}
            )
        return removed

    def values(self) -> list[T]:
        with self.transaction() as tx:
            return [e.value for e in tx.live_entries()]

    def __len__(self) -> int:
        with self.transaction() as tx:
            return len(tx.live_entries())
