from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)


class Sweepable(Protocol):
    name: str

    def sweep(self) -> int: ...


class PeriodicSweeper:
    """
    Runs ``sweep()`` on every registered store at a fixed interval until stopped.
    """

    def __init__(self, stores: Iterable[Sweepable], *, interval_seconds: float) -> None:
        self.stores = list(stores)
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    def sweep_once(self) -> int:
        removed = 0
        for store in self.stores:
            try:
                removed += store.sweep()
            except Exception:  # noqa: BLE001
                logger.exception("sweep failed", extra={"store": store.name})
        return removed

    async def run_forever(self) -> None:
        logger.info(
            "staging sweeper started",
            extra={
                "stores": [s.name for s in self.stores],
                "interval_s": self.interval_seconds,
            },
        )
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.sweep_once()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
