import asyncio
import logging

from gatekeeper.infrastructure.memory.sweeper import PeriodicSweeper


class _Store:
    def __init__(self, name: str, removed: int = 0, fail: bool = False):
        self.name = name
        self.removed = removed
        self.fail = fail
        self.calls = 0

    def sweep(self) -> int:
        self.calls += 1
        if self.fail:
            raise RuntimeError("broken store")
        return self.removed


def test_sweep_once_sums_and_survives_a_failing_store(caplog):
    good, bad = _Store("good", removed=2), _Store("bad", fail=True)
    sweeper = PeriodicSweeper([bad, good], interval_seconds=600)

    with caplog.at_level(logging.ERROR):
        assert sweeper.sweep_once() == 2

    assert good.calls == 1
    assert "sweep failed" in caplog.text


async def test_start_runs_periodically_until_stopped():
    store = _Store("s")
    sweeper = PeriodicSweeper([store], interval_seconds=0.01)

    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert not sweeper.running
    assert store.calls >= 2
    calls = store.calls
    await asyncio.sleep(0.05)
    assert store.calls == calls


async def test_stop_without_start_is_a_noop():
    sweeper = PeriodicSweeper([], interval_seconds=1)
    await sweeper.stop()
    assert not sweeper.running
