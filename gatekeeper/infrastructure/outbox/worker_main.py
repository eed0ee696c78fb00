from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import suppress

from gatekeeper.infrastructure.db.pool import close_pool, open_pool
from gatekeeper.infrastructure.email.http_smtp_adapter import HttpSmtpEmailAdapter
from gatekeeper.infrastructure.http.client import close_http_client, open_http_client
from gatekeeper.infrastructure.outbox.dispatcher import OutboxDispatcher, RetryPolicy
from gatekeeper.logging import setup_logging
from gatekeeper.settings import get_settings

logger = logging.getLogger(__name__)


async def _run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    pool = await open_pool()
    logger.info("worker: pool opened")

    client = await open_http_client()
    email = HttpSmtpEmailAdapter(base_url=settings.smtp_base_url, client=client)
    dispatcher = OutboxDispatcher(
        pool=pool,
        email_adapter=email,
        batch_size=10,
        poll_interval=settings.outbox_poll_interval_ms / 1000,
        # a code outlives its email by at most code_ttl_seconds
        retry_policy=RetryPolicy(
            base=2, max_delay=min(300, settings.code_ttl_seconds)
        ),
    )

    stop = asyncio.Event()

    def _on_signal(*_: object) -> None:
        logger.info("worker: stop signal received")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    worker_task = asyncio.create_task(dispatcher.run_forever())
    logger.info("worker: started run_forever loop")

    await stop.wait()

    worker_task.cancel()
    with suppress(asyncio.CancelledError):
        await worker_task

    await email.aclose()  # shared client: closed below
    await close_http_client()
    await close_pool()
    logger.info("worker: stopped cleanly")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
