from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from psycopg import AsyncCursor
from psycopg_pool import AsyncConnectionPool

from gatekeeper.application.password_reset import RESET_CODE_TOPIC
from gatekeeper.application.signup import SIGNUP_CODE_TOPIC
from gatekeeper.domain.ports.email_port import EmailPort

logger = logging.getLogger(__name__)

# Topics whose payload is a ready-to-send {to, subject, body} message.
EMAIL_TOPICS = frozenset({SIGNUP_CODE_TOPIC, RESET_CODE_TOPIC})


class UnknownTopic(RuntimeError):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    base: int = 2  # seconds
    max_delay: int = 60  # seconds
    max_attempts: int = 8

    def compute_delay(self, attempts: int) -> int:
        # attempts is the number of attempts already made
        delay = self.base * (2**attempts)
        return delay if delay < self.max_delay else self.max_delay

    def exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts


class OutboxDispatcher:
    """
    Polls the outbox table, claims due rows, sends the code emails they
    carry, and marks them dispatched, reschedules them, or gives up on
    them once the retry budget is spent.

    A verification code is only useful while its ticket lives, so the
    default budget stays well inside the code TTL.
    """

    def __init__(
        self,
        *,
        pool: AsyncConnectionPool,
        email_adapter: EmailPort,
        batch_size: int = 10,
        poll_interval: float = 1.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.pool = pool
        self.email_adapter = email_adapter
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.retry_policy = retry_policy or RetryPolicy()

    async def run_forever(self) -> None:
        logger.info(
            "outbox dispatcher started",
            extra={"batch_size": self.batch_size, "poll_interval": self.poll_interval},
        )
        while True:
            processed = await self._process_once()
            if processed == 0:
                await asyncio.sleep(self.poll_interval)

    async def _process_once(self) -> int:
        """
        Single iteration: claim up to batch_size due rows, dispatch each one
        and record the outcome (one commit per message). Returns the number
        of rows claimed.
        """
        batch = await self._claim_due_batch(self.batch_size)
        if not batch:
            return 0

        logger.info("claimed messages", extra={"count": len(batch)})

        for msg in batch:
            msg_id = msg["id"]
            topic = msg["topic"]
            attempts = msg["attempts"]
            try:
                await self._dispatch(topic, msg["payload"], idempotency_key=str(msg_id))
            except Exception as e:  # noqa: BLE001
                new_attempts = attempts + 1
                if self.retry_policy.exhausted(new_attempts):
                    logger.error(
                        "dispatch failed; giving up",
                        extra={"id": msg_id, "topic": topic, "attempts": new_attempts},
                    )
                    await self._mark_dead(msg_id, new_attempts, repr(e))
                    continue
                delay = self.retry_policy.compute_delay(attempts)
                logger.warning(
                    "dispatch failed; scheduling retry",
                    extra={
                        "id": msg_id,
                        "topic": topic,
                        "attempts": new_attempts,
                        "retry_in_s": delay,
                    },
                )
                await self._mark_failed(msg_id, new_attempts, delay, repr(e))
            else:
                await self._mark_dispatched(msg_id)

        return len(batch)

    async def _dispatch(
        self, topic: str, payload: dict[str, Any], *, idempotency_key: str | None = None
    ) -> None:
        if topic in EMAIL_TOPICS:
            await self.email_adapter.send(
                to=payload["to"],
                subject=payload["subject"],
                body=payload["body"],
                idempotency_key=idempotency_key,
            )
            return

        # unknown topics take the retry path so a newer worker can pick them up
        raise UnknownTopic(topic)

    async def _claim_due_batch(self, limit: int) -> list[dict[str, Any]]:
        """
        Atomically move up to `limit` due 'pending' rows into 'processing'
        and return them.
        """
        sql = """
        WITH claimed AS (
            SELECT id
            FROM outbox
            WHERE status = 'pending'
              AND COALESCE(next_attempt_at, NOW()) <= NOW()
            ORDER BY created_at
            FOR UPDATE SKIP LOCKED
            LIMIT %s
        ),
        updated AS (
            UPDATE outbox o
            SET status = 'processing', updated_at = NOW()
            FROM claimed c
            WHERE o.id = c.id
            RETURNING o.id, o.topic, o.payload, o.attempts
        )
        SELECT id, topic, payload, attempts
        FROM updated
        ORDER BY id;
        """
        async with self.pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:  # type: AsyncCursor
                    await cur.execute(sql, (limit,))
                    rows = await cur.fetchall()

        return [
            {"id": r[0], "topic": r[1], "payload": r[2], "attempts": r[3]}
            for r in rows or ()
        ]

    async def _mark_dispatched(self, msg_id: int) -> None:
        sql = """
        UPDATE outbox
        SET status = 'dispatched',
            last_error = NULL,
            updated_at = NOW()
        WHERE id = %s;
        """
        await self._execute(sql, (msg_id,))

    async def _mark_failed(
        self, msg_id: int, attempts: int, delay_seconds: int, error: str
    ) -> None:
        """Back to 'pending' with a bumped attempt count and a future next_attempt_at."""
        sql = """
        UPDATE outbox
        SET status = 'pending',
            attempts = %s,
            next_attempt_at = NOW() + make_interval(secs => %s),
            last_error = %s,
            updated_at = NOW()
        WHERE id = %s;
        """
        await self._execute(sql, (attempts, delay_seconds, error[:500], msg_id))

    async def _mark_dead(self, msg_id: int, attempts: int, error: str) -> None:
        sql = """
        UPDATE outbox
        SET status = 'failed',
            attempts = %s,
            last_error = %s,
            updated_at = NOW()
        WHERE id = %s;
        """
        await self._execute(sql, (attempts, error[:500], msg_id))

    async def _execute(self, sql: str, params: tuple) -> None:
        async with self.pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(sql, params)
