from __future__ import annotations

from typing import Protocol


class EmailPort(Protocol):
    async def send(
        self,
        *,
        to: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> None:
        """
        Deliver one message (verification or password reset code).
        Raises on transport failure so the outbox can retry.
        """
