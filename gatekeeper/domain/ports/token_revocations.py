from __future__ import annotations

from typing import Protocol


class TokenRevocationsPort(Protocol):
    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        """Deny the token id until it would have expired anyway."""

    async def is_revoked(self, jti: str) -> bool:
        """True if the token id was revoked."""
