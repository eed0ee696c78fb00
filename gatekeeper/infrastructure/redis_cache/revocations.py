from __future__ import annotations

from redis.asyncio import Redis

from gatekeeper.domain.ports.token_revocations import TokenRevocationsPort


class RedisTokenRevocations(TokenRevocationsPort):
    """
    Deny-list of logged-out token ids. Each key lives only as long as the
    token it revokes would have, so the set never outgrows live tokens.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "revoked:") -> None:
        self._redis = redis
        self._prefix = key_prefix

    def _key(self, jti: str) -> str:
        return f"{self._prefix}{jti}"

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        await self._redis.set(self._key(jti), "1", ex=ttl_seconds)

    async def is_revoked(self, jti: str) -> bool:
        return bool(await self._redis.exists(self._key(jti)))
