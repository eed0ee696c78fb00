from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from gatekeeper.domain.entities import User
from gatekeeper.domain.errors import Unauthorized
from gatekeeper.domain.services import utcnow


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    role: str
    name: str
    email: str
    jti: str
    exp: datetime

    def to_user(self) -> User:
        return User(id=self.sub, email=self.email, name=self.name, role=self.role)

    def seconds_left(self, now: datetime) -> int:
        return max(0, int((self.exp - now).total_seconds()))


class JwtTokenIssuer:
    """Signed bearer tokens (HS256 by default) carrying the account's identity and role."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl_seconds: int = 30 * 24 * 3600,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=ttl_seconds)
        self._now = now

    def issue(self, user: User) -> str:
        now = self._now()
        payload = {
            "sub": user.id,
            "role": user.role,
            "name": user.name,
            "email": user.email,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "role", "jti", "exp"]},
            )
        except jwt.PyJWTError as e:
            raise Unauthorized("invalid or expired token") from e

        return TokenClaims(
            sub=str(payload["sub"]),
            role=str(payload["role"]),
            name=str(payload.get("name", "")),
            email=str(payload.get("email", "")),
            jti=str(payload["jti"]),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
