from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

import gatekeeper.domain.services as domain_services
from gatekeeper.domain.entities import Purpose, VerificationTicket
from gatekeeper.domain.errors import (
    CodeExpired,
    NotFound,
    RateLimited,
    TooManyAttempts,
    WrongCode,
)
from gatekeeper.infrastructure.memory.staging_store import StagingStore

logger = logging.getLogger(__name__)


class VerificationResult(str, Enum):
    OK = "ok"
    WRONG_CODE = "wrong_code"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


_FAILURES = {
    VerificationResult.WRONG_CODE: WrongCode,
    VerificationResult.EXPIRED: CodeExpired,
    VerificationResult.TOO_MANY_ATTEMPTS: TooManyAttempts,
}


class VerificationCoordinator:
    """
    Issues and checks one-time codes, one live ticket per (purpose, identifier).

    Issuing again replaces the previous ticket, so an older code can never be
    accepted once a newer one was sent.
    """

    def __init__(
        self,
        store: StagingStore[VerificationTicket],
        *,
        code_ttl_seconds: int = 600,
        resend_cooldown_seconds: int = 60,
        max_attempts: int = 3,
        now: Callable[[], datetime] = domain_services.utcnow,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=code_ttl_seconds)
        self._cooldown = resend_cooldown_seconds
        self._max_attempts = max_attempts
        self._now = now

    @staticmethod
    def _key(identifier: str, purpose: Purpose) -> str:
        return f"{purpose.value}:{domain_services.normalize_email(identifier)}"

    def issue(self, identifier: str, purpose: Purpose) -> str:
        key = self._key(identifier, purpose)
        code = domain_services.generate_6digit_code()
        salt_b64, digest_b64 = domain_services.make_code_digest(code)

        with self._store.transaction() as tx:
            now = self._now()
            try:
                current = tx.get(key)
            except NotFound:
                current = None
            if current is not None:
                elapsed = (now - current.last_sent_at).total_seconds()
                if elapsed < self._cooldown:
                    retry_after = max(1, math.ceil(self._cooldown - elapsed))
                    logger.info(
                        "code resend throttled",
                        extra={"purpose": purpose.value, "retry_after_s": retry_after},
                    )
                    raise RateLimited(retry_after)
            tx.put(
                key,
                VerificationTicket(
                    salt_b64=salt_b64,
                    digest_b64=digest_b64,
                    purpose=purpose,
                    last_sent_at=now,
                ),
                self._ttl,
            )
        logger.info("verification code issued", extra={"purpose": purpose.value})
        return code

    def verify(
        self, identifier: str, purpose: Purpose, submitted_code: str
    ) -> VerificationResult:
        key = self._key(identifier, purpose)
        with self._store.transaction() as tx:
            try:
                entry = tx.get_entry(key)
            except NotFound:
                return VerificationResult.EXPIRED

            if entry.attempts >= self._max_attempts:
                tx.remove(key)
                return VerificationResult.TOO_MANY_ATTEMPTS

            ticket = entry.value
            if not domain_services.verify_code_digest(
                submitted_code, ticket.salt_b64, ticket.digest_b64
            ):
                tx.touch(key)
                return VerificationResult.WRONG_CODE

            tx.remove(key)
            return VerificationResult.OK

    def require_valid(
        self, identifier: str, purpose: Purpose, submitted_code: str
    ) -> None:
        """Like ``verify`` but raises the matching VerificationFailed subclass."""
        result = self.verify(identifier, purpose, submitted_code)
        if result is not VerificationResult.OK:
            logger.info(
                "verification rejected",
                extra={"purpose": purpose.value, "result": result.value},
            )
            raise _FAILURES[result]()

    def invalidate(self, identifier: str, purpose: Purpose) -> None:
        self._store.remove(self._key(identifier, purpose))
