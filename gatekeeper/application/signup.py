from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable

from gatekeeper.application.verification import VerificationCoordinator
from gatekeeper.domain.entities import PendingAccount, Purpose, User
from gatekeeper.domain.errors import NotFound, SignupNotFound, UserAlreadyExists
from gatekeeper.domain.ports.unit_of_work import UnitOfWorkPort
from gatekeeper.domain.services import normalize_email
from gatekeeper.infrastructure.memory.staging_store import StagingStore
from gatekeeper.infrastructure.security.tokens import JwtTokenIssuer

logger = logging.getLogger(__name__)

SIGNUP_CODE_TOPIC = "auth.signup_code"


def _code_email(to: str, code: str) -> dict:
    return {
        "to": to,
        "subject": "Everest Restaurant - verification code",
        "body": f"Your verification code is {code}. It is valid for 10 minutes.",
    }


async def _enqueue_code(
    uow: UnitOfWorkPort,
    verification: VerificationCoordinator,
    email: str,
    code: str,
) -> None:
    async with uow as transaction:
        try:
            await transaction.outbox.enqueue(
                topic=SIGNUP_CODE_TOPIC, payload=_code_email(email, code)
            )
        except Exception:
            # nothing will be delivered: don't hold the sender to the cooldown
            verification.invalidate(email, Purpose.SIGNUP)
            raise
        await transaction.commit()


async def signup(
    uow: UnitOfWorkPort,
    verification: VerificationCoordinator,
    pending_signups: StagingStore[PendingAccount],
    name: str,
    email: str,
    password: str,
    hash_password: Callable[..., str],
    pending_ttl_seconds: int = 24 * 3600,
) -> str:
    normalized_email = normalize_email(email)

    async with uow as transaction:
        if await transaction.db_users.exists_email(normalized_email):
            raise UserAlreadyExists()

    hashed_password = hash_password(password)
    code = verification.issue(normalized_email, Purpose.SIGNUP)
    pending_signups.put(
        normalized_email,
        PendingAccount(
            name=name.strip(),
            email=normalized_email,
            password_hash=hashed_password,
        ),
        timedelta(seconds=pending_ttl_seconds),
    )
    await _enqueue_code(uow, verification, normalized_email, code)
    logger.info("signup staged", extra={"ttl_s": pending_ttl_seconds})
    return normalized_email


async def resend_signup_code(
    uow: UnitOfWorkPort,
    verification: VerificationCoordinator,
    pending_signups: StagingStore[PendingAccount],
    email: str,
) -> str:
    normalized_email = normalize_email(email)
    try:
        pending_signups.get(normalized_email)
    except NotFound:
        raise SignupNotFound()

    code = verification.issue(normalized_email, Purpose.SIGNUP)
    await _enqueue_code(uow, verification, normalized_email, code)
    return normalized_email


async def verify_signup(
    uow: UnitOfWorkPort,
    verification: VerificationCoordinator,
    pending_signups: StagingStore[PendingAccount],
    tokens: JwtTokenIssuer,
    email: str,
    code: str,
) -> tuple[User, str]:
    normalized_email = normalize_email(email)

    # consumes the ticket: at most one caller gets past this line per code
    verification.require_valid(normalized_email, Purpose.SIGNUP, code)

    try:
        pending = pending_signups.get(normalized_email)
    except NotFound:
        raise SignupNotFound()

    try:
        async with uow as transaction:
            user = await transaction.db_users.create(
                name=pending.name,
                email=pending.email,
                password_hash=pending.password_hash,
                role=pending.role,
            )
            await transaction.commit()
    except UserAlreadyExists:
        pending_signups.remove(normalized_email)
        raise

    pending_signups.remove(normalized_email)
    logger.info("signup verified", extra={"user_id": user.id})
    return user, tokens.issue(user)
