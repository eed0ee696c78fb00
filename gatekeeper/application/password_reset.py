from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable

import gatekeeper.domain.services as domain_services
from gatekeeper.application.verification import VerificationCoordinator
from gatekeeper.domain.entities import Purpose, ResetGrant
from gatekeeper.domain.errors import InvalidResetGrant, NotFound, UserNotFound
from gatekeeper.domain.ports.unit_of_work import UnitOfWorkPort
from gatekeeper.infrastructure.memory.staging_store import StagingStore

logger = logging.getLogger(__name__)

RESET_CODE_TOPIC = "auth.password_reset_code"


async def send_password_reset_code(
    uow: UnitOfWorkPort,
    verification: VerificationCoordinator,
    email: str,
) -> str:
    normalized_email = domain_services.normalize_email(email)

    async with uow as transaction:
        if not await transaction.db_users.exists_email(normalized_email):
            raise UserNotFound()
        code = verification.issue(normalized_email, Purpose.PASSWORD_RESET)
        try:
            await transaction.outbox.enqueue(
                topic=RESET_CODE_TOPIC,
                payload={
                    "to": normalized_email,
                    "subject": "Everest Restaurant - password reset code",
                    "body": f"Your password reset code is {code}. "
                    "It is valid for 10 minutes.",
                },
            )
        except Exception:
            verification.invalidate(normalized_email, Purpose.PASSWORD_RESET)
            raise
        await transaction.commit()
    return normalized_email


def verify_reset_code(
    verification: VerificationCoordinator,
    reset_grants: StagingStore[ResetGrant],
    email: str,
    code: str,
    grant_ttl_seconds: int = 600,
) -> str:
    """
    Check the reset code and hand out a one-shot grant for the next step.
    Durable state is untouched here.
    """
    normalized_email = domain_services.normalize_email(email)
    verification.require_valid(normalized_email, Purpose.PASSWORD_RESET, code)

    token = domain_services.generate_reset_token()
    reset_grants.put(
        normalized_email,
        ResetGrant(email=normalized_email, token=token),
        timedelta(seconds=grant_ttl_seconds),
    )
    return token


async def reset_password(
    uow: UnitOfWorkPort,
    reset_grants: StagingStore[ResetGrant],
    email: str,
    reset_token: str,
    new_password: str,
    hash_password: Callable[..., str],
) -> None:
    normalized_email = domain_services.normalize_email(email)

    with reset_grants.transaction() as tx:
        try:
            grant = tx.get(normalized_email)
        except NotFound:
            raise InvalidResetGrant()
        if not domain_services.secure_compare(grant.token, reset_token):
            raise InvalidResetGrant()
        tx.remove(normalized_email)

    hashed_password = hash_password(new_password)
    async with uow as transaction:
        record = await transaction.db_users.get_by_email_with_hash(normalized_email)
        if not record:
            raise UserNotFound()
        user, _ = record
        await transaction.db_users.set_password_hash(str(user.id), hashed_password)
        await transaction.commit()
    logger.info("password reset", extra={"user_id": user.id})
