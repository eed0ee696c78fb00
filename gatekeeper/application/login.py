from typing import Callable

from gatekeeper.application.login_approval import LoginApprovalCoordinator
from gatekeeper.domain.entities import LoginOutcome
from gatekeeper.domain.errors import InvalidCredentials
from gatekeeper.domain.ports.unit_of_work import UnitOfWorkPort
from gatekeeper.domain.services import normalize_email


async def login(
    uow: UnitOfWorkPort,
    coordinator: LoginApprovalCoordinator,
    email: str,
    password: str,
    verify_password: Callable[[str, str], bool],
) -> LoginOutcome:
    normalized_email = normalize_email(email)

    async with uow as transaction:
        record = await transaction.db_users.get_by_email_with_hash(normalized_email)
    if not record:
        raise InvalidCredentials()
    user, password_hash = record
    if not user.is_active or not verify_password(password, password_hash):
        raise InvalidCredentials()

    return coordinator.begin(user)
