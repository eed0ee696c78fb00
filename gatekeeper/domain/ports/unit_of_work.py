from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Protocol, Type

from gatekeeper.domain.ports.outbox_repository import OutboxRepositoryPort
from gatekeeper.domain.ports.user_repository import UserRepositoryPort


@dataclass
class UnitOfWorkPort(Protocol):
    """
    Transaction boundary around durable account state.

    Usage:
        async with uow as tx:
            user = await tx.db_users.create(name=..., email=..., password_hash=...)
            await tx.outbox.enqueue(topic="auth.signup_code", payload={...})
            await tx.commit()
    """

    db_users: UserRepositoryPort
    outbox: OutboxRepositoryPort

    async def __aenter__(self) -> "UnitOfWorkPort":
        """Begin a new transaction. Code here runs before code in the context manager."""

    async def __aexit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """End the transaction. Code here runs after code in the context manager."""

    async def commit(self) -> None:
        """Commit the transaction."""

    async def rollback(self) -> None:
        """Rollback the transaction."""
