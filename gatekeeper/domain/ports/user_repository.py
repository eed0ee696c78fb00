from __future__ import annotations

from typing import Optional, Protocol

from gatekeeper.domain.entities import Role, User


class UserRepositoryPort(Protocol):
    async def exists_email(self, email: str) -> bool:
        """True if an account is registered under this (normalized) email."""

    async def create(
        self, *, name: str, email: str, password_hash: str, role: Role = "user"
    ) -> User:
        """
        Insert a durable account. Raises UserAlreadyExists when the email is
        taken (e.g. two verifications racing for the same signup).
        """

    async def get_by_email_with_hash(self, email: str) -> Optional[tuple[User, str]]:
        """Fetch account and its password hash. Return None if not found."""

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Fetch account by id. Return None if not found."""

    async def set_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace the stored credential."""
