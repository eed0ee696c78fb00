from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import errors as pg_errors

from gatekeeper.domain.entities import Role, User
from gatekeeper.domain.errors import UserAlreadyExists
from gatekeeper.domain.ports.user_repository import UserRepositoryPort

_COLUMNS = "id, email, name, role, is_active, created_at"


def _row_to_user(row) -> User:
    id_, email, name, role, is_active, created_at = row
    return User(
        id=str(id_),
        email=str(email),
        name=str(name),
        role=role,
        is_active=bool(is_active),
        created_at=created_at,
    )


class PgUserRepository(UserRepositoryPort):
    """
    Postgres implementation of UserRepositoryPort.

    NOTE:
    - This repo is constructed with an *active async connection* supplied by the UoW.
    - It does not commit; the UnitOfWork controls the transaction boundary.
    """

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def exists_email(self, email: str) -> bool:
        sql = "SELECT 1 FROM users WHERE email = LOWER(TRIM(%s))"
        async with self._conn.cursor() as cur:
            await cur.execute(sql, (email,))
            return await cur.fetchone() is not None

    async def create(
        self, *, name: str, email: str, password_hash: str, role: Role = "user"
    ) -> User:
        sql = f"""
        INSERT INTO users (email, name, password_hash, role)
        VALUES (LOWER(TRIM(%s)), %s, %s, %s)
        RETURNING {_COLUMNS}
        """
        try:
            async with self._conn.cursor() as cur:
                await cur.execute(sql, (email, name, password_hash, role))
                row = await cur.fetchone()
        except pg_errors.UniqueViolation as e:
            raise UserAlreadyExists() from e

        if not row:
            raise RuntimeError("insert into users returned no row")
        return _row_to_user(row)

    async def get_by_email_with_hash(self, email: str) -> Optional[tuple[User, str]]:
        sql = f"""
        SELECT {_COLUMNS}, password_hash
        FROM users
        WHERE email = LOWER(TRIM(%s))
        """
        async with self._conn.cursor() as cur:
            await cur.execute(sql, (email,))
            row = await cur.fetchone()
        if not row:
            return None
        return _row_to_user(row[:-1]), row[-1]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        sql = f"SELECT {_COLUMNS} FROM users WHERE id = %s"
        async with self._conn.cursor() as cur:
            await cur.execute(sql, (user_id,))
            row = await cur.fetchone()
        return _row_to_user(row) if row else None

    async def set_password_hash(self, user_id: str, password_hash: str) -> None:
        sql = """
        UPDATE users
        SET password_hash = %s,
            updated_at = NOW()
        WHERE id = %s
        """
        async with self._conn.cursor() as cur:
            await cur.execute(sql, (password_hash, user_id))
