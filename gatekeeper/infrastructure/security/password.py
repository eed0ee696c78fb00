from __future__ import annotations

from passlib.context import CryptContext

from gatekeeper.settings import get_settings

# bcrypt is the only scheme; anything else in the table is a corrupt row.
_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str, *, rounds: int | None = None) -> str:
    """
    Hash a password using bcrypt. If rounds is None, use settings.bcrypt_rounds.
    Staged signups keep only this hash, never the plain password.
    """
    if rounds is None:
        rounds = int(get_settings().bcrypt_rounds)
    return _pwd.hash(plain, rounds=rounds)


def verify_password(plain: str, password_hash: str) -> bool:
    """Constant-time check; an unparsable hash counts as a mismatch."""
    try:
        return _pwd.verify(plain, password_hash)
    except ValueError:
        return False
