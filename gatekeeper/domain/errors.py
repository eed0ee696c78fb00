class DomainError(Exception):
    """Base class for all domain-level errors."""

    pass


class NotFound(DomainError):
    """Staged key is absent or has already expired."""

    pass


class InvalidStatusTransition(DomainError):
    """Tried to move a login approval in a way that's not allowed."""

    pass


class InvalidCredentials(DomainError):
    """Identifier/credential pair does not match an account."""

    pass


class UserNotFound(DomainError):
    """No account matches the lookup criteria (e.g., email)."""

    pass


class UserAlreadyExists(DomainError):
    """An account with the given identifier is already registered."""

    pass


class SignupNotFound(DomainError):
    """No staged signup for this identifier (never started, or it expired)."""

    pass


class RateLimited(DomainError):
    """A code was sent for this identifier too recently."""

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"retry after {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds


class VerificationFailed(DomainError):
    """Base class for rejected verification codes."""

    detail = "invalid verification code"


class WrongCode(VerificationFailed):
    detail = "invalid verification code"


class CodeExpired(VerificationFailed):
    detail = "verification code not found or expired"


class TooManyAttempts(VerificationFailed):
    detail = "too many invalid attempts, request a new code"


class InvalidResetGrant(DomainError):
    """Password reset attempted without a verified, unexpired reset grant."""

    pass


class ApprovalNotFound(DomainError):
    """Approval id is unknown, already resolved, or expired."""

    pass


class Unauthorized(DomainError):
    """Caller is not allowed to perform this action."""

    pass


class DeliveryFailed(DomainError):
    """A realtime push could not reach its target. Never surfaced to HTTP callers."""

    pass
