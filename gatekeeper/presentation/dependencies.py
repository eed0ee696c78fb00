from typing import Callable

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from gatekeeper.application.watermarks import WatermarkTracker
from gatekeeper.coordination import Coordination
from gatekeeper.domain.entities import User
from gatekeeper.domain.errors import Unauthorized
from gatekeeper.domain.ports.notification_counts import NotificationCountsPort
from gatekeeper.domain.ports.token_revocations import TokenRevocationsPort
from gatekeeper.domain.ports.unit_of_work import UnitOfWorkPort
from gatekeeper.infrastructure.db.notification_counts import PgNotificationCounts
from gatekeeper.infrastructure.db.pool import get_pool
from gatekeeper.infrastructure.db.uow import PgUnitOfWork
from gatekeeper.infrastructure.db.watermark_repo import PgWatermarkRepository
from gatekeeper.infrastructure.redis_cache.pool import get_redis
from gatekeeper.infrastructure.redis_cache.revocations import RedisTokenRevocations
from gatekeeper.infrastructure.security.password import hash_password, verify_password
from gatekeeper.infrastructure.security.tokens import TokenClaims
from gatekeeper.settings import get_settings

bearer_scheme = HTTPBearer()


def get_uow() -> UnitOfWorkPort:
    return PgUnitOfWork(get_pool())


def get_hash_password() -> Callable[..., str]:
    return hash_password


def get_verify_password() -> Callable[[str, str], bool]:
    return verify_password


def get_pending_signup_ttl_seconds() -> int:
    return get_settings().pending_signup_ttl_seconds


def get_reset_grant_ttl_seconds() -> int:
    return get_settings().reset_grant_ttl_seconds


def get_coordination(conn: HTTPConnection) -> Coordination:
    # Built in create_app(); shared by HTTP and WebSocket endpoints.
    return conn.app.state.coordination


def get_token_revocations() -> TokenRevocationsPort:
    return RedisTokenRevocations(get_redis())


def get_watermark_tracker() -> WatermarkTracker:
    return WatermarkTracker(PgWatermarkRepository(get_pool()))


def get_notification_counts() -> NotificationCountsPort:
    return PgNotificationCounts(get_pool())


async def get_token_claims(
    auth: HTTPAuthorizationCredentials = Security(bearer_scheme),
    coordination: Coordination = Depends(get_coordination),
    revocations: TokenRevocationsPort = Depends(get_token_revocations),
) -> TokenClaims:
    try:
        claims = coordination.tokens.decode(auth.credentials)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if await revocations.is_revoked(claims.jti):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid or expired token"
        )
    return claims


def get_current_user(claims: TokenClaims = Depends(get_token_claims)) -> User:
    return claims.to_user()


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="administrator only"
        )
    return user
