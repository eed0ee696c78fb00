from typing import Annotated, Callable

from fastapi import APIRouter, Depends, HTTPException, Response, status

from gatekeeper.application.login import login
from gatekeeper.application.password_reset import (
    reset_password,
    send_password_reset_code,
    verify_reset_code,
)
from gatekeeper.application.signup import resend_signup_code, signup, verify_signup
from gatekeeper.coordination import Coordination
from gatekeeper.domain.entities import User
from gatekeeper.domain.errors import (
    ApprovalNotFound,
    InvalidCredentials,
    InvalidResetGrant,
    RateLimited,
    SignupNotFound,
    Unauthorized,
    UserAlreadyExists,
    UserNotFound,
    VerificationFailed,
)
from gatekeeper.domain.ports.token_revocations import TokenRevocationsPort
from gatekeeper.domain.ports.unit_of_work import UnitOfWorkPort
from gatekeeper.domain.services import utcnow
from gatekeeper.infrastructure.security.tokens import TokenClaims
from gatekeeper.presentation.dependencies import (
    get_coordination,
    get_hash_password,
    get_pending_signup_ttl_seconds,
    get_reset_grant_ttl_seconds,
    get_token_claims,
    get_token_revocations,
    get_uow,
    get_verify_password,
    require_admin,
)
from gatekeeper.schemas.requests import (
    ApproveLoginIn,
    EmailIn,
    LoginIn,
    ResetPasswordIn,
    SignupIn,
    VerifyCodeIn,
)
from gatekeeper.schemas.responses import (
    AuthOut,
    MessageOut,
    PendingApprovalOut,
    SignupOut,
    UserOut,
    VerifyResetOut,
)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _too_many_requests(e: RateLimited) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"please wait {e.retry_after_seconds}s before requesting a new code",
        headers={"Retry-After": str(e.retry_after_seconds)},
    )


def _auth_out(user: User, token: str) -> AuthOut:
    return AuthOut(user=UserOut.model_validate(user.public()), token=token)


@router.post("/signup", response_model=SignupOut)
async def post_signup(
    body: SignupIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
    hash_password: Annotated[Callable[..., str], Depends(get_hash_password)],
    pending_ttl_seconds: Annotated[int, Depends(get_pending_signup_ttl_seconds)],
):
    if not body.name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="name is required"
        )
    try:
        email = await signup(
            uow=uow,
            verification=coordination.verification,
            pending_signups=coordination.pending_signups,
            name=body.name,
            email=body.email,
            password=body.password,
            hash_password=hash_password,
            pending_ttl_seconds=pending_ttl_seconds,
        )
    except UserAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="email already registered"
        )
    except RateLimited as e:
        raise _too_many_requests(e)
    return SignupOut(email=email)


@router.post("/send-verification-code", response_model=MessageOut)
async def post_send_verification_code(
    body: EmailIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
):
    try:
        await resend_signup_code(
            uow=uow,
            verification=coordination.verification,
            pending_signups=coordination.pending_signups,
            email=body.email,
        )
    except SignupNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no pending signup for this email",
        )
    except RateLimited as e:
        raise _too_many_requests(e)
    return MessageOut(message="verification code sent")


@router.post("/verify-code", response_model=AuthOut)
async def post_verify_code(
    body: VerifyCodeIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
):
    try:
        user, token = await verify_signup(
            uow=uow,
            verification=coordination.verification,
            pending_signups=coordination.pending_signups,
            tokens=coordination.tokens,
            email=body.email,
            code=body.code,
        )
    except VerificationFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)
    except SignupNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="signup not found or expired, please sign up again",
        )
    except UserAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="email already registered"
        )
    return _auth_out(user, token)


@router.post("/login", response_model=AuthOut | PendingApprovalOut)
async def post_login(
    body: LoginIn,
    response: Response,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
    verify_password: Annotated[Callable[[str, str], bool], Depends(get_verify_password)],
):
    try:
        outcome = await login(
            uow=uow,
            coordinator=coordination.approvals,
            email=body.email,
            password=body.password,
            verify_password=verify_password,
        )
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials"
        )

    if outcome.pending:
        response.status_code = status.HTTP_202_ACCEPTED
        return PendingApprovalOut(approval_id=outcome.approval_id)
    return _auth_out(outcome.user, outcome.token)


@router.post("/approve-login", response_model=MessageOut)
async def post_approve_login(
    body: ApproveLoginIn,
    approver: Annotated[User, Depends(require_admin)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
):
    try:
        decision = coordination.approvals.decide(
            body.approval_id, body.approved, approver
        )
    except ApprovalNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="approval not found or expired",
        )
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    verb = "approved" if body.approved else "rejected"
    return MessageOut(message=f"Login {verb} for {decision.requesting_admin_name}.")


@router.post("/send-password-reset-code", response_model=MessageOut)
async def post_send_password_reset_code(
    body: EmailIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
):
    try:
        await send_password_reset_code(
            uow=uow, verification=coordination.verification, email=body.email
        )
    except UserNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no account registered with this email",
        )
    except RateLimited as e:
        raise _too_many_requests(e)
    return MessageOut(message="password reset code sent")


@router.post("/verify-reset-code", response_model=VerifyResetOut)
def post_verify_reset_code(
    body: VerifyCodeIn,
    coordination: Annotated[Coordination, Depends(get_coordination)],
    grant_ttl_seconds: Annotated[int, Depends(get_reset_grant_ttl_seconds)],
):
    try:
        token = verify_reset_code(
            verification=coordination.verification,
            reset_grants=coordination.reset_grants,
            email=body.email,
            code=body.code,
            grant_ttl_seconds=grant_ttl_seconds,
        )
    except VerificationFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)
    return VerifyResetOut(reset_token=token)


@router.post("/reset-password", response_model=MessageOut)
async def post_reset_password(
    body: ResetPasswordIn,
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
    coordination: Annotated[Coordination, Depends(get_coordination)],
    hash_password: Annotated[Callable[..., str], Depends(get_hash_password)],
):
    try:
        await reset_password(
            uow=uow,
            reset_grants=coordination.reset_grants,
            email=body.email,
            reset_token=body.reset_token,
            new_password=body.new_password,
            hash_password=hash_password,
        )
    except InvalidResetGrant:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="invalid or expired reset token",
        )
    except UserNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no account registered with this email",
        )
    return MessageOut(message="password updated")


@router.post("/logout", response_model=MessageOut)
async def post_logout(
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    revocations: Annotated[TokenRevocationsPort, Depends(get_token_revocations)],
):
    await revocations.revoke(claims.jti, claims.seconds_left(utcnow()))
    return MessageOut(message="logged out")


@router.get("/me", response_model=UserOut)
async def get_me(
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    uow: Annotated[UnitOfWorkPort, Depends(get_uow)],
):
    async with uow as tx:
        user = await tx.db_users.get_by_id(claims.sub)
        # no state change; no commit needed
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown user"
        )
    return UserOut.model_validate(user.public())
