import pytest

from gatekeeper.application.login import login
from gatekeeper.application.login_approval import LoginApprovalCoordinator
from gatekeeper.application.presence import AdminPresenceRegistry
from gatekeeper.domain.entities import ApprovalState
from gatekeeper.domain.errors import InvalidCredentials
from gatekeeper.infrastructure.memory.staging_store import StagingStore
from gatekeeper.infrastructure.security.tokens import JwtTokenIssuer
from tests.fakes import FakeNotifier


def _verify(plain: str, hashed: str) -> bool:
    return hashed == "hashed-" + plain


@pytest.fixture()
def presence(clock):
    return AdminPresenceRegistry(now=clock)


@pytest.fixture()
def coordinator(clock, presence):
    return LoginApprovalCoordinator(
        presence=presence,
        pending=StagingStore("pending_approvals", now=clock),
        notifier=FakeNotifier(),
        tokens=JwtTokenIssuer("test-secret"),
    )


async def test_valid_credentials_return_token(uow, coordinator):
    uow.db_users.seed("ann@example.com", "hashed-s3cret")
    outcome = await login(uow, coordinator, " ANN@example.com", "s3cret", _verify)
    assert outcome.state is ApprovalState.DIRECT
    assert outcome.token


@pytest.mark.parametrize(
    "email, password",
    [("ann@example.com", "wrong"), ("ghost@example.com", "s3cret")],
)
async def test_bad_credentials(uow, coordinator, email, password):
    uow.db_users.seed("ann@example.com", "hashed-s3cret")
    with pytest.raises(InvalidCredentials):
        await login(uow, coordinator, email, password, _verify)


async def test_inactive_account_cannot_log_in(uow, coordinator):
    user = uow.db_users.seed("ann@example.com", "hashed-s3cret")
    user.is_active = False
    with pytest.raises(InvalidCredentials):
        await login(uow, coordinator, "ann@example.com", "s3cret", _verify)


async def test_admin_login_is_parked_when_another_admin_is_present(
    uow, coordinator, presence
):
    presence.register("someone-else", "addr-x", "Alice")
    uow.db_users.seed("bob@example.com", "hashed-s3cret", name="Bob", role="admin")

    outcome = await login(uow, coordinator, "bob@example.com", "s3cret", _verify)

    assert outcome.pending
    assert outcome.approval_id
