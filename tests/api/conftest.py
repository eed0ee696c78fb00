import pytest
from fastapi.testclient import TestClient

from gatekeeper.application.watermarks import WatermarkTracker
from gatekeeper.coordination import build_coordination
from gatekeeper.domain.entities import User
from gatekeeper.main import create_app
from gatekeeper.presentation.dependencies import (
    get_hash_password,
    get_notification_counts,
    get_token_revocations,
    get_uow,
    get_verify_password,
    get_watermark_tracker,
)
from gatekeeper.settings import Settings
from tests.fakes import (
    FakeNotificationCounts,
    FakeRevocations,
    FakeUoW,
    InMemoryWatermarkRepo,
)

PASSWORD = "s3cret"


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, jwt_secret="test-secret", approval_ttl_seconds=300)


@pytest.fixture()
def coordination(settings, clock):
    return build_coordination(settings, now=clock)


@pytest.fixture()
def deps():
    return {
        "uow": FakeUoW(),
        "revocations": FakeRevocations(),
        "watermarks": InMemoryWatermarkRepo(),
        "counts": FakeNotificationCounts(),
    }


@pytest.fixture()
def app(coordination, deps, clock):
    app = create_app(coordination)
    app.dependency_overrides[get_uow] = lambda: deps["uow"]
    app.dependency_overrides[get_hash_password] = lambda: (lambda p: "hashed-" + p)
    app.dependency_overrides[get_verify_password] = lambda: (
        lambda plain, hashed: hashed == "hashed-" + plain
    )
    app.dependency_overrides[get_token_revocations] = lambda: deps["revocations"]
    app.dependency_overrides[get_watermark_tracker] = lambda: WatermarkTracker(
        deps["watermarks"], now=clock
    )
    app.dependency_overrides[get_notification_counts] = lambda: deps["counts"]
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def users(deps):
    """Seeded accounts, all with password PASSWORD."""
    repo = deps["uow"].db_users
    return {
        "alice": repo.seed("alice@example.com", "hashed-" + PASSWORD, name="Alice", role="admin"),
        "bob": repo.seed("bob@example.com", "hashed-" + PASSWORD, name="Bob", role="admin"),
        "dave": repo.seed("dave@example.com", "hashed-" + PASSWORD, name="Dave"),
    }


def bearer(coordination, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {coordination.tokens.issue(user)}"}


def authenticate(ws, coordination, user: User) -> dict:
    ws.send_json(
        {"event": "authenticate", "data": {"token": coordination.tokens.issue(user)}}
    )
    return ws.receive_json()
