import pytest

from tests.fakes import FakeClock, FakeUoW


@pytest.fixture()
def uow():
    return FakeUoW()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def hash_password_stub():
    return lambda p: "hashed-" + p


@pytest.fixture(autouse=True)
def patch_code(monkeypatch):
    """
    Make the 6-digit code deterministic in all tests.
    You can override in a specific test by re-monkeypatching.
    """
    from gatekeeper.domain import services as domain_services

    monkeypatch.setattr(domain_services, "generate_6digit_code", lambda: "123456")
    yield
