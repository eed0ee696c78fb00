from datetime import datetime, timedelta, timezone
from typing import Any

from gatekeeper.domain.entities import (
    NotificationCategory,
    OutboundMessage,
    Role,
    User,
    Watermark,
)
from gatekeeper.domain.errors import UserAlreadyExists

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeUserRepo:
    def __init__(self):
        self.by_email: dict[str, tuple[User, str]] = {}
        self.created: list[User] = []
        self.password_updates: list[tuple[str, str]] = []
        self._next = 0

    def seed(
        self, email: str, password_hash: str, *, name: str = "", role: Role = "user"
    ) -> User:
        self._next += 1
        user = User(id=f"u{self._next}", email=email, name=name, role=role)
        self.by_email[user.email] = (user, password_hash)
        return user

    async def exists_email(self, email: str) -> bool:
        return email.strip().lower() in self.by_email

    async def create(
        self, *, name: str, email: str, password_hash: str, role: Role = "user"
    ) -> User:
        if await self.exists_email(email):
            raise UserAlreadyExists()
        user = self.seed(email, password_hash, name=name, role=role)
        self.created.append(user)
        return user

    async def get_by_email_with_hash(self, email: str) -> tuple[User, str] | None:
        return self.by_email.get(email.strip().lower())

    async def get_by_id(self, user_id: str) -> User | None:
        for user, _ in self.by_email.values():
            if user.id == user_id:
                return user
        return None

    async def set_password_hash(self, user_id: str, password_hash: str) -> None:
        self.password_updates.append((user_id, password_hash))
        for email, (user, _) in list(self.by_email.items()):
            if user.id == user_id:
                self.by_email[email] = (user, password_hash)


class FakeOutboxRepo:
    def __init__(self, fail: bool = False):
        self.enqueues = []
        self.fail = fail

    async def enqueue(
        self, *, topic: str, payload, idempotency_key: str | None = None
    ) -> str:
        if self.fail:
            raise RuntimeError("outbox down")
        self.enqueues.append((topic, payload, idempotency_key))
        return f"m{len(self.enqueues)}"


class FakeUoW:
    def __init__(self):
        self.db_users = FakeUserRepo()
        self.outbox = FakeOutboxRepo()
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc:
            self.rolled_back = True

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


class FakeNotifier:
    def __init__(self, deliver: bool = True):
        self.sent: list[OutboundMessage] = []
        self.deliver = deliver

    def send(self, message: OutboundMessage) -> bool:
        self.sent.append(message)
        return self.deliver

    def events(self) -> list[str]:
        return [m.event for m in self.sent]


class InMemoryWatermarkRepo:
    def __init__(self):
        self.watermark: Watermark | None = None

    async def get_or_create(self, now: datetime) -> Watermark:
        if self.watermark is None:
            self.watermark = Watermark.starting_at(now)
        return self.watermark

    async def set(self, category: NotificationCategory, when: datetime) -> None:
        self.watermark.mark(category, when)


class FakeNotificationCounts:
    def __init__(self):
        self.events: dict[NotificationCategory, list[datetime]] = {
            c: [] for c in NotificationCategory
        }

    def add(self, category: NotificationCategory, when: datetime, n: int = 1) -> None:
        self.events[category].extend([when] * n)

    async def count_since(self, category: NotificationCategory, since: datetime) -> int:
        return sum(1 for created in self.events[category] if created > since)


class FakeRevocations:
    def __init__(self):
        self.revoked: dict[str, int] = {}

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        self.revoked[jti] = ttl_seconds

    async def is_revoked(self, jti: str) -> bool:
        return jti in self.revoked


class FakeEmailOK:
    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def send(
        self, *, to: str, subject: str, body: str, idempotency_key=None
    ) -> None:
        self.calls.append(
            {
                "to": to,
                "subject": subject,
                "body": body,
                "idempotency_key": idempotency_key,
            }
        )


class FakeEmailFlaky:
    def __init__(self, fail_first: bool = True):
        self.calls: int = 0
        self.fail_first = fail_first

    async def send(
        self, *, to: str, subject: str, body: str, idempotency_key=None
    ) -> None:
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom once")


class FakeEmailDown:
    async def send(self, **_: Any) -> None:
        raise RuntimeError("relay down")
