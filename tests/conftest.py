"""Test configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cqrs_ddd_challenges import (
    AuthEventType,
    AuthSession,
    AuthSignals,
    ChallengeConfig,
    ChallengeContext,
    InMemorySessionStore,
    PasswordHasher,
    User,
    UserManager,
)
from cqrs_ddd_challenges.memory import (
    InMemoryDeliveryGateway,
    InMemoryIdentityStore,
    InMemoryLoginAttemptStore,
    InMemoryUnitOfWork,
    InMemoryUserRepository,
)

PHONE = "+15550001"


class FrozenClock:
    """Deterministic clock; call it to read, ``advance`` to move forward."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def config() -> ChallengeConfig:
    return ChallengeConfig()


@pytest.fixture
def identities(config: ChallengeConfig, clock: FrozenClock) -> InMemoryIdentityStore:
    return InMemoryIdentityStore(config, clock=clock)


@pytest.fixture
def users(identities: InMemoryIdentityStore) -> InMemoryUserRepository:
    return InMemoryUserRepository(identities)


@pytest.fixture
def gateway() -> InMemoryDeliveryGateway:
    return InMemoryDeliveryGateway()


@pytest.fixture
def attempts() -> InMemoryLoginAttemptStore:
    return InMemoryLoginAttemptStore()


@pytest.fixture
def signals() -> AuthSignals:
    return AuthSignals()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    """Create an in-memory session store for testing."""
    return InMemorySessionStore()


@pytest.fixture
def context(
    config: ChallengeConfig,
    users: InMemoryUserRepository,
    identities: InMemoryIdentityStore,
    gateway: InMemoryDeliveryGateway,
    attempts: InMemoryLoginAttemptStore,
    signals: AuthSignals,
    clock: FrozenClock,
) -> ChallengeContext:
    return ChallengeContext(
        users=users,
        identities=identities,
        gateway=gateway,
        login_attempts=attempts,
        config=config,
        signals=signals,
        clock=clock,
    )


@pytest.fixture
def manager(
    users: InMemoryUserRepository,
    identities: InMemoryIdentityStore,
    config: ChallengeConfig,
    signals: AuthSignals,
    clock: FrozenClock,
) -> UserManager:
    return UserManager(
        users,
        identities,
        uow_factory=InMemoryUnitOfWork,
        config=config,
        hasher=PasswordHasher(rounds=4),
        signals=signals,
        clock=clock,
    )


@pytest.fixture
def make_session(
    session_store: InMemorySessionStore,
    users: InMemoryUserRepository,
    identities: InMemoryIdentityStore,
    clock: FrozenClock,
):
    def _make(session_id: str = "sess-1") -> AuthSession:
        return AuthSession(
            session_id,
            store=session_store,
            users=users,
            identities=identities,
            clock=clock,
        )

    return _make


@pytest.fixture
def session(make_session) -> AuthSession:
    return make_session()


@pytest.fixture
async def user(manager: UserManager, users: InMemoryUserRepository) -> User:
    """A registered user with phone +15550001 and a password identity."""
    user_id = await manager.save(
        User(username="ada", phone=PHONE, password="correct horse", active=True)
    )
    saved = await users.find_by_id(user_id)
    assert saved is not None
    return saved


@pytest.fixture
def events(signals: AuthSignals) -> list:
    """Every emitted AuthEvent, in order."""
    recorded: list = []
    for event_type in AuthEventType:
        signals.register(event_type, recorded.append)
    return recorded
