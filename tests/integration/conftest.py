"""SQLite-backed fixtures for the SQLAlchemy adapters.

The fixtures here override the in-memory stores of the root conftest, so
the shared ``context``, ``session`` and ``user`` fixtures run against a real
database.
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from cqrs_ddd_challenges import PasswordHasher, UserManager
from cqrs_ddd_challenges.persistence import (
    Base,
    SQLAlchemyIdentityStore,
    SQLAlchemyLoginAttemptStore,
    SQLAlchemyUnitOfWork,
    SQLAlchemyUserRepository,
)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def uow_factory(session_factory):
    return SQLAlchemyUnitOfWork.factory(session_factory)


@pytest.fixture
def identities(uow_factory, config, clock) -> SQLAlchemyIdentityStore:
    return SQLAlchemyIdentityStore(uow_factory, config=config, clock=clock)


@pytest.fixture
def users(uow_factory) -> SQLAlchemyUserRepository:
    return SQLAlchemyUserRepository(uow_factory)


@pytest.fixture
def attempts(uow_factory, clock) -> SQLAlchemyLoginAttemptStore:
    return SQLAlchemyLoginAttemptStore(uow_factory, clock=clock)


@pytest.fixture
def manager(users, identities, uow_factory, config, signals, clock) -> UserManager:
    return UserManager(
        users,
        identities,
        uow_factory=uow_factory,
        config=config,
        hasher=PasswordHasher(rounds=4),
        signals=signals,
        clock=clock,
    )
