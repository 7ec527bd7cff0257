"""Shared fixtures for fileshare tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fileshare import users
from fileshare.database import create_all
from fileshare.storage import BlobStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Async SQLite engine on a temporary file with all tables created."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def alice_bob_carol(async_session: AsyncSession) -> tuple[int, int, int]:
    """Three registered users; ids are 1, 2 and 3 on a fresh database."""
    alice = await users.register(async_session, "Alice", "alice@example.com")
    bob = await users.register(async_session, "Bob", "bob@example.com")
    carol = await users.register(async_session, "Carol", "carol@example.com")
    return alice.id, bob.id, carol.id


@pytest.fixture
def blobs(tmp_path) -> BlobStore:
    store = BlobStore(tmp_path / "storage")
    store.ensure_root()
    return store
