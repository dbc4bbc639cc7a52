"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from memecoin_risk_engine.storage.models import Base, TokenModel
from memecoin_risk_engine.storage.repos import TokenDTO, TokenRepository

NOW = datetime(2025, 3, 4, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time for deterministic tests."""
    return NOW


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


async def seed_token(session: AsyncSession, mint: str, *, first_seen_at: datetime, **values: Any) -> TokenDTO:
    """Insert a token, then set any engine-owned columns directly.

    Ingest-owned fields go through the repository upsert; score and class
    columns (health_score, sniper_pct, ...) are written as the engine would.
    """
    ingest = {k: v for k, v in values.items() if k in TokenDTO.INGEST_FIELDS}
    engine_owned = {k: v for k, v in values.items() if k not in TokenDTO.INGEST_FIELDS}
    repo = TokenRepository(session)
    await repo.upsert(TokenDTO(mint=mint, first_seen_at=first_seen_at, **ingest))
    if engine_owned:
        await session.execute(update(TokenModel).where(TokenModel.mint == mint).values(**engine_owned))
    await session.flush()
    token = await repo.get(mint)
    assert token is not None
    return token


@pytest.fixture
def make_token(async_session):
    """Factory fixture: `await make_token("mint", first_seen_at=..., health_score=...)`."""

    async def _make(mint: str, *, first_seen_at: datetime = NOW, **values: Any) -> TokenDTO:
        return await seed_token(async_session, mint, first_seen_at=first_seen_at, **values)

    return _make
