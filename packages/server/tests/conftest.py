"""
Shared fixtures: an in-memory SQLite database, a mocked Redis, an API client
wired to that database, and small factories for users and callers.
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import SessionUser, create_session_token
from app.core.database import get_session
from app.main import app as fastapi_app
from app.models.user import User
from supplyhub_shared.schemas.roles import UserRole


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """A session for service-level tests. Do not mix with ``client`` in one test."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def redis_mock(monkeypatch):
    redis = AsyncMock()
    redis.exists.return_value = 0

    async def _get_redis():
        return redis

    monkeypatch.setattr("app.core.auth.get_redis", _get_redis)
    monkeypatch.setattr("app.core.notifications.get_redis", _get_redis)
    return redis


@pytest.fixture
async def client(session_factory):
    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Insert and commit a user; returns the detached ``User``."""

    async def _make_user(
        *,
        email: str | None = None,
        role: UserRole = UserRole.MEMBER,
        is_active: bool = True,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> User:
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            first_name=first_name,
            last_name=last_name,
            role=UserRole(role).value,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_session_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


def as_caller(user: User) -> SessionUser:
    return SessionUser(user_id=user.id, global_role=UserRole(user.role))
