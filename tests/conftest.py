"""Shared test fixtures."""

from __future__ import annotations

import os

os.environ.setdefault("SQ_JWT_SECRET", "test-secret-with-at-least-32-bytes!!")
os.environ.setdefault("SQ_DATABASE_URL", "sqlite+aiosqlite:///./streamquest-test.db")
os.environ.setdefault("SQ_LOG_FORMAT", "console")
os.environ.setdefault("SQ_LOG_LEVEL", "WARNING")

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.config import get_settings
from streamquest.database import close_db, get_engine, get_session_factory, init_db
from streamquest.db.base import Base
from streamquest.db.models import CalendarEvent, Goal, LiveIntegration, Task, User
from streamquest.integrations.live_status import LiveStatusClient

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)  # Wednesday


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """Fresh file-backed SQLite schema per test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'streamquest.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db(database) -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        yield session


async def seed_row(row):
    """Insert a row in its own session and return it detached.

    Service rollbacks expire everything in the test session; seeded rows
    live outside it so their attributes stay readable.
    """
    async with get_session_factory()() as session:
        session.add(row)
        await session.commit()
    return row


class _NoRow:
    def scalar_one_or_none(self):
        return None


def lose_first_lookup(monkeypatch, session: AsyncSession, on_miss) -> None:
    """Make the session's next query find nothing, after running ``on_miss``.

    Reproduces another transaction committing the same row between a
    create-if-absent lookup and its insert.
    """
    real_execute = session.execute
    pending = [True]

    async def execute(statement, *args, **kwargs):
        if pending:
            pending.clear()
            await on_miss()
            return _NoRow()
        return await real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", execute)


@pytest_asyncio.fixture
async def user(database) -> User:
    return await seed_row(User(id=str(uuid.uuid4()), display_name="streamer", created_at=NOW - timedelta(days=30)))


async def create_user(**kwargs) -> User:
    kwargs.setdefault("display_name", "viewer")
    return await seed_row(User(id=str(uuid.uuid4()), **kwargs))


async def create_task(user_id: str, *, created_at: datetime, completed: bool = True) -> Task:
    return await seed_row(
        Task(id=str(uuid.uuid4()), user_id=user_id, title="task", completed=completed, created_at=created_at)
    )


async def create_goal(user_id: str, *, created_at: datetime, completed: bool = True) -> Goal:
    return await seed_row(
        Goal(id=str(uuid.uuid4()), user_id=user_id, title="goal", completed=completed, created_at=created_at)
    )


async def create_event(user_id: str, *, created_at: datetime) -> CalendarEvent:
    return await seed_row(CalendarEvent(id=str(uuid.uuid4()), user_id=user_id, title="event", created_at=created_at))


async def create_integration(user_id: str, **kwargs) -> LiveIntegration:
    kwargs.setdefault("external_user_id", "ext-" + user_id[:8])
    return await seed_row(LiveIntegration(user_id=user_id, **kwargs))


def make_token(user_id: str, *, is_admin: bool = False, secret: str | None = None) -> str:
    payload = {"sub": user_id, "is_admin": is_admin, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    return jwt.encode(payload, secret or get_settings().jwt_secret, algorithm="HS256")


def auth_headers(user_id: str, *, is_admin: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, is_admin=is_admin)}"}


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app. The database fixture replaces the lifespan startup."""
    from streamquest.main import create_app

    app = create_app()
    live_client = LiveStatusClient("", "")
    app.state.live_status_client = live_client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await live_client.aclose()
