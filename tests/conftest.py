"""Shared fixtures: a throwaway SQLite database per test, services wired to it, an HTTP client."""

import os

# Settings are read at import time; keep the app off Postgres during tests.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./skillswap-test.db")
os.environ.setdefault("REDIS_URL", "")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from skillswap.auth.passwords import hash_password
from skillswap.auth.tokens import issue_token
from skillswap.database import configure_sqlite, get_db
from skillswap.deps import get_notifier, get_repository
from skillswap.models import Base, Swap, User
from skillswap.repository.sql import SqlRepository
from skillswap.schemas.swap import SwapCreate, SwapRespond
from skillswap.models.swap import SwapStatus
from skillswap.services.feedback_ledger import FeedbackLedger
from skillswap.services.guard import Caller
from skillswap.services.notifications import DatabaseNotificationSink, Event
from skillswap.services.swap_lifecycle import SwapLifecycle


class RecordingSink:
    """Notification sink that just remembers what it was given."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'skillswap.db'}", echo=False)
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def repository(session_factory) -> SqlRepository:
    return SqlRepository(session_factory)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def lifecycle(repository, sink) -> SwapLifecycle:
    return SwapLifecycle(repository, sink)


@pytest.fixture
def ledger(repository, sink) -> FeedbackLedger:
    return FeedbackLedger(repository, sink)


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly and return it."""
    counter = {"n": 0}

    async def _make(name: str | None = None, is_admin: bool = False, is_banned: bool = False) -> User:
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        async with session_factory() as db:
            user = User(
                name=name,
                email=f"{name.lower()}@example.com",
                hashed_password="not-a-real-hash",
                is_admin=is_admin,
                is_banned=is_banned,
            )
            db.add(user)
            await db.commit()
            await db.refresh(user)
        return user

    return _make


@pytest.fixture
def as_caller():
    def _caller(user: User) -> Caller:
        return Caller.from_user(user)

    return _caller


@pytest.fixture
def completed_swap(lifecycle, as_caller):
    """Drive a new swap between two users all the way to COMPLETED."""

    async def _complete(requester: User, recipient: User, skill: str = "guitar") -> Swap:
        swap = await lifecycle.create(
            as_caller(requester),
            SwapCreate(recipient_id=recipient.id, requester_skill=skill, recipient_skill="spanish"),
        )
        await lifecycle.respond(as_caller(recipient), swap.id, SwapRespond(status=SwapStatus.ACCEPTED))
        return await lifecycle.complete(as_caller(requester), swap.id)

    return _complete


@pytest.fixture
def db_sink(repository) -> DatabaseNotificationSink:
    return DatabaseNotificationSink(repository)


@pytest_asyncio.fixture
async def client(session_factory, repository, db_sink) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with storage pointed at the per-test database."""
    from skillswap.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_notifier] = lambda: db_sink
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await db_sink.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def auth_header():
    def _header(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user.id)}"}

    return _header


@pytest.fixture
def make_login_user(session_factory):
    """Insert a user with a real bcrypt hash, for login tests."""

    async def _make(email: str, password: str, name: str = "Login User") -> User:
        async with session_factory() as db:
            user = User(name=name, email=email, hashed_password=hash_password(password))
            db.add(user)
            await db.commit()
            await db.refresh(user)
        return user

    return _make
