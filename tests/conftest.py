"""
Pytest configuration and fixtures.

Each test gets its own SQLite database file (aiosqlite, foreign keys on)
and an httpx client wired to the app with ``get_db`` overridden to use it.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BAN_PURGE_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from helpdesk import database
from helpdesk.database import Base
from helpdesk.main import app
from helpdesk.models import ip_ban  # noqa: F401  (register table)
from helpdesk.models.lookups import DeviceType, Location, ProblemType, Status, Tag
from helpdesk.models.tasks import Task, task_tags
from helpdesk.models.user import User
from helpdesk.permissions import ADMIN_USER_ID, Permission
from helpdesk.schemas.user import TokenData
from helpdesk.utils.security import get_password_hash, session_codec

PASSWORD = "correct horse"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[database.get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# Seed data
# ============================================================================

@pytest.fixture(scope="session")
def password_hash() -> str:
    # Hashing is slow by design; do it once for the whole run
    return get_password_hash(PASSWORD)


@pytest_asyncio.fixture
async def seed(db: AsyncSession, password_hash: str) -> dict:
    """Admin, two staff accounts and one row per lookup table (two tags)."""
    db.add_all([
        # The admin holds nothing explicitly; it passes by identity alone
        User(id=ADMIN_USER_ID, username="admin", password_hash=password_hash, permissions=[]),
        User(id=2, username="agent", password_hash=password_hash, permissions=[Permission.TASKS.value]),
        User(id=3, username="viewer", password_hash=password_hash, permissions=[]),
        Location(id=1, name="Front desk"),
        Location(id=2, name="Warehouse"),
        DeviceType(id=1, name="Laptop"),
        ProblemType(id=1, name="Screen"),
        Status(id=1, name="Pending", color="#9e9e9e"),
        Status(id=2, name="Done", color="#4caf50"),
        Tag(id=1, name="urgent", color="#ff0000"),
        Tag(id=2, name="warranty", color="#00ff00"),
    ])
    await db.commit()
    return {"admin": 1, "agent": 2, "viewer": 3}


def make_token(user_id: int, username: str, issued_at: datetime | None = None) -> str:
    return session_codec.issue(TokenData(id=user_id, username=username), issued_at=issued_at)


def auth_headers(user_id: int, username: str = "user") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, username)}"}


@pytest.fixture
def admin_headers(seed) -> dict:
    return auth_headers(ADMIN_USER_ID, "admin")


@pytest.fixture
def agent_headers(seed) -> dict:
    return auth_headers(2, "agent")


@pytest.fixture
def viewer_headers(seed) -> dict:
    return auth_headers(3, "viewer")


TASK_PAYLOAD = {
    "customer_fname": "Ada",
    "customer_lname": "Lovelace",
    "customer_email": "ada@example.com",
    "customer_phone": "+44 20 7946 0000",
    "title": "Cracked screen",
    "description": "Laptop screen cracked after a fall",
    "location_id": 1,
    "device_type_id": 1,
    "problem_type_id": 1,
    "status_id": 1,
}


@pytest.fixture
def task_payload() -> dict:
    return dict(TASK_PAYLOAD)


@pytest.fixture
def insert_task(db: AsyncSession, seed):
    """Insert a task row directly, with full control over created_at."""

    async def _insert(created_at: datetime | None = None, tag_ids: tuple[int, ...] = (), **overrides) -> int:
        values = {**TASK_PAYLOAD, "created_by_user_id": 2, **overrides}
        task = Task(**values, created_at=created_at or datetime.now(timezone.utc) - timedelta(hours=1))
        db.add(task)
        await db.flush()
        if tag_ids:
            await db.execute(task_tags.insert(), [{"task_id": task.id, "tag_id": t} for t in tag_ids])
        await db.commit()
        return task.id

    return _insert
