"""
Pytest configuration and fixtures.
Provides an in-memory database, seeded users, service helpers and an HTTP client.
"""

import os

# Must be set before the app and its settings are imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REMINDER_SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.session as db_session
import app.models  # noqa: F401  register tables
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.permit import ApprovalStatus, ApproverRole
from app.models.user import User
from app.schemas.permit import PermitCreate
from app.services.permit_service import PermitService


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def session_maker(test_engine, monkeypatch):
    """Sessionmaker bound to the test engine, also installed as the app's global one."""
    maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    monkeypatch.setattr(db_session, "engine", test_engine)
    monkeypatch.setattr(db_session, "async_session_maker", maker)
    return maker


@pytest.fixture(scope="function")
async def test_db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture(scope="function")
async def users(session_maker):
    """Creator, one user per approver role, an outsider and an inactive user."""
    async with session_maker() as session:
        people = {
            "creator": User(full_name="Sam Supervisor", email="sam@example.com", role="Supervisor"),
            "area_manager": User(full_name="Avery Owner", email="avery@example.com", role="Approver"),
            "safety_officer": User(full_name="Sky Safety", email="sky@example.com", role="Approver"),
            "site_leader": User(full_name="Lee Leader", email="lee@example.com", role="Approver"),
            "outsider": User(full_name="Otto Outsider", email=None, role="Supervisor"),
            "inactive": User(full_name="Ina Active", email="ina@example.com", role="Approver", is_active=False),
        }
        session.add_all(people.values())
        await session.commit()
    return SimpleNamespace(**people)


class RecordingDispatcher:
    """Stands in for AlertDispatcher and remembers what it was asked to send."""

    def __init__(self):
        self.sent = []

    async def dispatch(self, notification, recipient, permit_serial=None):
        self.sent.append((notification.type, recipient.id if recipient else None, permit_serial))

    async def close(self):
        pass


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


def hours_from_now(hours: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


async def create_permit(
    session_maker,
    users,
    roles: Optional[List[ApproverRole]] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    submit: bool = True,
    dispatcher=None,
):
    """Submit a permit from users.creator with the given approver roles assigned."""
    roles = roles or []
    start_time = start_time or hours_from_now(1)
    end_time = end_time or start_time + timedelta(hours=8)
    data = PermitCreate(
        permit_type="Hot Work",
        work_location="Boiler House",
        work_description="Replace flange on steam line",
        start_time=start_time,
        end_time=end_time,
        submit=submit,
        **{f"{role.value}_id": getattr(users, role.value).id for role in roles},
    )
    async with session_maker() as session:
        return await PermitService(session, dispatcher).submit_permit(data, users.creator.id)


async def decide(
    session_maker,
    permit_id,
    role: ApproverRole,
    actor,
    decision: ApprovalStatus = ApprovalStatus.APPROVED,
    signature: Optional[str] = "signed",
    reason: Optional[str] = None,
    dispatcher=None,
):
    async with session_maker() as session:
        return await PermitService(session, dispatcher).record_approver_decision(
            permit_id, role, decision, actor.id, signature=signature, reason=reason
        )


async def create_active_permit(session_maker, users, roles=None, **kwargs):
    """A permit that went through approval by every role in roles."""
    roles = roles if roles is not None else [
        ApproverRole.AREA_MANAGER, ApproverRole.SAFETY_OFFICER, ApproverRole.SITE_LEADER,
    ]
    permit = await create_permit(session_maker, users, roles=roles, **kwargs)
    for role in roles:
        await decide(session_maker, permit.id, role, getattr(users, role.value))
    return permit


@pytest.fixture(scope="function")
async def test_client(session_maker):
    """HTTP client against the app, with get_db bound to the test database."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def as_user(user) -> dict:
    return {"X-User-Id": str(user.id)}
