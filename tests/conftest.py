"""
Pytest fixtures and configuration for Civic Issues tests.

This module provides shared fixtures for:
- Test database setup/teardown with async support
- An HTTP client wired to the test database
- A recording notifier in place of SMTP
- Session cookies for each role
- Sample data factories
"""

import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./civic-issues-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "10000")
os.environ.setdefault("GENERAL_RATE_LIMIT", "10000")
os.environ.setdefault("AI_ANALYSIS_ENABLED", "false")
os.environ.setdefault("SLA_AUTO_ESCALATE", "false")

import pytest
import pytest_asyncio
from datetime import datetime
from typing import AsyncGenerator, List, Optional
from faker import Faker
from httpx import ASGITransport, AsyncClient

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import NullPool

from civic_issues.config import settings
from civic_issues.database import Base, get_db
from civic_issues.main import app
from civic_issues.models import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_DEPARTMENT,
    ROLE_MUNICIPAL,
    Department,
    Issue,
    Notification,
    StateHistory,
    User,
)
from civic_issues.security import create_access_token, hash_password
from civic_issues.services import sla
from civic_issues.services.notifier import get_notifier

# Initialize Faker for generating test data
fake = Faker()

TEST_PASSWORD = "secret-pass-123"


class RecordingNotifier:
    """
    Notifier double that records every call instead of sending email.

    In-app notifications are still written so the notifications API can
    be exercised.
    """

    def __init__(self):
        self.calls: List[tuple] = []

    async def send_welcome(self, user) -> bool:
        self.calls.append(("welcome", user.email))
        return True

    async def issue_reported(self, db, issue, reporter) -> bool:
        self.calls.append(("reported", issue.report_id))
        return True

    async def status_changed(self, db, issue, reporter, from_status, to_status, comment=None) -> bool:
        self.calls.append(("status", issue.report_id, from_status, to_status))
        if reporter is not None:
            db.add(Notification(
                user_id=reporter.id,
                title=f"Report {issue.report_id} is now {to_status}",
                message=comment or to_status,
                type="status_change",
                related_issue_id=issue.id,
                read=False,
            ))
        return True

    async def department_assigned(self, issue, department) -> bool:
        self.calls.append(("assigned", issue.report_id, department.slug if department else None))
        return True

    async def issue_escalated(self, issue, department, record) -> bool:
        self.calls.append(("escalated", issue.report_id, record["level"]))
        return True

    def kinds(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create test database engine backed by a temporary SQLite file.

    Each test gets a fresh database; request sessions and the test
    session see each other's committed rows.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'civic-issues.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session.

    Provides a clean database session for each test with automatic rollback.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the application.

    Every request gets its own session on the test database, committed
    or rolled back like the real dependency.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: AsyncClient):
    """
    Returns a function that puts a session cookie for a user on the
    client (None signs out).
    """
    def _login_as(user: Optional[User]) -> AsyncClient:
        client.cookies.clear()
        if user is not None:
            token = create_access_token(user.id, user.email, user.role, user.department_id)
            client.cookies.set(settings.AUTH_COOKIE_NAME, token)
        return client

    return _login_as


# Database model factory fixtures
@pytest_asyncio.fixture
async def create_department(db_session: AsyncSession):
    """
    Factory fixture for creating test departments.

    Returns a function that creates and persists a Department.
    """
    async def _create_department(**kwargs) -> Department:
        defaults = {
            "name": f"{fake.unique.word().title()} Department",
            "slug": fake.unique.slug(),
            "description": fake.sentence(),
            "contact_email": fake.email(),
            "is_active": True,
        }
        defaults.update(kwargs)

        department = Department(**defaults)
        db_session.add(department)
        await db_session.commit()
        await db_session.refresh(department)
        return department

    return _create_department


@pytest_asyncio.fixture
async def create_user(db_session: AsyncSession):
    """
    Factory fixture for creating test users.

    Returns a function that creates and persists a User whose password
    is TEST_PASSWORD.
    """
    async def _create_user(role: str = ROLE_CITIZEN, department: Optional[Department] = None, **kwargs) -> User:
        defaults = {
            "name": fake.name(),
            "email": fake.unique.email().lower(),
            "password_hash": hash_password(TEST_PASSWORD),
            "phone": "+91 98765 43210",
            "role": role,
            "department_id": department.id if department else None,
            "is_active": True,
        }
        defaults.update(kwargs)

        user = User(**defaults)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def create_issue(db_session: AsyncSession):
    """
    Factory fixture for creating test issues.

    Writes the issue row directly (bypassing routing and notifications)
    together with its initial history entry.
    """
    counter = {"next": 1}

    async def _create_issue(reporter: User, **kwargs) -> Issue:
        created_at = kwargs.pop("created_at", datetime.utcnow())
        priority = kwargs.get("priority", "medium")
        defaults = {
            "report_id": f"R{counter['next']:05d}",
            "title": "Deep pothole on the market road",
            "description": "A large pothole has opened up in the middle of the road near the market.",
            "category": "roads-infrastructure",
            "subcategory": "Pothole",
            "images": [],
            "status": "pending",
            "priority": priority,
            "address": "12 Market Road, Old Town, Pune",
            "latitude": 18.5204,
            "longitude": 73.8567,
            "ward": "Ward 7",
            "reported_by_id": reporter.id,
            "upvote_count": 0,
            "sla_deadline": sla.calculate_deadline(priority, created_at),
            "due_time": sla.calculate_due_time(created_at),
            "escalation_level": 1,
            "escalation_history": [],
            "penalty_points": 0,
            "created_at": created_at,
            "updated_at": created_at,
        }
        defaults.update(kwargs)
        counter["next"] += 1

        issue = Issue(**defaults)
        db_session.add(issue)
        await db_session.flush()
        db_session.add(StateHistory(
            issue_id=issue.id,
            from_status=None,
            status=issue.status,
            changed_by_id=reporter.id,
            comment="Issue reported",
            timestamp=created_at,
        ))
        await db_session.commit()
        await db_session.refresh(issue)
        return issue

    return _create_issue


# Role fixtures
@pytest_asyncio.fixture
async def citizen(create_user) -> User:
    return await create_user(ROLE_CITIZEN, name="Asha Citizen")


@pytest_asyncio.fixture
async def other_citizen(create_user) -> User:
    return await create_user(ROLE_CITIZEN, name="Ravi Neighbour")


@pytest_asyncio.fixture
async def roads_department(create_department) -> Department:
    return await create_department(
        name="Roads & Infrastructure Department",
        slug="roads-infrastructure",
        contact_email="roads@city.example",
    )


@pytest_asyncio.fixture
async def department_user(create_user, roads_department) -> User:
    return await create_user(ROLE_DEPARTMENT, department=roads_department, name="Deepa Roads")


@pytest_asyncio.fixture
async def municipal_user(create_user) -> User:
    return await create_user(ROLE_MUNICIPAL, name="Manoj Municipal")


@pytest_asyncio.fixture
async def admin_user(create_user) -> User:
    return await create_user(ROLE_ADMIN, name="Anita Admin")


@pytest.fixture
def issue_payload() -> dict:
    """Valid report payload for POST /api/issues."""
    return {
        "title": "Deep pothole on the market road",
        "description": "A large pothole has opened up in the middle of the road near the market gate.",
        "category": "roads-infrastructure",
        "subcategory": "Pothole",
        "location": {
            "address": "12 Market Road, Old Town, Pune",
            "latitude": 18.5204,
            "longitude": 73.8567,
            "city": "Pune",
            "ward": "Ward 7",
        },
        "images": [],
    }
