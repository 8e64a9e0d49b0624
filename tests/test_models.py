"""
Tests for database models (User, Department, Issue and their rows).

Tests cover:
- Model creation and defaults
- Relationships between models
- Constraint validation
"""

import pytest
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.models import (
    CATEGORY_LABELS,
    SUBCATEGORIES,
    VALID_CATEGORIES,
    Department,
    Issue,
    IssueComment,
    IssueUpvote,
    Notification,
    StateHistory,
    User,
)


@pytest.mark.asyncio
@pytest.mark.database
class TestUserModel:
    """Test suite for User model."""

    async def test_create_user_defaults(self, db_session: AsyncSession):
        user = User(name="Asha", email="asha@example.com", password_hash="x", role="citizen")

        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)

        assert user.id is not None
        assert user.is_active is True
        assert user.welcome_email_sent is False
        assert user.department_id is None
        assert user.is_staff is False

    async def test_email_unique(self, db_session: AsyncSession, create_user):
        await create_user(email="dup@example.com")

        with pytest.raises(IntegrityError):
            await create_user(email="dup@example.com")

    async def test_invalid_role_rejected(self, db_session: AsyncSession):
        db_session.add(User(name="Bad", email="bad@example.com", password_hash="x", role="mayor"))

        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_department_relationship(self, db_session: AsyncSession, department_user, roads_department):
        result = await db_session.execute(
            select(User).where(User.id == department_user.id).execution_options(populate_existing=True)
        )
        user = result.scalar_one()

        assert user.department.slug == roads_department.slug
        assert user.is_staff is False


@pytest.mark.asyncio
@pytest.mark.database
class TestIssueModel:
    """Test suite for Issue model."""

    async def test_create_issue_defaults(self, db_session: AsyncSession, citizen, create_issue):
        issue = await create_issue(citizen)

        assert issue.id is not None
        assert issue.status == "pending"
        assert issue.upvote_count == 0
        assert issue.escalation_level == 1
        assert issue.images == []
        assert issue.resolved_at is None

    async def test_report_id_unique(self, db_session: AsyncSession, citizen, create_issue):
        await create_issue(citizen, report_id="R00077")

        with pytest.raises(IntegrityError):
            await create_issue(citizen, report_id="R00077")

    @pytest.mark.parametrize(
        "field,value",
        [
            ("status", "closed"),
            ("priority", "critical"),
            ("category", "potholes"),
            ("latitude", 91.0),
            ("escalation_level", 4),
            ("feedback_rating", 6),
        ],
    )
    async def test_check_constraints(self, db_session: AsyncSession, citizen, create_issue, field, value):
        with pytest.raises(IntegrityError):
            await create_issue(citizen, **{field: value})

    async def test_comments_relationship(self, db_session: AsyncSession, citizen, create_issue):
        issue = await create_issue(citizen)
        db_session.add(IssueComment(issue_id=issue.id, author_id=citizen.id, text="First"))
        db_session.add(IssueComment(issue_id=issue.id, author_id=citizen.id, text="Second"))
        await db_session.commit()

        result = await db_session.execute(
            select(Issue).where(Issue.id == issue.id).execution_options(populate_existing=True)
        )
        loaded = result.scalar_one()

        assert [comment.text for comment in loaded.comments] == ["First", "Second"]
        assert loaded.comments[0].author.id == citizen.id
        assert loaded.reporter.id == citizen.id

    async def test_one_upvote_per_user(self, db_session: AsyncSession, citizen, other_citizen, create_issue):
        issue = await create_issue(citizen)
        db_session.add(IssueUpvote(issue_id=issue.id, user_id=other_citizen.id))
        await db_session.commit()

        db_session.add(IssueUpvote(issue_id=issue.id, user_id=other_citizen.id))
        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_initial_history_row(self, db_session: AsyncSession, citizen, create_issue):
        issue = await create_issue(citizen)

        result = await db_session.execute(
            select(StateHistory).where(StateHistory.issue_id == issue.id)
        )
        rows = result.scalars().all()

        assert len(rows) == 1
        assert rows[0].from_status is None
        assert rows[0].status == "pending"


@pytest.mark.asyncio
@pytest.mark.database
class TestNotificationModel:

    async def test_invalid_type_rejected(self, db_session: AsyncSession, citizen):
        db_session.add(Notification(user_id=citizen.id, title="Hi", message="Hello", type="sms"))

        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_defaults(self, db_session: AsyncSession, citizen):
        notification = Notification(user_id=citizen.id, title="Hi", message="Hello")
        db_session.add(notification)
        await db_session.commit()
        await db_session.refresh(notification)

        assert notification.read is False
        assert notification.type == "issue_update"
        assert notification.created_at <= datetime.utcnow()


@pytest.mark.database
class TestTaxonomy:

    def test_every_category_has_subcategories_and_label(self):
        assert set(SUBCATEGORIES) == set(VALID_CATEGORIES)
        assert set(CATEGORY_LABELS) == set(VALID_CATEGORIES)
        assert all(SUBCATEGORIES[category] for category in VALID_CATEGORIES)

    def test_department_repr(self):
        department = Department(name="Roads", slug="roads-infrastructure", is_active=True)
        assert "roads-infrastructure" in repr(department)
