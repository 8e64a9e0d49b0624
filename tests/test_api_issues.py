"""
Tests for the issues API.

Tests cover:
- Reporting, duplicate detection and automatic routing
- Role-scoped listing and the public feed
- Redacted issue views and history
- Community actions: comments, upvotes and feedback
- Staff workflow: status changes, assignment, escalation and priority
"""

import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

from civic_issues.services import reporting
from civic_issues.services.anonymizer import ANONYMOUS_NAME, MASKED_EMAIL


@pytest.mark.asyncio
@pytest.mark.api
class TestReportIssue:

    async def test_citizen_reports_issue(self, login_as, citizen, roads_department, issue_payload, notifier):
        response = await login_as(citizen).post("/api/issues", json=issue_payload)

        assert response.status_code == 201
        data = response.json()
        assert data["report_id"] == "R00001"
        assert data["status"] == "assigned"
        assert data["priority"] == "high"
        assert data["department"]["slug"] == roads_department.slug
        assert data["reporter"]["name"] == "Asha Citizen"
        assert data["sla"]["is_overdue"] is False
        assert data["sla"]["escalation_level"] == 1
        assert notifier.kinds() == ["status", "assigned", "reported"]

    async def test_without_department_stays_pending(self, login_as, citizen, issue_payload):
        response = await login_as(citizen).post("/api/issues", json=issue_payload)

        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        assert response.json()["department"] is None

    async def test_duplicate_nearby_is_rejected(self, login_as, citizen, other_citizen, create_issue, issue_payload):
        existing = await create_issue(other_citizen)
        client = login_as(citizen)

        response = await client.post("/api/issues", json=issue_payload)

        assert response.status_code == 409
        candidates = response.json()["details"]["candidates"]
        assert [c["report_id"] for c in candidates] == [existing.report_id]
        assert candidates[0]["distance_meters"] < 1

        forced = await client.post("/api/issues", json={**issue_payload, "force": True})
        assert forced.status_code == 201
        assert forced.json()["report_id"] == "R00002"

    async def test_check_duplicate(self, login_as, citizen, other_citizen, create_issue):
        await create_issue(other_citizen)
        client = login_as(citizen)

        nearby = await client.get(
            "/api/issues/check-duplicate",
            params={"category": "roads-infrastructure", "lat": 18.5204, "lng": 73.8567},
        )
        far_away = await client.get(
            "/api/issues/check-duplicate",
            params={"category": "roads-infrastructure", "lat": 18.6, "lng": 73.9},
        )

        assert nearby.json()["has_duplicates"] is True
        assert len(nearby.json()["candidates"]) == 1
        assert far_away.json() == {"has_duplicates": False, "candidates": []}

    async def test_only_citizens_report(self, login_as, municipal_user, issue_payload):
        response = await login_as(municipal_user).post("/api/issues", json=issue_payload)

        assert response.status_code == 403

    async def test_anonymous_cannot_report(self, client: AsyncClient, issue_payload):
        response = await client.post("/api/issues", json=issue_payload)

        assert response.status_code == 401

    async def test_subcategory_must_match_category(self, login_as, citizen, issue_payload):
        payload = {**issue_payload, "subcategory": "Garbage Overflow"}

        response = await login_as(citizen).post("/api/issues", json=payload)

        assert response.status_code == 400
        assert "Garbage Overflow" in response.json()["details"][0]["message"]


@pytest.mark.asyncio
@pytest.mark.api
class TestListIssues:

    async def test_citizen_sees_own_reports(self, login_as, citizen, other_citizen, create_issue):
        mine = await create_issue(citizen)
        await create_issue(other_citizen, latitude=18.6)
        client = login_as(citizen)

        own = await client.get("/api/issues")
        everyone = await client.get("/api/issues", params={"scope": "all"})

        assert own.json()["total"] == 1
        assert own.json()["items"][0]["id"] == str(mine.id)
        assert everyone.json()["total"] == 2
        others = [item for item in everyone.json()["items"] if item["id"] != str(mine.id)]
        assert others[0]["reporter"]["name"] == ANONYMOUS_NAME

    async def test_department_sees_assigned_issues(
        self, login_as, citizen, create_issue, department_user, roads_department
    ):
        assigned = await create_issue(
            citizen, status="assigned", assigned_department_id=roads_department.id
        )
        await create_issue(citizen, latitude=18.6)

        response = await login_as(department_user).get("/api/issues")

        assert response.json()["total"] == 1
        assert response.json()["items"][0]["id"] == str(assigned.id)

    async def test_staff_filters_and_pagination(self, login_as, citizen, create_issue, municipal_user):
        for index in range(3):
            await create_issue(citizen, latitude=18.5 + index / 10)
        await create_issue(citizen, status="resolved", title="Broken streetlight near the park")
        client = login_as(municipal_user)

        page = await client.get("/api/issues", params={"per_page": 2, "page": 2})
        pending = await client.get("/api/issues", params={"status": "pending"})
        searched = await client.get("/api/issues", params={"search": "streetlight"})

        assert page.json()["total"] == 4
        assert page.json()["pages"] == 2
        assert len(page.json()["items"]) == 2
        assert pending.json()["total"] == 3
        assert searched.json()["total"] == 1

    async def test_requires_login(self, client: AsyncClient):
        assert (await client.get("/api/issues")).status_code == 401

    async def test_public_feed_is_anonymized(self, client: AsyncClient, citizen, create_issue):
        await create_issue(citizen)

        response = await client.get("/api/issues/public")

        assert response.status_code == 200
        assert response.headers["Cache-Control"].startswith("public, max-age=")
        item = response.json()["items"][0]
        assert item["reporter"]["name"] == ANONYMOUS_NAME
        assert item["reporter"]["id"] is None
        assert item["latitude"] == 0.0
        assert item["address"] == "12 Market..."
        assert "penalty_points" not in item or item["penalty_points"] is None


@pytest.mark.asyncio
@pytest.mark.api
class TestIssueDetail:

    async def test_views_by_role(self, login_as, citizen, other_citizen, municipal_user, create_issue):
        issue = await create_issue(citizen)
        url = f"/api/issues/{issue.id}"

        anonymous = (await login_as(None).get(url)).json()
        owner = (await login_as(citizen).get(url)).json()
        stranger = (await login_as(other_citizen).get(url)).json()
        staff = (await login_as(municipal_user).get(url)).json()

        assert anonymous["reporter"]["name"] == ANONYMOUS_NAME
        assert anonymous["has_upvoted"] is None
        assert stranger["reporter"]["email"] == MASKED_EMAIL
        assert stranger["has_upvoted"] is False
        assert owner["reporter"]["email"] == citizen.email
        assert owner["latitude"] == pytest.approx(18.5204)
        assert staff["reporter"]["name"] == "Asha Citizen"
        assert staff["escalation_history"] == []
        assert staff["penalty_points"] == 0

    async def test_unknown_issue(self, client: AsyncClient):
        response = await client.get("/api/issues/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_history_hides_actors_from_strangers(self, login_as, citizen, other_citizen, create_issue):
        issue = await create_issue(citizen)
        url = f"/api/issues/{issue.id}/history"

        owner = (await login_as(citizen).get(url)).json()
        stranger = (await login_as(other_citizen).get(url)).json()

        assert owner[0]["status"] == "pending"
        assert owner[0]["changed_by_id"] == str(citizen.id)
        assert stranger[0]["changed_by_id"] is None


@pytest.mark.asyncio
@pytest.mark.api
class TestEditAndDelete:

    async def test_reporter_edits_pending_issue(self, login_as, citizen, other_citizen, create_issue):
        issue = await create_issue(citizen)
        update = {"title": "Very deep pothole on the market road"}

        stranger = await login_as(other_citizen).patch(f"/api/issues/{issue.id}", json=update)
        owner = await login_as(citizen).patch(f"/api/issues/{issue.id}", json=update)

        assert stranger.status_code == 403
        assert owner.status_code == 200
        assert owner.json()["title"] == update["title"]

    async def test_admin_deletes(self, login_as, citizen, municipal_user, admin_user, create_issue):
        issue = await create_issue(citizen)

        denied = await login_as(municipal_user).delete(f"/api/issues/{issue.id}")
        deleted = await login_as(admin_user).delete(f"/api/issues/{issue.id}")
        gone = await login_as(admin_user).get(f"/api/issues/{issue.id}")

        assert denied.status_code == 403
        assert deleted.json() == {"message": f"Issue {issue.report_id} deleted"}
        assert gone.status_code == 404


@pytest.mark.asyncio
@pytest.mark.api
class TestCommunityActions:

    async def test_comments(self, login_as, citizen, other_citizen, municipal_user, create_issue):
        issue = await create_issue(citizen)
        url = f"/api/issues/{issue.id}/comments"

        owner = await login_as(citizen).post(url, json={"text": "Still there this morning"})
        staff = await login_as(municipal_user).post(url, json={"text": "Crew scheduled"})
        stranger = await login_as(other_citizen).post(url, json={"text": "Me too"})

        assert owner.status_code == 201
        assert owner.json()["author_id"] == str(citizen.id)
        assert staff.status_code == 201
        assert stranger.status_code == 403

        detail = (await login_as(citizen).get(f"/api/issues/{issue.id}")).json()
        assert [c["text"] for c in detail["comments"]] == ["Still there this morning", "Crew scheduled"]

    async def test_upvote_and_remove(self, login_as, citizen, other_citizen, create_issue):
        issue = await create_issue(citizen)
        url = f"/api/issues/{issue.id}/upvote"
        client = login_as(other_citizen)

        first = await client.post(url)
        second = await client.post(url)
        detail = await client.get(f"/api/issues/{issue.id}")
        removed = await client.delete(url)
        removed_again = await client.delete(url)

        assert first.json()["upvote_count"] == 1
        assert first.json()["has_upvoted"] is True
        assert first.json()["priority"] == "high"
        assert second.status_code == 400
        assert second.json()["detail"] == "Already upvoted"
        assert detail.json()["has_upvoted"] is True
        assert removed.json() == {"upvote_count": 0, "has_upvoted": False, "priority": "high"}
        assert removed_again.status_code == 400

    async def test_staff_cannot_upvote(self, login_as, citizen, municipal_user, create_issue):
        issue = await create_issue(citizen)

        response = await login_as(municipal_user).post(f"/api/issues/{issue.id}/upvote")

        assert response.status_code == 403

    async def test_feedback_on_resolved_issue(self, login_as, citizen, create_issue):
        issue = await create_issue(citizen, status="resolved", resolved_at=datetime.utcnow())

        response = await login_as(citizen).post(
            f"/api/issues/{issue.id}/feedback", json={"rating": 4, "comment": "Quick fix"}
        )
        again = await login_as(citizen).post(f"/api/issues/{issue.id}/feedback", json={"rating": 5})

        assert response.status_code == 200
        assert response.json()["feedback_rating"] == 4
        assert response.json()["feedback_is_resolved"] is True
        assert again.status_code == 400

    async def test_negative_feedback_reopens(self, login_as, citizen, create_issue):
        issue = await create_issue(citizen, status="resolved", resolved_at=datetime.utcnow())

        response = await login_as(citizen).post(
            f"/api/issues/{issue.id}/feedback",
            json={"rating": 1, "is_resolved": False, "comment": "Pothole is back"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "reopened"

    async def test_feedback_needs_resolved_issue(self, login_as, citizen, create_issue):
        issue = await create_issue(citizen)

        response = await login_as(citizen).post(f"/api/issues/{issue.id}/feedback", json={"rating": 3})

        assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.api
class TestStaffWorkflow:

    async def test_status_change(self, login_as, citizen, create_issue, municipal_user, notifier):
        issue = await create_issue(citizen)
        client = login_as(municipal_user)

        acknowledged = await client.post(
            f"/api/issues/{issue.id}/status", json={"status": "acknowledged"}
        )

        assert acknowledged.status_code == 200
        assert acknowledged.json()["status"] == "acknowledged"
        assert ("status", issue.report_id, "pending", "acknowledged") in notifier.calls

    async def test_invalid_transition(self, login_as, citizen, create_issue, municipal_user):
        issue = await create_issue(citizen)

        response = await login_as(municipal_user).post(
            f"/api/issues/{issue.id}/status", json={"status": "resolved", "comment": "Done"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID_TRANSITION"
        assert body["details"] == {"from_status": "pending", "to_status": "resolved"}

    async def test_citizen_cannot_change_status(self, login_as, citizen, create_issue):
        issue = await create_issue(citizen)

        response = await login_as(citizen).post(
            f"/api/issues/{issue.id}/status", json={"status": "acknowledged"}
        )

        assert response.status_code == 403

    async def test_department_works_and_resolves(
        self, login_as, citizen, create_issue, department_user, roads_department, db_session
    ):
        issue = await create_issue(
            citizen,
            status="assigned",
            assigned_department_id=roads_department.id,
            created_at=datetime.utcnow() - timedelta(hours=5),
        )
        client = login_as(department_user)

        started = await client.post(f"/api/issues/{issue.id}/status", json={"status": "in-progress"})
        missing_note = await client.post(f"/api/issues/{issue.id}/status", json={"status": "resolved"})
        resolved = await client.post(
            f"/api/issues/{issue.id}/status",
            json={"status": "resolved", "comment": "Patched with cold mix"},
        )

        assert started.json()["status"] == "in-progress"
        assert missing_note.status_code == 400
        assert resolved.json()["status"] == "resolved"

        stored = await reporting.get_issue(db_session, issue.id)
        assert stored.resolution_notes == "Patched with cold mix"
        assert stored.resolved_at is not None

    async def test_assign(self, login_as, citizen, create_issue, municipal_user, roads_department, notifier):
        issue = await create_issue(citizen)

        response = await login_as(municipal_user).post(
            f"/api/issues/{issue.id}/assign", json={"department_id": str(roads_department.id)}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "assigned"
        assert response.json()["department"]["slug"] == roads_department.slug
        assert ("assigned", issue.report_id, roads_department.slug) in notifier.calls

    async def test_assign_requires_staff(self, login_as, citizen, create_issue, department_user, roads_department):
        issue = await create_issue(citizen)

        response = await login_as(department_user).post(
            f"/api/issues/{issue.id}/assign", json={"department_id": str(roads_department.id)}
        )

        assert response.status_code == 403

    async def test_manual_escalation(self, login_as, citizen, create_issue, municipal_user):
        issue = await create_issue(citizen)

        response = await login_as(municipal_user).post(
            f"/api/issues/{issue.id}/escalate", json={"reason": "Ward councillor complaint"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "escalated"
        assert data["escalation_level"] == 2
        assert data["escalation_history"][0]["reason"] == "Ward councillor complaint"

    async def test_priority_override(self, login_as, citizen, create_issue, municipal_user):
        issue = await create_issue(citizen)

        denied = await login_as(citizen).patch(f"/api/issues/{issue.id}/priority", json={"priority": "urgent"})
        response = await login_as(municipal_user).patch(
            f"/api/issues/{issue.id}/priority", json={"priority": "urgent"}
        )

        assert denied.status_code == 403
        assert response.status_code == 200
        assert response.json()["priority"] == "urgent"
        assert response.json()["priority_overridden_by_id"] == str(municipal_user.id)
