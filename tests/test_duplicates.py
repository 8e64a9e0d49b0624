"""
Tests for nearby duplicate detection.
"""

import pytest
from datetime import datetime, timedelta

from civic_issues.services.duplicates import (
    bounding_box,
    find_duplicates,
    haversine_meters,
    longitude_ranges,
)

LAT, LNG = 18.5204, 73.8567
# Roughly 11 metres of latitude
STEP = 0.0001


@pytest.mark.services
class TestGeometry:

    def test_haversine_one_degree_on_equator(self):
        assert haversine_meters(0, 0, 0, 1) == pytest.approx(111_195, rel=1e-3)

    def test_haversine_same_point(self):
        assert haversine_meters(LAT, LNG, LAT, LNG) == 0

    def test_bounding_box_contains_radius(self):
        min_lat, max_lat, min_lng, max_lng = bounding_box(LAT, LNG, 50)

        assert min_lat < LAT < max_lat
        assert min_lng < LNG < max_lng
        assert haversine_meters(LAT, LNG, max_lat, LNG) >= 49.9
        assert haversine_meters(LAT, LNG, LAT, max_lng) >= 49.9

    def test_bounding_box_at_pole(self):
        _, _, min_lng, max_lng = bounding_box(90.0, 10.0, 50)
        assert max_lng - min_lng >= 360
        assert longitude_ranges(min_lng, max_lng) == [(-180.0, 180.0)]

    def test_longitude_ranges_wrap_at_antimeridian(self):
        assert longitude_ranges(10.0, 20.0) == [(10.0, 20.0)]
        assert longitude_ranges(-180.5, -179.5) == [(179.5, 180.0), (-180.0, -179.5)]
        assert longitude_ranges(179.5, 180.5) == [(179.5, 180.0), (-180.0, -179.5)]


@pytest.mark.asyncio
@pytest.mark.services
class TestFindDuplicates:

    async def test_finds_nearby_open_issue(self, db_session, citizen, create_issue):
        issue = await create_issue(citizen, latitude=LAT, longitude=LNG)

        candidates = await find_duplicates(db_session, "roads-infrastructure", LAT + STEP, LNG)

        assert len(candidates) == 1
        assert candidates[0].issue.id == issue.id
        assert 10 < candidates[0].distance_meters < 12

    async def test_finds_issue_across_antimeridian(self, db_session, citizen, create_issue):
        issue = await create_issue(citizen, latitude=0.0, longitude=-179.9999)

        candidates = await find_duplicates(db_session, "roads-infrastructure", 0.0, 179.9999)

        assert [candidate.issue.id for candidate in candidates] == [issue.id]
        assert 20 < candidates[0].distance_meters < 25

    async def test_ignores_other_category(self, db_session, citizen, create_issue):
        await create_issue(citizen, latitude=LAT, longitude=LNG)

        candidates = await find_duplicates(db_session, "street-lighting", LAT, LNG)

        assert candidates == []

    async def test_ignores_far_away_issue(self, db_session, citizen, create_issue):
        await create_issue(citizen, latitude=LAT + 10 * STEP, longitude=LNG)

        assert await find_duplicates(db_session, "roads-infrastructure", LAT, LNG) == []

    @pytest.mark.parametrize("status", ["resolved", "rejected"])
    async def test_ignores_closed_issue(self, db_session, citizen, create_issue, status):
        await create_issue(citizen, latitude=LAT, longitude=LNG, status=status)

        assert await find_duplicates(db_session, "roads-infrastructure", LAT, LNG) == []

    async def test_ignores_old_issue(self, db_session, citizen, create_issue):
        await create_issue(
            citizen, latitude=LAT, longitude=LNG,
            created_at=datetime.utcnow() - timedelta(days=8),
        )

        assert await find_duplicates(db_session, "roads-infrastructure", LAT, LNG) == []

    async def test_sorted_nearest_first_and_limited(self, db_session, citizen, create_issue):
        for offset in (3, 1, 2, 4, 0, 2):
            await create_issue(citizen, latitude=LAT + offset * STEP, longitude=LNG)

        candidates = await find_duplicates(db_session, "roads-infrastructure", LAT, LNG)

        distances = [candidate.distance_meters for candidate in candidates]
        assert len(candidates) == 5
        assert distances == sorted(distances)
        assert distances[0] == 0
