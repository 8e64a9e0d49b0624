"""
Duplicate detection for new reports.

Finds open issues of the same category reported close by in the last
week. The database narrows candidates with a latitude/longitude bounding
box; exact great-circle distances are computed here.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.models import OPEN_STATUSES, Issue

EARTH_RADIUS_METERS = 6_371_000
METERS_PER_DEGREE_LATITUDE = 111_320

DUPLICATE_RADIUS_METERS = 50
DUPLICATE_WINDOW_DAYS = 7
MAX_DUPLICATES = 5


@dataclass
class DuplicateCandidate:
    issue: Issue
    distance_meters: float


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lng: float, radius_meters: float) -> tuple:
    """
    Latitude/longitude window that contains every point within the radius.

    Returns:
        (min_lat, max_lat, min_lng, max_lng)
    """
    lat_delta = radius_meters / METERS_PER_DEGREE_LATITUDE
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        # Near the poles every longitude is close
        lng_delta = 180.0
    else:
        lng_delta = min(180.0, radius_meters / (METERS_PER_DEGREE_LATITUDE * cos_lat))
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta


def longitude_ranges(min_lng: float, max_lng: float) -> List[tuple]:
    """Split a longitude window that crosses the antimeridian into two ranges."""
    if max_lng - min_lng >= 360:
        return [(-180.0, 180.0)]
    if min_lng < -180:
        return [(min_lng + 360, 180.0), (-180.0, max_lng)]
    if max_lng > 180:
        return [(min_lng, 180.0), (-180.0, max_lng - 360)]
    return [(min_lng, max_lng)]


async def find_duplicates(
    db: AsyncSession,
    category: str,
    latitude: float,
    longitude: float,
    now: Optional[datetime] = None,
    radius_meters: float = DUPLICATE_RADIUS_METERS,
    limit: int = MAX_DUPLICATES,
) -> List[DuplicateCandidate]:
    """
    Find open issues of the same category near a point.

    Args:
        db: Database session
        category: Category slug of the new report
        latitude: Latitude of the new report
        longitude: Longitude of the new report
        now: Reference time for the 7-day window (default: utcnow)
        radius_meters: Search radius (default: 50m)
        limit: Maximum candidates to return (default: 5)

    Returns:
        Candidates sorted nearest first
    """
    now = now or datetime.utcnow()
    min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_meters)

    lng_filters = [
        Issue.longitude.between(low, high) for low, high in longitude_ranges(min_lng, max_lng)
    ]
    query = select(Issue).where(
        and_(
            Issue.category == category,
            Issue.status.in_(OPEN_STATUSES),
            Issue.created_at >= now - timedelta(days=DUPLICATE_WINDOW_DAYS),
            Issue.latitude.between(min_lat, max_lat),
            or_(*lng_filters),
        )
    )
    result = await db.execute(query)

    candidates = []
    for issue in result.scalars().all():
        distance = haversine_meters(latitude, longitude, issue.latitude, issue.longitude)
        if distance <= radius_meters:
            candidates.append(DuplicateCandidate(issue=issue, distance_meters=round(distance, 1)))

    candidates.sort(key=lambda candidate: candidate.distance_meters)
    return candidates[:limit]
