"""
Public transparency dashboard.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_db
from civic_issues.config import settings
from civic_issues.schemas import PublicDashboard
from civic_issues.services import analytics

router = APIRouter(tags=["dashboard"])


@router.get("/public-dashboard", response_model=PublicDashboard)
async def public_dashboard(response: Response, db: AsyncSession = Depends(get_db)):
    """
    City-wide statistics and anonymized issue lists. No authentication;
    responses may be cached by browsers and proxies.
    """
    response.headers["Cache-Control"] = f"public, max-age={settings.PUBLIC_CACHE_SECONDS}"
    return await analytics.public_dashboard(db)
