"""
AI-assisted triage for the reporting form.
"""

from fastapi import APIRouter, Depends

from civic_issues.api.deps import get_current_user
from civic_issues.models import User
from civic_issues.schemas import AnalysisRequest, AnalysisResponse
from civic_issues.services.analyzer import analyze_report

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(data: AnalysisRequest, _: User = Depends(get_current_user)):
    """
    Suggest category, priority, sentiment and keywords for a draft report.

    Uses Claude when configured; otherwise (or on failure) a keyword
    heuristic. Suggestions are advisory and never stored.
    """
    return await analyze_report(data.title, data.description, data.address)
