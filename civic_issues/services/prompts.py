"""
Prompt templates for Claude AI issue analysis.

This module contains:
- The civic taxonomy as presented to the model
- The system prompt for analyzing a citizen report
- The user prompt builder
"""

from typing import Optional

from civic_issues.models import CATEGORY_LABELS, SUBCATEGORIES, VALID_PRIORITIES

SENTIMENTS = ["positive", "neutral", "negative", "urgent"]


def _taxonomy_lines() -> str:
    return "\n".join(
        f"- {slug} ({CATEGORY_LABELS[slug]}): {', '.join(subcategories)}"
        for slug, subcategories in SUBCATEGORIES.items()
    )


ANALYSIS_SYSTEM_PROMPT = f"""You are a triage assistant for a city's civic issue reporting service.
Citizens describe problems in public spaces; you classify each report for municipal staff.

CATEGORIES (slug, label, subcategories):
{_taxonomy_lines()}

Priority:
- urgent: Immediate danger to people or property (open manholes, live wires, flooding)
- high: Significant disruption or a hazard that will worsen soon
- medium: Needs attention but is not dangerous
- low: Cosmetic or minor inconvenience

Sentiment: one of {", ".join(SENTIMENTS)}

INSTRUCTIONS:
1. Read the title and description
2. Choose the single best category slug and one of its subcategories
3. Judge priority from the risk described, not from the tone
4. Extract up to 5 short keywords a staff member would search for

Respond with JSON only:
{{
  "category": "water-drainage",
  "subcategory": "Water Leakage",
  "priority": "high",
  "sentiment": "negative",
  "keywords": ["pipe", "leak", "main road"],
  "summary": "Water main leaking onto the road near the market"
}}
"""


def build_analysis_user_prompt(
    title: str,
    description: str,
    address: Optional[str] = None,
) -> str:
    """Format a citizen report for analysis."""
    parts = [
        f"TITLE: {title}",
        "",
        "DESCRIPTION:",
        description or "(none)",
    ]
    if address:
        parts.extend(["", f"LOCATION: {address}"])
    parts.extend(["", f"Valid priorities: {', '.join(VALID_PRIORITIES)}"])
    return "\n".join(parts)
