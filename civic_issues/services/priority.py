"""
Priority scoring for newly reported issues.

A report starts at a neutral score of 50 and collects points from its
category, subcategory, wording, community upvotes and level of detail.
The final score maps onto one of four priority labels.
"""

from typing import Optional

PRIORITY_ORDER = ["low", "medium", "high", "urgent"]

BASE_SCORE = 50

CATEGORY_OFFSETS = {
    "water-drainage": 20,
    "street-lighting": 20,
    "public-health-safety": 15,
    "roads-infrastructure": 10,
    "waste-management": 10,
    "traffic-signage": 5,
    "parks-public-spaces": 0,
    "other": 0,
}

URGENT_SUBCATEGORIES = {
    "no water",
    "burst pipe",
    "power outage",
    "accident",
    "fire",
    "medical emergency",
    "major damage",
    "open manhole",
    "severe pothole",
    "damaged manhole cover",
    "sewage overflow",
    "street flooding",
    "broken light pole",
    "malfunctioning signal",
    "unsafe structure",
}
URGENT_SUBCATEGORY_BONUS = 20

URGENT_KEYWORDS = [
    "urgent",
    "emergency",
    "immediate",
    "critical",
    "danger",
    "dangerous",
    "accident",
    "injury",
    "injured",
    "fire",
    "flood",
    "leaking",
    "broken",
    "severe",
    "major",
]
KEYWORD_BONUS = 10

# (minimum upvotes, bonus), checked from the highest tier down
UPVOTE_TIERS = [(10, 30), (5, 20), (3, 10)]

LONG_DESCRIPTION_CHARS = 300
LONG_DESCRIPTION_BONUS = 5

# (minimum score, label), checked from the highest threshold down
SCORE_THRESHOLDS = [(80, "urgent"), (60, "high"), (40, "medium")]


def upvote_bonus(upvotes: int) -> int:
    for minimum, bonus in UPVOTE_TIERS:
        if upvotes >= minimum:
            return bonus
    return 0


def calculate_priority_score(
    title: Optional[str],
    description: Optional[str],
    category: Optional[str],
    subcategory: Optional[str] = None,
    upvotes: int = 0,
) -> int:
    """
    Compute the additive priority score for a report.

    Keywords are matched as substrings of the lowercased title and
    description; each distinct keyword counts once.

    Args:
        title: Report title
        description: Report description
        category: Category slug
        subcategory: Subcategory label
        upvotes: Current community upvote count

    Returns:
        Integer score (unbounded above)
    """
    title = title or ""
    description = description or ""

    score = BASE_SCORE
    score += CATEGORY_OFFSETS.get(category or "", 0)

    if subcategory and subcategory.strip().lower() in URGENT_SUBCATEGORIES:
        score += URGENT_SUBCATEGORY_BONUS

    text = f"{title} {description}".lower()
    score += KEYWORD_BONUS * sum(1 for keyword in URGENT_KEYWORDS if keyword in text)

    score += upvote_bonus(upvotes or 0)

    if len(description) > LONG_DESCRIPTION_CHARS:
        score += LONG_DESCRIPTION_BONUS

    return score


def score_to_priority(score: int) -> str:
    """Map a score onto exactly one of low, medium, high or urgent."""
    for minimum, label in SCORE_THRESHOLDS:
        if score >= minimum:
            return label
    return "low"


def calculate_priority(
    title: Optional[str],
    description: Optional[str],
    category: Optional[str],
    subcategory: Optional[str] = None,
    upvotes: int = 0,
) -> str:
    return score_to_priority(
        calculate_priority_score(title, description, category, subcategory, upvotes)
    )


def priority_rank(priority: str) -> int:
    """Position of a label in PRIORITY_ORDER; unknown labels rank lowest."""
    try:
        return PRIORITY_ORDER.index(priority)
    except ValueError:
        return -1


def raise_priority(priority: str) -> str:
    """Next label up, capped at urgent."""
    rank = max(priority_rank(priority), 0)
    return PRIORITY_ORDER[min(rank + 1, len(PRIORITY_ORDER) - 1)]
