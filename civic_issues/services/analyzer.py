"""
Claude AI-powered triage of citizen reports.

The analyzer suggests a category, priority, sentiment and keywords for a
report. It is advisory only: when the API is unreachable or the answer
cannot be parsed, a keyword heuristic is used instead.
"""

import json
import logging
import re
from typing import Optional

import anthropic

from civic_issues.models import SUBCATEGORIES, VALID_PRIORITIES
from civic_issues.services.priority import URGENT_KEYWORDS, calculate_priority
from civic_issues.services.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    SENTIMENTS,
    build_analysis_user_prompt,
)

logger = logging.getLogger(__name__)

# Words that point at a category when the model is unavailable
CATEGORY_HINTS = {
    "roads-infrastructure": ["pothole", "road", "pavement", "manhole", "asphalt"],
    "street-lighting": ["light", "lamp", "streetlight", "dark"],
    "waste-management": ["garbage", "trash", "waste", "bin", "dump", "litter"],
    "water-drainage": ["water", "leak", "drain", "sewage", "flood", "pipe"],
    "parks-public-spaces": ["park", "bench", "playground", "graffiti", "tree"],
    "traffic-signage": ["signal", "sign", "traffic", "marking", "crossing"],
    "public-health-safety": ["dog", "animal", "pest", "rat", "mosquito", "unsafe"],
}

STOPWORDS = {
    "the", "and", "for", "with", "this", "that", "from", "near", "there",
    "have", "has", "been", "are", "was", "our", "its", "not", "very",
}


class IssueAnalyzer:
    """
    Analyzes citizen reports using Claude.

    Produces a suggestion dict with category, subcategory, priority,
    sentiment, keywords and summary.
    """

    MODEL = "claude-sonnet-4-5-20250514"
    MAX_TOKENS_ANALYSIS = 512

    def __init__(self, api_key: str):
        """
        Initialize the analyzer with Anthropic API credentials.

        Args:
            api_key: Anthropic API key for Claude access
        """
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    async def analyze_issue(
        self,
        title: str,
        description: str,
        address: Optional[str] = None,
    ) -> dict:
        """
        Analyze a report with Claude.

        Args:
            title: Report title
            description: Report description
            address: Optional address, gives the model local context

        Returns:
            Suggestion dictionary; ``source`` is "ai" or "fallback"

        Raises:
            anthropic.APIError: If the Claude API call fails
        """
        try:
            response = await self.client.messages.create(
                model=self.MODEL,
                max_tokens=self.MAX_TOKENS_ANALYSIS,
                system=ANALYSIS_SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": build_analysis_user_prompt(title, description, address)}
                ]
            )

            result = json.loads(response.content[0].text)

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Claude analysis response: {e}")
            return fallback_analysis(title, description)
        except anthropic.APIError as e:
            logger.error(f"Claude API error during issue analysis: {e}")
            raise

        if not self._validate_analysis(result):
            logger.warning(f"Invalid analysis returned by Claude: {result}")
            return fallback_analysis(title, description)

        result["keywords"] = [str(k) for k in result.get("keywords", [])][:5]
        result["source"] = "ai"
        return result

    def _validate_analysis(self, result: dict) -> bool:
        """
        Validate that an analysis uses known taxonomy values.

        Args:
            result: Parsed model output

        Returns:
            True if analysis is usable, False otherwise
        """
        if not isinstance(result, dict):
            return False

        category = result.get("category")
        subcategory = result.get("subcategory")

        if category not in SUBCATEGORIES:
            logger.warning(f"Invalid category: {category}")
            return False
        if subcategory is not None and subcategory not in SUBCATEGORIES[category]:
            logger.warning(f"Invalid subcategory: {subcategory} for category: {category}")
            result["subcategory"] = None
        if result.get("priority") not in VALID_PRIORITIES:
            logger.warning(f"Invalid priority: {result.get('priority')}")
            return False
        if result.get("sentiment") not in SENTIMENTS:
            result["sentiment"] = "neutral"
        if not isinstance(result.get("keywords", []), list):
            result["keywords"] = []

        return True


def fallback_analysis(title: str, description: str) -> dict:
    """
    Heuristic analysis used when Claude is unavailable.

    Picks the category whose hint words occur most often, scores priority
    with the standard scorer and pulls the most frequent content words as
    keywords.
    """
    text = f"{title} {description}".lower()

    best_category, best_hits = "other", 0
    for category, hints in CATEGORY_HINTS.items():
        hits = sum(text.count(hint) for hint in hints)
        if hits > best_hits:
            best_category, best_hits = category, hits

    words = [w for w in re.findall(r"[a-z]{3,}", text) if w not in STOPWORDS]
    counts = {}
    for word in words:
        counts[word] = counts.get(word, 0) + 1
    keywords = sorted(counts, key=lambda w: (-counts[w], words.index(w)))[:5]

    urgent = any(keyword in text for keyword in URGENT_KEYWORDS)

    return {
        "category": best_category,
        "subcategory": None,
        "priority": calculate_priority(title, description, best_category),
        "sentiment": "urgent" if urgent else "neutral",
        "keywords": keywords,
        "summary": title,
        "source": "fallback",
    }


def get_analyzer() -> IssueAnalyzer:
    """
    Factory function to create an IssueAnalyzer instance with config from settings.

    Returns:
        Configured IssueAnalyzer instance

    Raises:
        ValueError: If ANTHROPIC_API_KEY is not configured in settings
    """
    from civic_issues.config import settings

    if not settings.ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY must be configured in environment or .env file")

    return IssueAnalyzer(api_key=settings.ANTHROPIC_API_KEY)


async def analyze_report(title: str, description: str, address: Optional[str] = None) -> dict:
    """
    Analyze a report, never raising.

    Uses Claude when an API key is configured and falls back to the
    keyword heuristic on any failure.
    """
    try:
        analyzer = get_analyzer()
        return await analyzer.analyze_issue(title, description, address)
    except ValueError:
        return fallback_analysis(title, description)
    except Exception as e:
        logger.warning(f"AI analysis failed, using keyword fallback: {e}")
        return fallback_analysis(title, description)
