"""
Services module for business logic and external API clients.
"""

from civic_issues.services.analyzer import (
    IssueAnalyzer,
    analyze_report,
    fallback_analysis,
    get_analyzer
)
from civic_issues.services.notifier import (
    Notifier,
    get_notifier
)
from civic_issues.services.uploader import (
    ImageUploader,
    ImageHostError,
    InvalidImageError,
    get_uploader
)
from civic_issues.services.priority import (
    calculate_priority,
    calculate_priority_score
)
from civic_issues.services.duplicates import (
    DuplicateCandidate,
    find_duplicates
)
from civic_issues.services.anonymizer import (
    project_issue_view,
    project_user_view
)

__all__ = [
    "IssueAnalyzer",
    "analyze_report",
    "fallback_analysis",
    "get_analyzer",
    "Notifier",
    "get_notifier",
    "ImageUploader",
    "ImageHostError",
    "InvalidImageError",
    "get_uploader",
    "calculate_priority",
    "calculate_priority_score",
    "DuplicateCandidate",
    "find_duplicates",
    "project_issue_view",
    "project_user_view",
]
