"""
Database models for the civic issue reporting service.

This module exports all SQLAlchemy models and taxonomy constants
used throughout the application.
"""

from civic_issues.models.department import Department
from civic_issues.models.user import (
    User,
    VALID_ROLES,
    STAFF_ROLES,
    ROLE_CITIZEN,
    ROLE_DEPARTMENT,
    ROLE_MUNICIPAL,
    ROLE_ADMIN,
)
from civic_issues.models.issue import (
    Issue,
    IssueComment,
    IssueUpvote,
    VALID_CATEGORIES,
    VALID_PRIORITIES,
    VALID_STATUSES,
    OPEN_STATUSES,
    CLOSED_STATUSES,
)
from civic_issues.models.state_history import StateHistory
from civic_issues.models.performance import StaffPerformance, DepartmentPerformance
from civic_issues.models.notification import Notification, VALID_NOTIFICATION_TYPES

# Civic taxonomy: category slug -> allowed subcategories
SUBCATEGORIES = {
    "roads-infrastructure": [
        "Pothole",
        "Broken Pavement",
        "Damaged Manhole Cover",
        "Road Surface Damage",
    ],
    "street-lighting": [
        "Light Not Working",
        "Flickering Light",
        "Broken Light Pole",
    ],
    "waste-management": [
        "Overflowing Bin",
        "Missed Collection",
        "Illegal Dumping",
        "Broken Container",
    ],
    "water-drainage": [
        "Water Leakage",
        "Blocked Drain",
        "Street Flooding",
        "Sewage Overflow",
    ],
    "parks-public-spaces": [
        "Damaged Furniture",
        "Overgrown Vegetation",
        "Graffiti",
        "Broken Equipment",
    ],
    "traffic-signage": [
        "Damaged Sign",
        "Faded Markings",
        "Malfunctioning Signal",
        "Missing Sign",
    ],
    "public-health-safety": [
        "Stray Animals",
        "Dead Animal",
        "Pest Infestation",
        "Unsafe Structure",
    ],
    "other": [
        "Other (please describe)",
    ],
}

CATEGORY_LABELS = {
    "roads-infrastructure": "Roads & Infrastructure",
    "street-lighting": "Street Lighting",
    "waste-management": "Waste Management",
    "water-drainage": "Water & Drainage",
    "parks-public-spaces": "Parks & Public Spaces",
    "traffic-signage": "Traffic & Signage",
    "public-health-safety": "Public Health & Safety",
    "other": "Other",
}

# Export all models
__all__ = [
    "Department",
    "User",
    "Issue",
    "IssueComment",
    "IssueUpvote",
    "StateHistory",
    "StaffPerformance",
    "DepartmentPerformance",
    "Notification",
    "SUBCATEGORIES",
    "CATEGORY_LABELS",
    "VALID_ROLES",
    "STAFF_ROLES",
    "ROLE_CITIZEN",
    "ROLE_DEPARTMENT",
    "ROLE_MUNICIPAL",
    "ROLE_ADMIN",
    "VALID_CATEGORIES",
    "VALID_PRIORITIES",
    "VALID_STATUSES",
    "OPEN_STATUSES",
    "CLOSED_STATUSES",
    "VALID_NOTIFICATION_TYPES",
]
