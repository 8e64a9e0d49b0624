"""
API endpoints module.
"""

from civic_issues.api.router import api_router

__all__ = ["api_router"]
