"""
Main API router aggregating all endpoint modules.
"""

from fastapi import APIRouter

from civic_issues.api import (
    admin,
    ai,
    auth,
    dashboard,
    department,
    departments,
    issues,
    notifications,
    performance,
    sla,
    tasks,
    uploads,
)

# Create main API router with /api prefix
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(auth.router)
api_router.include_router(issues.router)
api_router.include_router(department.router)
api_router.include_router(departments.router)
api_router.include_router(admin.router)
api_router.include_router(sla.router)
api_router.include_router(performance.router)
api_router.include_router(dashboard.router)
api_router.include_router(notifications.router)
api_router.include_router(uploads.router)
api_router.include_router(ai.router)
api_router.include_router(tasks.router)
