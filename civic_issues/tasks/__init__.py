"""
Background tasks and scheduling module.

Provides:
- Scheduler: periodic SLA escalation sweep
"""

from civic_issues.tasks.scheduler import (
    scheduler,
    setup_scheduler,
    shutdown_scheduler,
    get_job_status,
    escalate_overdue_issues,
    sla_sweep_job,
)

__all__ = [
    "scheduler",
    "setup_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "escalate_overdue_issues",
    "sla_sweep_job",
]
