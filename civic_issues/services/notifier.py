"""
Email and in-app notifications.

Delivery is best-effort: SMTP failures are logged and reported as a
False return value, never raised into the request that caused them.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import aiosmtplib
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.config import settings
from civic_issues.models import Department, Issue, Notification, User

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "acknowledged": "Your report has been acknowledged by the municipality.",
    "assigned": "Your report has been assigned to a department.",
    "in-progress": "Work on your report has started.",
    "resolved": "Your report has been marked as resolved. Please let us know if the problem is fixed.",
    "rejected": "Your report has been reviewed and rejected.",
    "reopened": "Your report has been reopened.",
    "escalated": "Your report has been escalated for faster attention.",
}


class Notifier:
    """Sends notification emails over SMTP and records in-app notifications."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: Optional[str],
        smtp_password: Optional[str],
        from_email: str,
        from_name: str,
        frontend_url: str,
        use_tls: bool = True,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name
        self.frontend_url = frontend_url.rstrip("/")
        self.use_tls = use_tls

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def issue_url(self, issue: Issue) -> str:
        return f"{self.frontend_url}/issues/{issue.id}"

    async def send_email(
        self,
        to_email: Optional[str],
        subject: str,
        text_content: str,
        html_content: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Returns:
            True if the relay accepted the message, False otherwise
        """
        if not to_email:
            return False
        if not self.is_configured:
            logger.debug(f"Email not configured, skipping '{subject}' to {to_email}")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject
        message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content or f"<p>{escape(text_content)}</p>", "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.use_tls,
            )
        except Exception as e:
            logger.error(f"Failed to send email to {to_email} ({subject}): {e}")
            return False

        logger.info(f"Sent email to {to_email}: {subject}")
        return True

    def add_notification(
        self,
        db: AsyncSession,
        user_id,
        title: str,
        message: str,
        type: str = "issue_update",
        issue: Optional[Issue] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_issue_id=issue.id if issue is not None else None,
            read=False,
        )
        db.add(notification)
        return notification

    async def send_welcome(self, user: User) -> bool:
        text = (
            f"Hello {user.name},\n\n"
            f"Welcome! You can now report civic issues and follow their progress at "
            f"{self.frontend_url}."
        )
        return await self.send_email(user.email, "Welcome to Civic Issues", text)

    async def issue_reported(self, db: AsyncSession, issue: Issue, reporter: User) -> bool:
        """Confirm a new report to the citizen who filed it."""
        self.add_notification(
            db,
            reporter.id,
            f"Report {issue.report_id} received",
            f"We received your report \"{issue.title}\" with {issue.priority} priority.",
            type="system",
            issue=issue,
        )
        text = (
            f"Hello {reporter.name},\n\n"
            f"Your report \"{issue.title}\" was received as {issue.report_id}.\n"
            f"Priority: {issue.priority}\n"
            f"Expected response by: {issue.sla_deadline:%Y-%m-%d %H:%M} UTC\n\n"
            f"Track it at {self.issue_url(issue)}"
        )
        return await self.send_email(reporter.email, f"Report {issue.report_id} received", text)

    async def status_changed(
        self,
        db: AsyncSession,
        issue: Issue,
        reporter: Optional[User],
        from_status: Optional[str],
        to_status: str,
        comment: Optional[str] = None,
    ) -> bool:
        """Tell the reporter that their issue moved to a new status."""
        if reporter is None:
            return False

        summary = STATUS_MESSAGES.get(to_status, f"Status changed to {to_status}.")
        self.add_notification(
            db,
            reporter.id,
            f"Report {issue.report_id} is now {to_status}",
            summary if not comment else f"{summary} {comment}",
            type="status_change",
            issue=issue,
        )

        lines = [
            f"Hello {reporter.name},",
            "",
            summary,
            f"Report: {issue.report_id} - {issue.title}",
            f"Status: {from_status or 'new'} -> {to_status}",
        ]
        if comment:
            lines.append(f"Note: {comment}")
        lines.extend(["", f"Details: {self.issue_url(issue)}"])
        return await self.send_email(
            reporter.email, f"Update on report {issue.report_id}", "\n".join(lines)
        )

    async def department_assigned(self, issue: Issue, department: Optional[Department]) -> bool:
        if department is None or not department.contact_email:
            return False
        text = (
            f"A new {issue.priority} priority issue was assigned to {department.name}.\n\n"
            f"{issue.report_id}: {issue.title}\n"
            f"Address: {issue.address}\n"
            f"SLA deadline: {issue.sla_deadline:%Y-%m-%d %H:%M} UTC\n\n"
            f"{self.issue_url(issue)}"
        )
        return await self.send_email(
            department.contact_email, f"New issue assigned: {issue.report_id}", text
        )

    async def issue_escalated(self, issue: Issue, department: Optional[Department], record: dict) -> bool:
        if department is None or not department.contact_email:
            return False
        text = (
            f"Issue {issue.report_id} was escalated to level {record['level']} "
            f"({record['escalated_to']}).\n"
            f"Reason: {record['reason']}\n\n"
            f"{self.issue_url(issue)}"
        )
        return await self.send_email(
            department.contact_email, f"Escalation: {issue.report_id}", text
        )


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """
    Shared Notifier configured from settings.

    Used as a FastAPI dependency so tests can swap in a fake.
    """
    global _notifier
    if _notifier is None:
        _notifier = Notifier(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            from_email=settings.EMAIL_FROM,
            from_name=settings.EMAIL_FROM_NAME,
            frontend_url=settings.FRONTEND_URL,
            use_tls=settings.SMTP_USE_TLS,
        )
    return _notifier
