"""
Notification fan-out to project members.

Rows are added to the caller's session (no commit) so they land in the
same transaction as the mutation that caused them.
"""

import logging

from sqlalchemy import select

from projecthub.models import db
from projecthub.models.notification import NOTIFICATION_TYPES, Notification
from projecthub.models.project import ProjectMember

logger = logging.getLogger(__name__)


def notify_project_members(project_id: int, notification_type: str, payload: dict | None = None) -> int:
    """Queue one notification per member of the project. Returns the count."""
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    emails = db.session.execute(
        select(ProjectMember.email).where(ProjectMember.project_id == project_id)
    ).scalars().all()
    for email in emails:
        db.session.add(Notification(
            project_id=project_id,
            user_email=email,
            type=notification_type,
            payload=payload or {},
        ))
    logger.debug("Queued %d %s notification(s) for project %s", len(emails), notification_type, project_id)
    return len(emails)


def list_notifications(email: str, unread_only: bool = False) -> list[dict]:
    stmt = select(Notification).where(Notification.user_email == email.strip().lower())
    if unread_only:
        stmt = stmt.where(Notification.read_at.is_(None))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    return [n.to_dict() for n in db.session.execute(stmt).scalars().all()]
