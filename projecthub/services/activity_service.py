"""Read side of the audit trail: a project's activity feed, newest first."""

from sqlalchemy import select

from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.audit import AuditLog
from projecthub.services.access_control import authorize

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def list_activity(principal: Principal, project_id: int, limit: int = DEFAULT_LIMIT, action: str | None = None) -> list[dict]:
    authorize(principal, "project.read", project_id)
    limit = max(1, min(int(limit or DEFAULT_LIMIT), MAX_LIMIT))

    stmt = select(AuditLog).where(AuditLog.project_id == project_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
    return [row.to_dict() for row in db.session.execute(stmt).scalars().all()]
