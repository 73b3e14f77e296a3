"""
ProjectHub
Audit domain model.

Models:
    - AuditLog: append-only activity trail for project events.
"""

import logging
from datetime import datetime, timezone

from projecthub.models import db

logger = logging.getLogger(__name__)

ACTOR_TYPES = ("provider", "client", "system")

AUDIT_ACTIONS = {
    # Stage lifecycle
    "stage.created",
    "stage.updated",
    "stage.deleted",
    "stage.reordered",
    "stage.completed",
    "stage.completion_note_updated",
    "stage.materials_requested",
    "stage.approval_requested",
    "project.stage_changed",
    # Components
    "stage_component.created",
    "stage_component.updated",
    "stage_component.deleted",
    "stage_component.approved",
    "stage_component.reordered",
    "stage_component.link_submitted",
    # Comments
    "comment.created",
    "comment.updated",
    "comment.deleted",
    # Membership and approvals
    "project.member_added",
    "project.member_removed",
    "project.member_role_updated",
    "project.member_accepted",
    "approval.responded",
    # Project record, links and minutes
    "project.created",
    "project.updated",
    "project.dates_updated",
    "project.status_updated",
    "project.link_added",
    "project.link_updated",
    "project.link_deleted",
    "project.minute_added",
    "project.minute_updated",
    "project.minute_deleted",
}


class AuditLog(db.Model):
    """
    Immutable activity trail.

    One row per action. ``details`` carries the action-specific payload
    (ids touched, fields changed).
    """

    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("idx_activity_project_created", "project_id", "created_at"),
        db.Index("idx_activity_action", "action"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )
    actor_type = db.Column(db.String(10), nullable=False, default="system", comment="provider | client | system")
    actor_id = db.Column(db.String(64), nullable=True)
    action = db.Column(db.String(60), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "actor_type": self.actor_type,
            "actor_id": self.actor_id,
            "action": self.action,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} project={self.project_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action: str,
    project_id: int | None = None,
    actor_type: str = "system",
    actor_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    if action not in AUDIT_ACTIONS:
        logger.warning("Unregistered audit action: %s", action)
    if actor_type not in ACTOR_TYPES:
        actor_type = "system"

    log = AuditLog(
        project_id=project_id,
        actor_type=actor_type,
        actor_id=str(actor_id) if actor_id is not None else None,
        action=action,
        details=details or {},
    )
    db.session.add(log)
    db.session.flush()
    return log
