"""
ProjectHub
Approval requests raised by providers against a stage (or a component)
and answered by client members.
"""

from datetime import datetime, timezone

from projecthub.models import db

APPROVAL_STATUSES = ("requested", "approved", "changes_requested")
APPROVAL_RESPONSES = ("approved", "changes_requested")


def _utcnow():
    return datetime.now(timezone.utc)


class Approval(db.Model):
    __tablename__ = "approvals"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stage_id = db.Column(
        db.Integer,
        db.ForeignKey("stages.id", ondelete="SET NULL"),
        nullable=True,
    )
    component_id = db.Column(
        db.Integer,
        db.ForeignKey("stage_components.id", ondelete="SET NULL"),
        nullable=True,
    )
    requested_by = db.Column(db.String(10), nullable=False, default="provider")
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    approved_by = db.Column(db.String(64), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="requested",
        comment="requested | approved | changes_requested",
    )
    feedback = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "stage_id": self.stage_id,
            "component_id": self.component_id,
            "requested_by": self.requested_by,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "status": self.status,
            "feedback": self.feedback,
        }

    def __repr__(self):
        return f"<Approval {self.id} project={self.project_id} [{self.status}]>"
