"""
ProjectHub
In-app notifications addressed to project members by email.
"""

from datetime import datetime, timezone

from projecthub.models import db

NOTIFICATION_TYPES = ("material_request", "comment", "approval", "stage_completed", "deadline")


class Notification(db.Model):
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("idx_notifications_email_read", "user_email", "read_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_email = db.Column(db.String(255), nullable=False)
    type = db.Column(
        db.String(30), nullable=False,
        comment="material_request | comment | approval | stage_completed | deadline",
    )
    payload = db.Column(db.JSON, nullable=False, default=dict)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_email": self.user_email,
            "type": self.type,
            "payload": self.payload or {},
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
