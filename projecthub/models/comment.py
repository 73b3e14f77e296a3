"""
ProjectHub
Comment model.

A comment is project-level (no stage, no component), stage-level or
component-level. Component comments roll up into their stage's thread.
"""

from datetime import datetime, timezone

from projecthub.models import db

AUTHOR_TYPES = ("provider", "client")


def _utcnow():
    return datetime.now(timezone.utc)


class Comment(db.Model):
    __tablename__ = "comments"
    __table_args__ = (
        db.Index("idx_comments_project_created", "project_id", "created_at"),
        db.CheckConstraint(
            "stage_id IS NULL OR component_id IS NULL",
            name="ck_comments_single_scope",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage_id = db.Column(
        db.Integer,
        db.ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    component_id = db.Column(
        db.Integer,
        db.ForeignKey("stage_components.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    author_type = db.Column(db.String(10), nullable=False, comment="provider | client")
    body = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(64), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def scope(self) -> str:
        if self.component_id is not None:
            return "component"
        if self.stage_id is not None:
            return "stage"
        return "project"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "stage_id": self.stage_id,
            "component_id": self.component_id,
            "scope": self.scope,
            "author_type": self.author_type,
            "body": self.body,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Comment {self.id} ({self.scope}) by {self.author_type}:{self.created_by}>"
