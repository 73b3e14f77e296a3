"""
ProjectHub
Stage domain models.

Models:
    - Stage: ordered phase of a project's delivery pipeline.
    - StageComponent: typed unit of work nested inside a stage.

Both carry a dense 1-based position (``Stage.order`` within a project,
``StageComponent.sort_order`` within a stage). Positions are only ever
written through ``projecthub.services.ordering``.
"""

from datetime import datetime, timezone

from projecthub.models import db

STAGE_TYPES = ("intake", "materials", "design", "development", "review", "handoff", "custom")

# Shared by stages and components.
STATUSES = ("todo", "waiting_client", "in_review", "approved", "blocked", "done")

STAGE_OWNERS = ("provider", "client")

COMPONENT_TYPES = (
    "upload_request",
    "checklist",
    "prototype",
    "approval",
    "text_block",
    "form",
    "link",
    "milestone",
    "tasklist",
)

DEFAULT_COMPONENT_TITLES = {
    "upload_request": "Link Request",
    "checklist": "Checklist",
    "approval": "Approval Request",
    "text_block": "Note",
    "link": "Link",
    "milestone": "Milestone",
    "tasklist": "Task List",
    "prototype": "Prototype",
}
FALLBACK_COMPONENT_TITLE = "Component"


def default_component_title(component_type: str | None) -> str:
    """Display label used when a component has no title of its own."""
    return DEFAULT_COMPONENT_TITLES.get(component_type or "", FALLBACK_COMPONENT_TITLE)


def _utcnow():
    return datetime.now(timezone.utc)


class Stage(db.Model):
    """One phase of a project, positioned by ``order``."""

    __tablename__ = "stages"
    __table_args__ = (
        db.UniqueConstraint("project_id", "order", name="uq_stages_project_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order = db.Column("order", db.Integer, nullable=False)
    type = db.Column(
        db.String(20), nullable=False, default="custom",
        comment="intake | materials | design | development | review | handoff | custom",
    )
    status = db.Column(
        db.String(20), nullable=False, default="todo",
        comment="todo | waiting_client | in_review | approved | blocked | done",
    )
    owner = db.Column(db.String(10), nullable=False, default="provider", comment="provider | client")
    planned_start = db.Column(db.Date, nullable=True)
    planned_end = db.Column(db.Date, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    completion_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completion_note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    project = db.relationship("Project", back_populates="stages")
    components = db.relationship(
        "StageComponent",
        back_populates="stage",
        order_by="StageComponent.sort_order",
        lazy="select",
    )

    @property
    def is_done(self) -> bool:
        return self.status == "done"

    def to_dict(self, include_components: bool = False) -> dict:
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "order": self.order,
            "type": self.type,
            "status": self.status,
            "owner": self.owner,
            "planned_start": self.planned_start.isoformat() if self.planned_start else None,
            "planned_end": self.planned_end.isoformat() if self.planned_end else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "completion_at": self.completion_at.isoformat() if self.completion_at else None,
            "completion_note": self.completion_note,
        }
        if include_components:
            result["components"] = [c.to_dict() for c in self.components]
        return result

    def __repr__(self):
        return f"<Stage {self.id}: #{self.order} {self.title} [{self.status}]>"


class StageComponent(db.Model):
    """Typed component inside a stage. ``config`` shape depends on ``component_type``."""

    __tablename__ = "stage_components"
    __table_args__ = (
        db.UniqueConstraint("stage_id", "sort_order", name="uq_stage_components_stage_sort"),
    )

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer,
        db.ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    component_type = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(200), nullable=True)
    config = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(20), nullable=False, default="todo")
    sort_order = db.Column(db.Integer, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    stage = db.relationship("Stage", back_populates="components")

    @property
    def display_title(self) -> str:
        return self.title or default_component_title(self.component_type)

    @property
    def feature_flag(self) -> str | None:
        return (self.meta or {}).get("feature_flag")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stage_id": self.stage_id,
            "component_type": self.component_type,
            "title": self.title,
            "display_title": self.display_title,
            "config": dict(self.config or {}),
            "status": self.status,
            "sort_order": self.sort_order,
            "metadata": self.meta,
        }

    def __repr__(self):
        return f"<StageComponent {self.id}: {self.component_type} #{self.sort_order}>"
