"""
ProjectHub
Project domain models.

Models:
    - Project: a delivery engagement owned by a provider for one client.
    - ProjectMember: client access grant (viewer / editor tier) keyed by email.
    - ProjectLink: shared reference link (drive folder, staging site, ...).
    - ProjectMinute: meeting notes, at most one per project and meeting date.
"""

from datetime import datetime, timezone

from projecthub.models import db

PROJECT_STATUSES = ("planned", "in_progress", "on_hold", "done", "archived")

MEMBER_ROLES = ("client_viewer", "client_editor")

# Tier rank: a grant satisfies any requirement of equal or lower rank.
MEMBER_ROLE_RANK = {"client_viewer": 1, "client_editor": 2}


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """Client project. Owns an ordered collection of stages."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="planned",
        comment="planned | in_progress | on_hold | done | archived",
    )
    client_id = db.Column(db.String(64), nullable=True, index=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    deadline = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    stages = db.relationship(
        "Stage",
        back_populates="project",
        order_by="Stage.order",
        cascade="all, delete-orphan",
        lazy="select",
    )
    members = db.relationship(
        "ProjectMember",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="select",
    )
    links = db.relationship(
        "ProjectLink",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="select",
    )
    minutes = db.relationship(
        "ProjectMinute",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def to_dict(self, include_stages: bool = False) -> dict:
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "client_id": self.client_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_stages:
            result["stages"] = [s.to_dict() for s in self.stages]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.title}>"


class ProjectMember(db.Model):
    """Grants a client principal access to one project.

    Emails are stored lower-cased; lookups lower-case the principal's email
    before comparing.
    """

    __tablename__ = "project_members"
    __table_args__ = (
        db.UniqueConstraint("project_id", "email", name="uq_project_members_project_email"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.String(20), nullable=False, default="client_viewer",
        comment="client_viewer | client_editor",
    )
    invited_at = db.Column(db.DateTime(timezone=True), nullable=True, default=_utcnow)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    project = db.relationship("Project", back_populates="members")

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "email": self.email,
            "role": self.role,
            "invited_at": self.invited_at.isoformat() if self.invited_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }

    def __repr__(self):
        return f"<ProjectMember {self.email} ({self.role}) project={self.project_id}>"


class ProjectLink(db.Model):
    """Named URL shown on the project page to providers and clients."""

    __tablename__ = "project_links"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(2000), nullable=False)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    project = db.relationship("Project", back_populates="links")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "url": self.url,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProjectLink {self.id}: {self.title}>"


class ProjectMinute(db.Model):
    """Markdown minutes of one meeting."""

    __tablename__ = "project_minutes"
    __table_args__ = (
        db.UniqueConstraint("project_id", "meeting_date", name="uq_project_minutes_project_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    meeting_date = db.Column(db.Date, nullable=False)
    content_markdown = db.Column(db.Text, nullable=False, default="")
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    project = db.relationship("Project", back_populates="minutes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "meeting_date": self.meeting_date.isoformat() if self.meeting_date else None,
            "content_markdown": self.content_markdown,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProjectMinute {self.meeting_date} project={self.project_id}>"
