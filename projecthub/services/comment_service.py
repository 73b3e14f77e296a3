"""
Comment Authorization & Threading.

A comment sits at exactly one level: project, stage or component. Threads:

    project    every comment of the project
    stage      comments on the stage plus comments on any of its components
    component  comments on that component

Edit/delete rule (both identical):
    the author may always act; a provider may also act on client comments.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import or_, select

from projecthub.core.exceptions import PermissionDenied, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.comment import Comment
from projecthub.models.stage import Stage, StageComponent
from projecthub.services.access_control import authorize
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_component_in_project, get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.services.notification_service import notify_project_members
from projecthub.utils.helpers import coerce_id

logger = logging.getLogger(__name__)

MIN_BODY_LENGTH = 3
MAX_BODY_LENGTH = 10000


def can_edit(comment: Comment, principal: Principal | None) -> bool:
    if principal is None:
        return False
    if comment.created_by == principal.id:
        return True
    return principal.is_provider and comment.author_type == "client"


def can_delete(comment: Comment, principal: Principal | None) -> bool:
    return can_edit(comment, principal)


def _clean_body(body) -> str:
    text = (body or "").strip() if isinstance(body, str) else ""
    if len(text) < MIN_BODY_LENGTH:
        raise ValidationError(
            "Invalid comment",
            details={"body": f"Comment must be at least {MIN_BODY_LENGTH} characters"},
        )
    if len(text) > MAX_BODY_LENGTH:
        raise ValidationError(
            "Invalid comment",
            details={"body": f"Comment must be {MAX_BODY_LENGTH} characters or fewer"},
        )
    return text


def _parse_target(stage_id, component_id) -> tuple[int | None, int | None]:
    try:
        stage_id = coerce_id(stage_id)
        component_id = coerce_id(component_id)
    except ValueError:
        raise ValidationError("Invalid comment target", details={"target": "Invalid stage or component id"})
    if stage_id is not None and component_id is not None:
        raise ValidationError(
            "Invalid comment target",
            details={"target": "A comment belongs to a stage or a component, not both"},
        )
    return stage_id, component_id


# ── Reads ────────────────────────────────────────────────────────────────────


def list_thread(principal: Principal, project_id: int, stage_id=None, component_id=None) -> list[dict]:
    """Return the project, stage or component thread, oldest first."""
    authorize(principal, "comment.read", project_id)
    stage_id, component_id = _parse_target(stage_id, component_id)

    stmt = select(Comment).where(Comment.project_id == project_id)
    if component_id is not None:
        get_component_in_project(component_id, project_id)
        stmt = stmt.where(Comment.component_id == component_id)
    elif stage_id is not None:
        get_scoped(Stage, stage_id, project_id=project_id)
        component_ids = select(StageComponent.id).where(StageComponent.stage_id == stage_id)
        stmt = stmt.where(or_(
            Comment.stage_id == stage_id,
            Comment.component_id.in_(component_ids),
        ))
    stmt = stmt.order_by(Comment.created_at, Comment.id)

    comments = db.session.execute(stmt).scalars().all()
    result = []
    for c in comments:
        data = c.to_dict()
        data["can_edit"] = can_edit(c, principal)
        data["can_delete"] = can_delete(c, principal)
        result.append(data)
    return result


# ── Mutations ────────────────────────────────────────────────────────────────


def create_comment(principal: Principal, project_id: int, body, stage_id=None, component_id=None) -> dict:
    """Post a comment; ``author_type`` comes from the principal's role."""
    text = _clean_body(body)
    stage_id, component_id = _parse_target(stage_id, component_id)
    authorize(principal, "comment.create", project_id)

    with atomic("create_comment"):
        if stage_id is not None:
            get_scoped(Stage, stage_id, project_id=project_id)
        if component_id is not None:
            get_component_in_project(component_id, project_id)
        comment = Comment(
            project_id=project_id,
            stage_id=stage_id,
            component_id=component_id,
            author_type=principal.role,
            body=text,
            created_by=principal.id,
        )
        db.session.add(comment)
        db.session.flush()
        if principal.is_provider:
            notify_project_members(project_id, "comment", {
                "comment_id": comment.id, "stage_id": stage_id, "component_id": component_id,
            })
        result = comment.to_dict()

    publish(DomainEvent("comment.created", project_id, principal, {
        "comment_id": result["id"], "scope": result["scope"],
        "stage_id": stage_id, "component_id": component_id,
    }))
    return result


def update_comment(principal: Principal, project_id: int, comment_id: int, body) -> dict:
    """Replace the body. Only ``body`` and ``updated_at`` change."""
    text = _clean_body(body)
    authorize(principal, "comment.update", project_id)

    with atomic("update_comment"):
        comment = get_scoped(Comment, comment_id, project_id=project_id, lock=True)
        if not can_edit(comment, principal):
            raise PermissionDenied("You cannot edit this comment")
        comment.body = text
        comment.updated_at = datetime.now(timezone.utc)
        db.session.flush()
        result = comment.to_dict()

    publish(DomainEvent("comment.updated", project_id, principal, {"comment_id": comment_id}))
    return result


def delete_comment(principal: Principal, project_id: int, comment_id: int) -> dict:
    authorize(principal, "comment.delete", project_id)

    with atomic("delete_comment"):
        comment = get_scoped(Comment, comment_id, project_id=project_id)
        if not can_delete(comment, principal):
            raise PermissionDenied("You cannot delete this comment")
        author = comment.created_by
        db.session.delete(comment)

    logger.info("Comment %s deleted from project %s by %s", comment_id, project_id, principal.id)
    publish(DomainEvent("comment.deleted", project_id, principal, {
        "comment_id": comment_id, "author": author,
    }))
    return {"comment_id": comment_id}
