"""
Meeting minutes per project.

One minute per (project, meeting_date). Titles are optional; a blank title
becomes "Meeting DD/MM/YYYY".

    minute_service.add_minute(principal, pid, {"meeting_date": "2026-05-04", "content_markdown": "..."})
    minute_service.get_minute_by_date(principal, pid, "2026-05-04")   # dict or None
"""

import logging

from sqlalchemy import select

from projecthub.core.exceptions import ConstraintViolation, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.project import ProjectMinute
from projecthub.services.access_control import authorize
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.utils.helpers import clean_text, parse_date_input

logger = logging.getLogger(__name__)

CONTENT_MAX = 50000
DUPLICATE_DATE_MESSAGE = "Minutes already exist for this meeting date"


def _validate_minute(data: dict) -> dict:
    errors: dict[str, str] = {}
    meeting_date = None
    try:
        meeting_date = parse_date_input(data.get("meeting_date"))
    except ValueError as exc:
        errors["meeting_date"] = str(exc)
    else:
        if meeting_date is None:
            errors["meeting_date"] = "meeting_date is required"

    title = clean_text(data.get("title"))
    if title and len(title) > 200:
        errors["title"] = "Title must be 200 characters or fewer"

    content = data.get("content_markdown") or ""
    if not isinstance(content, str):
        errors["content_markdown"] = "Must be a string"
    elif len(content) > CONTENT_MAX:
        errors["content_markdown"] = f"Content must be {CONTENT_MAX} characters or fewer"

    if errors:
        raise ValidationError("Invalid minute data", details=errors)
    return {
        "meeting_date": meeting_date,
        "title": title or f"Meeting {meeting_date:%d/%m/%Y}",
        "content_markdown": content,
    }


def _date_taken(project_id: int, meeting_date, exclude_id: int | None = None) -> bool:
    stmt = select(ProjectMinute.id).where(
        ProjectMinute.project_id == project_id,
        ProjectMinute.meeting_date == meeting_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(ProjectMinute.id != exclude_id)
    return db.session.execute(stmt).first() is not None


def list_minutes(principal: Principal, project_id: int) -> list[dict]:
    """Minutes of the project, latest meeting first."""
    authorize(principal, "project.read", project_id)
    minutes = db.session.execute(
        select(ProjectMinute)
        .where(ProjectMinute.project_id == project_id)
        .order_by(ProjectMinute.meeting_date.desc())
    ).scalars().all()
    return [m.to_dict() for m in minutes]


def get_minute_by_date(principal: Principal, project_id: int, meeting_date) -> dict | None:
    authorize(principal, "project.read", project_id)
    try:
        day = parse_date_input(meeting_date)
    except ValueError as exc:
        raise ValidationError("Invalid meeting date", details={"meeting_date": str(exc)})
    if day is None:
        raise ValidationError("Invalid meeting date", details={"meeting_date": "meeting_date is required"})
    minute = db.session.execute(
        select(ProjectMinute).where(
            ProjectMinute.project_id == project_id,
            ProjectMinute.meeting_date == day,
        )
    ).scalar_one_or_none()
    return minute.to_dict() if minute is not None else None


def add_minute(principal: Principal, project_id: int, data: dict) -> dict:
    """Record minutes for a meeting date.

    Raises:
        ConstraintViolation: the project already has minutes for that date.
    """
    authorize(principal, "minute.manage", project_id)
    values = _validate_minute(data)

    with atomic("add_minute"):
        if _date_taken(project_id, values["meeting_date"]):
            raise ConstraintViolation(DUPLICATE_DATE_MESSAGE)
        minute = ProjectMinute(project_id=project_id, created_by=principal.id, **values)
        db.session.add(minute)
        db.session.flush()
        result = minute.to_dict()

    publish(DomainEvent("project.minute_added", project_id, principal, {
        "minute_id": result["id"], "meeting_date": result["meeting_date"],
    }))
    return result


def update_minute(principal: Principal, project_id: int, minute_id: int, data: dict) -> dict:
    authorize(principal, "minute.manage", project_id)
    values = _validate_minute(data)

    with atomic("update_minute"):
        minute = get_scoped(ProjectMinute, minute_id, project_id=project_id, lock=True)
        if _date_taken(project_id, values["meeting_date"], exclude_id=minute.id):
            raise ConstraintViolation(DUPLICATE_DATE_MESSAGE)
        for name, value in values.items():
            setattr(minute, name, value)
        db.session.flush()
        result = minute.to_dict()

    publish(DomainEvent("project.minute_updated", project_id, principal, {
        "minute_id": minute_id, "meeting_date": result["meeting_date"],
    }))
    return result


def delete_minute(principal: Principal, project_id: int, minute_id: int) -> dict:
    authorize(principal, "minute.manage", project_id)

    with atomic("delete_minute"):
        minute = get_scoped(ProjectMinute, minute_id, project_id=project_id)
        meeting_date = minute.meeting_date.isoformat()
        db.session.delete(minute)

    publish(DomainEvent("project.minute_deleted", project_id, principal, {
        "minute_id": minute_id, "meeting_date": meeting_date,
    }))
    return {"minute_id": minute_id}
