"""
Project record service.

    list_projects               providers see every project, clients their accepted ones
    get_project                 overview with ordered stages and visible components
    create_project              provider creates an empty project (status planned)
    update_project_basic_info   title / description
    update_project_dates        start_date / end_date / deadline
    update_project_status       planned | in_progress | on_hold | done | archived

Stages are added afterwards through ``stage_service``; there is no template
expansion here.
"""

import logging

from sqlalchemy import select

from projecthub.core.exceptions import ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.project import PROJECT_STATUSES, Project, ProjectMember
from projecthub.services.access_control import authorize, require_provider
from projecthub.services.component_service import visible_components
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.transaction import atomic
from projecthub.services.stage_service import current_stage_id
from projecthub.utils.helpers import clean_text, parse_date_input

logger = logging.getLogger(__name__)

TITLE_MAX = 200
DESCRIPTION_MAX = 1000
_DATE_FIELDS = ("start_date", "end_date", "deadline")


def _lock(project_id: int) -> Project:
    return db.session.execute(
        select(Project).where(Project.id == project_id).with_for_update()
    ).scalar_one()


def _title_error(title, min_length: int) -> str | None:
    if not title or len(title) < min_length:
        return f"Title must be at least {min_length} characters" if min_length > 1 else "Title is required"
    if len(title) > TITLE_MAX:
        return f"Title must be {TITLE_MAX} characters or fewer"
    return None


def _parse_dates(data: dict, errors: dict) -> dict:
    values = {}
    for name in _DATE_FIELDS:
        if name not in data:
            continue
        try:
            values[name] = parse_date_input(data.get(name))
        except ValueError as exc:
            errors[name] = str(exc)
    return values


# ── Reads ────────────────────────────────────────────────────────────────────


def list_projects(principal: Principal, status: str | None = None) -> list[dict]:
    """Projects visible to the principal, newest first."""
    if principal is None:
        return []
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if not principal.is_provider:
        stmt = stmt.join(ProjectMember, ProjectMember.project_id == Project.id).where(
            ProjectMember.email == principal.normalized_email,
            ProjectMember.accepted_at.isnot(None),
        )
    if status:
        stmt = stmt.where(Project.status == status)
    return [p.to_dict() for p in db.session.execute(stmt).scalars().all()]


def get_project(principal: Principal, project_id: int) -> dict:
    authorize(principal, "project.read", project_id)
    project = db.session.get(Project, project_id)
    result = project.to_dict()
    result["current_stage_id"] = current_stage_id(project_id)
    stages = []
    for stage in project.stages:
        data = stage.to_dict()
        data["components"] = [c.to_dict() for c in visible_components(stage.components)]
        stages.append(data)
    result["stages"] = stages
    return result


# ── Writes ───────────────────────────────────────────────────────────────────


def create_project(principal: Principal, data: dict) -> dict:
    """Create a project with no stages.

    Raises:
        PermissionDenied: the principal is not a provider.
        ValidationError: title shorter than 3 characters, description too
                         long, bad dates or end before start.
    """
    require_provider(principal)
    errors: dict[str, str] = {}

    title = clean_text(data.get("title"))
    error = _title_error(title, 3)
    if error:
        errors["title"] = error
    description = clean_text(data.get("description"))
    if description and len(description) > DESCRIPTION_MAX:
        errors["description"] = f"Description must be {DESCRIPTION_MAX} characters or fewer"
    client_id = clean_text(data.get("client_id"))
    if client_id and len(client_id) > 64:
        errors["client_id"] = "client_id must be 64 characters or fewer"

    dates = _parse_dates(data, errors)
    start, end = dates.get("start_date"), dates.get("end_date")
    if start and end and end < start:
        errors["end_date"] = "end_date must not be before start_date"
    if errors:
        raise ValidationError("Invalid project data", details=errors)

    with atomic("create_project"):
        project = Project(
            title=title,
            description=description,
            client_id=client_id,
            status="planned",
            **dates,
        )
        db.session.add(project)
        db.session.flush()
        result = project.to_dict()

    logger.info("Project %s created by %s", result["id"], principal.id)
    publish(DomainEvent("project.created", result["id"], principal, {"title": title}))
    return result


def update_project_basic_info(principal: Principal, project_id: int, data: dict) -> dict:
    """Replace title and description. A blank description clears it."""
    authorize(principal, "project.update", project_id)
    errors: dict[str, str] = {}
    title = clean_text(data.get("title"))
    error = _title_error(title, 1)
    if error:
        errors["title"] = error
    description = clean_text(data.get("description"))
    if description and len(description) > DESCRIPTION_MAX:
        errors["description"] = f"Description must be {DESCRIPTION_MAX} characters or fewer"
    if errors:
        raise ValidationError("Invalid project data", details=errors)

    with atomic("update_project_basic_info"):
        project = _lock(project_id)
        project.title = title
        project.description = description
        db.session.flush()
        result = project.to_dict()

    publish(DomainEvent("project.updated", project_id, principal, {"fields": ["title", "description"]}))
    return result


def update_project_dates(principal: Principal, project_id: int, data: dict) -> dict:
    """Set any of start_date / end_date / deadline; keys left out are untouched.

    A key sent with an empty value clears that date. The end date is checked
    against the stored start date when only one side is sent.
    """
    authorize(principal, "project.update", project_id)
    errors: dict[str, str] = {}
    values = _parse_dates(data, errors)
    if errors:
        raise ValidationError("Invalid project dates", details=errors)
    if not values:
        raise ValidationError("Nothing to update", details={"dates": "Send start_date, end_date or deadline"})

    with atomic("update_project_dates"):
        project = _lock(project_id)
        start = values.get("start_date", project.start_date)
        end = values.get("end_date", project.end_date)
        if start and end and end < start:
            raise ValidationError(
                "Invalid project dates",
                details={"end_date": "end_date must not be before start_date"},
            )
        for name, value in values.items():
            setattr(project, name, value)
        db.session.flush()
        result = project.to_dict()

    publish(DomainEvent("project.dates_updated", project_id, principal, {"fields": sorted(values)}))
    return result


def update_project_status(principal: Principal, project_id: int, status) -> dict:
    authorize(principal, "project.update", project_id)
    if status not in PROJECT_STATUSES:
        raise ValidationError(
            "Invalid project status",
            details={"status": f"Must be one of: {', '.join(PROJECT_STATUSES)}"},
        )

    with atomic("update_project_status"):
        project = _lock(project_id)
        previous = project.status
        project.status = status
        db.session.flush()
        result = project.to_dict()

    logger.info("Project %s status %s -> %s", project_id, previous, status)
    publish(DomainEvent("project.status_updated", project_id, principal, {"from": previous, "to": status}))
    return result
