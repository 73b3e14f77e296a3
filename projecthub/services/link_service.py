"""Project links: named URLs providers share with the client (drive folder, staging site)."""

import logging
from urllib.parse import urlparse

from sqlalchemy import select

from projecthub.core.exceptions import ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.project import ProjectLink
from projecthub.services.access_control import authorize
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.utils.helpers import clean_text

logger = logging.getLogger(__name__)

URL_MAX = 2000


def _validate_link(data: dict) -> tuple[str, str]:
    errors: dict[str, str] = {}
    title = clean_text(data.get("title"))
    if not title:
        errors["title"] = "Title is required"
    elif len(title) > 200:
        errors["title"] = "Title must be 200 characters or fewer"

    url = clean_text(data.get("url"))
    parsed = urlparse(url or "")
    if not url or parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors["url"] = "A valid http(s) URL is required"
    elif len(url) > URL_MAX:
        errors["url"] = f"URL must be {URL_MAX} characters or fewer"

    if errors:
        raise ValidationError("Invalid link data", details=errors)
    return title, url


def list_links(principal: Principal, project_id: int) -> list[dict]:
    authorize(principal, "project.read", project_id)
    links = db.session.execute(
        select(ProjectLink)
        .where(ProjectLink.project_id == project_id)
        .order_by(ProjectLink.created_at.desc(), ProjectLink.id.desc())
    ).scalars().all()
    return [link.to_dict() for link in links]


def add_link(principal: Principal, project_id: int, data: dict) -> dict:
    authorize(principal, "link.manage", project_id)
    title, url = _validate_link(data)

    with atomic("add_link"):
        link = ProjectLink(project_id=project_id, title=title, url=url, created_by=principal.id)
        db.session.add(link)
        db.session.flush()
        result = link.to_dict()

    publish(DomainEvent("project.link_added", project_id, principal, {
        "link_id": result["id"], "title": title, "url": url,
    }))
    return result


def update_link(principal: Principal, project_id: int, link_id: int, data: dict) -> dict:
    """Replace title and url of a link belonging to the project."""
    authorize(principal, "link.manage", project_id)
    title, url = _validate_link(data)

    with atomic("update_link"):
        link = get_scoped(ProjectLink, link_id, project_id=project_id, lock=True)
        link.title = title
        link.url = url
        db.session.flush()
        result = link.to_dict()

    publish(DomainEvent("project.link_updated", project_id, principal, {
        "link_id": link_id, "title": title, "url": url,
    }))
    return result


def delete_link(principal: Principal, project_id: int, link_id: int) -> dict:
    authorize(principal, "link.manage", project_id)

    with atomic("delete_link"):
        link = get_scoped(ProjectLink, link_id, project_id=project_id)
        db.session.delete(link)

    publish(DomainEvent("project.link_deleted", project_id, principal, {"link_id": link_id}))
    return {"link_id": link_id}
