"""
Component Lifecycle Service.

Typed components nested inside a stage:
  - add (status todo, dense ``sort_order`` via the ordering engine)
  - update (free-form status, clearable title, shallow config merge)
  - delete (unconditional, siblings compact)
  - approve (approval components only)
  - submit a link (upload_request components only)
  - bulk reorder within a stage

Component ids are always resolved through their stage's project so an id
from another project reads as not found.
"""

import logging

from flask import current_app, has_app_context
from sqlalchemy import select

from projecthub.core.exceptions import ConstraintViolation, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.stage import COMPONENT_TYPES, STATUSES, Stage, StageComponent
from projecthub.services import ordering
from projecthub.services.access_control import authorize
from projecthub.services.component_config import merge_config, normalize_config
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_component_in_project, get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.utils.helpers import clean_text, coerce_id

logger = logging.getLogger(__name__)

# Only these types may be hidden behind ``metadata.feature_flag``.
FLAGGABLE_TYPES = ("prototype", "tasklist", "milestone")

NOT_APPROVAL_MESSAGE = "This component is not of approval type"


# ── Feature flags ────────────────────────────────────────────────────────────


def is_component_enabled(component: StageComponent) -> bool:
    flag = component.feature_flag
    if not flag or component.component_type not in FLAGGABLE_TYPES:
        return True
    flags = current_app.config.get("FEATURE_FLAGS", {}) if has_app_context() else {}
    return bool(flags.get(flag, False))


def visible_components(components) -> list[StageComponent]:
    return [c for c in components if is_component_enabled(c)]


# ── Private helpers ──────────────────────────────────────────────────────────


def _validate_title(value) -> str | None:
    title = clean_text(value)
    if title is not None and len(title) > 200:
        raise ValidationError("Invalid component data", details={"title": "Title must be 200 characters or fewer"})
    return title


def _validate_status(value) -> str:
    if value not in STATUSES:
        raise ValidationError(
            "Invalid component data",
            details={"status": f"Must be one of: {', '.join(STATUSES)}"},
        )
    return value


def _validate_metadata(value) -> dict | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("Invalid component data", details={"metadata": "Must be an object"})
    flag = value.get("feature_flag")
    if flag is not None and not isinstance(flag, str):
        raise ValidationError("Invalid component data", details={"metadata": "feature_flag must be a string"})
    return dict(value)


def _lock_stage(project_id: int, stage_id: int) -> Stage:
    """Lock the stage row; component order mutations serialise on it."""
    return get_scoped(Stage, stage_id, project_id=project_id, lock=True)


# ── Reads ────────────────────────────────────────────────────────────────────


def list_components(principal: Principal, project_id: int, stage_id: int) -> list[dict]:
    authorize(principal, "component.read", project_id)
    get_scoped(Stage, stage_id, project_id=project_id)
    components = db.session.execute(
        select(StageComponent)
        .where(StageComponent.stage_id == stage_id)
        .order_by(StageComponent.sort_order)
    ).scalars().all()
    return [c.to_dict() for c in visible_components(components)]


def get_component(principal: Principal, project_id: int, component_id: int) -> dict:
    authorize(principal, "component.read", project_id)
    return get_component_in_project(component_id, project_id).to_dict()


# ── Mutations ────────────────────────────────────────────────────────────────


def add_component(principal: Principal, project_id: int, stage_id: int, data: dict) -> dict:
    """Add a component to a stage.

    Appends by default; ``insert_after_component_id`` places it right after
    that sibling. New components always start as ``todo``.
    """
    authorize(principal, "component.create", project_id)

    component_type = data.get("component_type")
    if component_type not in COMPONENT_TYPES:
        raise ValidationError(
            "Invalid component type",
            details={"component_type": f"Must be one of: {', '.join(COMPONENT_TYPES)}"},
        )
    title = _validate_title(data.get("title"))
    config = normalize_config(component_type, data.get("config"))
    meta = _validate_metadata(data.get("metadata"))
    try:
        insert_after = coerce_id(data.get("insert_after_component_id"))
    except ValueError:
        raise ValidationError("Invalid component data", details={"insert_after_component_id": "Invalid id"})

    with atomic("add_component"):
        _lock_stage(project_id, stage_id)
        position = ordering.open_slot(ordering.COMPONENTS, stage_id, after_id=insert_after)
        component = StageComponent(
            stage_id=stage_id,
            component_type=component_type,
            title=title,
            config=config,
            status="todo",
            sort_order=position,
            meta=meta,
        )
        db.session.add(component)
        db.session.flush()
        result = component.to_dict()

    logger.info("Component %s (%s) added to stage %s at %d", result["id"], component_type, stage_id, position)
    publish(DomainEvent("stage_component.created", project_id, principal, {
        "stage_id": stage_id, "component_id": result["id"], "component_type": component_type,
    }))
    return result


def update_component(principal: Principal, project_id: int, component_id: int, data: dict) -> dict:
    """Provider edit of title, status, config and metadata.

    ``title`` may be cleared; ``config`` is shallow-merged over the stored
    config, so keys absent from the patch are kept.
    """
    authorize(principal, "component.update", project_id)

    with atomic("update_component"):
        component = get_component_in_project(component_id, project_id, lock=True)
        changed = []
        if "title" in data:
            component.title = _validate_title(data.get("title"))
            changed.append("title")
        if "status" in data:
            component.status = _validate_status(data.get("status"))
            changed.append("status")
        if "config" in data:
            component.config = merge_config(component.component_type, component.config, data.get("config"))
            changed.append("config")
        if "metadata" in data:
            component.meta = _validate_metadata(data.get("metadata"))
            changed.append("metadata")
        if not changed:
            raise ValidationError("Nothing to update", details={"component": "No updatable fields supplied"})
        db.session.flush()
        result = component.to_dict()

    publish(DomainEvent("stage_component.updated", project_id, principal, {
        "component_id": component_id, "stage_id": result["stage_id"], "fields": changed,
    }))
    return result


def delete_component(principal: Principal, project_id: int, component_id: int) -> dict:
    authorize(principal, "component.delete", project_id)

    with atomic("delete_component"):
        component = get_component_in_project(component_id, project_id)
        stage_id = component.stage_id
        _lock_stage(project_id, stage_id)
        removed_position = component.sort_order
        db.session.delete(component)
        db.session.flush()
        ordering.close_gap(ordering.COMPONENTS, stage_id, removed_position)

    publish(DomainEvent("stage_component.deleted", project_id, principal, {
        "component_id": component_id, "stage_id": stage_id, "sort_order": removed_position,
    }))
    return {"component_id": component_id, "stage_id": stage_id}


def reorder_components(principal: Principal, project_id: int, stage_id: int, component_ids: list) -> list[dict]:
    authorize(principal, "component.reorder", project_id)

    with atomic("reorder_components"):
        _lock_stage(project_id, stage_id)
        listing = ordering.apply_order(ordering.COMPONENTS, stage_id, component_ids)

    publish(DomainEvent("stage_component.reordered", project_id, principal, {
        "stage_id": stage_id, "component_ids": list(component_ids),
    }))
    return [{"id": component_id, "sort_order": position} for component_id, position in listing]


def approve_component(principal: Principal, project_id: int, component_id: int) -> dict:
    """Mark an approval component as approved. Open to client members.

    Raises:
        ConstraintViolation: the component is not of type ``approval``.
    """
    authorize(principal, "component.approve", project_id)

    with atomic("approve_component"):
        component = get_component_in_project(component_id, project_id, lock=True)
        if component.component_type != "approval":
            raise ConstraintViolation(NOT_APPROVAL_MESSAGE)
        component.status = "approved"
        db.session.flush()
        result = component.to_dict()

    publish(DomainEvent("stage_component.approved", project_id, principal, {
        "component_id": component_id, "stage_id": result["stage_id"],
    }))
    return result


def submit_component_link(principal: Principal, project_id: int, component_id: int, url) -> dict:
    """Append ``url`` to an upload_request component's ``submitted_urls``.

    Duplicates are kept; each submission is recorded.
    """
    authorize(principal, "component.submit_link", project_id)
    url = clean_text(url)
    if not url:
        raise ValidationError("Invalid link", details={"url": "URL is required"})
    if len(url) > 2000:
        raise ValidationError("Invalid link", details={"url": "URL must be 2000 characters or fewer"})

    with atomic("submit_component_link"):
        component = get_component_in_project(component_id, project_id, lock=True)
        if component.component_type != "upload_request":
            raise ConstraintViolation("Links can only be submitted to upload request components")
        existing = list((component.config or {}).get("submitted_urls") or [])
        component.config = merge_config(
            component.component_type, component.config, {"submitted_urls": existing + [url]},
        )
        db.session.flush()
        result = component.to_dict()

    publish(DomainEvent("stage_component.link_submitted", project_id, principal, {
        "component_id": component_id, "url": url,
    }))
    return result
