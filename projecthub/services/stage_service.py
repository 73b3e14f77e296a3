"""
Stage Lifecycle Service.

Covers the stage half of the workflow engine:
  - create / update / delete / reorder stages (dense ``order`` per project)
  - the complete-stage protocol (done + completion stamp + successor activation)
  - completion-note edits on finished stages
  - materials and approval requests
  - moving the project's current stage

Status changes are free-form for providers except the move *into* ``done``,
which only ``complete_stage`` performs.

Every mutating function:
  1. authorizes the principal (``access_control.authorize``)
  2. validates input, raising ValidationError before touching the DB
  3. runs inside ``atomic(...)`` with the project row locked
  4. publishes a DomainEvent after commit (best effort)

Usage:
    from projecthub.services import stage_service

    stage = stage_service.create_stage(principal, project_id, {"title": "Design", ...})
    stage_service.complete_stage(principal, project_id, stage["id"], note="Signed off")
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from projecthub.core.exceptions import ConstraintViolation, NotFoundError, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.approval import Approval
from projecthub.models.project import Project
from projecthub.models.stage import STAGE_OWNERS, STAGE_TYPES, STATUSES, Stage, StageComponent
from projecthub.services import ordering
from projecthub.services.access_control import authorize
from projecthub.services.component_service import visible_components
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.services.notification_service import notify_project_members
from projecthub.utils.helpers import clean_text, coerce_id, parse_date_input

logger = logging.getLogger(__name__)

# Successor statuses that completing the previous stage releases back to todo.
ACTIVATABLE_STATUSES = ("blocked", "waiting_client")

_DATE_FIELDS = ("planned_start", "planned_end", "deadline")


# ── Private helpers ──────────────────────────────────────────────────────────


def _lock_project(project_id: int) -> Project:
    """Lock the project row; stage order mutations serialise on it."""
    project = db.session.execute(
        select(Project).where(Project.id == project_id).with_for_update()
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _validate_stage_fields(data: dict, *, partial: bool) -> dict:
    """Normalise a stage payload. ``partial`` skips required-field checks."""
    errors: dict[str, str] = {}
    values: dict = {}

    if "title" in data or not partial:
        title = clean_text(data.get("title"))
        if not title:
            errors["title"] = "Title is required"
        elif len(title) > 200:
            errors["title"] = "Title must be 200 characters or fewer"
        else:
            values["title"] = title

    if "description" in data:
        values["description"] = clean_text(data.get("description"))

    if "type" in data or not partial:
        stage_type = data.get("type") or "custom"
        if stage_type not in STAGE_TYPES:
            errors["type"] = f"Must be one of: {', '.join(STAGE_TYPES)}"
        else:
            values["type"] = stage_type

    if "status" in data or not partial:
        status = data.get("status") or "todo"
        if status not in STATUSES:
            errors["status"] = f"Must be one of: {', '.join(STATUSES)}"
        else:
            values["status"] = status

    if "owner" in data or not partial:
        owner = data.get("owner") or "provider"
        if owner not in STAGE_OWNERS:
            errors["owner"] = "Must be provider or client"
        else:
            values["owner"] = owner

    for name in _DATE_FIELDS:
        if name not in data:
            continue
        try:
            values[name] = parse_date_input(data.get(name))
        except ValueError as exc:
            errors[name] = str(exc)

    start, end = values.get("planned_start"), values.get("planned_end")
    if start and end and end < start:
        errors["planned_end"] = "planned_end must not be before planned_start"

    if errors:
        raise ValidationError("Invalid stage data", details=errors)
    return values


def _component_count(stage_id: int) -> int:
    return db.session.execute(
        select(func.count(StageComponent.id)).where(StageComponent.stage_id == stage_id)
    ).scalar() or 0


def _current_stage(project_id: int) -> Stage | None:
    """Lowest-ordered stage that is not done."""
    return db.session.execute(
        select(Stage)
        .where(Stage.project_id == project_id, Stage.status != "done")
        .order_by(Stage.order)
        .limit(1)
    ).scalar_one_or_none()


def current_stage_id(project_id: int) -> int | None:
    stage = _current_stage(project_id)
    return stage.id if stage is not None else None


def _successor(stage: Stage) -> Stage | None:
    return db.session.execute(
        select(Stage)
        .where(Stage.project_id == stage.project_id, Stage.order > stage.order)
        .order_by(Stage.order)
        .limit(1)
    ).scalar_one_or_none()


# ── Reads ────────────────────────────────────────────────────────────────────


def list_stages(principal: Principal, project_id: int, include_components: bool = False) -> list[dict]:
    """Return the project's stages in order."""
    authorize(principal, "stage.read", project_id)
    stages = db.session.execute(
        select(Stage).where(Stage.project_id == project_id).order_by(Stage.order)
    ).scalars().all()
    if not include_components:
        return [s.to_dict() for s in stages]

    result = []
    for stage in stages:
        data = stage.to_dict()
        data["components"] = [c.to_dict() for c in visible_components(stage.components)]
        result.append(data)
    return result


def get_stage(principal: Principal, project_id: int, stage_id: int) -> dict:
    authorize(principal, "stage.read", project_id)
    return get_scoped(Stage, stage_id, project_id=project_id).to_dict()


# ── Structure: create / delete / reorder ─────────────────────────────────────


def create_stage(principal: Principal, project_id: int, data: dict) -> dict:
    """Create a stage, appended or inserted after ``insert_after_stage_id``.

    Inserting after the sibling at order k puts the new stage at k+1 and
    moves every stage previously at k+1 or later up by one.
    """
    authorize(principal, "stage.create", project_id)
    values = _validate_stage_fields(data, partial=False)
    if values["status"] == "done":
        raise ValidationError(
            "Invalid stage data",
            details={"status": "A new stage cannot start as done"},
        )
    try:
        insert_after = coerce_id(data.get("insert_after_stage_id"))
    except ValueError:
        raise ValidationError("Invalid stage data", details={"insert_after_stage_id": "Invalid id"})

    with atomic("create_stage"):
        _lock_project(project_id)
        position = ordering.open_slot(ordering.STAGES, project_id, after_id=insert_after)
        stage = Stage(project_id=project_id, order=position, **values)
        db.session.add(stage)
        db.session.flush()
        result = stage.to_dict()

    logger.info("Stage %s created in project %s at order %d", result["id"], project_id, position)
    publish(DomainEvent("stage.created", project_id, principal, {
        "stage_id": result["id"], "order": position, "insert_after_stage_id": insert_after,
    }))
    return result


def delete_stage(principal: Principal, project_id: int, stage_id: int) -> dict:
    """Delete an empty stage and compact the orders behind it.

    Raises:
        ConstraintViolation: the stage still has components.
    """
    authorize(principal, "stage.delete", project_id)

    with atomic("delete_stage"):
        _lock_project(project_id)
        stage = get_scoped(Stage, stage_id, project_id=project_id)
        if _component_count(stage.id) > 0:
            raise ConstraintViolation("Cannot delete a stage that still has components. Remove them first.")
        removed_order = stage.order
        title = stage.title
        db.session.delete(stage)
        db.session.flush()
        ordering.close_gap(ordering.STAGES, project_id, removed_order)

    logger.info("Stage %s deleted from project %s (order %d)", stage_id, project_id, removed_order)
    publish(DomainEvent("stage.deleted", project_id, principal, {
        "stage_id": stage_id, "order": removed_order, "title": title,
    }))
    return {"stage_id": stage_id}


def reorder_stages(principal: Principal, project_id: int, stage_ids: list) -> list[dict]:
    """Apply a full ordering; ``stage_ids`` must be exactly the project's stages."""
    authorize(principal, "stage.reorder", project_id)

    with atomic("reorder_stages"):
        _lock_project(project_id)
        listing = ordering.apply_order(ordering.STAGES, project_id, stage_ids)

    publish(DomainEvent("stage.reordered", project_id, principal, {"stage_ids": list(stage_ids)}))
    return [{"id": stage_id, "order": position} for stage_id, position in listing]


# ── Field / status updates ───────────────────────────────────────────────────


def update_stage(principal: Principal, project_id: int, stage_id: int, data: dict) -> dict:
    """Provider edit of title, description, dates and status.

    Any status is accepted except ``done``; finishing a stage must go through
    ``complete_stage`` so the successor is activated in the same transaction.
    """
    authorize(principal, "stage.update", project_id)
    values = _validate_stage_fields(data, partial=True)
    for immutable in ("order", "project_id"):
        values.pop(immutable, None)
    if values.get("status") == "done":
        raise ConstraintViolation("Use the complete-stage action to mark a stage as done")
    if not values:
        raise ValidationError("Nothing to update", details={"stage": "No updatable fields supplied"})

    with atomic("update_stage"):
        stage = get_scoped(Stage, stage_id, project_id=project_id, lock=True)
        start = values.get("planned_start", stage.planned_start)
        end = values.get("planned_end", stage.planned_end)
        if start and end and end < start:
            raise ValidationError(
                "Invalid stage data",
                details={"planned_end": "planned_end must not be before planned_start"},
            )
        changes = {k: v for k, v in values.items() if getattr(stage, k) != v}
        for key, value in changes.items():
            setattr(stage, key, value)
        db.session.flush()
        result = stage.to_dict()

    if changes:
        publish(DomainEvent("stage.updated", project_id, principal, {
            "stage_id": stage_id,
            "updates": {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in changes.items()},
        }))
    return result


def set_current_stage(principal: Principal, project_id: int, current_stage_id: int | None) -> list[dict]:
    """Move the project's current stage.

    Stages before the target become done, the target becomes todo, and later
    stages that were done go back to todo. With no target every stage
    resets to todo.
    """
    authorize(principal, "project.set_current_stage", project_id)

    with atomic("set_current_stage"):
        _lock_project(project_id)
        stages = db.session.execute(
            select(Stage).where(Stage.project_id == project_id).order_by(Stage.order)
        ).scalars().all()

        if current_stage_id is None:
            targets = {s.id: "todo" for s in stages}
        else:
            target = next((s for s in stages if s.id == current_stage_id), None)
            if target is None:
                raise NotFoundError(resource="Stage", resource_id=current_stage_id)
            targets = {}
            for s in stages:
                if s.order < target.order:
                    targets[s.id] = "done"
                elif s.order == target.order:
                    targets[s.id] = "todo"
                elif s.status == "done":
                    targets[s.id] = "todo"

        now = datetime.now(timezone.utc)
        changed = []
        for s in stages:
            new_status = targets.get(s.id, s.status)
            if new_status == s.status:
                continue
            s.status = new_status
            if new_status == "done" and s.completion_at is None:
                s.completion_at = now
            changed.append(s.id)
        db.session.flush()
        result = [s.to_dict() for s in stages]

    publish(DomainEvent("project.stage_changed", project_id, principal, {
        "current_stage_id": current_stage_id, "changed_stage_ids": changed,
    }))
    return result


# ── Completion protocol ──────────────────────────────────────────────────────


def complete_stage(principal: Principal, project_id: int, stage_id: int, note: str | None = None) -> dict:
    """Close a stage and activate its successor in one transaction.

    Steps (all-or-nothing):
      1. status -> done, completion_at stamped, completion_note stored
      2. the next stage by order, if blocked or waiting on the client, -> todo
      3. project planned -> in_progress; project -> done when no stage is left open

    Raises:
        ConstraintViolation: the stage is already done.
    """
    authorize(principal, "stage.complete", project_id)
    note = clean_text(note)

    with atomic("complete_stage"):
        project = _lock_project(project_id)
        stage = get_scoped(Stage, stage_id, project_id=project_id)
        if stage.is_done:
            raise ConstraintViolation("Stage is already completed")

        previous_status = stage.status
        stage.status = "done"
        stage.completion_at = datetime.now(timezone.utc)
        stage.completion_note = note

        successor = _successor(stage)
        activated_id = None
        if successor is not None and successor.status in ACTIVATABLE_STATUSES:
            successor.status = "todo"
            activated_id = successor.id

        db.session.flush()
        if _current_stage(project_id) is None:
            project.status = "done"
        elif project.status == "planned":
            project.status = "in_progress"

        notify_project_members(project_id, "stage_completed", {
            "stage_id": stage.id, "stage_title": stage.title,
        })
        db.session.flush()
        result = stage.to_dict()
        result["next_stage_id"] = successor.id if successor is not None else None
        result["activated_stage_id"] = activated_id

    logger.info(
        "Stage %s completed in project %s (was %s); successor=%s activated=%s",
        stage_id, project_id, previous_status, result["next_stage_id"], activated_id,
    )
    publish(DomainEvent("stage.completed", project_id, principal, {
        "stage_id": stage_id,
        "previous_status": previous_status,
        "next_stage_id": result["next_stage_id"],
        "activated_stage_id": activated_id,
    }))
    return result


def update_completion_note(principal: Principal, project_id: int, stage_id: int, note: str | None) -> dict:
    """Edit the note of an already-completed stage without re-running completion."""
    authorize(principal, "stage.update_completion_note", project_id)
    note = clean_text(note)

    with atomic("update_completion_note"):
        stage = get_scoped(Stage, stage_id, project_id=project_id, lock=True)
        if not stage.is_done:
            raise ConstraintViolation("The completion note can only be edited on a completed stage")
        stage.completion_note = note
        db.session.flush()
        result = stage.to_dict()

    publish(DomainEvent("stage.completion_note_updated", project_id, principal, {"stage_id": stage_id}))
    return result


# ── Side actions ─────────────────────────────────────────────────────────────


def request_materials(principal: Principal, project_id: int) -> dict:
    """Ask the client for materials for the project's current stage.

    Notifies every member; stage statuses are not changed.

    Raises:
        ConstraintViolation: every stage is already done (or there are none).
    """
    authorize(principal, "stage.request_materials", project_id)

    with atomic("request_materials"):
        stage = _current_stage(project_id)
        if stage is None:
            raise ConstraintViolation("The project has no open stage to request materials for")
        notified = notify_project_members(project_id, "material_request", {
            "stage_id": stage.id, "stage_title": stage.title,
        })
        result = {"stage_id": stage.id, "notified": notified}

    publish(DomainEvent("stage.materials_requested", project_id, principal, result))
    return result


def request_approval(principal: Principal, project_id: int, stage_id: int | None = None) -> dict:
    """Raise an approval request; targets the current stage when ``stage_id`` is None.

    No status precondition: an approval may be requested on a stage in any
    state, including done.
    """
    authorize(principal, "stage.request_approval", project_id)

    with atomic("request_approval"):
        if stage_id is not None:
            stage = get_scoped(Stage, stage_id, project_id=project_id)
        else:
            stage = _current_stage(project_id)
        approval = Approval(
            project_id=project_id,
            stage_id=stage.id if stage is not None else None,
            requested_by=principal.role,
            status="requested",
        )
        db.session.add(approval)
        db.session.flush()
        notify_project_members(project_id, "approval", {
            "approval_id": approval.id,
            "stage_id": approval.stage_id,
        })
        result = approval.to_dict()

    publish(DomainEvent("stage.approval_requested", project_id, principal, {
        "stage_id": result["stage_id"], "approval_id": result["id"],
    }))
    return result
