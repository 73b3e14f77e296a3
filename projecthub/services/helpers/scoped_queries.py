"""
Parent-scoped query helpers.

Every get-by-id in the service layer goes through these helpers instead of
``db.session.get(Model, pk)``. An entity that exists but belongs to another
project (or stage) is reported exactly like a missing one, so callers cannot
enumerate ids across projects.

Usage:
    stage = get_scoped(Stage, stage_id, project_id=project_id)
    comment = get_scoped(Comment, comment_id, project_id=project_id)

    # Components have no project_id column; the join goes through stages.
    component = get_component_in_project(component_id, project_id)

    # When None is an acceptable outcome
    stage = get_scoped_or_none(Stage, stage_id, project_id=project_id)
"""

import logging

from sqlalchemy import select

from projecthub.core.exceptions import NotFoundError
from projecthub.models import db
from projecthub.models.stage import Stage, StageComponent

logger = logging.getLogger(__name__)


def get_scoped(
    model,
    pk: int,
    *,
    project_id: int | None = None,
    stage_id: int | None = None,
    lock: bool = False,
):
    """Fetch a single entity by PK with a mandatory parent filter.

    Args:
        model: SQLAlchemy model class with an ``id`` PK and the scope column(s).
        pk: Primary key value to look up.
        project_id: Scope by project_id column.
        stage_id: Scope by stage_id column.
        lock: Take a row lock (``SELECT ... FOR UPDATE``) on the result.

    Raises:
        ValueError: If no scope is provided or a scope names a column the
                    model lacks. Unscoped lookups are a programming error.
        NotFoundError: If the entity does not exist OR belongs to another
                       parent. The two cases are intentionally indistinguishable.
    """
    scopes = {k: v for k, v in {"project_id": project_id, "stage_id": stage_id}.items() if v is not None}
    if not scopes:
        raise ValueError(f"{model.__name__} id={pk} requires a scope filter (project_id or stage_id)")

    missing = [field for field in scopes if not hasattr(model, field)]
    if missing:
        raise ValueError(f"{model.__name__} has no scope column(s) {missing}")

    stmt = select(model).where(model.id == pk)
    for field, value in scopes.items():
        stmt = stmt.where(getattr(model, field) == value)
    if lock:
        stmt = stmt.with_for_update()

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, scopes)
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return result


def get_scoped_or_none(model, pk: int | None, *, project_id: int | None = None, stage_id: int | None = None):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    if pk is None:
        return None
    try:
        return get_scoped(model, pk, project_id=project_id, stage_id=stage_id)
    except NotFoundError:
        return None


def get_component_in_project(component_id: int, project_id: int, *, lock: bool = False) -> StageComponent:
    """Load a component whose stage belongs to ``project_id`` or raise NotFoundError."""
    stmt = (
        select(StageComponent)
        .join(Stage, Stage.id == StageComponent.stage_id)
        .where(StageComponent.id == component_id, Stage.project_id == project_id)
    )
    if lock:
        stmt = stmt.with_for_update()
    component = db.session.execute(stmt).scalar_one_or_none()
    if component is None:
        raise NotFoundError(resource="StageComponent", resource_id=component_id)
    return component
