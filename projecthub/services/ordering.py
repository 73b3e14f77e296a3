"""
Ordering Engine: dense 1-based positions for stages and components.

Two ordered scopes exist:

    STAGES      Stage.order            within Stage.project_id
    COMPONENTS  StageComponent.sort_order within StageComponent.stage_id

After every call below the positions of a parent are exactly {1..N}.

Concurrency contract:
    These functions only issue statements on the current session; they never
    commit. Callers run them inside ``atomic(...)`` after locking the parent
    row (``get_scoped(..., lock=True)`` or a ``with_for_update`` select), so two writers on
    the same parent serialise on that lock and a failure part-way rolls back
    every shifted row.

Shifts are set-based UPDATEs done in two phases through negative values:
the (parent, position) unique constraint is checked row by row on SQLite and
PostgreSQL, so moving 3→4 while 4 still exists would collide.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update

from projecthub.core.exceptions import ConstraintViolation, NotFoundError, ValidationError
from projecthub.models import db
from projecthub.models.stage import Stage, StageComponent

logger = logging.getLogger(__name__)

FOREIGN_ITEMS_MESSAGE = "Some items do not belong to this parent"


@dataclass(frozen=True)
class OrderedScope:
    model: type
    position_attr: str
    parent_attr: str

    @property
    def position(self):
        return getattr(self.model, self.position_attr)

    @property
    def parent(self):
        return getattr(self.model, self.parent_attr)

    @property
    def label(self) -> str:
        return self.model.__name__


STAGES = OrderedScope(Stage, "order", "project_id")
COMPONENTS = OrderedScope(StageComponent, "sort_order", "stage_id")


# ── Reads ────────────────────────────────────────────────────────────────────


def positions(scope: OrderedScope, parent_id: int) -> list[tuple[int, int]]:
    """Return ``[(id, position), ...]`` for a parent, in position order."""
    stmt = (
        select(scope.model.id, scope.position)
        .where(scope.parent == parent_id)
        .order_by(scope.position)
    )
    return [(row[0], row[1]) for row in db.session.execute(stmt).all()]


def next_position(scope: OrderedScope, parent_id: int) -> int:
    """Append position: ``max + 1``, or 1 for an empty parent."""
    stmt = select(func.max(scope.position)).where(scope.parent == parent_id)
    current_max = db.session.execute(stmt).scalar()
    return (current_max or 0) + 1


def is_dense(scope: OrderedScope, parent_id: int) -> bool:
    values = [pos for _, pos in positions(scope, parent_id)]
    return sorted(values) == list(range(1, len(values) + 1))


# ── Mutations ────────────────────────────────────────────────────────────────


def _shift(scope: OrderedScope, parent_id: int, where_clause, delta: int) -> None:
    """Add ``delta`` to every matching position without transient collisions."""
    db.session.execute(
        update(scope.model)
        .where(scope.parent == parent_id, where_clause)
        .values({scope.position_attr: -(scope.position + delta)})
        .execution_options(synchronize_session="fetch")
    )
    db.session.execute(
        update(scope.model)
        .where(scope.parent == parent_id, scope.position < 0)
        .values({scope.position_attr: -scope.position})
        .execution_options(synchronize_session="fetch")
    )


def open_slot(scope: OrderedScope, parent_id: int, after_id: int | None = None) -> int:
    """Reserve the position for a new item and return it.

    ``after_id`` None appends (``max + 1``). Otherwise the new item goes
    right after that sibling: every sibling at or beyond the new position
    moves up by one.

    Raises:
        NotFoundError: ``after_id`` is not a child of ``parent_id``.
    """
    if after_id is None:
        return next_position(scope, parent_id)

    stmt = select(scope.position).where(scope.model.id == after_id, scope.parent == parent_id)
    sibling_position = db.session.execute(stmt).scalar_one_or_none()
    if sibling_position is None:
        raise NotFoundError(resource=scope.label, resource_id=after_id)

    new_position = sibling_position + 1
    _shift(scope, parent_id, scope.position >= new_position, +1)
    logger.debug(
        "Opened %s slot %d in parent %s (after id=%s)",
        scope.label, new_position, parent_id, after_id,
    )
    return new_position


def close_gap(scope: OrderedScope, parent_id: int, removed_position: int) -> None:
    """Compact after a delete: every sibling beyond the removed slot moves down by one."""
    _shift(scope, parent_id, scope.position > removed_position, -1)


def apply_order(scope: OrderedScope, parent_id: int, ordered_ids: list[int]) -> list[tuple[int, int]]:
    """Bulk reorder: assign position ``index + 1`` to each id in ``ordered_ids``.

    The supplied ids must be exactly the parent's current children: same
    count, same membership, no duplicates. Nothing is written otherwise.

    Returns:
        The new ``[(id, position), ...]`` listing.

    Raises:
        ValidationError: ``ordered_ids`` is not a list of integers.
        ConstraintViolation: the id set does not match the parent's children.
    """
    if not isinstance(ordered_ids, (list, tuple)) or not all(
        isinstance(i, int) and not isinstance(i, bool) for i in ordered_ids
    ):
        raise ValidationError("Invalid id list", details={"ids": "Must be a list of integer ids"})

    existing = {item_id for item_id, _ in positions(scope, parent_id)}
    supplied = list(ordered_ids)
    if len(supplied) != len(set(supplied)) or set(supplied) != existing:
        logger.info(
            "Rejected %s reorder for parent %s: supplied=%s existing=%s",
            scope.label, parent_id, supplied, sorted(existing),
        )
        raise ConstraintViolation(FOREIGN_ITEMS_MESSAGE)

    for index, item_id in enumerate(supplied):
        db.session.execute(
            update(scope.model)
            .where(scope.model.id == item_id, scope.parent == parent_id)
            .values({scope.position_attr: -(index + 1)})
            .execution_options(synchronize_session="fetch")
        )
    db.session.execute(
        update(scope.model)
        .where(scope.parent == parent_id, scope.position < 0)
        .values({scope.position_attr: -scope.position})
        .execution_options(synchronize_session="fetch")
    )
    return positions(scope, parent_id)
