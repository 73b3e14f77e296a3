"""
Domain events and their best-effort consumers.

Services publish one ``DomainEvent`` per successful mutation, after the
mutation has committed:

    publish(DomainEvent("stage.completed", project_id, actor, {"stage_id": 7}))

Consumers run in registration order. A consumer failure is logged and
swallowed: it never reaches the caller and never undoes the mutation, which
is already committed by the time events are published.

Default consumers:
    audit_consumer        append an AuditLog row (own transaction)
    invalidation_consumer collect the page paths the presentation layer
                          should refresh (``X-Invalidate-Paths`` header)
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from flask import g, has_request_context

from projecthub.core.exceptions import AuditSinkError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.audit import write_audit

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    action: str
    project_id: int | None
    actor: Principal | None = None
    details: dict = field(default_factory=dict)

    @property
    def actor_type(self) -> str:
        return self.actor.role if self.actor is not None else "system"

    @property
    def actor_id(self) -> str | None:
        return self.actor.id if self.actor is not None else None

    def affected_paths(self) -> list[str]:
        if self.project_id is None:
            return ["/dashboard"]
        return [f"/projects/{self.project_id}", "/dashboard"]


Consumer = Callable[[DomainEvent], None]


def audit_consumer(event: DomainEvent) -> None:
    try:
        write_audit(
            action=event.action,
            project_id=event.project_id,
            actor_type=event.actor_type,
            actor_id=event.actor_id,
            details=event.details,
        )
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        raise AuditSinkError(f"Failed to write audit log for {event.action}") from exc


def invalidation_consumer(event: DomainEvent) -> None:
    if not has_request_context():
        return
    paths = getattr(g, "invalidated_paths", None)
    if paths is None:
        paths = g.invalidated_paths = []
    for path in event.affected_paths():
        if path not in paths:
            paths.append(path)


_consumers: list[Consumer] = [audit_consumer, invalidation_consumer]


def subscribe(consumer: Consumer) -> None:
    if consumer not in _consumers:
        _consumers.append(consumer)


def unsubscribe(consumer: Consumer) -> None:
    if consumer in _consumers:
        _consumers.remove(consumer)


def publish(event: DomainEvent) -> None:
    """Deliver ``event`` to every consumer; failures are logged, never raised."""
    for consumer in list(_consumers):
        try:
            consumer(event)
        except Exception:
            logger.exception(
                "Event consumer %s failed for %s (project=%s)",
                getattr(consumer, "__name__", consumer), event.action, event.project_id,
            )
