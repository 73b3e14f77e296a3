"""
Approval records: providers request (see ``stage_service.request_approval``),
client members answer with ``approved`` or ``changes_requested``.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from projecthub.core.exceptions import ConstraintViolation, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.approval import APPROVAL_RESPONSES, Approval
from projecthub.services.access_control import authorize
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.scoped_queries import get_scoped
from projecthub.services.helpers.transaction import atomic
from projecthub.utils.helpers import clean_text

logger = logging.getLogger(__name__)


def list_approvals(principal: Principal, project_id: int, status: str | None = None) -> list[dict]:
    authorize(principal, "project.read", project_id)
    stmt = select(Approval).where(Approval.project_id == project_id)
    if status:
        stmt = stmt.where(Approval.status == status)
    stmt = stmt.order_by(Approval.requested_at.desc(), Approval.id.desc())
    return [a.to_dict() for a in db.session.execute(stmt).scalars().all()]


def respond_approval(principal: Principal, project_id: int, approval_id: int, decision, feedback=None) -> dict:
    """Answer an open approval request.

    Raises:
        ValidationError: ``decision`` is not approved / changes_requested.
        ConstraintViolation: the request was already answered.
    """
    if decision not in APPROVAL_RESPONSES:
        raise ValidationError(
            "Invalid approval response",
            details={"decision": f"Must be one of: {', '.join(APPROVAL_RESPONSES)}"},
        )
    feedback = clean_text(feedback)
    authorize(principal, "approval.respond", project_id)

    with atomic("respond_approval"):
        approval = get_scoped(Approval, approval_id, project_id=project_id, lock=True)
        if approval.status != "requested":
            raise ConstraintViolation("This approval request has already been answered")
        approval.status = decision
        approval.feedback = feedback
        approval.approved_by = principal.id
        if decision == "approved":
            approval.approved_at = datetime.now(timezone.utc)
        db.session.flush()
        result = approval.to_dict()

    logger.info("Approval %s in project %s answered: %s", approval_id, project_id, decision)
    publish(DomainEvent("approval.responded", project_id, principal, {
        "approval_id": approval_id, "decision": decision, "stage_id": result["stage_id"],
    }))
    return result
