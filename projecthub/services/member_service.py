"""
Project membership: client access grants keyed by lower-cased email.

Providers manage members; an invited client accepts their own invitation,
after which the membership counts for access checks.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select

from projecthub.core.exceptions import ConstraintViolation, NotFoundError, PermissionDenied, ValidationError
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.project import MEMBER_ROLES, Project, ProjectMember
from projecthub.services.access_control import authorize
from projecthub.services.events import DomainEvent, publish
from projecthub.services.helpers.transaction import atomic

logger = logging.getLogger(__name__)


def _normalize_email(email) -> str:
    """Syntax-check and lower-case a member email; no DNS lookup."""
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Invalid member data", details={"email": "A valid email is required"})
    try:
        valid = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Invalid member data", details={"email": str(exc)})
    return valid.normalized.lower()


def _validate_role(role) -> str:
    if role not in MEMBER_ROLES:
        raise ValidationError(
            "Invalid member data",
            details={"role": f"Must be one of: {', '.join(MEMBER_ROLES)}"},
        )
    return role


def _get_member(project_id: int, email: str, *, lock: bool = False) -> ProjectMember:
    stmt = select(ProjectMember).where(
        ProjectMember.project_id == project_id,
        func.lower(ProjectMember.email) == email,
    )
    if lock:
        stmt = stmt.with_for_update()
    member = db.session.execute(stmt).scalar_one_or_none()
    if member is None:
        raise NotFoundError(resource="ProjectMember", resource_id=email)
    return member


def list_members(principal: Principal, project_id: int) -> list[dict]:
    authorize(principal, "project.read", project_id)
    members = db.session.execute(
        select(ProjectMember)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at, ProjectMember.id)
    ).scalars().all()
    return [m.to_dict() for m in members]


def add_member(principal: Principal, project_id: int, email, role="client_viewer") -> dict:
    """Invite a client. The grant is inactive until accepted.

    Raises:
        ConstraintViolation: the email is already a member of the project.
    """
    email = _normalize_email(email)
    role = _validate_role(role or "client_viewer")
    authorize(principal, "member.manage", project_id)

    with atomic("add_member"):
        existing = db.session.execute(
            select(ProjectMember.id).where(
                ProjectMember.project_id == project_id,
                func.lower(ProjectMember.email) == email,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise ConstraintViolation("This email is already a member of the project")
        member = ProjectMember(project_id=project_id, email=email, role=role)
        db.session.add(member)
        db.session.flush()
        result = member.to_dict()

    publish(DomainEvent("project.member_added", project_id, principal, {"email": email, "role": role}))
    return result


def update_member_role(principal: Principal, project_id: int, email, role) -> dict:
    email = _normalize_email(email)
    role = _validate_role(role)
    authorize(principal, "member.manage", project_id)

    with atomic("update_member_role"):
        member = _get_member(project_id, email, lock=True)
        previous = member.role
        member.role = role
        db.session.flush()
        result = member.to_dict()

    publish(DomainEvent("project.member_role_updated", project_id, principal, {
        "email": email, "from": previous, "to": role,
    }))
    return result


def remove_member(principal: Principal, project_id: int, email) -> dict:
    email = _normalize_email(email)
    authorize(principal, "member.manage", project_id)

    with atomic("remove_member"):
        member = _get_member(project_id, email)
        db.session.delete(member)

    publish(DomainEvent("project.member_removed", project_id, principal, {"email": email}))
    return {"email": email}


def accept_invitation(principal: Principal, project_id: int) -> dict:
    """Accept the pending membership addressed to the principal's email.

    Accepting twice is a no-op that returns the membership unchanged.
    """
    if principal is None or not principal.is_client or not principal.normalized_email:
        raise PermissionDenied()
    if db.session.get(Project, project_id) is None:
        raise PermissionDenied()

    with atomic("accept_invitation"):
        stmt = select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            func.lower(ProjectMember.email) == principal.normalized_email,
        ).with_for_update()
        member = db.session.execute(stmt).scalar_one_or_none()
        if member is None:
            raise PermissionDenied()
        newly_accepted = member.accepted_at is None
        if newly_accepted:
            member.accepted_at = datetime.now(timezone.utc)
        db.session.flush()
        result = member.to_dict()

    if newly_accepted:
        logger.info("Membership accepted: project=%s email=%s", project_id, principal.normalized_email)
        publish(DomainEvent("project.member_accepted", project_id, principal, {
            "email": principal.normalized_email,
        }))
    return result
