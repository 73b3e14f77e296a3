"""
Access Control: project-level permission gate.

Rules:
  - provider principals are always granted (organisation scoping happens
    upstream of this service).
  - client principals need an accepted ProjectMember row for
    ``(project_id, lower(email))`` whose role ranks at least ``min_role``.
  - some actions are provider-only regardless of membership.

Every operation calls ``authorize(principal, action, project_id)`` once
instead of re-implementing the provider/client branching inline.

Usage:
    from projecthub.services.access_control import authorize

    authorize(principal, "stage.complete", project_id)   # raises PermissionDenied
    if can_access_project(principal, project_id):
        ...
"""

import logging

from sqlalchemy import func, select

from projecthub.core.exceptions import PermissionDenied
from projecthub.core.principal import Principal
from projecthub.models import db
from projecthub.models.project import MEMBER_ROLE_RANK, Project, ProjectMember

logger = logging.getLogger(__name__)

VIEWER = "client_viewer"
EDITOR = "client_editor"

# action -> minimum client role, or None when the action is provider-only
ACTION_RULES: dict[str, str | None] = {
    # Reads and client-side participation
    "project.read": VIEWER,
    "stage.read": VIEWER,
    "component.read": VIEWER,
    "comment.read": VIEWER,
    "comment.create": VIEWER,
    "comment.update": VIEWER,
    "comment.delete": VIEWER,
    "component.submit_link": VIEWER,
    "component.approve": VIEWER,
    "approval.respond": VIEWER,
    # Provider-only mutations
    "stage.create": None,
    "stage.update": None,
    "stage.delete": None,
    "stage.reorder": None,
    "stage.complete": None,
    "stage.update_completion_note": None,
    "stage.request_materials": None,
    "stage.request_approval": None,
    "project.set_current_stage": None,
    "component.create": None,
    "component.update": None,
    "component.delete": None,
    "component.reorder": None,
    "member.manage": None,
    "project.update": None,
    "link.manage": None,
    "minute.manage": None,
}


def _membership(project_id: int, email: str) -> ProjectMember | None:
    if not email:
        return None
    stmt = select(ProjectMember).where(
        ProjectMember.project_id == project_id,
        func.lower(ProjectMember.email) == email.lower(),
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _role_satisfies(role: str | None, min_role: str) -> bool:
    return MEMBER_ROLE_RANK.get(role or "", 0) >= MEMBER_ROLE_RANK.get(min_role, 0)


def can_access_project(principal: Principal | None, project_id: int, min_role: str = VIEWER) -> bool:
    """Return True if ``principal`` may act on the project at ``min_role`` tier.

    Read-only: never writes, never raises for a missing project.
    """
    if principal is None:
        return False
    if db.session.get(Project, project_id) is None:
        return False
    if principal.is_provider:
        return True
    if not principal.is_client:
        return False

    member = _membership(project_id, principal.normalized_email)
    if member is None or not member.is_accepted:
        return False
    return _role_satisfies(member.role, min_role)


def require_project_access(principal: Principal | None, project_id: int, min_role: str = VIEWER) -> None:
    """Raise PermissionDenied unless ``can_access_project`` holds."""
    if not can_access_project(principal, project_id, min_role):
        logger.warning(
            "Project access denied: principal=%s role=%s project=%s min_role=%s",
            getattr(principal, "id", None), getattr(principal, "role", None), project_id, min_role,
        )
        raise PermissionDenied()


def require_provider(principal: Principal | None) -> None:
    if principal is None or not principal.is_provider:
        raise PermissionDenied()


def authorize(principal: Principal | None, action: str, project_id: int) -> None:
    """Single gate used by every service operation.

    Raises:
        PermissionDenied: principal may not perform ``action`` on the project,
                          or the project does not exist.
        KeyError: ``action`` is not a registered rule (programming error).
    """
    min_role = ACTION_RULES[action]
    if min_role is None:
        require_provider(principal)
        require_project_access(principal, project_id)
        return
    require_project_access(principal, project_id, min_role)
