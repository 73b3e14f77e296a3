"""
Project blueprint: the project record, workflow actions, membership and feeds.

Endpoints:
    GET    /api/v1/projects                                     projects visible to the principal
    POST   /api/v1/projects                                     create (provider)
    GET    /api/v1/projects/<pid>                               overview with stages
    PATCH  /api/v1/projects/<pid>                               title / description
    PATCH  /api/v1/projects/<pid>/dates                         start / end / deadline
    PUT    /api/v1/projects/<pid>/status                        project status
    PUT    /api/v1/projects/<pid>/current-stage                 move current stage
    POST   /api/v1/projects/<pid>/materials-request             ask client for materials
    GET    /api/v1/projects/<pid>/approvals                     list approvals
    POST   /api/v1/projects/<pid>/approvals                     request approval
    POST   /api/v1/projects/<pid>/approvals/<aid>/respond       client answer
    GET    /api/v1/projects/<pid>/members                       list members
    POST   /api/v1/projects/<pid>/members                       invite
    PATCH  /api/v1/projects/<pid>/members/<email>               change role
    DELETE /api/v1/projects/<pid>/members/<email>               remove
    POST   /api/v1/projects/<pid>/members/accept                accept own invitation
    GET    /api/v1/projects/<pid>/activity                      audit feed, newest first
    GET    /api/v1/notifications                                principal's notifications
"""

from flask import Blueprint, g, request

from projecthub.blueprints import json_body, principal_required, register_error_handlers
from projecthub.core.exceptions import ValidationError
from projecthub.services import (
    activity_service,
    approval_service,
    member_service,
    notification_service,
    project_service,
    stage_service,
)
from projecthub.utils.errors import api_ok
from projecthub.utils.helpers import coerce_id

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


def _optional_id(data: dict, key: str):
    try:
        return coerce_id(data.get(key))
    except ValueError:
        raise ValidationError("Invalid id", details={key: "Must be an integer id"})


# ── Project record ───────────────────────────────────────────────────────────


@project_bp.route("/projects", methods=["GET"])
@principal_required
def list_projects():
    projects = project_service.list_projects(g.principal, status=request.args.get("status"))
    return api_ok({"projects": projects})


@project_bp.route("/projects", methods=["POST"])
@principal_required
def create_project():
    return api_ok({"project": project_service.create_project(g.principal, json_body())}, status=201)


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@principal_required
def get_project(project_id):
    return api_ok({"project": project_service.get_project(g.principal, project_id)})


@project_bp.route("/projects/<int:project_id>", methods=["PATCH"])
@principal_required
def update_project(project_id):
    project = project_service.update_project_basic_info(g.principal, project_id, json_body())
    return api_ok({"project": project})


@project_bp.route("/projects/<int:project_id>/dates", methods=["PATCH"])
@principal_required
def update_project_dates(project_id):
    project = project_service.update_project_dates(g.principal, project_id, json_body())
    return api_ok({"project": project})


@project_bp.route("/projects/<int:project_id>/status", methods=["PUT"])
@principal_required
def update_project_status(project_id):
    project = project_service.update_project_status(g.principal, project_id, json_body().get("status"))
    return api_ok({"project": project})


# ── Project workflow ─────────────────────────────────────────────────────────


@project_bp.route("/projects/<int:project_id>/current-stage", methods=["PUT"])
@principal_required
def set_current_stage(project_id):
    stage_id = _optional_id(json_body(), "stage_id")
    stages = stage_service.set_current_stage(g.principal, project_id, stage_id)
    return api_ok({"stages": stages})


@project_bp.route("/projects/<int:project_id>/materials-request", methods=["POST"])
@principal_required
def request_materials(project_id):
    return api_ok(stage_service.request_materials(g.principal, project_id), status=201)


# ── Approvals ────────────────────────────────────────────────────────────────


@project_bp.route("/projects/<int:project_id>/approvals", methods=["GET"])
@principal_required
def list_approvals(project_id):
    approvals = approval_service.list_approvals(g.principal, project_id, status=request.args.get("status"))
    return api_ok({"approvals": approvals})


@project_bp.route("/projects/<int:project_id>/approvals", methods=["POST"])
@principal_required
def request_approval(project_id):
    stage_id = _optional_id(json_body(), "stage_id")
    approval = stage_service.request_approval(g.principal, project_id, stage_id)
    return api_ok({"approval": approval}, status=201)


@project_bp.route("/projects/<int:project_id>/approvals/<int:approval_id>/respond", methods=["POST"])
@principal_required
def respond_approval(project_id, approval_id):
    data = json_body()
    approval = approval_service.respond_approval(
        g.principal, project_id, approval_id, data.get("decision"), feedback=data.get("feedback"),
    )
    return api_ok({"approval": approval})


# ── Members ──────────────────────────────────────────────────────────────────


@project_bp.route("/projects/<int:project_id>/members", methods=["GET"])
@principal_required
def list_members(project_id):
    return api_ok({"members": member_service.list_members(g.principal, project_id)})


@project_bp.route("/projects/<int:project_id>/members", methods=["POST"])
@principal_required
def add_member(project_id):
    data = json_body()
    member = member_service.add_member(g.principal, project_id, data.get("email"), data.get("role"))
    return api_ok({"member": member}, status=201)


@project_bp.route("/projects/<int:project_id>/members/accept", methods=["POST"])
@principal_required
def accept_invitation(project_id):
    return api_ok({"member": member_service.accept_invitation(g.principal, project_id)})


@project_bp.route("/projects/<int:project_id>/members/<string:email>", methods=["PATCH"])
@principal_required
def update_member_role(project_id, email):
    member = member_service.update_member_role(g.principal, project_id, email, json_body().get("role"))
    return api_ok({"member": member})


@project_bp.route("/projects/<int:project_id>/members/<string:email>", methods=["DELETE"])
@principal_required
def remove_member(project_id, email):
    return api_ok(member_service.remove_member(g.principal, project_id, email))


# ── Feeds ────────────────────────────────────────────────────────────────────


@project_bp.route("/projects/<int:project_id>/activity", methods=["GET"])
@principal_required
def list_activity(project_id):
    entries = activity_service.list_activity(
        g.principal,
        project_id,
        limit=request.args.get("limit", activity_service.DEFAULT_LIMIT, type=int),
        action=request.args.get("action"),
    )
    return api_ok({"activity": entries})


@project_bp.route("/notifications", methods=["GET"])
@principal_required
def list_notifications():
    unread_only = request.args.get("unread") in ("1", "true")
    notifications = notification_service.list_notifications(g.principal.normalized_email, unread_only=unread_only)
    return api_ok({"notifications": notifications})
