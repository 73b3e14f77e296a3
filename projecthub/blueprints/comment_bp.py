"""
Comment blueprint.

Endpoints:
    GET    /api/v1/projects/<pid>/comments[?stage_id=|component_id=]   thread
    POST   /api/v1/projects/<pid>/comments                             create
    PATCH  /api/v1/projects/<pid>/comments/<cid>                       edit body
    DELETE /api/v1/projects/<pid>/comments/<cid>                       delete
"""

from flask import Blueprint, g, request

from projecthub.blueprints import json_body, principal_required, register_error_handlers
from projecthub.services import comment_service
from projecthub.utils.errors import api_ok

comment_bp = Blueprint("comment_bp", __name__, url_prefix="/api/v1/projects/<int:project_id>/comments")
register_error_handlers(comment_bp)


@comment_bp.route("", methods=["GET"])
@principal_required
def list_thread(project_id):
    comments = comment_service.list_thread(
        g.principal,
        project_id,
        stage_id=request.args.get("stage_id"),
        component_id=request.args.get("component_id"),
    )
    return api_ok({"comments": comments})


@comment_bp.route("", methods=["POST"])
@principal_required
def create_comment(project_id):
    data = json_body()
    comment = comment_service.create_comment(
        g.principal,
        project_id,
        data.get("body"),
        stage_id=data.get("stage_id"),
        component_id=data.get("component_id"),
    )
    return api_ok({"comment": comment}, status=201)


@comment_bp.route("/<int:comment_id>", methods=["PATCH"])
@principal_required
def update_comment(project_id, comment_id):
    data = json_body()
    comment = comment_service.update_comment(g.principal, project_id, comment_id, data.get("body"))
    return api_ok({"comment": comment})


@comment_bp.route("/<int:comment_id>", methods=["DELETE"])
@principal_required
def delete_comment(project_id, comment_id):
    return api_ok(comment_service.delete_comment(g.principal, project_id, comment_id))
