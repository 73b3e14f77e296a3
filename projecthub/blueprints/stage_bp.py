"""
Stage blueprint.

Endpoints:
    GET    /api/v1/projects/<pid>/stages                       list (?include=components)
    POST   /api/v1/projects/<pid>/stages                       create
    GET    /api/v1/projects/<pid>/stages/<sid>                 read
    PATCH  /api/v1/projects/<pid>/stages/<sid>                 update
    DELETE /api/v1/projects/<pid>/stages/<sid>                 delete (empty stages only)
    PUT    /api/v1/projects/<pid>/stages/order                 bulk reorder
    POST   /api/v1/projects/<pid>/stages/<sid>/complete        complete
    PATCH  /api/v1/projects/<pid>/stages/<sid>/completion-note edit note of a done stage
"""

from flask import Blueprint, g, request

from projecthub.blueprints import json_body, principal_required, register_error_handlers
from projecthub.services import stage_service
from projecthub.utils.errors import api_ok

stage_bp = Blueprint("stage_bp", __name__, url_prefix="/api/v1/projects/<int:project_id>/stages")
register_error_handlers(stage_bp)


@stage_bp.route("", methods=["GET"])
@principal_required
def list_stages(project_id):
    include_components = request.args.get("include") == "components"
    stages = stage_service.list_stages(g.principal, project_id, include_components=include_components)
    return api_ok({"stages": stages})


@stage_bp.route("", methods=["POST"])
@principal_required
def create_stage(project_id):
    stage = stage_service.create_stage(g.principal, project_id, json_body())
    return api_ok({"stage": stage}, status=201)


@stage_bp.route("/order", methods=["PUT"])
@principal_required
def reorder_stages(project_id):
    data = json_body()
    order = stage_service.reorder_stages(g.principal, project_id, data.get("stage_ids"))
    return api_ok({"order": order})


@stage_bp.route("/<int:stage_id>", methods=["GET"])
@principal_required
def get_stage(project_id, stage_id):
    return api_ok({"stage": stage_service.get_stage(g.principal, project_id, stage_id)})


@stage_bp.route("/<int:stage_id>", methods=["PATCH"])
@principal_required
def update_stage(project_id, stage_id):
    stage = stage_service.update_stage(g.principal, project_id, stage_id, json_body())
    return api_ok({"stage": stage})


@stage_bp.route("/<int:stage_id>", methods=["DELETE"])
@principal_required
def delete_stage(project_id, stage_id):
    return api_ok(stage_service.delete_stage(g.principal, project_id, stage_id))


@stage_bp.route("/<int:stage_id>/complete", methods=["POST"])
@principal_required
def complete_stage(project_id, stage_id):
    data = json_body()
    stage = stage_service.complete_stage(g.principal, project_id, stage_id, note=data.get("note"))
    return api_ok({"stage": stage})


@stage_bp.route("/<int:stage_id>/completion-note", methods=["PATCH"])
@principal_required
def update_completion_note(project_id, stage_id):
    data = json_body()
    stage = stage_service.update_completion_note(g.principal, project_id, stage_id, data.get("note"))
    return api_ok({"stage": stage})
