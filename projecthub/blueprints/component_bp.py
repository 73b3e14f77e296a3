"""
Stage component blueprint.

Endpoints:
    GET    /api/v1/projects/<pid>/stages/<sid>/components        list (feature-flag filtered)
    POST   /api/v1/projects/<pid>/stages/<sid>/components        add
    PUT    /api/v1/projects/<pid>/stages/<sid>/components/order  bulk reorder
    GET    /api/v1/projects/<pid>/components/<cid>               read
    PATCH  /api/v1/projects/<pid>/components/<cid>               update
    DELETE /api/v1/projects/<pid>/components/<cid>               delete
    POST   /api/v1/projects/<pid>/components/<cid>/approve       approve (approval type)
    POST   /api/v1/projects/<pid>/components/<cid>/links         submit link (upload_request)
"""

from flask import Blueprint, g

from projecthub.blueprints import json_body, principal_required, register_error_handlers
from projecthub.services import component_service
from projecthub.utils.errors import api_ok

component_bp = Blueprint("component_bp", __name__, url_prefix="/api/v1/projects/<int:project_id>")
register_error_handlers(component_bp)


@component_bp.route("/stages/<int:stage_id>/components", methods=["GET"])
@principal_required
def list_components(project_id, stage_id):
    components = component_service.list_components(g.principal, project_id, stage_id)
    return api_ok({"components": components})


@component_bp.route("/stages/<int:stage_id>/components", methods=["POST"])
@principal_required
def add_component(project_id, stage_id):
    component = component_service.add_component(g.principal, project_id, stage_id, json_body())
    return api_ok({"component": component}, status=201)


@component_bp.route("/stages/<int:stage_id>/components/order", methods=["PUT"])
@principal_required
def reorder_components(project_id, stage_id):
    data = json_body()
    order = component_service.reorder_components(g.principal, project_id, stage_id, data.get("component_ids"))
    return api_ok({"order": order})


@component_bp.route("/components/<int:component_id>", methods=["GET"])
@principal_required
def get_component(project_id, component_id):
    return api_ok({"component": component_service.get_component(g.principal, project_id, component_id)})


@component_bp.route("/components/<int:component_id>", methods=["PATCH"])
@principal_required
def update_component(project_id, component_id):
    component = component_service.update_component(g.principal, project_id, component_id, json_body())
    return api_ok({"component": component})


@component_bp.route("/components/<int:component_id>", methods=["DELETE"])
@principal_required
def delete_component(project_id, component_id):
    return api_ok(component_service.delete_component(g.principal, project_id, component_id))


@component_bp.route("/components/<int:component_id>/approve", methods=["POST"])
@principal_required
def approve_component(project_id, component_id):
    component = component_service.approve_component(g.principal, project_id, component_id)
    return api_ok({"component": component})


@component_bp.route("/components/<int:component_id>/links", methods=["POST"])
@principal_required
def submit_link(project_id, component_id):
    data = json_body()
    component = component_service.submit_component_link(g.principal, project_id, component_id, data.get("url"))
    return api_ok({"component": component}, status=201)
