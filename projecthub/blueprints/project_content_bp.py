"""
Project links and meeting minutes blueprint.

Endpoints:
    GET    /api/v1/projects/<pid>/links                     list, newest first
    POST   /api/v1/projects/<pid>/links                     add
    PATCH  /api/v1/projects/<pid>/links/<lid>               replace title + url
    DELETE /api/v1/projects/<pid>/links/<lid>               delete
    GET    /api/v1/projects/<pid>/minutes                   list, latest meeting first
    GET    /api/v1/projects/<pid>/minutes/by-date/<date>    minute for one date (or null)
    POST   /api/v1/projects/<pid>/minutes                   add
    PATCH  /api/v1/projects/<pid>/minutes/<mid>             update
    DELETE /api/v1/projects/<pid>/minutes/<mid>             delete
"""

from flask import Blueprint, g

from projecthub.blueprints import json_body, principal_required, register_error_handlers
from projecthub.services import link_service, minute_service
from projecthub.utils.errors import api_ok

project_content_bp = Blueprint(
    "project_content_bp", __name__, url_prefix="/api/v1/projects/<int:project_id>",
)
register_error_handlers(project_content_bp)


# ── Links ────────────────────────────────────────────────────────────────────


@project_content_bp.route("/links", methods=["GET"])
@principal_required
def list_links(project_id):
    return api_ok({"links": link_service.list_links(g.principal, project_id)})


@project_content_bp.route("/links", methods=["POST"])
@principal_required
def add_link(project_id):
    link = link_service.add_link(g.principal, project_id, json_body())
    return api_ok({"link": link}, status=201)


@project_content_bp.route("/links/<int:link_id>", methods=["PATCH"])
@principal_required
def update_link(project_id, link_id):
    link = link_service.update_link(g.principal, project_id, link_id, json_body())
    return api_ok({"link": link})


@project_content_bp.route("/links/<int:link_id>", methods=["DELETE"])
@principal_required
def delete_link(project_id, link_id):
    return api_ok(link_service.delete_link(g.principal, project_id, link_id))


# ── Minutes ──────────────────────────────────────────────────────────────────


@project_content_bp.route("/minutes", methods=["GET"])
@principal_required
def list_minutes(project_id):
    return api_ok({"minutes": minute_service.list_minutes(g.principal, project_id)})


@project_content_bp.route("/minutes/by-date/<string:meeting_date>", methods=["GET"])
@principal_required
def get_minute_by_date(project_id, meeting_date):
    minute = minute_service.get_minute_by_date(g.principal, project_id, meeting_date)
    return api_ok({"minute": minute})


@project_content_bp.route("/minutes", methods=["POST"])
@principal_required
def add_minute(project_id):
    minute = minute_service.add_minute(g.principal, project_id, json_body())
    return api_ok({"minute": minute}, status=201)


@project_content_bp.route("/minutes/<int:minute_id>", methods=["PATCH"])
@principal_required
def update_minute(project_id, minute_id):
    minute = minute_service.update_minute(g.principal, project_id, minute_id, json_body())
    return api_ok({"minute": minute})


@project_content_bp.route("/minutes/<int:minute_id>", methods=["DELETE"])
@principal_required
def delete_minute(project_id, minute_id):
    return api_ok(minute_service.delete_minute(g.principal, project_id, minute_id))
