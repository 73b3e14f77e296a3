"""
Shared pytest fixtures for the ProjectHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - provider / client_viewer / client_editor / outsider: Principals
    - project: Project with an accepted viewer and editor membership
    - auth_headers: builds a Bearer header for a principal
"""

from datetime import datetime, timezone

import jwt as pyjwt
import pytest

from projecthub import create_app
from projecthub.core.principal import Principal
from projecthub.models import db as _db
from projecthub.models.project import Project, ProjectMember
from projecthub.models.stage import Stage, StageComponent

VIEWER_EMAIL = "viewer@client.example"
EDITOR_EMAIL = "editor@client.example"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Principals ───────────────────────────────────────────────────────────


@pytest.fixture()
def provider():
    return Principal(id="prov-1", role="provider", email="pm@studio.example")


@pytest.fixture()
def other_provider():
    return Principal(id="prov-2", role="provider", email="dev@studio.example")


@pytest.fixture()
def client_viewer():
    return Principal(id="cli-viewer", role="client", email=VIEWER_EMAIL)


@pytest.fixture()
def client_editor():
    return Principal(id="cli-editor", role="client", email="Editor@Client.example")


@pytest.fixture()
def outsider():
    return Principal(id="cli-outsider", role="client", email="nobody@elsewhere.example")


@pytest.fixture()
def auth_headers(app):
    """Return a function building Authorization headers for a principal."""

    def _headers(principal: Principal) -> dict:
        token = pyjwt.encode(
            {"sub": principal.id, "role": principal.role, "email": principal.email},
            app.config["SECRET_KEY"],
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Factories ────────────────────────────────────────────────────────────


def make_project(**kw) -> Project:
    data = {"title": "Website Relaunch", "client_id": "acme"}
    data.update(kw)
    project = Project(**data)
    _db.session.add(project)
    _db.session.commit()
    return project


def make_member(project: Project, email: str, role: str = "client_viewer", accepted: bool = True) -> ProjectMember:
    member = ProjectMember(
        project_id=project.id,
        email=email.lower(),
        role=role,
        accepted_at=datetime.now(timezone.utc) if accepted else None,
    )
    _db.session.add(member)
    _db.session.commit()
    return member


def make_stage(project: Project, title: str, order: int, **kw) -> Stage:
    stage = Stage(project_id=project.id, title=title, order=order, **kw)
    _db.session.add(stage)
    _db.session.commit()
    return stage


def make_component(stage: Stage, component_type: str, sort_order: int, **kw) -> StageComponent:
    data = {"config": {}, "status": "todo"}
    data.update(kw)
    component = StageComponent(
        stage_id=stage.id, component_type=component_type, sort_order=sort_order, **data,
    )
    _db.session.add(component)
    _db.session.commit()
    return component


@pytest.fixture()
def project():
    """Project with an accepted viewer and an accepted editor."""
    proj = make_project()
    make_member(proj, VIEWER_EMAIL, "client_viewer")
    make_member(proj, EDITOR_EMAIL, "client_editor")
    return proj
