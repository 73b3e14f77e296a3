"""
Tests for projecthub/services/helpers/scoped_queries.py

Every id lookup in the service layer goes through these helpers, so a
stage, comment or component id from another project must never resolve.

Scenarios covered:
  1. ValueError when called with no scope, or a scope column the model lacks
  2. NotFoundError when the PK exists under another parent
  3. Entity returned when PK + scope both match
  4. get_scoped_or_none returns None instead of raising NotFoundError
  5. Component lookups join through the stage's project
"""

import pytest

from projecthub.core.exceptions import NotFoundError
from projecthub.models.project import Project
from projecthub.models.stage import Stage, StageComponent
from projecthub.services.helpers.scoped_queries import (
    get_component_in_project,
    get_scoped,
    get_scoped_or_none,
)
from tests.conftest import make_component, make_project, make_stage


class TestScopeRequired:
    def test_no_scope_raises_value_error(self):
        with pytest.raises(ValueError, match="Stage"):
            get_scoped(Stage, 1)

    def test_all_none_is_no_scope(self):
        with pytest.raises(ValueError):
            get_scoped(Stage, 1, project_id=None, stage_id=None)

    def test_scope_column_must_exist(self):
        with pytest.raises(ValueError, match="no scope column"):
            get_scoped(Project, 1, stage_id=3)


class TestIsolation:
    def test_stage_of_other_project_is_not_found(self):
        mine = make_project(title="Mine")
        theirs = make_project(title="Theirs")
        their_stage = make_stage(theirs, "Secret", 1)

        with pytest.raises(NotFoundError) as exc:
            get_scoped(Stage, their_stage.id, project_id=mine.id)
        assert str(exc.value) == "Stage not found"
        assert get_scoped(Stage, their_stage.id, project_id=theirs.id).title == "Secret"

    def test_get_scoped_or_none(self):
        mine = make_project(title="Mine")
        theirs = make_project(title="Theirs")
        their_stage = make_stage(theirs, "Secret", 1)

        assert get_scoped_or_none(Stage, their_stage.id, project_id=mine.id) is None
        assert get_scoped_or_none(Stage, None, project_id=mine.id) is None
        with pytest.raises(ValueError):
            get_scoped_or_none(Stage, their_stage.id)

    def test_component_scoped_by_stage(self):
        project = make_project()
        design = make_stage(project, "Design", 1)
        build = make_stage(project, "Build", 2)
        component = make_component(design, "checklist", 1)

        assert get_scoped(StageComponent, component.id, stage_id=design.id).id == component.id
        with pytest.raises(NotFoundError):
            get_scoped(StageComponent, component.id, stage_id=build.id)

    def test_component_joined_through_project(self):
        mine = make_project(title="Mine")
        theirs = make_project(title="Theirs")
        component = make_component(make_stage(theirs, "Design", 1), "link", 1)

        with pytest.raises(NotFoundError):
            get_component_in_project(component.id, mine.id)
        assert get_component_in_project(component.id, theirs.id).component_type == "link"
