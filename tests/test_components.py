"""
Component lifecycle tests.

Covers:
    - creation defaults (todo status, display title fallback)
    - shallow config merge and per-type config validation
    - approve_component type guard and client access
    - submit_component_link on upload_request components
    - feature-flag filtering of listings
"""

import pytest

from projecthub.core.exceptions import ConstraintViolation, PermissionDenied, ValidationError
from projecthub.models.stage import default_component_title
from projecthub.services import component_service, stage_service
from projecthub.services.component_config import merge_config, parse_config
from tests.conftest import make_component, make_stage


class TestCreateAndUpdate:
    def test_new_component_starts_todo(self, provider, project):
        stage = make_stage(project, "Design", 1)
        created = component_service.add_component(
            provider, project.id, stage.id,
            {"component_type": "approval", "title": "Sign off wireframes", "config": {"description": "v1"}},
        )
        assert created["status"] == "todo"
        assert created["sort_order"] == 1
        assert created["config"] == {"description": "v1"}

    def test_unknown_type_rejected(self, provider, project):
        stage = make_stage(project, "Design", 1)
        with pytest.raises(ValidationError):
            component_service.add_component(provider, project.id, stage.id, {"component_type": "video"})

    def test_title_can_be_cleared(self, provider, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "upload_request", 1, title="Send logo files")
        updated = component_service.update_component(provider, project.id, component.id, {"title": ""})
        assert updated["title"] is None
        assert updated["display_title"] == "Link Request"

    @pytest.mark.parametrize("component_type,expected", [
        ("upload_request", "Link Request"),
        ("checklist", "Checklist"),
        ("approval", "Approval Request"),
        ("text_block", "Note"),
        ("link", "Link"),
        ("milestone", "Milestone"),
        ("tasklist", "Task List"),
        ("prototype", "Prototype"),
        ("form", "Component"),
        ("something_new", "Component"),
    ])
    def test_default_titles(self, component_type, expected):
        assert default_component_title(component_type) == expected

    def test_free_form_status_update(self, provider, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "checklist", 1)
        for status in ("in_review", "blocked", "done", "todo"):
            updated = component_service.update_component(provider, project.id, component.id, {"status": status})
            assert updated["status"] == status
        with pytest.raises(ValidationError):
            component_service.update_component(provider, project.id, component.id, {"status": "shipped"})

    def test_client_cannot_update(self, client_editor, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "checklist", 1)
        with pytest.raises(PermissionDenied):
            component_service.update_component(client_editor, project.id, component.id, {"title": "x"})


class TestConfigMerge:
    def test_patch_keeps_absent_keys(self, provider, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "link", 1, config={"url": "https://a.example", "label": "Docs"})
        updated = component_service.update_component(
            provider, project.id, component.id, {"config": {"url": "https://b.example"}},
        )
        assert updated["config"] == {"url": "https://b.example", "label": "Docs"}

    def test_merging_same_patch_twice_is_stable(self):
        existing = {"description": "Brief", "submitted_urls": []}
        patch = {"description": "Updated brief"}
        once = merge_config("upload_request", existing, patch)
        twice = merge_config("upload_request", once, patch)
        assert once == twice == {"description": "Updated brief", "submitted_urls": []}

    def test_unknown_keys_are_preserved(self):
        merged = merge_config("text_block", {"content": "Hi"}, {"theme": "dark"})
        assert merged == {"content": "Hi", "theme": "dark"}

    def test_wrong_type_for_known_key_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_config("checklist", {"items": "not-a-list"})
        assert "items" in exc.value.details

    def test_tasklist_tasks_must_be_objects(self):
        with pytest.raises(ValidationError):
            parse_config("tasklist", {"tasks": ["write copy"]})
        assert parse_config("tasklist", {"tasks": [{"title": "write copy", "done": False}]}).tasks

    def test_non_object_patch_rejected(self, provider, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "link", 1)
        with pytest.raises(ValidationError):
            component_service.update_component(provider, project.id, component.id, {"config": ["x"]})

    @pytest.mark.parametrize("config", ["hello", [["url", "https://a.example"]], 7])
    def test_non_object_config_rejected_on_add(self, provider, project, config):
        stage = make_stage(project, "Design", 1)
        with pytest.raises(ValidationError) as exc:
            component_service.add_component(
                provider, project.id, stage.id, {"component_type": "link", "config": config},
            )
        assert exc.value.details == {"config": "Must be an object"}
        assert component_service.list_components(provider, project.id, stage.id) == []


class TestApprove:
    def test_client_viewer_can_approve(self, client_viewer, project):
        stage = make_stage(project, "Review", 1)
        component = make_component(stage, "approval", 1)
        approved = component_service.approve_component(client_viewer, project.id, component.id)
        assert approved["status"] == "approved"

    def test_non_approval_component_rejected(self, provider, project):
        stage = make_stage(project, "Review", 1)
        component = make_component(stage, "checklist", 1)
        with pytest.raises(ConstraintViolation, match="not of approval type"):
            component_service.approve_component(provider, project.id, component.id)

    def test_outsider_cannot_approve(self, outsider, project):
        stage = make_stage(project, "Review", 1)
        component = make_component(stage, "approval", 1)
        with pytest.raises(PermissionDenied):
            component_service.approve_component(outsider, project.id, component.id)


class TestSubmitLink:
    def test_links_accumulate_without_dedupe(self, client_viewer, project):
        stage = make_stage(project, "Materials", 1)
        component = make_component(stage, "upload_request", 1, config={"description": "Logo"})
        component_service.submit_component_link(client_viewer, project.id, component.id, "https://files.example/logo")
        result = component_service.submit_component_link(
            client_viewer, project.id, component.id, " https://files.example/logo ",
        )
        assert result["config"] == {
            "description": "Logo",
            "submitted_urls": ["https://files.example/logo", "https://files.example/logo"],
        }

    def test_only_upload_requests_accept_links(self, provider, project):
        stage = make_stage(project, "Materials", 1)
        component = make_component(stage, "link", 1)
        with pytest.raises(ConstraintViolation):
            component_service.submit_component_link(provider, project.id, component.id, "https://x.example")

    def test_blank_url_rejected(self, provider, project):
        stage = make_stage(project, "Materials", 1)
        component = make_component(stage, "upload_request", 1)
        with pytest.raises(ValidationError):
            component_service.submit_component_link(provider, project.id, component.id, "   ")


class TestFeatureFlags:
    def test_disabled_flag_hides_component(self, app, provider, project):
        stage = make_stage(project, "Design", 1)
        visible = make_component(stage, "checklist", 1)
        flagged = make_component(stage, "prototype", 2, meta={"feature_flag": "prototype"})

        listing = component_service.list_components(provider, project.id, stage.id)
        assert [c["id"] for c in listing] == [visible.id, flagged.id]

        app.config["FEATURE_FLAGS"] = {**app.config["FEATURE_FLAGS"], "prototype": False}
        try:
            listing = component_service.list_components(provider, project.id, stage.id)
            assert [c["id"] for c in listing] == [visible.id]
            stages = stage_service.list_stages(provider, project.id, include_components=True)
            assert [c["id"] for c in stages[0]["components"]] == [visible.id]
        finally:
            app.config["FEATURE_FLAGS"] = {**app.config["FEATURE_FLAGS"], "prototype": True}

    def test_flag_ignored_on_non_flaggable_types(self, app, provider, project):
        stage = make_stage(project, "Design", 1)
        component = make_component(stage, "checklist", 1, meta={"feature_flag": "prototype"})
        app.config["FEATURE_FLAGS"] = {**app.config["FEATURE_FLAGS"], "prototype": False}
        try:
            listing = component_service.list_components(provider, project.id, stage.id)
            assert [c["id"] for c in listing] == [component.id]
        finally:
            app.config["FEATURE_FLAGS"] = {**app.config["FEATURE_FLAGS"], "prototype": True}
