"""
Stage lifecycle tests.

Covers:
    - complete_stage: done + stamp + note, successor activation, project status
    - completion note edits on done stages only
    - update_stage status rules and field validation
    - set_current_stage
    - request_materials / request_approval side effects
"""

import pytest

from projecthub.core.exceptions import ConstraintViolation, NotFoundError, PermissionDenied, ValidationError
from projecthub.models import db as _db
from projecthub.models.approval import Approval
from projecthub.models.notification import Notification
from projecthub.models.project import Project
from projecthub.models.stage import Stage
from projecthub.services import stage_service
from tests.conftest import make_project, make_stage


def _status(stage_id):
    return _db.session.get(Stage, stage_id).status


class TestCompleteStage:
    def test_complete_then_edit_note(self, provider, project):
        stage = make_stage(project, "Design", 1)

        done = stage_service.complete_stage(provider, project.id, stage.id, note="Done")
        assert done["status"] == "done"
        assert done["completion_note"] == "Done"
        assert done["completion_at"] is not None
        stamped_at = _db.session.get(Stage, stage.id).completion_at

        edited = stage_service.update_completion_note(provider, project.id, stage.id, "Addendum")
        assert edited["completion_note"] == "Addendum"
        assert edited["status"] == "done"
        assert _db.session.get(Stage, stage.id).completion_at == stamped_at

    def test_blocked_successor_becomes_todo(self, provider, project):
        first = make_stage(project, "Materials", 1)
        second = make_stage(project, "Design", 2, status="blocked")
        result = stage_service.complete_stage(provider, project.id, first.id)
        assert result["next_stage_id"] == second.id
        assert result["activated_stage_id"] == second.id
        assert _status(second.id) == "todo"

    def test_waiting_client_successor_becomes_todo(self, provider, project):
        first = make_stage(project, "Materials", 1)
        second = make_stage(project, "Design", 2, status="waiting_client")
        stage_service.complete_stage(provider, project.id, first.id)
        assert _status(second.id) == "todo"

    def test_in_review_successor_untouched(self, provider, project):
        first = make_stage(project, "Materials", 1)
        second = make_stage(project, "Design", 2, status="in_review")
        result = stage_service.complete_stage(provider, project.id, first.id)
        assert result["activated_stage_id"] is None
        assert _status(second.id) == "in_review"

    def test_only_next_stage_is_activated(self, provider, project):
        first = make_stage(project, "A", 1)
        make_stage(project, "B", 2, status="todo")
        third = make_stage(project, "C", 3, status="blocked")
        stage_service.complete_stage(provider, project.id, first.id)
        assert _status(third.id) == "blocked"

    def test_project_status_follows_completion(self, provider, project):
        first = make_stage(project, "A", 1)
        second = make_stage(project, "B", 2)

        stage_service.complete_stage(provider, project.id, first.id)
        assert _db.session.get(Project, project.id).status == "in_progress"

        stage_service.complete_stage(provider, project.id, second.id)
        assert _db.session.get(Project, project.id).status == "done"

    def test_completing_done_stage_is_rejected(self, provider, project):
        stage = make_stage(project, "A", 1)
        stage_service.complete_stage(provider, project.id, stage.id, note="first")
        with pytest.raises(ConstraintViolation):
            stage_service.complete_stage(provider, project.id, stage.id, note="second")
        assert _db.session.get(Stage, stage.id).completion_note == "first"

    def test_client_cannot_complete(self, client_editor, project):
        stage = make_stage(project, "A", 1)
        with pytest.raises(PermissionDenied):
            stage_service.complete_stage(client_editor, project.id, stage.id)
        assert _status(stage.id) == "todo"

    def test_complete_writes_stage_completed_notifications(self, provider, project):
        stage = make_stage(project, "A", 1)
        stage_service.complete_stage(provider, project.id, stage.id)
        rows = Notification.query.filter_by(project_id=project.id, type="stage_completed").all()
        assert len(rows) == 2

    def test_note_edit_requires_done_stage(self, provider, project):
        stage = make_stage(project, "A", 1)
        with pytest.raises(ConstraintViolation):
            stage_service.update_completion_note(provider, project.id, stage.id, "early")


class TestUpdateStage:
    def test_any_status_except_done(self, provider, project):
        stage = make_stage(project, "A", 1)
        for status in ("waiting_client", "in_review", "approved", "blocked", "todo"):
            result = stage_service.update_stage(provider, project.id, stage.id, {"status": status})
            assert result["status"] == status

    def test_done_goes_through_complete(self, provider, project):
        stage = make_stage(project, "A", 1)
        with pytest.raises(ConstraintViolation):
            stage_service.update_stage(provider, project.id, stage.id, {"status": "done"})

    def test_invalid_fields(self, provider, project):
        stage = make_stage(project, "A", 1)
        with pytest.raises(ValidationError) as exc:
            stage_service.update_stage(provider, project.id, stage.id, {"status": "finished", "title": " "})
        assert set(exc.value.details) == {"status", "title"}

    def test_dates_parsed_and_checked(self, provider, project):
        stage = make_stage(project, "A", 1)
        result = stage_service.update_stage(
            provider, project.id, stage.id, {"planned_start": "2026-03-01", "planned_end": "2026-03-15"},
        )
        assert result["planned_start"] == "2026-03-01"
        with pytest.raises(ValidationError):
            stage_service.update_stage(provider, project.id, stage.id, {"planned_end": "2026-02-01"})
        with pytest.raises(ValidationError):
            stage_service.update_stage(provider, project.id, stage.id, {"deadline": "not-a-date"})

    def test_create_cannot_start_done(self, provider, project):
        with pytest.raises(ValidationError):
            stage_service.create_stage(provider, project.id, {"title": "A", "status": "done"})

    def test_stage_of_other_project_is_not_found(self, provider, project):
        other = make_project(title="Other")
        foreign = make_stage(other, "Foreign", 1)
        with pytest.raises(NotFoundError):
            stage_service.update_stage(provider, project.id, foreign.id, {"title": "Hijack"})


class TestSetCurrentStage:
    def test_moves_current_stage_forward(self, provider, project):
        a = make_stage(project, "A", 1)
        b = make_stage(project, "B", 2)
        c = make_stage(project, "C", 3, status="done")
        stage_service.set_current_stage(provider, project.id, b.id)
        assert [_status(a.id), _status(b.id), _status(c.id)] == ["done", "todo", "todo"]
        assert _db.session.get(Stage, a.id).completion_at is not None
        assert stage_service.current_stage_id(project.id) == b.id

    def test_none_resets_everything(self, provider, project):
        a = make_stage(project, "A", 1, status="done")
        b = make_stage(project, "B", 2, status="blocked")
        stage_service.set_current_stage(provider, project.id, None)
        assert [_status(a.id), _status(b.id)] == ["todo", "todo"]

    def test_unknown_target(self, provider, project):
        make_stage(project, "A", 1)
        with pytest.raises(NotFoundError):
            stage_service.set_current_stage(provider, project.id, 9999)


class TestRequests:
    def test_request_materials_notifies_members(self, provider, project):
        make_stage(project, "A", 1, status="done")
        current = make_stage(project, "B", 2, status="blocked")
        result = stage_service.request_materials(provider, project.id)
        assert result == {"stage_id": current.id, "notified": 2}
        assert _status(current.id) == "blocked"
        assert Notification.query.filter_by(type="material_request").count() == 2

    def test_request_materials_without_open_stage(self, provider, project):
        make_stage(project, "A", 1, status="done")
        with pytest.raises(ConstraintViolation):
            stage_service.request_materials(provider, project.id)

    def test_request_approval_creates_record(self, provider, project):
        stage = make_stage(project, "A", 1, status="done")
        approval = stage_service.request_approval(provider, project.id, stage.id)
        assert approval["status"] == "requested"
        assert approval["stage_id"] == stage.id
        assert Approval.query.count() == 1
        assert Notification.query.filter_by(type="approval").count() == 2

    def test_request_approval_provider_only(self, client_editor, project):
        with pytest.raises(PermissionDenied):
            stage_service.request_approval(client_editor, project.id)
