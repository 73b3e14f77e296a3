"""
Ordering engine tests.

Covers:
    - append / insert-after / delete-compact keep positions dense
    - the A, New, B, C insertion scenario
    - bulk reorder: happy path and id-set mismatches
    - component ordering inside a stage
    - a store failure part-way through a shift rolls every row back
"""

import pytest
from sqlalchemy import Update
from sqlalchemy.exc import SQLAlchemyError

from projecthub.core.exceptions import ConstraintViolation, NotFoundError, PersistenceError, ValidationError
from projecthub.models import db
from projecthub.services import component_service, ordering, stage_service
from tests.conftest import make_component, make_project, make_stage


def _titles(provider, project_id):
    return [s["title"] for s in stage_service.list_stages(provider, project_id)]


def _orders(provider, project_id):
    return [s["order"] for s in stage_service.list_stages(provider, project_id)]


class TestStageOrdering:
    def test_create_appends_at_max_plus_one(self, provider, project):
        first = stage_service.create_stage(provider, project.id, {"title": "Kickoff"})
        second = stage_service.create_stage(provider, project.id, {"title": "Design"})
        assert first["order"] == 1
        assert second["order"] == 2

    def test_insert_after_scenario(self, provider, project):
        a = stage_service.create_stage(provider, project.id, {"title": "A"})
        stage_service.create_stage(provider, project.id, {"title": "B"})
        stage_service.create_stage(provider, project.id, {"title": "C"})

        new = stage_service.create_stage(
            provider, project.id, {"title": "New", "insert_after_stage_id": a["id"]},
        )

        assert new["order"] == 2
        assert _titles(provider, project.id) == ["A", "New", "B", "C"]
        assert _orders(provider, project.id) == [1, 2, 3, 4]

    def test_insert_after_last_stage_appends(self, provider, project):
        stage_service.create_stage(provider, project.id, {"title": "A"})
        b = stage_service.create_stage(provider, project.id, {"title": "B"})
        new = stage_service.create_stage(
            provider, project.id, {"title": "Tail", "insert_after_stage_id": b["id"]},
        )
        assert new["order"] == 3
        assert _titles(provider, project.id) == ["A", "B", "Tail"]

    def test_insert_after_stage_of_other_project_is_not_found(self, provider, project):
        other = make_project(title="Other")
        foreign = make_stage(other, "Foreign", 1)
        with pytest.raises(NotFoundError):
            stage_service.create_stage(
                provider, project.id, {"title": "X", "insert_after_stage_id": foreign.id},
            )
        assert _titles(provider, project.id) == []

    def test_delete_compacts_orders(self, provider, project):
        stages = [stage_service.create_stage(provider, project.id, {"title": t}) for t in "ABCD"]
        stage_service.delete_stage(provider, project.id, stages[1]["id"])
        assert _titles(provider, project.id) == ["A", "C", "D"]
        assert _orders(provider, project.id) == [1, 2, 3]

    def test_delete_stage_with_components_is_rejected(self, provider, project):
        stage = make_stage(project, "Design", 1)
        make_component(stage, "checklist", 1)
        with pytest.raises(ConstraintViolation):
            stage_service.delete_stage(provider, project.id, stage.id)
        assert _titles(provider, project.id) == ["Design"]

    def test_positions_stay_dense_after_mixed_operations(self, provider, project):
        a = stage_service.create_stage(provider, project.id, {"title": "A"})
        b = stage_service.create_stage(provider, project.id, {"title": "B"})
        stage_service.create_stage(provider, project.id, {"title": "C", "insert_after_stage_id": a["id"]})
        stage_service.delete_stage(provider, project.id, b["id"])
        stage_service.create_stage(provider, project.id, {"title": "D", "insert_after_stage_id": a["id"]})
        assert ordering.is_dense(ordering.STAGES, project.id)
        assert _titles(provider, project.id) == ["A", "D", "C"]


class TestBulkReorder:
    def test_reorder_assigns_index_plus_one(self, provider, project):
        a = make_stage(project, "A", 1)
        b = make_stage(project, "B", 2)
        c = make_stage(project, "C", 3)

        result = stage_service.reorder_stages(provider, project.id, [c.id, a.id, b.id])

        assert result == [{"id": c.id, "order": 1}, {"id": a.id, "order": 2}, {"id": b.id, "order": 3}]
        assert _titles(provider, project.id) == ["C", "A", "B"]

    def test_reorder_missing_id_rejected(self, provider, project):
        a = make_stage(project, "A", 1)
        make_stage(project, "B", 2)
        with pytest.raises(ConstraintViolation, match="do not belong"):
            stage_service.reorder_stages(provider, project.id, [a.id])
        assert _titles(provider, project.id) == ["A", "B"]

    def test_reorder_foreign_id_rejected(self, provider, project):
        a = make_stage(project, "A", 1)
        other = make_project(title="Other")
        foreign = make_stage(other, "Foreign", 1)
        with pytest.raises(ConstraintViolation):
            stage_service.reorder_stages(provider, project.id, [foreign.id])
        with pytest.raises(ConstraintViolation):
            stage_service.reorder_stages(provider, project.id, [a.id, foreign.id])

    def test_reorder_duplicates_rejected(self, provider, project):
        a = make_stage(project, "A", 1)
        make_stage(project, "B", 2)
        with pytest.raises(ConstraintViolation):
            stage_service.reorder_stages(provider, project.id, [a.id, a.id])

    def test_reorder_requires_integer_list(self, provider, project):
        make_stage(project, "A", 1)
        with pytest.raises(ValidationError):
            stage_service.reorder_stages(provider, project.id, "1,2")
        with pytest.raises(ValidationError):
            stage_service.reorder_stages(provider, project.id, ["1"])


class TestComponentOrdering:
    def test_add_and_insert_after(self, provider, project):
        stage = make_stage(project, "Design", 1)
        first = component_service.add_component(provider, project.id, stage.id, {"component_type": "checklist"})
        second = component_service.add_component(provider, project.id, stage.id, {"component_type": "link"})
        middle = component_service.add_component(
            provider, project.id, stage.id,
            {"component_type": "text_block", "insert_after_component_id": first["id"]},
        )
        listing = component_service.list_components(provider, project.id, stage.id)
        assert [c["id"] for c in listing] == [first["id"], middle["id"], second["id"]]
        assert [c["sort_order"] for c in listing] == [1, 2, 3]

    def test_delete_component_compacts(self, provider, project):
        stage = make_stage(project, "Design", 1)
        c1 = make_component(stage, "checklist", 1)
        c2 = make_component(stage, "link", 2)
        c3 = make_component(stage, "milestone", 3)
        component_service.delete_component(provider, project.id, c2.id)
        listing = component_service.list_components(provider, project.id, stage.id)
        assert [(c["id"], c["sort_order"]) for c in listing] == [(c1.id, 1), (c3.id, 2)]

    def test_reorder_components_exact_set(self, provider, project):
        stage = make_stage(project, "Design", 1)
        other_stage = make_stage(project, "Build", 2)
        c1 = make_component(stage, "checklist", 1)
        c2 = make_component(stage, "link", 2)
        stray = make_component(other_stage, "link", 1)

        with pytest.raises(ConstraintViolation):
            component_service.reorder_components(provider, project.id, stage.id, [c1.id, stray.id])
        with pytest.raises(ConstraintViolation):
            component_service.reorder_components(provider, project.id, stage.id, [c2.id, c2.id])
        listing = component_service.list_components(provider, project.id, stage.id)
        assert [(c["id"], c["sort_order"]) for c in listing] == [(c1.id, 1), (c2.id, 2)]
        assert [c["id"] for c in component_service.list_components(provider, project.id, other_stage.id)] == [stray.id]

        result = component_service.reorder_components(provider, project.id, stage.id, [c2.id, c1.id])
        assert result == [{"id": c2.id, "sort_order": 1}, {"id": c1.id, "sort_order": 2}]
        assert ordering.is_dense(ordering.COMPONENTS, stage.id)


@pytest.fixture()
def fail_nth_update(monkeypatch):
    """Make the n-th UPDATE issued on the session raise a store error."""

    def _arm(nth: int):
        real_execute = db.session.execute
        seen = {"updates": 0}

        def _execute(statement, *args, **kwargs):
            if isinstance(statement, Update):
                seen["updates"] += 1
                if seen["updates"] == nth:
                    raise SQLAlchemyError("disk I/O error")
            return real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db.session, "execute", _execute)
        return seen

    return _arm


class TestRollbackOnStoreFailure:
    def test_insert_after_rolls_back_shift(self, provider, project, fail_nth_update):
        a = make_stage(project, "A", 1)
        make_stage(project, "B", 2)
        make_stage(project, "C", 3)
        fail_nth_update(2)

        with pytest.raises(PersistenceError):
            stage_service.create_stage(provider, project.id, {"title": "New", "insert_after_stage_id": a.id})

        assert _titles(provider, project.id) == ["A", "B", "C"]
        assert _orders(provider, project.id) == [1, 2, 3]
        assert ordering.is_dense(ordering.STAGES, project.id)

    def test_delete_rolls_back_compaction(self, provider, project, fail_nth_update):
        make_stage(project, "A", 1)
        b = make_stage(project, "B", 2)
        make_stage(project, "C", 3)
        fail_nth_update(2)

        with pytest.raises(PersistenceError):
            stage_service.delete_stage(provider, project.id, b.id)

        assert _titles(provider, project.id) == ["A", "B", "C"]
        assert ordering.is_dense(ordering.STAGES, project.id)

    def test_bulk_reorder_rolls_back(self, provider, project, fail_nth_update):
        a = make_stage(project, "A", 1)
        b = make_stage(project, "B", 2)
        c = make_stage(project, "C", 3)
        fail_nth_update(2)

        with pytest.raises(PersistenceError):
            stage_service.reorder_stages(provider, project.id, [c.id, a.id, b.id])

        assert _titles(provider, project.id) == ["A", "B", "C"]
        assert _orders(provider, project.id) == [1, 2, 3]

    def test_component_reorder_rolls_back(self, provider, project, fail_nth_update):
        stage = make_stage(project, "Design", 1)
        c1 = make_component(stage, "checklist", 1)
        c2 = make_component(stage, "link", 2)
        fail_nth_update(2)

        with pytest.raises(PersistenceError):
            component_service.reorder_components(provider, project.id, stage.id, [c2.id, c1.id])

        listing = component_service.list_components(provider, project.id, stage.id)
        assert [(c["id"], c["sort_order"]) for c in listing] == [(c1.id, 1), (c2.id, 2)]
        assert ordering.is_dense(ordering.COMPONENTS, stage.id)
