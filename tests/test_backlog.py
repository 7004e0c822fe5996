"""Tests for the Kanban backlog store."""

from __future__ import annotations

import csv
import io
import json
import random

import pytest

from planboard.backlog import BacklogStore
from planboard.config import BacklogConfig
from planboard.models import (
    BacklogCategory,
    BacklogFilter,
    BacklogStatus,
    KanbanColumn,
    ProcessingRecord,
)
from planboard.sample_data import SAMPLE_ITEMS, load_sample_backlog
from planboard.scoring import analyze_item
from planboard.utils import parse_iso


def _create(store: BacklogStore, title="Dark mode", **extra):
    data = {"title": title, "category": "UX", "impacted_module": "Settings", **extra}
    return store.create_item(data, actor=extra.pop("creator", None))


class TestCreateItem:
    def test_defaults_to_ideas_and_queues_for_analysis(self, backlog):
        item = _create(backlog)
        assert item.column == KanbanColumn.IDEAS
        assert item.status == BacklogStatus.DRAFT
        assert item.id.startswith("item-")
        assert backlog.pending_analysis() == [item.id]

    def test_no_queue_when_auto_analysis_disabled(self):
        store = BacklogStore(BacklogConfig(auto_analysis_enabled=False))
        _create(store)
        assert store.pending_analysis() == []

    @pytest.mark.parametrize(
        "fields",
        [{"title": ""}, {"category": "Marketing"}, {"priority": "urgent"}, {"column": "backlog"}, {"progress": 150}],
    )
    def test_rejects_invalid_fields(self, backlog, fields):
        with pytest.raises(ValueError):
            _create(backlog, **fields)
        assert backlog.items() == []

    def test_notifies_new_items(self, backlog, notifications):
        _create(backlog)
        assert [n.kind for n in notifications.list()] == ["new_item"]

    def test_creator_from_actor(self, backlog):
        item = backlog.create_item({"title": "x", "creator": "ana"}, actor="bob")
        assert item.creator == "bob"
        assert backlog.create_item({"title": "y", "creator": "ana"}).creator == "ana"


class TestMovement:
    def test_three_moves_are_recorded_in_order(self, backlog):
        item = _create(backlog)
        assert backlog.move_item(item.id, "in_analysis", "ana")
        assert backlog.move_item(item.id, KanbanColumn.IN_EXECUTION, "ana")
        assert backlog.move_item(item.id, "done", "bob", reason="shipped")

        stored = backlog.get_item(item.id)
        assert stored.column == KanbanColumn.DONE
        hops = [(m.from_column, m.to_column) for m in stored.movement_history]
        assert hops == [
            (KanbanColumn.IDEAS, KanbanColumn.IN_ANALYSIS),
            (KanbanColumn.IN_ANALYSIS, KanbanColumn.IN_EXECUTION),
            (KanbanColumn.IN_EXECUTION, KanbanColumn.DONE),
        ]
        assert stored.movement_history[-1].actor == "bob"
        assert stored.movement_history[-1].reason == "shipped"
        assert all(not m.automatic for m in stored.movement_history)
        stamps = [parse_iso(m.timestamp) for m in stored.movement_history]
        assert stamps == sorted(stamps)

    def test_same_column_is_a_no_op(self, backlog):
        item = _create(backlog)
        assert backlog.move_item(item.id, "ideas") is True
        assert backlog.get_item(item.id).movement_history == []

    def test_automatic_move_into_ideas_is_refused(self, backlog):
        item = _create(backlog, column="in_analysis")
        assert backlog.move_item(item.id, "ideas", "pipeline", automatic=True) is False
        assert backlog.get_item(item.id).column == KanbanColumn.IN_ANALYSIS
        assert backlog.move_item(item.id, "ideas", "ana") is True
        assert backlog.get_item(item.id).column == KanbanColumn.IDEAS

    def test_unknown_item_or_column(self, backlog):
        assert backlog.move_item("item-missing", "done") is False
        item = _create(backlog)
        with pytest.raises(ValueError):
            backlog.move_item(item.id, "limbo")

    def test_update_item_column_change_is_tracked(self, backlog):
        item = _create(backlog)
        assert backlog.update_item(item.id, {"column": "archived", "status": "rejected"}, actor="ana")
        stored = backlog.get_item(item.id)
        assert stored.status == BacklogStatus.REJECTED
        assert stored.movement_history[0].to_column == KanbanColumn.ARCHIVED
        assert stored.updated_at is not None

    def test_update_rejects_unknown_fields(self, backlog):
        item = _create(backlog)
        with pytest.raises(ValueError):
            backlog.update_item(item.id, analysis=None)
        assert backlog.update_item("item-missing", title="x") is False


class TestFilters:
    def test_filter_criteria(self, backlog):
        a = _create(backlog, title="Export invoices", category="Backend", priority="high", tags=["pdf"], creator="ana")
        b = _create(backlog, title="Dark mode", description="Adaptive theme", tags=["ui"], status="approved")
        c = _create(backlog, title="Contract AI", category="AI", impacted_module="Legal AI")

        ids = lambda items: [i.id for i in items]  # noqa: E731
        assert ids(backlog.filter_items(BacklogFilter(categories=[BacklogCategory.AI]))) == [c.id]
        assert ids(backlog.filter_items(BacklogFilter(modules=["Settings"]))) == [a.id, b.id]
        assert ids(backlog.filter_items(BacklogFilter(creators=["ana"]))) == [a.id]
        assert ids(backlog.filter_items(BacklogFilter(search="ADAPTIVE"))) == [b.id]
        assert ids(backlog.filter_items(BacklogFilter(search="pdf"))) == [a.id]
        assert ids(backlog.filter_items(BacklogFilter(approved_only=True))) == [b.id]
        assert ids(backlog.filter_items(BacklogFilter(tags=["ui", "pdf"]))) == [a.id, b.id]
        assert backlog.filter_items(BacklogFilter(ai_analyzed_only=True)) == []
        assert backlog.filter_items(BacklogFilter(created_from="2999-01-01T00:00:00+00:00")) == []

    def test_filter_is_idempotent(self, backlog):
        _create(backlog, tags=["ui"])
        criteria = BacklogFilter(tags=["ui"])
        assert [i.to_dict() for i in backlog.filter_items(criteria)] == [
            i.to_dict() for i in backlog.filter_items(criteria)
        ]


class TestAnalysis:
    def test_attach_once(self, backlog):
        item = _create(backlog)
        first = analyze_item(item, rng=random.Random(1))
        second = analyze_item(item, rng=random.Random(2))
        assert backlog.attach_analysis(item.id, first) is True
        assert backlog.attach_analysis(item.id, second) is False
        assert backlog.get_item(item.id).analysis.id == first.id
        assert backlog.pending_analysis() == []

    def test_candidates_are_unanalyzed_ideas_in_insertion_order(self, backlog):
        first = _create(backlog, title="one")
        _create(backlog, title="two", column="in_analysis")
        third = _create(backlog, title="three")
        fourth = _create(backlog, title="four")
        backlog.attach_analysis(third.id, analyze_item(backlog.get_item(third.id), rng=random.Random(0)))
        assert [i.id for i in backlog.candidates_for_analysis(5)] == [first.id, fourth.id]
        assert [i.id for i in backlog.candidates_for_analysis(1)] == [first.id]

    def test_link_tasks_dedupes(self, backlog):
        item = _create(backlog)
        backlog.link_tasks(item.id, ["task-1", "task-2"])
        backlog.link_tasks(item.id, ["task-2", "task-3"])
        assert backlog.get_item(item.id).linked_task_ids == ["task-1", "task-2", "task-3"]


class TestStatistics:
    def test_counts_and_rates(self, backlog):
        _create(backlog, roi_estimate="$12,500", status="approved")
        _create(backlog, roi_estimate="R$ 2.500", column="done")
        _create(backlog, roi_estimate="n/a", category="AI", priority="critical")

        stats = backlog.statistics()
        assert stats["total_items"] == 3
        assert stats["items_by_column"]["ideas"] == 2
        assert stats["items_by_column"]["done"] == 1
        assert stats["items_by_category"] == {"UX": 2, "AI": 1}
        assert stats["items_by_priority"]["critical"] == 1
        assert stats["approval_rate"] == pytest.approx(100 / 3)
        assert stats["execution_rate"] == pytest.approx(100 / 3)
        assert stats["items_this_month"] == 3
        assert stats["total_estimated_roi"] == pytest.approx(12500 + 2.5)

    def test_average_score_uses_analyzed_items(self, backlog):
        item = _create(backlog)
        analysis = analyze_item(item, rng=random.Random(4))
        backlog.attach_analysis(item.id, analysis)
        _create(backlog)
        assert backlog.statistics()["average_score"] == pytest.approx(analysis.score)

    def test_column_cap_is_advisory(self):
        store = BacklogStore(BacklogConfig(max_items_per_column=2))
        for i in range(3):
            _create(store, title=f"idea {i}")
        assert len(store.items()) == 3
        assert store.statistics()["columns_over_cap"] == ["ideas"]


class TestCommentsAndChecklist:
    def test_comment(self, backlog):
        item = _create(backlog)
        comment = backlog.add_comment(item.id, "ana", "Looks good")
        assert comment.author == "ana"
        assert backlog.get_item(item.id).comments[0].content == "Looks good"
        assert backlog.add_comment("item-missing", "ana", "hi") is None
        with pytest.raises(ValueError):
            backlog.add_comment(item.id, "ana", "   ")

    def test_checklist_progress(self, backlog):
        item = _create(backlog, checklist=["spike", {"text": "build"}, "ship", "announce"])
        first = item.checklist[0].id
        assert backlog.set_checklist_done(item.id, first) is True
        stored = backlog.get_item(item.id)
        assert stored.progress == 25
        assert stored.checklist[0].completed_at is not None
        assert backlog.set_checklist_done(item.id, "check-missing") is False


def test_delete_item_drops_queue_entry(backlog):
    item = _create(backlog)
    assert backlog.delete_item(item.id) is True
    assert backlog.pending_analysis() == []
    assert backlog.delete_item(item.id) is False


def test_processing_history_is_capped_newest_first(backlog):
    for i in range(55):
        backlog.record_processing(ProcessingRecord(items_processed=i))
    history = backlog.processing_history()
    assert len(history) == 50
    assert history[0].items_processed == 54
    assert history[-1].items_processed == 5


class TestConfig:
    def test_update_merges_nested_blocks(self, backlog):
        config = backlog.update_config(auto_move_approved=False, integration={"auto_create_tasks": False})
        assert config.auto_move_approved is False
        assert config.integration.auto_create_tasks is False
        assert config.integration.sync_with_action_plan is True
        assert backlog.snapshot()["config"]["auto_move_approved"] is False

    def test_invalid_config_is_rejected(self, backlog):
        with pytest.raises(ValueError):
            backlog.update_config(max_items_per_column=0)
        assert backlog.config.max_items_per_column == 50

    def test_unknown_keys_are_rejected(self, backlog):
        with pytest.raises(ValueError):
            backlog.update_config(max_items_per_colum=10)
        with pytest.raises(ValueError):
            backlog.update_config(integration={"auto_create_task": False})
        assert backlog.config.max_items_per_column == 50
        assert backlog.config.integration.auto_create_tasks is True


class TestExport:
    def test_csv(self, backlog):
        _create(backlog, title="Export, with comma", tags=["a", "b"], estimate_hours=5)
        rows = list(csv.reader(io.StringIO(backlog.export("csv"))))
        assert rows[0][:4] == ["ID", "Title", "Description", "Category"]
        assert rows[1][1] == "Export, with comma"
        assert rows[1][10] == "a;b"

    def test_kanban(self, backlog):
        _create(backlog, title="Dark mode", checklist=[{"text": "spike", "done": True}])
        _create(backlog, title="Shipped", column="done")
        board = json.loads(backlog.export("kanban"))
        assert [lst["id"] for lst in board["lists"]] == ["ideas", "in_analysis", "in_execution", "done", "archived"]
        card = board["lists"][0]["cards"][0]
        assert card["name"] == "Dark mode"
        assert card["checklists"][0]["checkItems"] == [{"name": "spike", "state": "complete"}]
        assert board["lists"][3]["cards"][0]["checklists"] == []

    def test_json_with_criteria(self, backlog):
        _create(backlog, title="keep", tags=["x"])
        _create(backlog, title="drop")
        data = json.loads(backlog.export("json", criteria=BacklogFilter(tags=["x"]), include_history=False))
        assert data["metadata"]["total_items"] == 1
        assert data["items"][0]["title"] == "keep"
        assert "movement_history" not in data["items"][0]

    def test_unknown_format(self, backlog):
        with pytest.raises(ValueError):
            backlog.export("xml")


def test_subscribers_get_snapshots(backlog):
    seen = []
    backlog.subscribe(lambda snap: seen.append(len(snap["items"])))
    item = _create(backlog)
    backlog.move_item(item.id, "done")
    assert seen == [1, 1]


def test_sample_backlog(backlog):
    ids = load_sample_backlog(backlog)
    assert len(ids) == len(SAMPLE_ITEMS)
    assert backlog.get_item(ids[1]).analysis.score == 95
    assert ids[1] not in backlog.pending_analysis()
    assert backlog.statistics()["items_by_column"]["done"] == 1
