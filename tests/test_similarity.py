"""Tests for backlog/task similarity."""

from __future__ import annotations

import random

import pytest

from planboard.models import BacklogCategory, BacklogItem, ModuleName, Priority, SynergyAction, SynergyRelation, Task
from planboard.similarity import detect_synergy, relation_for, similarity


def _item(title="Export invoices to PDF", module="Billing", priority=Priority.MEDIUM, tags=None) -> BacklogItem:
    return BacklogItem(
        title=title,
        category=BacklogCategory.BACKEND,
        impacted_module=module,
        priority=priority,
        tags=list(tags or []),
    )


def _task(title="Export invoices to PDF", module=ModuleName.BILLING, priority=Priority.MEDIUM, tags=None) -> Task:
    return Task(title=title, module=module, priority=priority, tags=list(tags or []))


def test_identical_title_module_priority_is_complement():
    value = similarity(_item(), _task())
    assert value == pytest.approx(0.9)
    assert relation_for(value) == (SynergyRelation.COMPLEMENT, SynergyAction.LINK)


def test_identical_everything_is_duplicate():
    value = similarity(_item(tags=["pdf"]), _task(tags=["pdf"]))
    assert value == pytest.approx(1.0)
    assert relation_for(value) == (SynergyRelation.DUPLICATE, SynergyAction.MERGE)


def test_two_identical_items_are_at_least_complementary():
    first = _item(title="Deadline reminders by email", module="Calendar", priority=Priority.HIGH)
    second = _item(title="Deadline reminders by email", module="Calendar", priority=Priority.HIGH)
    as_task = _task(title=second.title, module=ModuleName(second.impacted_module), priority=second.priority)
    assert similarity(first, as_task) >= 0.7


def test_title_overlap_uses_longest_title():
    value = similarity(
        _item(title="a b", module="Tasks", priority=Priority.LOW),
        _task(title="a b c d", module=ModuleName.BILLING, priority=Priority.CRITICAL),
    )
    assert value == pytest.approx(0.2)


def test_priority_within_one_rank_counts():
    low_vs_medium = similarity(
        _item(title="x", module="Tasks", priority=Priority.LOW),
        _task(title="y", module=ModuleName.BILLING, priority=Priority.MEDIUM),
    )
    low_vs_high = similarity(
        _item(title="x", module="Tasks", priority=Priority.LOW),
        _task(title="y", module=ModuleName.BILLING, priority=Priority.HIGH),
    )
    assert low_vs_medium == pytest.approx(0.2)
    assert low_vs_high == pytest.approx(0.0)


def test_tag_overlap_only_when_both_have_tags():
    assert similarity(_item(title="x", tags=["a"]), _task(title="y")) == pytest.approx(0.5)
    assert similarity(_item(title="x", tags=["a", "b"]), _task(title="y", tags=["a"])) == pytest.approx(0.55)


def test_similarity_is_bounded():
    rng = random.Random(11)
    words = ["export", "invoice", "pdf", "sync", "calendar", "deadline"]
    modules = list(ModuleName)
    priorities = list(Priority)
    for _ in range(300):
        item = _item(
            title=" ".join(rng.sample(words, rng.randint(1, 4))),
            module=rng.choice(modules).value,
            priority=rng.choice(priorities),
            tags=rng.sample(words, rng.randint(0, 3)),
        )
        task = _task(
            title=" ".join(rng.sample(words, rng.randint(1, 4))),
            module=rng.choice(modules),
            priority=rng.choice(priorities),
            tags=rng.sample(words, rng.randint(0, 3)),
        )
        assert 0.0 <= similarity(item, task) <= 1.0


def test_detect_synergy_scans_all_tasks_and_skips_weak_matches():
    related = _task()
    duplicate = _task(tags=["pdf"])
    unrelated = _task(title="Calendar sync", module=ModuleName.CALENDAR, priority=Priority.CRITICAL)
    found = detect_synergy(_item(tags=["pdf"]), [related, duplicate, unrelated])
    by_id = {s.related_task_id: s for s in found}
    assert set(by_id) == {related.id, duplicate.id}
    assert by_id[duplicate.id].action == SynergyAction.MERGE
    assert by_id[related.id].action == SynergyAction.LINK
    assert "similar" in by_id[related.id].description
