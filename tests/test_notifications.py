"""Tests for the in-app notification inbox."""

from __future__ import annotations

from planboard.models import Priority
from planboard.notifications import NotificationCenter


def test_in_app_notifications_are_stored_newest_first():
    center = NotificationCenter()
    center.notify("new_item", "first", "a")
    center.notify("task_completed", "second", "b", module="Billing", priority=Priority.HIGH)
    titles = [n.title for n in center.list()]
    assert titles == ["second", "first"]
    assert center.list()[0].module == "Billing"
    assert center.unread_count() == 2


def test_other_channels_are_not_stored():
    center = NotificationCenter()
    assert center.notify("info", "email only", "x", channels=["email"]) is None
    stored = center.notify("info", "both", "x", channels=["email", "in_app"])
    assert stored.channels == ["email", "in_app"]
    assert len(center) == 1


def test_mark_read():
    center = NotificationCenter()
    first = center.notify("info", "one", "x")
    center.notify("info", "two", "x")
    assert center.mark_read(first.id) is True
    assert center.mark_read("note-missing") is False
    assert [n.title for n in center.list(unread_only=True)] == ["two"]
    assert center.mark_all_read() == 1
    assert center.unread_count() == 0


def test_cap_drops_oldest():
    center = NotificationCenter(cap=3)
    for i in range(5):
        center.notify("info", f"n{i}", "x")
    assert [n.title for n in center.list()] == ["n4", "n3", "n2"]
    assert len(center.list(limit=1)) == 1


def test_returned_notifications_are_copies():
    center = NotificationCenter()
    stored = center.notify("info", "one", "x")
    stored.read = True
    listed = center.list()
    listed[0].read = True
    listed[0].title = "changed"
    assert center.unread_count() == 1
    assert center.list()[0].title == "one"
