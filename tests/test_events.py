"""Tests for the snapshot subscriber registry."""

from __future__ import annotations

from planboard.events import SubscriberRegistry


def test_publish_in_registration_order():
    registry = SubscriberRegistry("test")
    calls = []
    registry.subscribe(lambda snap: calls.append(("a", snap["n"])))
    registry.subscribe(lambda snap: calls.append(("b", snap["n"])))
    assert registry.publish({"n": 1}) == 2
    assert calls == [("a", 1), ("b", 1)]


def test_detach_and_unsubscribe():
    registry = SubscriberRegistry("test")
    calls = []

    def callback(snap):
        calls.append(snap)

    detach = registry.subscribe(callback)
    assert len(registry) == 1
    detach()
    assert len(registry) == 0
    assert registry.unsubscribe(callback) is False
    assert registry.publish({}) == 0
    assert calls == []


def test_detach_during_broadcast_stops_later_delivery():
    registry = SubscriberRegistry("test")
    calls = []
    detach_second = None

    def first(snap):
        calls.append("first")
        detach_second()

    def second(snap):
        calls.append("second")

    registry.subscribe(first)
    detach_second = registry.subscribe(second)
    assert registry.publish({}) == 1
    assert calls == ["first"]


def test_raising_subscriber_is_isolated():
    registry = SubscriberRegistry("test")
    calls = []

    def broken(snap):
        raise RuntimeError("boom")

    registry.subscribe(broken)
    registry.subscribe(calls.append)
    assert registry.publish({"n": 2}) == 1
    assert calls == [{"n": 2}]


def test_clear():
    registry = SubscriberRegistry("test")
    registry.subscribe(lambda snap: None)
    registry.clear()
    assert len(registry) == 0
