"""Tests for EventBus — topic publish/subscribe with failure isolation."""

import logging

import pytest

from ordertrack import EventBus


class TestSubscribePublish:
    def test_listener_receives_payload(self):
        bus = EventBus()
        received = []
        bus.subscribe("x", received.append)
        bus.publish("x", {"a": 1})
        assert received == [{"a": 1}]

    def test_registration_order(self):
        bus = EventBus()
        log = []
        bus.subscribe("x", lambda p: log.append("first"))
        bus.subscribe("x", lambda p: log.append("second"))
        bus.subscribe("x", lambda p: log.append("third"))
        bus.publish("x")
        assert log == ["first", "second", "third"]

    def test_topics_are_independent(self):
        bus = EventBus()
        a, b = [], []
        bus.subscribe("a", a.append)
        bus.subscribe("b", b.append)
        bus.publish("a", 1)
        assert a == [1]
        assert b == []

    def test_publish_without_listeners_is_noop(self):
        bus = EventBus()
        assert bus.publish("nobody", 1) is None

    def test_context_is_passed_first(self):
        class Board:
            def __init__(self):
                self.seen = []

            def on_order(self, payload):
                self.seen.append(payload)

        board = Board()
        bus = EventBus()
        bus.subscribe("order:created", Board.on_order, context=board)
        bus.publish("order:created", "o-1")
        assert board.seen == ["o-1"]

    def test_rejects_empty_topic(self):
        bus = EventBus()
        with pytest.raises(ValueError):
            bus.subscribe("", lambda p: None)

    def test_rejects_non_callable(self):
        bus = EventBus()
        with pytest.raises(TypeError):
            bus.subscribe("x", "not callable")


class TestUnsubscribe:
    def test_returned_disposer_removes_listener(self):
        bus = EventBus()
        received = []
        unsub = bus.subscribe("x", received.append)
        bus.publish("x", 1)
        unsub()
        bus.publish("x", 2)
        assert received == [1]
        assert bus.listener_count("x") == 0

    def test_disposer_is_idempotent(self):
        bus = EventBus()
        unsub = bus.subscribe("x", lambda p: None)
        unsub()
        unsub()  # should not raise

    def test_disposer_removes_exactly_its_listener(self):
        bus = EventBus()
        received = []
        first = bus.subscribe("x", received.append)
        bus.subscribe("x", received.append)
        first()
        assert bus.listener_count("x") == 1
        bus.publish("x", 1)
        assert received == [1]

    def test_unsubscribe_by_callback_removes_first_match(self):
        bus = EventBus()
        received = []
        bus.subscribe("x", received.append)
        bus.subscribe("x", received.append)
        bus.unsubscribe("x", received.append)
        assert bus.listener_count("x") == 1

    def test_unsubscribe_unknown_is_noop(self):
        bus = EventBus()
        bus.unsubscribe("nope", print)
        bus.subscribe("x", lambda p: None)
        bus.unsubscribe("x", print)
        assert bus.listener_count("x") == 1


class TestSnapshot:
    def test_listener_added_during_publish_waits_for_next_round(self):
        bus = EventBus()
        late = []

        def add_late(payload):
            bus.subscribe("x", late.append)

        bus.subscribe("x", add_late, once=True)
        bus.publish("x", 1)
        assert late == []
        bus.publish("x", 2)
        assert late == [2]

    def test_listener_removed_during_publish_still_runs_this_round(self):
        bus = EventBus()
        log = []
        unsub_second = None

        def first(payload):
            log.append("first")
            unsub_second()

        bus.subscribe("x", first)
        unsub_second = bus.subscribe("x", lambda p: log.append("second"))
        bus.publish("x")
        assert log == ["first", "second"]
        bus.publish("x")
        assert log == ["first", "second", "first"]


class TestOnce:
    def test_invoked_at_most_once(self):
        bus = EventBus()
        received = []
        bus.subscribe("x", received.append, once=True)
        bus.publish("x", 1)
        bus.publish("x", 2)
        bus.publish("x", 3)
        assert received == [1]

    def test_absent_from_count_after_invocation(self):
        bus = EventBus()
        counts = []
        bus.once("x", lambda p: counts.append(bus.listener_count("x")))
        assert bus.listener_count("x") == 1
        bus.publish("x")
        assert counts == [0]
        assert bus.listener_count("x") == 0

    def test_removed_even_when_it_raises(self):
        bus = EventBus()

        def boom(payload):
            raise RuntimeError("boom")

        bus.once("x", boom)
        bus.publish("x")
        assert bus.listener_count("x") == 0

    def test_nested_publish_does_not_reinvoke(self):
        bus = EventBus()
        calls = []

        def reentrant(payload):
            calls.append(payload)
            bus.publish("x", payload + 1)

        bus.once("x", reentrant)
        bus.publish("x", 1)
        assert calls == [1]


class TestFailureIsolation:
    def test_throwing_listener_does_not_block_siblings(self, caplog):
        bus = EventBus()
        received = []

        def boom(payload):
            raise ValueError("boom")

        bus.subscribe("x", boom)
        bus.subscribe("x", received.append)

        with caplog.at_level(logging.ERROR, logger="ordertrack.bus"):
            result = bus.publish("x", "payload")

        assert result is None
        assert received == ["payload"]
        assert "boom" in caplog.text
        assert caplog.records[0].exc_info[0] is ValueError


class TestIntrospection:
    def test_listener_count(self):
        bus = EventBus()
        assert bus.listener_count("x") == 0
        bus.subscribe("x", lambda p: None)
        bus.subscribe("x", lambda p: None)
        assert bus.listener_count("x") == 2

    def test_clear_all(self):
        bus = EventBus()
        received = []
        bus.subscribe("a", received.append)
        bus.subscribe("b", received.append)
        assert sorted(bus.topics()) == ["a", "b"]
        bus.clear_all()
        bus.publish("a", 1)
        assert received == []
        assert bus.topics() == []
