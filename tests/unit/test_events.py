"""Tests for the wallet event bus."""

import logging

import pytest

from nutpouch.events import EventBus


class TestEventBus:
    def test_emit_reaches_subscribers(self):
        bus = EventBus()
        received = []

        bus.on("balance-change", received.append)
        bus.emit("balance-change", 42)

        assert received == [42]

    def test_unsubscribe_callable(self):
        bus = EventBus()
        received = []

        unsubscribe = bus.on("balance-change", received.append)
        unsubscribe()
        bus.emit("balance-change", 1)

        assert received == []
        assert bus.listener_count("balance-change") == 0

    def test_off(self):
        bus = EventBus()
        received = []

        bus.on("proofs-change", received.append)
        bus.off("proofs-change", received.append)
        bus.emit("proofs-change", [])

        assert received == []

    def test_failing_handler_does_not_block_others(self, caplog):
        bus = EventBus()
        received = []

        def broken(_payload):
            raise RuntimeError("handler failed")

        bus.on("error", broken)
        bus.on("error", received.append)

        with caplog.at_level(logging.ERROR, logger="nutpouch.events"):
            bus.emit("error", ValueError("x"))

        assert len(received) == 1
        assert "Error in error handler" in caplog.text

    def test_channels_are_independent(self):
        bus = EventBus()
        received = []

        bus.on("transaction", received.append)
        bus.emit("balance-change", 5)

        assert received == []

    def test_unknown_event_raises(self):
        bus = EventBus()

        with pytest.raises(ValueError, match="Unknown wallet event"):
            bus.on("balance_changed", print)  # type: ignore[arg-type]

    def test_same_handler_registered_once(self):
        bus = EventBus()
        received = []

        bus.on("balance-change", received.append)
        bus.on("balance-change", received.append)
        bus.emit("balance-change", 3)

        assert received == [3]
