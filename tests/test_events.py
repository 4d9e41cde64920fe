"""Tests for events module."""

from __future__ import annotations

from unittest.mock import MagicMock

from webchain.events import DRIVER_SIGNALS, SYNTHETIC_EVENTS, EventBridge
from tests.conftest import make_mock_driver


class TestCatalogue:
    def test_page_load_signals_present(self):
        for name in ("loadStarted", "loadFinished", "navigationRequested", "urlChanged"):
            assert name in DRIVER_SIGNALS

    def test_synthetic_events_not_sourced_from_driver(self):
        assert set(SYNTHETIC_EVENTS).isdisjoint(DRIVER_SIGNALS)


class TestWire:
    def test_relays_driver_signals_under_same_name(self):
        bridge = EventBridge()
        driver = make_mock_driver()
        bridge.wire(driver)
        seen = []
        bridge.on("consoleMessage", seen.append)
        driver.signal("consoleMessage", "hello")
        assert seen == ["hello"]

    def test_drops_unknown_signals(self):
        bridge = EventBridge()
        driver = make_mock_driver()
        bridge.wire(driver)
        handler = MagicMock()
        bridge.on("timeout", handler)
        driver.signal("timeout", "not from a driver")
        driver.signal("somethingElse")
        handler.assert_not_called()


class TestListeners:
    def test_once_listener_removes_itself(self):
        bridge = EventBridge()
        handler = MagicMock()
        bridge.once("loadFinished", handler)
        bridge.emit("loadFinished", "success")
        bridge.emit("loadFinished", "success")
        handler.assert_called_once_with("success")
        assert bridge.listeners("loadFinished") == []

    def test_discard_registered_listener(self):
        bridge = EventBridge()
        handler = MagicMock()
        bridge.once("loadFinished", handler)
        assert bridge.discard("loadFinished", handler) is True
        bridge.emit("loadFinished")
        handler.assert_not_called()

    def test_discard_missing_listener_is_noop(self):
        bridge = EventBridge()
        assert bridge.discard("loadFinished", lambda: None) is False
