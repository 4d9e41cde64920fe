"""Event bridge: republishes driver signals on one shared channel."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from pyee.asyncio import AsyncIOEventEmitter


logger = logging.getLogger(__name__)


# Raw signals a driver forwards, under the names listeners subscribe to
DRIVER_SIGNALS = (
    "alert",
    "confirm",
    "consoleMessage",
    "error",
    "filePicker",
    "initialized",
    "loadFinished",
    "loadStarted",
    "navigationRequested",
    "pageCreated",
    "prompt",
    "resourceError",
    "resourceReceived",
    "resourceRequested",
    "resourceTimeout",
    "urlChanged",
)

# Raised by the chain itself, never by the driver
SYNTHETIC_EVENTS = ("timeout", "ping", "exit")


class SignalSource(Protocol):
    def subscribe(self, emit: Callable[..., None]) -> None: ...


class EventBridge(AsyncIOEventEmitter):
    """The publish/subscribe channel shared by the run loop and the wait engine.

    Persistent listeners use ``on``; waits use ``once`` and always release
    their handler through ``discard`` on every exit path.
    """

    def wire(self, driver: SignalSource) -> None:
        """Route the driver's signal catalogue into this channel."""
        driver.subscribe(self.relay)

    def relay(self, signal: str, *args: Any) -> None:
        if signal not in DRIVER_SIGNALS:
            logger.debug("dropping unknown driver signal %r", signal)
            return
        self.emit(signal, *args)

    def discard(self, event: str, f: Callable[..., Any]) -> bool:
        """Remove ``f`` from ``event`` if it is still registered."""
        if f not in self.listeners(event):
            return False
        self.remove_listener(event, f)
        return True
