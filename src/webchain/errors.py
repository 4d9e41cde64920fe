"""Error kinds surfaced by the chain."""

from __future__ import annotations


# Page-side result strings (returned as data, never thrown across the driver)
ELEMENT_NOT_FOUND = "Element not found"
INVALID_SELECTOR = "Invalid selector"


class WebchainError(Exception):
    """Base class for webchain errors."""


class ActionError(WebchainError):
    """A queued action reported failure.

    The run loop records it as the run's error and, unless the chain was
    configured with ``halt_on_error``, keeps executing later actions.
    """


class MissingFileError(ActionError):
    """A file-dependent action was given a path that does not exist."""


class DriverExitError(WebchainError):
    """The browser driver went away without being asked to."""

    def __init__(self, code: int, signal: str | None = None) -> None:
        super().__init__(f"The browser driver ended unexpectedly (code={code}, signal={signal})")
        self.code = code
        self.signal = signal
