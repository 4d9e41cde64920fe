"""Shared test fixtures."""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from webchain.options import Options


# Fast timings so waits resolve in tens of milliseconds
FAST = Options(timeout=100, page_load_timeout=150, interval=10)


@pytest.fixture(autouse=True)
def no_settle_delay(monkeypatch):
    monkeypatch.setattr("webchain.waits.SETTLE_DELAY", 0.0)


def sequence(*values: Any) -> Callable[..., Any]:
    """Return a callable yielding ``values`` in turn, repeating the last one."""
    remaining = list(values)

    def next_value(*_: Any) -> Any:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return next_value


def dom(*fingerprints: str) -> Callable[..., Any]:
    """A ``domData`` handler reporting the given fingerprints in turn."""
    step = sequence(*fingerprints)
    return lambda selector: {"result": step()}


def make_mock_driver(
    scripts: dict[str, Callable[[Any], Any]] | None = None,
    evaluate: Callable[..., Any] | None = None,
) -> MagicMock:
    """Create a mock driver.

    ``scripts`` maps page-script names to handlers called with the script
    argument. ``driver.signal(name, *args)`` fires a driver signal into
    whatever bridge subscribed.
    """
    driver = MagicMock()
    driver.start = AsyncMock()
    driver.stop = AsyncMock()
    driver.kill = AsyncMock()
    driver.open_url = AsyncMock(return_value="success")
    driver.back = AsyncMock()
    driver.forward = AsyncMock()
    driver.reload = AsyncMock()
    driver.screenshot = AsyncMock()
    driver.pdf = AsyncMock()
    driver.set_viewport = AsyncMock()
    driver.upload = AsyncMock()
    driver.add_script = AsyncMock()
    driver.set_headers = AsyncMock()
    driver.set_user_agent = AsyncMock()
    driver.set_credentials = AsyncMock()

    handlers = dict(scripts or {})

    async def run_script(name: str, arg: Any = None) -> Any:
        handler = handlers.get(name)
        return handler(arg) if handler else None

    driver.run_script = AsyncMock(side_effect=run_script)

    async def run_evaluate(expression: str, arg: Any = None) -> Any:
        return evaluate(expression) if evaluate else None

    driver.evaluate = AsyncMock(side_effect=run_evaluate)

    emitters: list[Callable[..., None]] = []
    driver.subscribe = MagicMock(side_effect=emitters.append)

    def signal(name: str, *args: Any) -> None:
        for emit in emitters:
            emit(name, *args)

    driver.signal = signal
    return driver


def make_mock_page(url: str = "https://example.com/") -> MagicMock:
    """Create a mock Playwright Page with the methods the driver calls."""
    page = MagicMock()
    page.url = url
    page.main_frame = MagicMock()
    page.evaluate = AsyncMock(return_value=None)
    page.goto = AsyncMock()
    page.go_back = AsyncMock()
    page.go_forward = AsyncMock()
    page.reload = AsyncMock()
    page.screenshot = AsyncMock(return_value=b"fake_png_data")
    page.pdf = AsyncMock()
    page.set_viewport_size = AsyncMock()
    page.set_input_files = AsyncMock()
    page.add_script_tag = AsyncMock()
    page.set_extra_http_headers = AsyncMock()

    handlers: dict[str, Any] = {}
    page.on = MagicMock(side_effect=lambda event, handler: handlers.__setitem__(event, handler))
    page.handlers = handlers
    return page
