"""Tests for steps module."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from webchain import steps
from webchain.chain import Chain
from webchain.errors import ELEMENT_NOT_FOUND, INVALID_SELECTOR, ActionError, MissingFileError
from tests.conftest import FAST, dom, make_mock_driver


def _chain(scripts=None, evaluate=None) -> tuple[Chain, MagicMock]:
    driver = make_mock_driver(scripts, evaluate)
    return Chain(FAST, driver=driver), driver


class TestNavigation:
    @pytest.mark.asyncio
    async def test_goto(self):
        chain, driver = _chain()
        await steps.goto(chain, "https://example.com")
        driver.open_url.assert_awaited_once_with("https://example.com")

    @pytest.mark.asyncio
    async def test_back_forward_refresh(self):
        chain, driver = _chain()
        await steps.back(chain)
        await steps.forward(chain)
        await steps.refresh(chain)
        driver.back.assert_awaited_once()
        driver.forward.assert_awaited_once()
        driver.reload.assert_awaited_once()


class TestQueries:
    @pytest.mark.asyncio
    async def test_url_and_title(self):
        chain, _ = _chain({
            "location": lambda _: "https://example.com/a",
            "title": lambda _: "Example",
        })
        seen = []
        await steps.url(chain, seen.append)
        await steps.title(chain, seen.append)
        assert seen == ["https://example.com/a", "Example"]

    @pytest.mark.asyncio
    async def test_visible_and_exists(self):
        chain, driver = _chain({"visible": lambda s: False, "exists": lambda s: True})
        seen = []
        await steps.visible(chain, "#a", seen.append)
        await steps.exists(chain, "#a", seen.append)
        assert seen == [False, True]
        driver.run_script.assert_any_await("visible", "#a")

    @pytest.mark.asyncio
    async def test_evaluate_passes_argument(self):
        chain, driver = _chain(evaluate=lambda expression: 42)
        callback = AsyncMock()
        await steps.evaluate(chain, "(n) => n * 2", callback, 21)
        driver.evaluate.assert_awaited_once_with("(n) => n * 2", 21)
        callback.assert_awaited_once_with(42)

    @pytest.mark.asyncio
    async def test_dom_state(self):
        chain, _ = _chain({"domData": lambda s: {"result": f"<{s}/>"}})
        callback = MagicMock()
        await steps.dom_state(chain, ["a", "b"], callback)
        callback.assert_called_once_with(None, ["<a/>", "<b/>"])

    @pytest.mark.asyncio
    async def test_dom_state_error(self):
        chain, _ = _chain({"domData": lambda s: {"error": INVALID_SELECTOR, "result": ""}})
        callback = MagicMock()
        await steps.dom_state(chain, ["##"], callback)
        callback.assert_called_once_with(INVALID_SELECTOR, None)

    @pytest.mark.asyncio
    async def test_dom_state_interrupted_round_trip(self):
        def destroyed(selector):
            raise PlaywrightError("Execution context was destroyed")

        chain, _ = _chain({"domData": destroyed})
        callback = MagicMock()
        await steps.dom_state(chain, ["#a"], callback)
        callback.assert_called_once_with("Execution context was destroyed", None)

    @pytest.mark.asyncio
    async def test_title_interrupted_round_trip(self):
        def destroyed(_):
            raise PlaywrightError("Execution context was destroyed")

        chain, _ = _chain({"title": destroyed})
        callback = MagicMock()
        with pytest.raises(PlaywrightError):
            await steps.title(chain, callback)
        callback.assert_called_once_with(None)


class TestInteraction:
    @pytest.mark.asyncio
    async def test_click_sends_structured_payload(self):
        chain, driver = _chain({"click": lambda payload: None})
        callback = MagicMock()
        await steps.click(chain, "a.next", "/more/i", callback)
        driver.run_script.assert_awaited_once_with(
            "click", {"selector": "a.next", "filter": {"pattern": "more", "flags": "i"}}
        )
        callback.assert_called_once_with(None)

    @pytest.mark.asyncio
    async def test_click_reports_missing_element(self):
        chain, _ = _chain({"click": lambda payload: ELEMENT_NOT_FOUND})
        callback = MagicMock()
        await steps.click(chain, "#gone", callback=callback)
        callback.assert_called_once_with(ELEMENT_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_type_failure_goes_to_error_event(self):
        chain, _ = _chain({"type": lambda payload: ELEMENT_NOT_FOUND})
        errors = []
        chain.on("error", errors.append)
        await steps.type_text(chain, "#q", "hello")
        assert isinstance(errors[0], ActionError)
        assert str(errors[0]) == ELEMENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_check_and_select(self):
        chain, driver = _chain({"check": lambda s: None, "select": lambda p: None})
        errors = []
        chain.on("error", errors.append)
        await steps.check(chain, "#agree")
        await steps.select(chain, "#size", "L")
        driver.run_script.assert_any_await("select", {"selector": "#size", "option": "L"})
        assert errors == []

    @pytest.mark.asyncio
    async def test_scroll_to_bottom_by_default(self):
        chain, driver = _chain()
        await steps.scroll_to(chain)
        driver.run_script.assert_awaited_once_with("scrollTo", None)

    @pytest.mark.asyncio
    async def test_upload_existing_file(self, tmp_path):
        chain, driver = _chain()
        path = tmp_path / "cv.pdf"
        path.write_bytes(b"%PDF")
        await steps.upload(chain, "input[type=file]", str(path))
        driver.upload.assert_awaited_once_with("input[type=file]", str(path), timeout=FAST.timeout)

    @pytest.mark.asyncio
    async def test_upload_gives_up_after_timeout(self, tmp_path):
        chain, driver = _chain()
        path = tmp_path / "cv.pdf"
        path.write_bytes(b"%PDF")
        driver.upload.side_effect = PlaywrightTimeout("Timeout 100ms exceeded")
        await steps.upload(chain, "input[type=file]", str(path))

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, tmp_path):
        chain, driver = _chain()
        with pytest.raises(MissingFileError):
            await steps.upload(chain, "input", str(tmp_path / "nope"))
        driver.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inject_missing_file(self, tmp_path):
        chain, driver = _chain()
        with pytest.raises(MissingFileError):
            await steps.inject(chain, str(tmp_path / "nope.js"))
        driver.add_script.assert_not_awaited()


class TestWaitSteps:
    @pytest.mark.asyncio
    async def test_wait_for_elements_accepts_single_selector(self):
        chain, _ = _chain({"elementPresent": lambda s: {"result": True}})
        callback = MagicMock()
        await steps.wait_for_elements(chain, "#a", callback)
        callback.assert_called_once_with(None, True)

    @pytest.mark.asyncio
    async def test_wait_for_new_elements_or_new_page(self):
        chain, _ = _chain({"domData": dom("<i>1</i>", "<i>2</i>")})
        callback = MagicMock()
        await steps.wait_for_new_elements_or_new_page(chain, ["#a"], ["<i>1</i>"], callback)
        callback.assert_called_once_with(None, True)
        assert chain.timeout_count == 0

    @pytest.mark.asyncio
    async def test_wait_for_value(self):
        chain, driver = _chain(evaluate=lambda expression: "ready")
        await steps.wait_for_value(chain, "document.readyState", "ready")
        assert driver.evaluate.await_count == 1


class TestOutput:
    @pytest.mark.asyncio
    async def test_screenshot(self):
        chain, driver = _chain()
        await steps.screenshot(chain, "out.png")
        driver.screenshot.assert_awaited_once_with("out.png")

    @pytest.mark.asyncio
    async def test_screenshot_pdf_extension_renders_pdf(self):
        chain, driver = _chain()
        await steps.screenshot(chain, "out.pdf")
        driver.pdf.assert_awaited_once_with("out.pdf")
        driver.screenshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_screenshot_requires_extension(self):
        chain, driver = _chain()
        with pytest.raises(ActionError, match="file extension"):
            await steps.screenshot(chain, "out")
        driver.screenshot.assert_not_awaited()


class TestPageSettings:
    @pytest.mark.asyncio
    async def test_viewport_and_zoom(self):
        chain, driver = _chain()
        await steps.viewport(chain, 800, 600)
        await steps.zoom(chain, 1.5)
        driver.set_viewport.assert_awaited_once_with(800, 600)
        driver.run_script.assert_awaited_once_with("zoom", 1.5)

    @pytest.mark.asyncio
    async def test_on_resource_requested_subscribes(self):
        chain, _ = _chain()
        seen = []
        await steps.on_resource_requested(chain, lambda url, method: seen.append(url))
        chain.events.emit("resourceRequested", "https://example.com/app.js", "GET")
        assert seen == ["https://example.com/app.js"]

    @pytest.mark.asyncio
    async def test_headers_agent_and_auth(self):
        chain, driver = _chain()
        await steps.headers(chain, {"X-Test": "1"})
        await steps.useragent(chain, "webchain/1.0")
        await steps.authentication(chain, "user", "secret")
        driver.set_headers.assert_awaited_once_with({"X-Test": "1"})
        driver.set_user_agent.assert_awaited_once_with("webchain/1.0")
        driver.set_credentials.assert_awaited_once_with("user", "secret")
