"""Action bodies: what each queued step does against the driver.

Each step is awaited by the run loop as ``step(chain, *args)``. Most are
thin forwarders to the driver; the wait steps delegate to the wait engine.
Callbacks may be plain functions or coroutine functions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from webchain import waits
from webchain.errors import ActionError, MissingFileError
from webchain.filters import parse_filter

if TYPE_CHECKING:
    from webchain.chain import Chain


logger = logging.getLogger(__name__)

SCREENSHOT_FORMATS = {"png", "jpg", "jpeg", "pdf"}


async def _call(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _report(chain: Chain, action: str, error: str | None) -> None:
    """Send a page-side failure of a callback-less action to the error event."""
    if error:
        logger.debug(".%s() failed: %s", action, error)
        chain.events.emit("error", ActionError(error))


# -- navigation ---------------------------------------------------------------

async def goto(chain: Chain, url: str) -> None:
    logger.debug(".goto() url: %s", url)
    status = await chain.driver.open_url(url)
    logger.debug(".goto() page loaded: %s", status)
    await asyncio.sleep(waits.SETTLE_DELAY)


async def back(chain: Chain) -> None:
    await chain.driver.back()


async def forward(chain: Chain) -> None:
    await chain.driver.forward()


async def refresh(chain: Chain) -> None:
    logger.debug(".refresh()-ing the page")
    await chain.driver.reload()


# -- page queries -------------------------------------------------------------

async def _query(chain: Chain, name: str, callback: Callable[[Any], Any]) -> None:
    """Hand a page query to ``callback``; a failed round trip hands it None, then raises."""
    try:
        result = await chain.driver.run_script(name)
    except PlaywrightError:
        await _call(callback, None)
        raise
    await _call(callback, result)


async def url(chain: Chain, callback: Callable[[str | None], Any]) -> None:
    await _query(chain, "location", callback)


async def title(chain: Chain, callback: Callable[[str | None], Any]) -> None:
    await _query(chain, "title", callback)


async def visible(chain: Chain, selector: str, callback: Callable[[bool], Any]) -> None:
    logger.debug(".visible() for %s", selector)
    await _call(callback, bool(await chain.driver.run_script("visible", selector)))


async def exists(chain: Chain, selector: str, callback: Callable[[bool], Any]) -> None:
    logger.debug(".exists() for %s", selector)
    await _call(callback, bool(await chain.driver.run_script("exists", selector)))


async def evaluate(
    chain: Chain, expression: str, callback: Callable[[Any], Any], arg: Any = None
) -> None:
    logger.debug(".evaluate() fn on the page")
    await _call(callback, await chain.driver.evaluate(expression, arg))


async def dom_state(
    chain: Chain, selectors: list[str], callback: Callable[[Any, Any], Any]
) -> None:
    try:
        state = await chain.waits.dom_state(selectors)
    except (ActionError, PlaywrightError) as e:
        await _call(callback, str(e), None)
        return
    await _call(callback, None, state)


# -- interaction --------------------------------------------------------------

async def click(
    chain: Chain,
    selector: str,
    text_filter: str | dict[str, Any] | None = None,
    callback: Callable[[str | None], Any] | None = None,
) -> None:
    """Click the first match, or the last match whose text passes ``text_filter``."""
    logger.debug(".click() on %s", selector)
    payload = {"selector": selector, "filter": parse_filter(text_filter) if text_filter else None}
    error = await chain.driver.run_script("click", payload)
    await _call(callback, error)


async def type_text(chain: Chain, selector: str, text: str) -> None:
    logger.debug(".type() %s into %s", text, selector)
    error = await chain.driver.run_script("type", {"selector": selector, "text": text})
    _report(chain, "type", error)


async def check(chain: Chain, selector: str) -> None:
    logger.debug(".check() %s", selector)
    _report(chain, "check", await chain.driver.run_script("check", selector))


async def select(chain: Chain, selector: str, option: str) -> None:
    logger.debug(".select() %s", selector)
    error = await chain.driver.run_script("select", {"selector": selector, "option": option})
    _report(chain, "select", error)


async def scroll_to(chain: Chain, top: int | None = None) -> None:
    logger.debug(".scrollTo() %s", "the bottom" if top is None else top)
    await chain.driver.run_script("scrollTo", top)


async def upload(chain: Chain, selector: str, path: str) -> None:
    logger.debug(".upload() to %s with %s", selector, path)
    if not Path(path).exists():
        raise MissingFileError("File does not exist to upload.")
    try:
        await chain.driver.upload(selector, path, timeout=chain.options.timeout)
    except PlaywrightTimeout:
        logger.warning(".upload() to %s gave up after %sms", selector, chain.options.timeout)


async def inject(chain: Chain, path: str) -> None:
    logger.debug(".inject()-ing %s", path)
    if not Path(path).exists():
        raise MissingFileError(f"File does not exist to inject: {path}")
    await chain.driver.add_script(path)


# -- waits --------------------------------------------------------------------

async def sleep(chain: Chain, ms: float) -> None:
    logger.debug(".wait() for %sms", ms)
    await asyncio.sleep(ms / 1000)


async def wait_for_page(chain: Chain) -> None:
    logger.debug(".wait() for the next page load")
    await chain.waits.next_page_load()


async def wait_for_selector(chain: Chain, selector: str) -> None:
    await chain.waits.element(selector)


async def wait_for_predicate(chain: Chain, check: Callable[[], Any]) -> None:
    await chain.waits.predicate(check)


async def wait_for_value(
    chain: Chain, expression: str, value: Any, delay: float | None = None
) -> None:
    await chain.waits.value(expression, value, refresh_delay=delay)


async def wait_for_elements(
    chain: Chain, selectors: str | list[str], callback: Callable[[Any, bool], Any]
) -> None:
    if isinstance(selectors, str):
        selectors = [selectors]
    logger.debug(
        ".wait() for elements matching %s selector%s",
        len(selectors),
        "s" if len(selectors) > 1 else "",
    )
    res = await chain.waits.any_element(selectors)
    await _call(callback, res.error, res.condition)


async def wait_for_new_elements_or_new_page(
    chain: Chain,
    selectors: list[str],
    state: list[str] | None = None,
    callback: Callable[[Any, bool], Any] | None = None,
) -> None:
    res = await chain.waits.new_elements_or_new_page(selectors, state)
    await _call(callback, res.error, res.condition)


# -- output -------------------------------------------------------------------

async def screenshot(chain: Chain, path: str) -> None:
    ext = Path(path).suffix.lstrip(".").lower()
    if ext not in SCREENSHOT_FORMATS:
        raise ActionError("Must include file extension in `path`.")
    logger.debug(".screenshot() saved to %s", path)
    if ext == "pdf":
        await chain.driver.pdf(path)
    else:
        await chain.driver.screenshot(path)


async def pdf(chain: Chain, path: str) -> None:
    logger.debug(".pdf() saved to %s", path)
    await chain.driver.pdf(path)


# -- page settings ------------------------------------------------------------

async def viewport(chain: Chain, width: int, height: int) -> None:
    logger.debug(".viewport() to %s x %s", width, height)
    await chain.driver.set_viewport(width, height)


async def zoom(chain: Chain, factor: float) -> None:
    await chain.driver.run_script("zoom", factor)


async def on_resource_requested(chain: Chain, callback: Callable[..., Any]) -> None:
    chain.events.on("resourceRequested", callback)


async def authentication(chain: Chain, user: str, password: str) -> None:
    await chain.driver.set_credentials(user, password)


async def useragent(chain: Chain, agent: str) -> None:
    logger.debug(".useragent() to %s", agent)
    await chain.driver.set_user_agent(agent)


async def headers(chain: Chain, headers: dict[str, str]) -> None:
    await chain.driver.set_headers(headers)
