"""Wait engine: element, DOM-mutation, page-load and value waits, and races.

Every wait completes exactly once. Timers and listeners a wait registers
are released in a ``finally`` block, so success, timeout and cancellation
(a race loser) all leave the event bridge as they found it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from playwright.async_api import Error as PlaywrightError

from webchain.errors import ActionError
from webchain.events import EventBridge
from webchain.options import Options
from webchain.poller import Condition, until, until_async


logger = logging.getLogger(__name__)

# Seconds to let post-load scripts run before a page counts as loaded
SETTLE_DELAY = 0.5


class Driver(Protocol):
    async def run_script(self, name: str, arg: Any = None) -> Any: ...
    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...
    async def reload(self) -> None: ...


class Completion:
    """A result slot that accepts exactly one outcome."""

    def __init__(self) -> None:
        self._future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        """Record ``value`` unless an outcome is already recorded. Returns True if it won."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def fail(self, exc: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(exc)
        return True

    def __await__(self):
        return self._future.__await__()


@dataclass
class WaitContext:
    """Ephemeral state behind one in-progress wait."""

    completion: Completion | None = None
    started: float = field(default_factory=time.monotonic)
    fingerprint: str | None = None
    _timers: list[asyncio.TimerHandle] = field(default_factory=list, repr=False)

    def schedule(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        handle = asyncio.get_running_loop().call_later(delay_ms / 1000, callback, *args)
        self._timers.append(handle)
        return handle

    def cancel(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()

    def elapsed(self) -> float:
        return (time.monotonic() - self.started) * 1000


def strict_equal(actual: Any, expected: Any) -> bool:
    """``===`` for values coming back from the page: booleans never equal numbers."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


class WaitEngine:
    """Resolves waiting conditions against one driver under the chain's options."""

    def __init__(self, driver: Driver, events: EventBridge, options: Options) -> None:
        self.driver = driver
        self.events = events
        self.options = options

    def _timed_out(self, message: str) -> None:
        logger.debug(".wait() %s", message)
        self.events.emit("timeout", message)

    async def next_page_load(self, quiet: bool = False) -> Condition:
        """Resolve on the next ``loadFinished`` or after ``page_load_timeout``.

        ``quiet`` marks the timeout as an expected outcome (no ``timeout`` event).
        """
        ctx = WaitContext(Completion())

        def on_load(*_: Any) -> None:
            if ctx.completion.done:
                return
            ctx.cancel()
            ctx.schedule(SETTLE_DELAY * 1000, ctx.completion.resolve, Condition(True))

        def on_timeout() -> None:
            self.events.discard("loadFinished", on_load)
            if ctx.completion.done:
                return
            if not quiet:
                self._timed_out("timeout elapsed before next page loaded")
            ctx.completion.resolve(Condition(False))

        ctx.schedule(self.options.page_load_timeout, on_timeout)
        self.events.once("loadFinished", on_load)
        try:
            return await ctx.completion
        finally:
            ctx.cancel()
            self.events.discard("loadFinished", on_load)

    async def element(self, selector: str, quiet: bool = False) -> Condition:
        """Poll until ``selector`` matches at least one node."""
        logger.debug(".wait() for the element %s", selector)

        async def present() -> Condition:
            try:
                res = await self.driver.run_script("elementPresent", selector)
            except PlaywrightError as e:
                logger.debug("element check for %s interrupted: %s", selector, e)
                return Condition(False)
            return Condition(bool(res.get("result")), error=res.get("error"))

        res = await until_async(present, self.options.timeout, self.options.interval)
        if not res.condition and not res.error and not quiet:
            self._timed_out(f'timeout elapsed before selector "{selector}" became present')
        return res

    async def any_element(self, selectors: Iterable[str]) -> Condition:
        """Race element waits; the first selector to appear wins."""
        tasks = [asyncio.ensure_future(self.element(s, quiet=True)) for s in selectors]
        winner = await self._first(tasks, lambda task, res: res.condition)
        if winner is not None:
            return winner
        results = [t.result() for t in tasks]
        errors = [r.error for r in results if r.error]
        if len(errors) < len(results):
            self._timed_out("timeout elapsed before all selectors became present")
        return Condition(False, error=errors[-1] if errors else None)

    async def dom_mutation(self, selector: str, prev: str | None = None, quiet: bool = False) -> Condition:
        """Poll until the fingerprint of ``selector`` changes from one tick to the next.

        ``prev`` seeds the comparison; without it the first tick only records
        a baseline.
        """
        logger.debug(".wait() for dom mutation on %s", selector)
        ctx = WaitContext(fingerprint=prev)

        async def mutated() -> Condition:
            try:
                res = await self.driver.run_script("domData", selector)
            except PlaywrightError as e:
                logger.debug("dom check for %s interrupted: %s", selector, e)
                return Condition(False)
            if res.get("error"):
                return Condition(False, error=res["error"])
            current = res.get("result")
            changed = ctx.fingerprint is not None and current != ctx.fingerprint
            if changed:
                logger.debug("found mutated elements for %s", selector)
            ctx.fingerprint = current
            return Condition(changed, value=current)

        res = await until_async(mutated, self.options.page_load_timeout, self.options.interval)
        if not res.condition and not res.error and not quiet:
            self._timed_out(f'timeout elapsed before "{selector}" changed')
        return res

    async def dom_state(self, selectors: Iterable[str]) -> list[str]:
        """Fingerprint each selector, in order. Raises ActionError on an invalid selector."""
        results = await asyncio.gather(
            *(self.driver.run_script("domData", s) for s in selectors)
        )
        for res in results:
            if res.get("error"):
                raise ActionError(res["error"])
        return [res.get("result") for res in results]

    async def new_elements_or_new_page(
        self, selectors: Iterable[str], state: list[str] | None = None
    ) -> Condition:
        """Race a DOM-mutation wait per selector against the next page load.

        Once a navigation has been requested, mutation arms no longer count:
        the page is going away and the page-load arm decides the outcome.
        """
        logger.debug(".wait() for new elements or new page with state")
        state = list(state or [])
        navigating = False

        def on_navigation(*_: Any) -> None:
            nonlocal navigating
            navigating = True

        self.events.once("navigationRequested", on_navigation)
        arms = [
            asyncio.ensure_future(
                self.dom_mutation(s, state[i] if i < len(state) else None, quiet=True)
            )
            for i, s in enumerate(selectors)
        ]
        page_arm = asyncio.ensure_future(self.next_page_load(quiet=True))

        def accept(task: asyncio.Future, res: Condition) -> bool:
            if task is not page_arm and navigating:
                return False
            return res.condition or res.error is not None

        try:
            winner = await self._first([*arms, page_arm], accept)
        finally:
            self.events.discard("navigationRequested", on_navigation)
        if winner is None:
            self._timed_out("timeout elapsed before new elements or a new page appeared")
            return Condition(False)
        return winner

    async def value(
        self,
        expression: str,
        expected: Any,
        refresh_delay: float | None = None,
        timeout: float | None = None,
    ) -> Condition:
        """Poll ``expression`` until it strictly equals ``expected``.

        With ``refresh_delay`` the page is reloaded after every mismatch and
        polled at that cadence instead of ``interval``. On timeout the last
        observed value is returned.
        """
        interval = refresh_delay if refresh_delay is not None else self.options.interval
        last: list[Any] = [None]

        async def matches() -> Condition:
            try:
                result = await self.driver.evaluate(expression)
            except PlaywrightError as e:
                logger.debug("value check interrupted: %s", e)
                return Condition(False, value=last[0])
            last[0] = result
            if strict_equal(result, expected):
                logger.debug(".wait() saw value match")
                return Condition(True, value=result)
            if refresh_delay is not None:
                logger.debug(".wait() refreshing the page (no match on value=%r)", result)
                try:
                    await self.driver.reload()
                except PlaywrightError as e:
                    logger.debug("refresh failed: %s", e)
            return Condition(False, value=result)

        res = await until_async(matches, timeout or self.options.timeout, interval)
        if not res.condition:
            self._timed_out(f"timeout elapsed before {expression!r} became {expected!r}")
        return res

    async def predicate(self, check: Callable[[], Any]) -> bool:
        """Poll a Python-side condition until it holds."""
        ok = await until(check, self.options.timeout, self.options.interval)
        if not ok:
            self._timed_out("timeout elapsed before the condition held")
        return ok

    async def _first(
        self,
        tasks: list[asyncio.Future],
        accept: Callable[[asyncio.Future, Condition], bool],
    ) -> Condition | None:
        """Return the first accepted result among concurrent waits, or None.

        Losers are cancelled and awaited so their own cleanup has run before
        this returns.
        """
        race = Completion()

        def settle(task: asyncio.Future) -> None:
            if race.done or task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                race.fail(exc)
                return
            res = task.result()
            if accept(task, res):
                race.resolve(res)
            elif all(t.done() for t in tasks):
                race.resolve(None)

        for task in tasks:
            task.add_done_callback(settle)
        if not tasks:
            race.resolve(None)
        try:
            return await race
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
