"""The chain: queue automation steps, then run them in order on one browser."""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from webchain import steps
from webchain.actions import Action, ActionQueue
from webchain.driver import PlaywrightDriver
from webchain.errors import DriverExitError, WebchainError
from webchain.events import EventBridge
from webchain.filters import parse_filter
from webchain.metrics import RunMetrics
from webchain.options import Options
from webchain.waits import WaitEngine


logger = logging.getLogger(__name__)

# Signals that abort a run and release the browser before the process goes
ABORT_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class Chain:
    """Builder and run loop for a sequence of browser automation steps.

    Every queuing method appends one action and returns the chain, so calls
    can be chained. Nothing touches the browser until ``run()``, which
    starts a driver, executes the actions strictly one at a time, and
    releases the driver when the queue is drained.

        chain = (
            Chain(timeout=3000)
            .goto("https://example.com")
            .wait("#results")
            .screenshot("results.png")
        )
        await chain.run()
    """

    def __init__(
        self,
        options: Options | None = None,
        driver: Any = None,
        **overrides: Any,
    ) -> None:
        if options is None:
            options = Options(**overrides)
        elif overrides:
            raise TypeError("pass either an Options instance or keyword options, not both")
        self.options = options
        self.driver = driver if driver is not None else PlaywrightDriver(options)
        self.events = EventBridge()
        self.waits = WaitEngine(self.driver, self.events, options)
        self.metrics = RunMetrics()
        self.error: BaseException | None = None
        self._queue = ActionQueue()
        self._running = False
        self._task: asyncio.Task | None = None
        self._previous_handlers: dict[int, Any] = {}

        self.events.on("timeout", self.metrics.record_timeout)
        self.events.on("error", self._log_error)

    # -- events ---------------------------------------------------------------

    def on(self, event: str, f: Callable[..., Any] | None = None) -> Any:
        return self.events.on(event, f)

    def once(self, event: str, f: Callable[..., Any] | None = None) -> Any:
        return self.events.once(event, f)

    def remove_listener(self, event: str, f: Callable[..., Any]) -> None:
        self.events.remove_listener(event, f)

    @property
    def timeout_count(self) -> int:
        return self.metrics.timeouts

    @staticmethod
    def _log_error(error: Any) -> None:
        logger.warning("error: %s", error)

    # -- queue ----------------------------------------------------------------

    @property
    def queue(self) -> ActionQueue:
        return self._queue

    def enqueue(
        self, operation: Callable[..., Awaitable[Any]], *args: Any, name: str | None = None
    ) -> "Chain":
        """Queue a custom step, awaited as ``operation(chain, *args)``."""
        action = Action(name or operation.__name__, operation, args)
        logger.debug("queueing action %r", action.name)
        self._queue = self._queue.append(action)
        return self

    def use(self, plugin: Callable[["Chain"], Any]) -> "Chain":
        """Let ``plugin`` queue steps that run before everything queued so far."""
        logger.debug(".use()-ing a plugin")
        cached = self._queue
        self._queue = ActionQueue()
        try:
            plugin(self)
        finally:
            self._queue = self._queue.then(cached)
        return self

    # -- run loop -------------------------------------------------------------

    async def run(
        self, callback: Callable[[BaseException | None, "Chain"], Any] | None = None
    ) -> "Chain":
        """Execute every queued action in order, then release the browser.

        An action error does not stop later actions unless the chain was
        built with ``halt_on_error``. The last error seen is stored on
        ``self.error`` and passed to ``callback(error, chain)``.
        """
        if self._running:
            raise RuntimeError("run() is already in progress for this chain")
        self._running = True
        self.error = None
        self.metrics.begin_run()
        logger.debug("run")
        try:
            await self._setup()
            while True:
                action, self._queue = self._queue.pop()
                if action is None:
                    break
                error = await self._execute(action)
                if error is not None:
                    self.error = error
                    if self.options.halt_on_error:
                        logger.debug("halting after %s, dropping %d queued actions", action.name, len(self._queue))
                        self._queue = ActionQueue()
                # activity signal for outside observers
                self.events.emit("ping")
        finally:
            await self._teardown()

        if callback is not None:
            result = callback(self.error, self)
            if inspect.isawaitable(result):
                await result
        return self

    async def _execute(self, action: Action) -> BaseException | None:
        logger.debug("running %s", action.describe())
        self.metrics.begin_action(action.name)
        error: BaseException | None = None
        try:
            await action.operation(self, *action.args)
        except (WebchainError, PlaywrightError) as e:
            logger.warning("action %s failed: %s", action.name, e)
            error = e
        except Exception as e:
            logger.exception("action %s raised", action.name)
            error = e
        self.metrics.end_action(error)
        return error

    async def _setup(self) -> None:
        logger.debug(".setup() creating browser driver with %s", self.options)
        await self.driver.start(on_exit=self.handle_exit)
        self.events.wire(self.driver)
        self._install_signal_handlers()
        logger.debug(".setup() browser driver ready")
        self.events.emit("ping")

    async def _teardown(self) -> None:
        logger.debug(".teardown() releasing the browser driver")
        self._remove_signal_handlers()
        try:
            await self.driver.stop()
        except PlaywrightError as e:
            logger.warning("driver did not stop cleanly: %s", e)
            await self.driver.kill()
        finally:
            self._running = False

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        for sig in ABORT_SIGNALS:
            previous = signal.getsignal(sig)
            try:
                loop.add_signal_handler(sig, self._abort, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # no signal support on this loop or thread
                pass
            else:
                self._previous_handlers[sig] = previous

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig, previous in self._previous_handlers.items():
            try:
                loop.remove_signal_handler(sig)
                if previous is not None:
                    signal.signal(sig, previous)
            except (NotImplementedError, RuntimeError, ValueError):
                pass
        self._previous_handlers.clear()
        self._task = None

    def _abort(self, sig: int) -> None:
        logger.warning("received signal %s, aborting run", sig)
        if self._task is not None:
            self._task.cancel()

    async def kill(self) -> None:
        """Release the browser immediately, outside the normal teardown."""
        await self.driver.kill()

    def handle_exit(self, code: int, signal: str | None = None) -> None:
        """Report a driver exit: ``error`` when abnormal, ``exit`` always."""
        if code != 0:
            self.events.emit("error", DriverExitError(code, signal))
        self.events.emit("exit", {"code": code, "signal": signal})

    # -- navigation -----------------------------------------------------------

    def goto(self, url: str) -> "Chain":
        return self.enqueue(steps.goto, url)

    def back(self) -> "Chain":
        return self.enqueue(steps.back)

    def forward(self) -> "Chain":
        return self.enqueue(steps.forward)

    def refresh(self) -> "Chain":
        return self.enqueue(steps.refresh)

    # -- page queries ---------------------------------------------------------

    def url(self, callback: Callable[[str], Any]) -> "Chain":
        return self.enqueue(steps.url, callback)

    def title(self, callback: Callable[[str], Any]) -> "Chain":
        return self.enqueue(steps.title, callback)

    def visible(self, selector: str, callback: Callable[[bool], Any]) -> "Chain":
        return self.enqueue(steps.visible, selector, callback)

    def exists(self, selector: str, callback: Callable[[bool], Any]) -> "Chain":
        return self.enqueue(steps.exists, selector, callback)

    def evaluate(self, expression: str, callback: Callable[[Any], Any], arg: Any = None) -> "Chain":
        """Run a Playwright expression or function on the page and hand its result to ``callback``."""
        return self.enqueue(steps.evaluate, expression, callback, arg)

    def dom_state(self, selectors: list[str], callback: Callable[[Any, Any], Any]) -> "Chain":
        """Fingerprint each selector; ``callback(error, state)``."""
        return self.enqueue(steps.dom_state, list(selectors), callback)

    # -- interaction ----------------------------------------------------------

    def click(
        self,
        selector: str,
        text_filter: str | dict[str, Any] | None = None,
        callback: Callable[[str | None], Any] | None = None,
    ) -> "Chain":
        if text_filter:
            parse_filter(text_filter)
        return self.enqueue(steps.click, selector, text_filter, callback)

    def type(self, selector: str, text: str) -> "Chain":
        return self.enqueue(steps.type_text, selector, text, name="type")

    def check(self, selector: str) -> "Chain":
        return self.enqueue(steps.check, selector)

    def select(self, selector: str, option: str) -> "Chain":
        return self.enqueue(steps.select, selector, option)

    def scroll_to(self, top: int | None = None) -> "Chain":
        return self.enqueue(steps.scroll_to, top)

    def upload(self, selector: str, path: str) -> "Chain":
        return self.enqueue(steps.upload, selector, path)

    def inject(self, path: str) -> "Chain":
        return self.enqueue(steps.inject, path)

    # -- waits ----------------------------------------------------------------

    def wait(self, *args: Any) -> "Chain":
        """Queue a wait.

        ``wait()`` waits for the next page load, ``wait(ms)`` sleeps,
        ``wait(selector)`` waits for an element, ``wait(predicate)`` polls a
        Python callable, ``wait(expression, value)`` polls the page until the
        expression equals ``value`` and ``wait(expression, value, delay)``
        does the same while reloading the page every ``delay`` ms.
        """
        if not args:
            return self.enqueue(steps.wait_for_page, name="wait")
        condition, rest = args[0], args[1:]
        if isinstance(condition, bool):
            raise TypeError("wait() does not accept a boolean")
        if not rest:
            if isinstance(condition, (int, float)):
                return self.enqueue(steps.sleep, condition, name="wait")
            if isinstance(condition, str):
                return self.enqueue(steps.wait_for_selector, condition, name="wait")
            if callable(condition):
                return self.enqueue(steps.wait_for_predicate, condition, name="wait")
        elif isinstance(condition, str) and len(rest) <= 2:
            return self.enqueue(steps.wait_for_value, condition, *rest, name="wait")
        raise TypeError(f"unsupported wait() arguments: {args!r}")

    def wait_for_elements(
        self, selectors: str | list[str], callback: Callable[[Any, bool], Any]
    ) -> "Chain":
        """Wait until any of ``selectors`` is present; ``callback(error, present)``."""
        return self.enqueue(steps.wait_for_elements, selectors, callback)

    def wait_for_new_elements_or_new_page(
        self,
        selectors: list[str],
        state: list[str] | None = None,
        callback: Callable[[Any, bool], Any] | None = None,
    ) -> "Chain":
        """Wait until a selector's content changes or the page navigates.

        ``state`` seeds each selector's fingerprint, typically from an earlier
        ``dom_state``; ``callback(error, changed)``.
        """
        return self.enqueue(steps.wait_for_new_elements_or_new_page, list(selectors), state, callback)

    # -- output ---------------------------------------------------------------

    def screenshot(self, path: str) -> "Chain":
        return self.enqueue(steps.screenshot, path)

    def pdf(self, path: str) -> "Chain":
        return self.enqueue(steps.pdf, path)

    # -- page settings --------------------------------------------------------

    def viewport(self, width: int, height: int) -> "Chain":
        return self.enqueue(steps.viewport, width, height)

    def zoom(self, factor: float) -> "Chain":
        return self.enqueue(steps.zoom, factor)

    def on_resource_requested(self, callback: Callable[..., Any]) -> "Chain":
        return self.enqueue(steps.on_resource_requested, callback)

    def authentication(self, user: str, password: str) -> "Chain":
        return self.enqueue(steps.authentication, user, password)

    def useragent(self, agent: str) -> "Chain":
        return self.enqueue(steps.useragent, agent)

    agent = useragent

    def headers(self, headers: dict[str, str]) -> "Chain":
        return self.enqueue(steps.headers, dict(headers))
