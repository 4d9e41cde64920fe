"""Async Playwright driver: the single browser session a chain runs against."""

from __future__ import annotations

import base64
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from playwright.async_api import (
    Browser,
    BrowserContext,
    Dialog,
    Error as PlaywrightError,
    Page,
    Request,
    Route,
    async_playwright,
)

from webchain.options import Options
from webchain.scripts import page_script


logger = logging.getLogger(__name__)

# Chromium's names for the minimum TLS version
SSL_VERSIONS = {
    "tlsv1": "tls1",
    "tlsv1.1": "tls1.1",
    "tlsv1.2": "tls1.2",
    "tlsv1.3": "tls1.3",
}

DIALOG_SIGNALS = {"alert": "alert", "confirm": "confirm", "prompt": "prompt"}

PDF_MARGIN = {"top": "2cm", "right": "2cm", "bottom": "2cm", "left": "2cm"}


def proxy_settings(options: Options) -> dict[str, str] | None:
    """Translate proxy flags into Playwright's proxy mapping."""
    if not options.proxy or options.proxy_type == "none":
        return None
    server = options.proxy
    if options.proxy_type and "://" not in server:
        server = f"{options.proxy_type}://{server}"
    proxy = {"server": server}
    if options.proxy_auth:
        username, _, password = options.proxy_auth.partition(":")
        proxy["username"] = username
        proxy["password"] = password
    return proxy


def launch_options(options: Options) -> dict[str, Any]:
    """Keyword arguments for ``chromium.launch``."""
    args: list[str] = []
    if not options.web_security:
        args.append("--disable-web-security")
    if options.ssl_protocol != "any":
        version = SSL_VERSIONS.get(options.ssl_protocol.lower())
        if version is None:
            logger.warning("unsupported ssl_protocol %r, using browser default", options.ssl_protocol)
        else:
            args.append(f"--ssl-version-min={version}")

    kwargs: dict[str, Any] = {"headless": options.headless, "args": args}
    if options.executable_path:
        kwargs["executable_path"] = options.executable_path
    proxy = proxy_settings(options)
    if proxy:
        kwargs["proxy"] = proxy
    return kwargs


def context_options(options: Options) -> dict[str, Any]:
    """Keyword arguments for ``browser.new_context``."""
    kwargs: dict[str, Any] = {
        "viewport": {"width": 1280, "height": 720},
        "ignore_https_errors": options.ignore_ssl_errors,
        "bypass_csp": not options.web_security,
    }
    if options.cookies_file and Path(options.cookies_file).exists():
        kwargs["storage_state"] = options.cookies_file
    return kwargs


async def _block_images(route: Route) -> None:
    if route.request.resource_type == "image":
        await route.abort()
    else:
        await route.continue_()


@dataclass
class PlaywrightDriver:
    """Owns one headless Chromium page for the lifetime of a run."""

    options: Options = field(default_factory=Options)
    _playwright: Any = field(default=None, repr=False)
    _browser: Browser | None = field(default=None, repr=False)
    _context: BrowserContext | None = field(default=None, repr=False)
    _page: Page | None = field(default=None, repr=False)
    _on_exit: Callable[[int, str | None], None] | None = field(default=None, repr=False)
    _closing: bool = field(default=False, repr=False)
    _headers: dict[str, str] = field(default_factory=dict, repr=False)
    _user_agent: str | None = field(default=None, repr=False)
    _authorization: str | None = field(default=None, repr=False)

    async def __aenter__(self) -> "PlaywrightDriver":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def start(self, on_exit: Callable[[int, str | None], None] | None = None) -> None:
        launch = launch_options(self.options)
        logger.debug("launching chromium with %s", launch)
        self._on_exit = on_exit
        self._closing = False
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(**launch)
        self._browser.on("disconnected", self._handle_disconnect)
        self._context = await self._browser.new_context(**context_options(self.options))
        if not self.options.load_images:
            await self._context.route("**/*", _block_images)
        self._page = await self._context.new_page()
        self._page.on("crash", self._handle_crash)

    async def stop(self) -> None:
        """Close the session, persisting cookies when a cookies file is configured."""
        self._closing = True
        if self._context and self.options.cookies_file:
            try:
                await self._context.storage_state(path=self.options.cookies_file)
            except PlaywrightError as e:
                logger.warning("could not save cookies to %s: %s", self.options.cookies_file, e)
        await self._release()

    async def kill(self) -> None:
        """Tear the session down without saving anything."""
        self._closing = True
        with contextlib.suppress(PlaywrightError):
            await self._release()

    async def _release(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._playwright = self._browser = self._context = self._page = None
        try:
            if browser:
                await browser.close()
        finally:
            if playwright:
                await playwright.stop()

    @property
    def started(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Driver not started - call start() first")
        return self._page

    def _handle_disconnect(self, _browser: Browser) -> None:
        if not self._closing:
            self._exited(1, "disconnected")

    def _handle_crash(self, _page: Page) -> None:
        self._exited(1, "crash")

    def _exited(self, code: int, signal: str | None) -> None:
        logger.warning("browser driver exited (code=%s, signal=%s)", code, signal)
        if self._on_exit is not None:
            self._on_exit(code, signal)

    def subscribe(self, emit: Callable[..., None]) -> None:
        """Forward Playwright page events as the chain's signal catalogue."""
        page = self.page

        def on_request(request: Request) -> None:
            emit("resourceRequested", request.url, request.method)
            if request.is_navigation_request() and request.frame == page.main_frame:
                emit("navigationRequested", request.url)
                emit("loadStarted")

        def on_request_failed(request: Request) -> None:
            failure = request.failure or ""
            if "ERR_TIMED_OUT" in failure:
                emit("resourceTimeout", request.url, failure)
            else:
                emit("resourceError", request.url, failure)

        def on_frame_navigated(frame: Any) -> None:
            if frame == page.main_frame:
                emit("urlChanged", frame.url)

        async def on_dialog(dialog: Dialog) -> None:
            signal = DIALOG_SIGNALS.get(dialog.type)
            if signal is None:
                await dialog.accept()  # beforeunload must not block navigation
                return
            emit(signal, dialog.message)
            await dialog.dismiss()

        page.on("request", on_request)
        page.on("requestfailed", on_request_failed)
        page.on("response", lambda response: emit("resourceReceived", response.url, response.status))
        page.on("load", lambda _: emit("loadFinished", "success"))
        page.on("domcontentloaded", lambda _: emit("initialized"))
        page.on("framenavigated", on_frame_navigated)
        page.on("console", lambda message: emit("consoleMessage", message.text))
        page.on("pageerror", lambda error: emit("error", error))
        page.on("popup", lambda popup: emit("pageCreated", popup))
        page.on("filechooser", lambda chooser: emit("filePicker", chooser))
        page.on("dialog", on_dialog)

    async def open_url(self, url: str) -> str:
        """Navigate and wait for the load event. Returns ``"success"`` or ``"fail"``."""
        try:
            await self.page.goto(url, wait_until="load", timeout=self.options.page_load_timeout)
        except PlaywrightError as e:
            logger.warning("navigation to %s failed: %s", url, e)
            return "fail"
        return "success"

    async def run_script(self, name: str, arg: Any = None) -> Any:
        return await self.page.evaluate(page_script(name), arg)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def back(self) -> None:
        await self.page.go_back()

    async def forward(self) -> None:
        await self.page.go_forward()

    async def reload(self) -> None:
        await self.page.reload(timeout=self.options.page_load_timeout)

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path)

    async def pdf(self, path: str) -> None:
        await self.page.pdf(path=path, format="A4", landscape=False, margin=PDF_MARGIN)

    async def set_viewport(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": width, "height": height})

    async def upload(self, selector: str, path: str, timeout: float) -> None:
        await self.page.set_input_files(selector, path, timeout=timeout)

    async def add_script(self, path: str) -> None:
        await self.page.add_script_tag(path=path)

    async def set_headers(self, headers: dict[str, str]) -> None:
        self._headers = dict(headers)
        await self._apply_headers()

    async def set_user_agent(self, user_agent: str) -> None:
        self._user_agent = user_agent
        await self._apply_headers()

    async def set_credentials(self, user: str, password: str) -> None:
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        self._authorization = f"Basic {token}"
        await self._apply_headers()

    async def _apply_headers(self) -> None:
        headers = dict(self._headers)
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        if self._authorization:
            headers["Authorization"] = self._authorization
        await self.page.set_extra_http_headers(headers)
