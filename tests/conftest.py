"""
Shared fakes for the Playwright objects the generator drives.

The fakes implement just the calls the generator makes; in-page scripts are
answered from a per-page table keyed by the script text.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from pypdf import PdfReader, PdfWriter

from manual_to_pdf import dom
from manual_to_pdf.config import Options

CHROME_UA = ("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
             "HeadlessChrome/126.0.6478.126 Safari/537.36")


def write_pdf(path: Path, pages: int = 1, width: float = 595) -> Path:
    """Write a PDF with `pages` blank pages of the given width."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=842)
    with open(path, "wb") as f:
        writer.write(f)
    return path


def page_widths(document: PdfWriter) -> List[float]:
    return [float(page.mediabox.width) for page in document.pages]


def pdf_page_count(path: Path) -> int:
    return len(PdfReader(str(path)).pages)


def make_options(**overrides: Any) -> Options:
    """Options tuned for fast tests: tiny poll interval, no idle wait."""
    values: Dict[str, Any] = dict(poll_interval=0.001, idle_time=0, timeout=2000, pdf_timeout=2000)
    values.update(overrides)
    return Options(**values)


class FakeResponse:
    def __init__(self, url: str = "https://www.volvocars.com/manual", status: int = 200):
        self.url = url
        self.status = status
        self.from_service_worker = False


class FakePage:
    """Stands in for a Playwright Page."""

    def __init__(self, goto_response: Any = None, pdf_pages: int = 1):
        self.goto_response = goto_response if goto_response is not None else FakeResponse()
        self.goto_hook: Optional[Callable[["FakePage"], Any]] = None
        self.pdf_hook: Optional[Callable[["FakePage"], Any]] = None
        self.pdf_pages = pdf_pages
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self.calls: List[tuple] = []
        self.styles: List[str] = []
        self.closed = False
        self.close_error: Optional[Exception] = None
        self.goto_cancelled = False
        self.handlers: Dict[str, Any] = {
            dom.SCROLL_TO_BOTTOM: "remaining = 0",
            dom.COLLECT_TOC_LINKS: [],
            dom.TRANSFORM_TOC: 0,
            dom.REMOVE_RELATED: 0,
            dom.NEUTRALIZE_ANCHORS: 0,
            dom.REJECT_CONSENT: False,
            dom.HAS_ANY_SELECTOR: False,
            dom.REMOVE_SELECTORS: 0,
            dom.REMOVE_CHROME: [],
            dom.REMOVE_TRAILING_RULE: False,
            dom.REMOVE_SIGN_IN_PROMO: True,
            dom.REMOVE_IFRAMES: [],
            dom.PAGE_TEXT: "Owner's manual",
            dom.STOP_LOADING: None,
            dom.FONTS_STATUS: "loading",
            "() => navigator.userAgent": CHROME_UA,
        }

    def on(self, event: str, callback: Callable) -> None:
        self.listeners[event].append(callback)

    def emit(self, event: str, payload: Any) -> None:
        for callback in self.listeners[event]:
            callback(payload)

    def evaluated(self, script: str) -> bool:
        return ("evaluate", script) in self.calls

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> Any:
        self.calls.append(("goto", url))
        try:
            if self.goto_hook is not None:
                result = self.goto_hook(self)
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            self.goto_cancelled = True
            raise
        if isinstance(self.goto_response, Exception):
            raise self.goto_response
        return self.goto_response

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", script))
        handler = self.handlers.get(script)
        result = handler(arg) if callable(handler) else handler
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Exception):
            raise result
        return result

    async def add_style_tag(self, content: Optional[str] = None) -> None:
        self.styles.append(content)

    async def bring_to_front(self) -> None:
        self.calls.append(("bring_to_front",))

    async def pdf(self, path: Optional[str] = None, **kwargs: Any) -> bytes:
        self.calls.append(("pdf", kwargs))
        if self.pdf_hook is not None:
            result = self.pdf_hook(self)
            if inspect.isawaitable(result):
                await result
        write_pdf(Path(path), self.pdf_pages)
        return b""

    async def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeCDPSession:
    def __init__(self):
        self.sent: List[tuple] = []

    async def send(self, method: str, params: Optional[dict] = None) -> dict:
        self.sent.append((method, params))
        return {}


class FakeContext:
    """Stands in for a persistent BrowserContext."""

    def __init__(self, user_dir: str, page_factory: Callable[[], FakePage] = FakePage, **launch_opts: Any):
        self.user_dir = user_dir
        self.launch_opts = launch_opts
        self.page_factory = page_factory
        self.pages: List[FakePage] = [page_factory()]
        self.cdp_sessions: List[FakeCDPSession] = []
        self.closed = False
        self.close_error: Optional[Exception] = None

    async def new_page(self) -> FakePage:
        page = self.page_factory()
        self.pages.append(page)
        return page

    async def new_cdp_session(self, page: FakePage) -> FakeCDPSession:
        session = FakeCDPSession()
        self.cdp_sessions.append(session)
        return session

    async def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeBrowserType:
    """Stands in for `playwright.chromium`."""

    def __init__(self, page_factory: Callable[[], FakePage] = FakePage):
        self.page_factory = page_factory
        self.launched: List[FakeContext] = []

    async def launch_persistent_context(self, user_data_dir: str, **kwargs: Any) -> FakeContext:
        context = FakeContext(user_data_dir, page_factory=self.page_factory, **kwargs)
        self.launched.append(context)
        return context


class FakePlaywright:
    """Async context manager standing in for `async_playwright()`."""

    def __init__(self, browser_type: FakeBrowserType):
        self.chromium = browser_type

    async def __aenter__(self) -> "FakePlaywright":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


@pytest.fixture()
def options() -> Options:
    return make_options()


@pytest.fixture()
def browser_type() -> FakeBrowserType:
    return FakeBrowserType()
