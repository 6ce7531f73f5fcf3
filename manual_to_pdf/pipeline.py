"""
Single page rendering: navigate, clean up the DOM for print, capture a PDF.

The pipeline is an ordered list of steps. Each step has a leniency
threshold; a failing step aborts the attempt only when the run's leniency
is at or below that threshold, otherwise the failure is logged and the
pipeline moves on.
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import urlparse

from . import dom
from .config import MAX_LENIENCY, Options, pdf_margins
from .errors import TransientRenderError
from .log import ColorLogMixin
from .monitor import ErrorState, ResourceErrorMonitor
from .polling import poll_until
from .task import PageResult, PageTask

# failures of an ungated step are only logged
UNGATED = -1
# failures of an unconditional step abort at any leniency
UNCONDITIONAL = MAX_LENIENCY + 1

SCROLL_DISTANCE = 20000
OVERLAY_POLL_ATTEMPTS = 10
PROMO_POLL_ATTEMPTS = 20
PROMO_MAX_DEPTH = 6
FONT_CHECK_TIMEOUT = 5.0


class PageLoadError(Exception):
    """Raised inside a step when the page is unusable."""


@dataclass
class RenderContext:
    """State of one rendering attempt, threaded through every step."""

    page: Any
    task: PageTask
    artifact: Path
    state: ErrorState
    child_urls: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Step:
    """A named pipeline action and its leniency threshold.

    With `watch_resources` off, only the action's own exceptions count as
    a failure; resource errors arriving while it runs are ignored.
    """

    name: str
    threshold: int
    action: Callable[[RenderContext], Awaitable[None]]
    toc_only: bool = False
    content_only: bool = False
    watch_resources: bool = True

    def applies(self, is_toc: bool) -> bool:
        if self.toc_only:
            return is_toc
        if self.content_only:
            return not is_toc
        return True

    def aborts(self, leniency: int) -> bool:
        """Whether a failure of this step ends the attempt at `leniency`."""
        return leniency <= self.threshold


class PageRenderPipeline(ColorLogMixin):
    """Renders one URL into a single-page-set PDF artifact."""

    def __init__(self, options: Options, monitor: ResourceErrorMonitor):
        self.options = options
        self.monitor = monitor
        self._margins = pdf_margins(options.page_margins)

    def steps(self) -> List[Step]:
        """The ordered step list for this run's options."""
        steps = [
            Step("navigate", 11, self._navigate),
            Step("disable hyphenation", UNGATED, self._disable_hyphenation),
            Step("scroll to bottom", 10, self._scroll_to_bottom),
            Step("settle after scroll", 9, self._settle),
            Step("collect child links", 8, self._collect_child_links, toc_only=True),
            Step("transform table of contents", 6, self._transform_toc, toc_only=True),
        ]
        if not self.options.links:
            steps.append(Step("remove related content", 5, self._remove_related, content_only=True))
        steps += [
            Step("neutralize hyperlinks", 4, self._neutralize_links),
            Step("dismiss overlays", 3, self._dismiss_overlays),
            Step("remove structural chrome", 2, self._remove_chrome),
            Step("remove third-party iframes", 1, self._remove_iframes),
            Step("bring tab to foreground", UNGATED, self._bring_to_front),
            Step("final settle", 0, self._settle),
            Step("error text scan", UNCONDITIONAL, self._scan_error_text, watch_resources=False),
            Step("render pdf", UNCONDITIONAL, self._render_pdf, watch_resources=False),
        ]
        return steps

    async def render(self, page: Any, task: PageTask, artifact: Path) -> PageResult:
        """Run every applicable step against `page`; never raises step errors."""
        ctx = RenderContext(page=page, task=task, artifact=Path(artifact), state=self.monitor.begin_attempt())
        start = time.monotonic()
        try:
            for step in self.steps():
                if step.applies(task.is_toc):
                    await self.run_step(step, ctx)
        except TransientRenderError as e:
            self._log_error(f"Rendering {task.url} failed at {e}")
            return PageResult(attempt_succeeded=False)
        self._log_debug(f"Rendered {task.url} in {time.monotonic() - start:.3f}s")
        return PageResult(attempt_succeeded=True, child_urls=ctx.child_urls)

    async def run_step(self, step: Step, ctx: RenderContext) -> None:
        """Run one step and apply its leniency gate.

        Raises:
            TransientRenderError: The step failed and its gate does not tolerate it.
        """
        start = time.monotonic()
        error: Optional[Exception] = None
        try:
            async with self.monitor.catch_resource_load_errors(ctx.state, step.name) as probe:
                await step.action(ctx)
        except Exception as e:
            error = e
        elapsed = time.monotonic() - start

        failed = probe.failed if step.watch_resources else error is not None
        if not failed:
            if probe.failed:
                self._log_debug(f"Step '{step.name}' ignores {probe.new_errors} resource errors")
            self._log_debug(f"Step '{step.name}' finished in {elapsed:.3f}s")
            return
        if error is not None:
            reason = f"{type(error).__name__}: {error}"
        else:
            reason = f"{probe.new_errors} resource errors (allowed: {probe.allowed})"
        if step.aborts(self.options.leniency):
            raise TransientRenderError(step.name, reason) from error
        self._log_warning(f"Step '{step.name}' failed for {ctx.task.url} ({reason}), "
                          f"tolerated at leniency {self.options.leniency}")

    async def _load(self, page: Any, url: str) -> Any:
        response = await page.goto(url, wait_until="load", timeout=self.options.timeout)
        await self.monitor.wait_for_network_idle(self.options.idle_concurrency, self.options.timeout)
        return response

    async def _navigate(self, ctx: RenderContext) -> None:
        # the page load races a watcher on the error state; if errors win the
        # load is stopped in the page instead of waiting for it to time out
        navigation = asyncio.ensure_future(self._load(ctx.page, ctx.task.url))
        watcher = asyncio.ensure_future(
            poll_until(lambda: ctx.state.page_load_failed, self.options.poll_interval))
        try:
            done, _ = await asyncio.wait({navigation, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            await self._discard(navigation)
            await self._discard(watcher)
            raise

        if navigation in done:
            await self._discard(watcher)
            response = navigation.result()
            if response is None:
                raise PageLoadError(f"navigation to {ctx.task.url} returned no response")
            if response.status in self.options.page_http_errors:
                raise PageLoadError(f"HTTP {response.status} for {ctx.task.url}")
            self._log_debug(f"Navigation returned HTTP {response.status} for {ctx.task.url}")
            return

        self._log_warning(f"Resource errors while loading {ctx.task.url}, stopping page load")
        try:
            await ctx.page.evaluate(dom.STOP_LOADING)
        finally:
            await self._discard(navigation)
        raise PageLoadError(f"loading of {ctx.task.url} was stopped after {ctx.state.error_count} resource errors")

    async def _discard(self, task: "asyncio.Future[Any]") -> None:
        if not task.done():
            task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            self._log_debug(f"Discarded outcome: {task.exception()!r}")

    async def _disable_hyphenation(self, ctx: RenderContext) -> None:
        await ctx.page.add_style_tag(content=dom.NO_HYPHENATION_CSS)

    async def _scroll_to_bottom(self, ctx: RenderContext) -> None:
        report = await asyncio.wait_for(
            ctx.page.evaluate(dom.SCROLL_TO_BOTTOM, [SCROLL_DISTANCE, self.options.max_scrolls]),
            self.options.timeout / 1000)
        self._log_debug(f"Scrolled to bottom: {report}")

    async def _settle(self, ctx: RenderContext) -> None:
        await self.monitor.wait_for_network_idle(self.options.idle_concurrency, self.options.timeout)

    async def _collect_child_links(self, ctx: RenderContext) -> None:
        urls = await ctx.page.evaluate(dom.COLLECT_TOC_LINKS) or []
        ctx.child_urls = [url for url in urls if self._in_url_domains(url)]
        self._log_info(f"Collected {len(ctx.child_urls)} child links ({len(urls)} before domain filtering)")

    def _in_url_domains(self, url: str) -> bool:
        hostname = urlparse(url).hostname or ""
        return any(hostname.endswith(suffix) for suffix in self.options.url_domain_suffixes)

    async def _transform_toc(self, ctx: RenderContext) -> None:
        expanded = await ctx.page.evaluate(dom.TRANSFORM_TOC, self.options.timestamp)
        await ctx.page.add_style_tag(content=dom.TOC_COMPACT_CSS)
        self._log_debug(f"Expanded {expanded} chapters on the table of contents")

    async def _remove_related(self, ctx: RenderContext) -> None:
        removed = await ctx.page.evaluate(dom.REMOVE_RELATED)
        self._log_debug(f"Removed {removed} related-content sections")

    async def _neutralize_links(self, ctx: RenderContext) -> None:
        replaced = await ctx.page.evaluate(dom.NEUTRALIZE_ANCHORS)
        self._log_debug(f"Replaced {replaced} anchors")

    async def _dismiss_overlays(self, ctx: RenderContext) -> None:
        page = ctx.page
        if await page.evaluate(dom.REJECT_CONSENT):
            self._log_debug("Rejected optional cookie consent categories")
        outcome = await poll_until(lambda: page.evaluate(dom.HAS_ANY_SELECTOR, dom.OVERLAY_SELECTORS),
                                   self.options.poll_interval, OVERLAY_POLL_ATTEMPTS)
        if outcome.satisfied:
            removed = await page.evaluate(dom.REMOVE_SELECTORS, dom.OVERLAY_SELECTORS)
            self._log_debug(f"Removed {removed} overlay elements after {outcome.attempts} checks")

    async def _remove_chrome(self, ctx: RenderContext) -> None:
        page = ctx.page
        missing = await page.evaluate(dom.REMOVE_CHROME, dom.CHROME_SELECTORS) or []
        for selector in missing:
            self._log_warning(f"Could not find any element for the '{selector}' selector")
        if ctx.task.is_toc:
            return
        if not await page.evaluate(dom.REMOVE_TRAILING_RULE):
            self._log_debug("No trailing horizontal rule found")
        outcome = await poll_until(lambda: page.evaluate(dom.REMOVE_SIGN_IN_PROMO, PROMO_MAX_DEPTH),
                                   self.options.poll_interval, PROMO_POLL_ATTEMPTS)
        if not outcome.satisfied:
            self._log_debug("No sign-in promo block found")

    async def _remove_iframes(self, ctx: RenderContext) -> None:
        for src in await ctx.page.evaluate(dom.REMOVE_IFRAMES) or []:
            self._log_debug(f"Removed iframe with src '{src}'")

    async def _bring_to_front(self, ctx: RenderContext) -> None:
        await ctx.page.bring_to_front()

    async def _scan_error_text(self, ctx: RenderContext) -> None:
        text = (await ctx.page.evaluate(dom.PAGE_TEXT) or "").lower()
        for needle in self.options.error_texts:
            if needle.lower() in text:
                raise PageLoadError(f"the page looks like an error page (contains '{needle}')")

    async def _render_pdf(self, ctx: RenderContext) -> None:
        start = time.monotonic()
        try:
            await asyncio.wait_for(
                ctx.page.pdf(
                    path=str(ctx.artifact),
                    format=self.options.pdf_page_size,
                    margin=self._margins,
                    print_background=self.options.print_background,
                    display_header_footer=self.options.display_header_footer,
                ),
                self.options.pdf_timeout / 1000)
        except asyncio.TimeoutError:
            await self._log_font_status(ctx.page)
            raise
        self._log_debug(f"PDF saved to {ctx.artifact} in {time.monotonic() - start:.3f}s")

    async def _log_font_status(self, page: Any) -> None:
        try:
            status = await asyncio.wait_for(page.evaluate(dom.FONTS_STATUS), FONT_CHECK_TIMEOUT)
        except Exception as e:
            self._log_error(f"PDF capture timed out; font status unavailable: {e}")
        else:
            self._log_error(f"PDF capture timed out; document font loading status: {status}")
