"""
Network response monitoring for the active browser tab.

Every response the tab receives is turned into a `ResponseEvent` and
classified. Errors on watched domains increment the `ErrorState` of the
navigation attempt currently in flight; pipeline steps read that state
back through `catch_resource_load_errors`.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional
from urllib.parse import urlparse

from .config import Options
from .log import ColorLogMixin
from .polling import poll_until


@dataclass
class ErrorState:
    """Resource error bookkeeping for a single navigation attempt."""

    error_count: int = 0
    page_load_failed: bool = False


@dataclass(frozen=True)
class ResponseEvent:
    url: str
    status: int
    from_service_worker: bool = False

    @classmethod
    def from_response(cls, response: Any) -> "ResponseEvent":
        """Build an event from a Playwright Response."""
        return cls(
            url=response.url,
            status=response.status,
            from_service_worker=bool(getattr(response, "from_service_worker", False)),
        )


class Verdict(Enum):
    NOT_HTTP = "not-http"
    OK = "ok"
    OUTSIDE_DOMAINS = "outside-domains"
    EXCEPTED = "excepted"
    ERROR = "error"


@dataclass
class StepProbe:
    """What happened to the error counter while one pipeline step ran."""

    step: str
    baseline: int
    allowed: int
    new_errors: int = 0
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.new_errors > self.allowed


class ResourceErrorMonitor(ColorLogMixin):
    """Classifies responses and counts resource errors per navigation attempt."""

    def __init__(self, options: Options):
        self.options = options
        self._exceptions = [re.compile(pattern) for pattern in options.error_url_exceptions]
        self.state = ErrorState()
        self.in_flight = 0

    def begin_attempt(self) -> ErrorState:
        """Start counting for a new navigation attempt and return its state."""
        self.state = ErrorState()
        return self.state

    def subscribe(self, page: Any) -> None:
        """Attach the monitor to a tab's response and request streams."""
        self.in_flight = 0
        page.on("response", self._on_response)
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_request_done)
        page.on("requestfailed", self._on_request_done)

    def _on_response(self, response: Any) -> None:
        self.deliver(ResponseEvent.from_response(response))

    def _on_request(self, request: Any) -> None:
        self.in_flight += 1

    def _on_request_done(self, request: Any) -> None:
        self.in_flight = max(0, self.in_flight - 1)

    def classify(self, event: ResponseEvent) -> Verdict:
        """Decide whether a response counts against the current attempt."""
        parsed = urlparse(event.url)
        if parsed.scheme not in ("http", "https"):
            return Verdict.NOT_HTTP
        if event.status not in self.options.resource_http_errors:
            return Verdict.OK
        hostname = parsed.hostname or ""
        if not any(hostname.endswith(suffix) for suffix in self.options.http_error_domain_suffixes):
            return Verdict.OUTSIDE_DOMAINS
        if any(pattern.search(event.url) for pattern in self._exceptions):
            return Verdict.EXCEPTED
        return Verdict.ERROR

    def deliver(self, event: ResponseEvent) -> Verdict:
        """Classify an event and update the active attempt's state."""
        verdict = self.classify(event)
        if verdict is Verdict.ERROR:
            self.state.error_count += 1
            if self.state.error_count > self.options.max_resource_errors:
                self.state.page_load_failed = True
            self._log_error(f"Resource error for {event.url}, status: {event.status} "
                            f"(from service worker: {event.from_service_worker}), errors so far: {self.state.error_count}")
        elif verdict is Verdict.OK:
            self._log_debug(f"Response for {event.url}, status: {event.status}")
        elif verdict is not Verdict.NOT_HTTP:
            self._log_debug(f"Ignoring response for {event.url}, status: {event.status} ({verdict.value})")
        return verdict

    @asynccontextmanager
    async def catch_resource_load_errors(self, state: ErrorState, step: str) -> AsyncIterator[StepProbe]:
        """Record resource errors raised while the wrapped step runs.

        The probe reports failure when the counter grew by more than the
        allowed amount, or when the step raised; exceptions are re-raised
        after being recorded.
        """
        probe = StepProbe(step=step, baseline=state.error_count, allowed=self.options.max_resource_errors)
        try:
            yield probe
        except Exception as e:
            probe.error = e
            probe.new_errors = state.error_count - probe.baseline
            self._log_debug(f"Step '{step}' raised {type(e).__name__} with {probe.new_errors} new resource errors")
            raise
        probe.new_errors = state.error_count - probe.baseline
        if probe.new_errors > probe.allowed:
            self._log_debug(f"Step '{step}' saw {probe.new_errors} new resource errors (allowed: {probe.allowed})")

    async def wait_for_network_idle(self, concurrency: int, timeout: float) -> None:
        """Wait until at most `concurrency` requests are in flight for `idle_time` seconds.

        `timeout` is in milliseconds; expiry raises asyncio.TimeoutError.
        """
        loop = asyncio.get_running_loop()
        quiet_since = None

        def settled() -> bool:
            nonlocal quiet_since
            if self.in_flight > concurrency:
                quiet_since = None
                return False
            now = loop.time()
            if quiet_since is None:
                quiet_since = now
            return now - quiet_since >= self.options.idle_time

        await asyncio.wait_for(poll_until(settled, self.options.poll_interval), timeout / 1000)
