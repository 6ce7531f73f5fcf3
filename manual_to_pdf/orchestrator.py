"""
Retry loop around the render pipeline.

Every page is attempted until it renders cleanly or the retry budget runs
out. Between failed attempts the browser session is fully reset (rotating
to the next proxy), and once the whole proxy pool has failed the
orchestrator backs off for the configured wait time.

Note that `retries == 0` means unlimited retries.
"""

import asyncio
import itertools
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from tqdm import tqdm

from .assembler import PdfAssembler
from .config import Options
from .errors import ExhaustedRetriesError
from .log import ColorLogMixin
from .pipeline import PageRenderPipeline
from .session import Session, SessionManager
from .task import PageResult, PageTask


class RetryOrchestrator(ColorLogMixin):
    """Drives PageTasks through the pipeline and appends their artifacts in order."""

    def __init__(self, options: Options, sessions: SessionManager, pipeline: PageRenderPipeline,
                 assembler: PdfAssembler, pdf_dir: Path,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.options = options
        self.sessions = sessions
        self.pipeline = pipeline
        self.assembler = assembler
        self.pdf_dir = Path(pdf_dir)
        self.sleep = sleep
        self.session: Optional[Session] = None
        self.failure_count = 0
        self.loads_since_reset = 0

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt follows failed attempt number `attempt`."""
        return self.options.retries == 0 or attempt < self.options.retries

    async def run(self, tasks: Sequence[PageTask], document: Any) -> List[str]:
        """Render every task in order; returns the child URLs of the last rendered task.

        Raises:
            ExhaustedRetriesError: A task failed on its final allowed attempt.
        """
        child_urls: List[str] = []
        for position, task in enumerate(tqdm(tasks, desc="Rendering pages", unit="url", disable=len(tasks) < 2), 1):
            result = await self.process(task, document)
            if result.child_urls:
                child_urls = result.child_urls
            self._log_info(f"Progress: {position} of {len(tasks)} URLs")
        return child_urls

    async def process(self, task: PageTask, document: Any) -> PageResult:
        """Render a single task (or reuse its cached artifact) and append it to `document`."""
        artifact = task.artifact_path(self.pdf_dir)
        for attempt in itertools.count(1):
            if artifact.exists() and not task.is_toc and not self.options.force:
                self._log_debug(f"PDF already exists for {task.url}, re-using {artifact}")
                self.assembler.append(document, artifact)
                return PageResult(attempt_succeeded=True)

            self._log_info(f"Attempt #{attempt} for {task.url}")
            session = await self._ensure_session()
            result = await self.pipeline.render(session.page, task, artifact)
            if result.attempt_succeeded:
                self.failure_count = 0
                await self._recycle_session()
                self.assembler.append(document, artifact)
                self._log_success(f"Rendered {task.url}")
                return result

            artifact.unlink(missing_ok=True)
            if not self.should_retry(attempt):
                raise ExhaustedRetriesError(task.url, attempt)
            self.failure_count += 1
            await self._reset_session()
            if not self.options.proxies or self.failure_count >= len(self.options.proxies):
                # the whole proxy pool failed on this page (or there is none)
                self.failure_count = 0
                if self.options.wait_time > 0:
                    self._log_info(f"Too many errors, waiting for {self.options.wait_time}s")
                    await self.sleep(self.options.wait_time)
            self._log_debug(f"Will retry {task.url}")

    async def close(self) -> None:
        """Tear down the live session, if any."""
        if self.session is not None:
            await self._reset_session()

    async def _ensure_session(self) -> Session:
        if self.session is None:
            self.session = await self.sessions.new_session(start_new=True)
        return self.session

    async def _reset_session(self) -> None:
        session, self.session = self.session, None
        self.loads_since_reset = 0
        await self.sessions.reset(session)

    async def _recycle_session(self) -> None:
        self.loads_since_reset += 1
        threshold = self.options.new_browser_per_urls
        if threshold > 0 and self.loads_since_reset >= threshold:
            self._log_debug(f"{self.loads_since_reset} pages loaded on this browser, starting a new one")
            await self._reset_session()
        else:
            self.session = await self.sessions.new_session(start_new=False, previous=self.session)
