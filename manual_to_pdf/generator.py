"""
Top-level run: render the table of contents, then every chapter page, and
write the combined PDF.
"""

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional

from playwright.async_api import async_playwright

from .assembler import AssemblyResult, PdfAssembler
from .config import Options, timestamped_output_path
from .log import ColorLogMixin
from .monitor import ResourceErrorMonitor
from .orchestrator import RetryOrchestrator
from .pipeline import PageRenderPipeline
from .session import SessionManager
from .task import PageTask


class ManualPdfGenerator(ColorLogMixin):
    """Generates one PDF from a web-based user manual."""

    def __init__(self, options: Options, playwright_factory: Callable[[], Any] = async_playwright,
                 assembler: Optional[PdfAssembler] = None):
        self.options = options
        self.playwright_factory = playwright_factory
        self.assembler = assembler or PdfAssembler(options)
        self._temp_dirs: List[Path] = []

    def run(self, url: str) -> AssemblyResult:
        """Synchronous wrapper around `generate`."""
        return asyncio.run(self.generate(url))

    async def generate(self, url: str) -> AssemblyResult:
        """Render `url` (and, in ToC mode, every chapter it links to) into the output file.

        Temporary working directories are removed when the run ends, even
        when it fails.
        """
        output = timestamped_output_path(self.options.output, self.options.timestamp)
        try:
            user_dir = self._working_dir(self.options.user_dir, "userdir")
            pdf_dir = self._working_dir(self.options.pdf_dir, "pdfdir")
            document = self.assembler.create_document()
            await self._render_all(url, user_dir, pdf_dir, document)
            return self.assembler.finalize(document, output)
        finally:
            self._cleanup()

    async def _render_all(self, url: str, user_dir: Path, pdf_dir: Path, document: Any) -> None:
        async with self.playwright_factory() as playwright:
            monitor = ResourceErrorMonitor(self.options)
            sessions = SessionManager(playwright.chromium, user_dir, self.options, monitor)
            pipeline = PageRenderPipeline(self.options, monitor)
            orchestrator = RetryOrchestrator(self.options, sessions, pipeline, self.assembler, pdf_dir)
            try:
                if self.options.toc:
                    self._log_info(f"Generating the table of contents page {url}")
                    page_urls = await orchestrator.run([PageTask(url, is_toc=True)], document)
                    self._log_info(f"Number of page URLs in the table of contents: {len(page_urls)}")
                    if self.options.toc_limit > 0:
                        page_urls = page_urls[:self.options.toc_limit]
                else:
                    self._log_info("No table of contents, generating a single content page")
                    page_urls = [url]

                self._log_info(f"Number of page URLs to be processed: {len(page_urls)}")
                if page_urls:
                    await orchestrator.run([PageTask(page_url) for page_url in page_urls], document)
            finally:
                await orchestrator.close()

    def _working_dir(self, configured: Optional[Path], purpose: str) -> Path:
        if configured is not None:
            return Path(configured)
        path = Path(tempfile.mkdtemp(prefix=f"manual-to-pdf-{purpose}-"))
        self._temp_dirs.append(path)
        self._log_debug(f"Created temporary {purpose} directory: {path}")
        return path

    def _cleanup(self) -> None:
        for path in self._temp_dirs:
            shutil.rmtree(path, ignore_errors=True)
            self._log_debug(f"Cleaned up temporary directory: {path}")
        self._temp_dirs.clear()
