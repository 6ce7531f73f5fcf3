"""
Combined document assembly and the optional removal of near-empty pages.

Near-empty pages are found with Ghostscript's `inkcov` device, which prints
one line of four channel coverage values (C M Y K) per page.
"""

import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Sequence

from pypdf import PdfReader, PdfWriter

from .config import Options
from .errors import AssemblyError, CleanupToolError
from .log import ColorLogMixin

INK_COVERAGE_LINE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)\b")


def parse_ink_coverage(output: str) -> List[float]:
    """Return the summed coverage of each page in Ghostscript inkcov output.

    Lines that do not start with four numbers (banners, warnings) are skipped.
    """
    sums = []
    for line in output.splitlines():
        match = INK_COVERAGE_LINE.match(line)
        if match:
            sums.append(sum(float(value) for value in match.groups()))
    return sums


@dataclass
class AssemblyResult:
    output: Path
    page_count: int
    removed_pages: List[int] = field(default_factory=list)
    cleanup_failed: bool = False


class PdfAssembler(ColorLogMixin):
    """Appends page artifacts to the combined document and finalizes it."""

    def __init__(self, options: Options, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
                 gs_binary: str = "gs"):
        self.options = options
        self.runner = runner
        self.gs_binary = gs_binary

    @staticmethod
    def create_document() -> PdfWriter:
        return PdfWriter()

    def append(self, document: PdfWriter, artifact: Path) -> int:
        """Copy every page of `artifact` onto the end of `document`; returns the page count added."""
        self._log_debug(f"Appending {artifact}")
        reader = PdfReader(str(artifact))
        for page in reader.pages:
            document.add_page(page)
        return len(reader.pages)

    def save(self, document: PdfWriter, output: Path) -> None:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "wb") as f:
            document.write(f)

    def ink_coverage(self, pdf_path: Path) -> List[float]:
        """Run the ink coverage tool on `pdf_path`.

        Raises:
            CleanupToolError: The tool is missing, exited non-zero, or printed no coverage lines.
        """
        cmd = [self.gs_binary, "-q", "-o", "-", "-sDEVICE=inkcov", str(pdf_path)]
        self._log_debug(f"Running {' '.join(cmd)}")
        try:
            result = self.runner(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise CleanupToolError(f"ink coverage tool '{self.gs_binary}' not found") from e
        if result.returncode != 0:
            raise CleanupToolError(f"ink coverage tool failed: {result.stderr.strip()}", result.returncode)
        sums = parse_ink_coverage(result.stdout)
        if not sums:
            raise CleanupToolError("ink coverage tool printed no coverage lines")
        return sums

    def remove_empty_pages(self, document: PdfWriter, coverages: Sequence[float]) -> List[int]:
        """Drop pages whose summed coverage is below the sensitivity; returns original indices removed."""
        if len(coverages) != len(document.pages):
            raise CleanupToolError(
                f"ink coverage reported {len(coverages)} pages, the document has {len(document.pages)}")
        removed: List[int] = []
        for index, coverage in enumerate(coverages):
            if coverage < self.options.cleanup_sensitivity:
                # earlier removals shift the remaining pages down
                del document.pages[index - len(removed)]
                removed.append(index)
                self._log_debug(f"Removed page {index + 1} (ink coverage {coverage:.5f})")
        return removed

    def finalize(self, document: PdfWriter, output: Path) -> AssemblyResult:
        """Save the combined document and, if enabled, prune near-empty pages.

        A failing cleanup tool leaves the saved document untouched and is
        reported through `cleanup_failed`.

        Raises:
            AssemblyError: The document has no pages (before or after cleanup).
        """
        if len(document.pages) == 0:
            raise AssemblyError("no pages were generated, not writing an output file")
        self.save(document, output)
        result = AssemblyResult(output=output, page_count=len(document.pages))
        self._log_info(f"Saved {result.page_count} pages to {output}")
        if not self.options.cleanup:
            return result

        try:
            coverages = self.ink_coverage(output)
            result.removed_pages = self.remove_empty_pages(document, coverages)
        except CleanupToolError as e:
            self._log_error(f"Empty page cleanup skipped: {e}")
            result.cleanup_failed = True
            return result

        if len(document.pages) == 0:
            output.unlink(missing_ok=True)
            raise AssemblyError("every page was below the ink coverage threshold, no output file written")
        if result.removed_pages:
            self.save(document, output)
            result.page_count = len(document.pages)
            self._log_info(f"Removed {len(result.removed_pages)} near-empty pages, {result.page_count} pages left")
        return result
