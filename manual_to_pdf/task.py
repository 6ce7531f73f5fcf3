"""Units of work handed between the orchestrator and the render pipeline."""

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass(frozen=True)
class PageTask:
    """A URL to render; `is_toc` marks the table-of-contents entry page."""

    url: str
    is_toc: bool = False

    @property
    def cache_key(self) -> str:
        return hashlib.md5(self.url.encode("utf-8")).hexdigest()

    def artifact_path(self, pdf_dir: Path) -> Path:
        """Location of this page's cached single-page PDF."""
        return Path(pdf_dir) / f"page_{self.cache_key}.pdf"


@dataclass
class PageResult:
    attempt_succeeded: bool
    child_urls: List[str] = field(default_factory=list)
