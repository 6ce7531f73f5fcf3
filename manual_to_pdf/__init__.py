"""
Web manual to PDF generator.

Drives a Chromium browser (through Playwright) over every page of a web
based user manual, renders each page to PDF, and merges them into one file.
"""

from .config import Config, Options
from .errors import (
    AssemblyError,
    CleanupToolError,
    ConfigurationError,
    ExhaustedRetriesError,
    ManualToPdfError,
    TransientRenderError,
)
from .generator import ManualPdfGenerator

__version__ = "1.0.0"

__all__ = [
    "AssemblyError",
    "CleanupToolError",
    "Config",
    "ConfigurationError",
    "ExhaustedRetriesError",
    "ManualPdfGenerator",
    "ManualToPdfError",
    "Options",
    "TransientRenderError",
]
