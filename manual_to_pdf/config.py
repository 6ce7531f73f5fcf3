"""
Run configuration: defaults, environment overrides, CLI overrides, and the
immutable `Options` object the rest of the generator reads.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .errors import ConfigurationError

MAX_LENIENCY = 11

# 4xx codes that usually mean throttling or a CDN hiccup; 401/404/407 are
# not worth retrying
HTTP_4XX_RETRY_STATUS_CODES = tuple(code for code in range(400, 500) if code not in (401, 404, 407))
HTTP_5XX_RETRY_STATUS_CODES = tuple(range(500, 600))
HTTP_RETRY_STATUS_CODES = frozenset(HTTP_4XX_RETRY_STATUS_CODES + HTTP_5XX_RETRY_STATUS_CODES)

# page formats accepted by Playwright's page.pdf()
PAGE_SIZES = ("Letter", "Legal", "Tabloid", "Ledger", "A0", "A1", "A2", "A3", "A4", "A5", "A6")

DEFAULT_ERROR_TEXTS = (
    "access denied",
    "the request could not be satisfied",
    "too many requests",
)

MARGIN_PATTERN = re.compile(r'^(-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*(cm|in|mm|pt|px)?$')
MARGIN_UNITS_CM = {"in": 2.54, "cm": 1.0, "mm": 0.1, "pt": 2.54 / 72, "px": 2.54 / 96}
MARGIN_SIDES = ("top", "right", "bottom", "left")
MAX_MARGIN_CM = 3 * 2.54


def formatted_timestamp(now: Optional[datetime] = None) -> str:
    """Return the current UTC time as 'YYYY-MM-DD HH:MM:SS'."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def timestamped_output_path(output: Path, timestamp: str) -> Path:
    """Append a filesystem-safe form of `timestamp` to the output file name."""
    safe = re.sub(r"[ /\\]+", "_", timestamp.replace(":", "-"))
    return output.with_name(f"{output.stem}_{safe}{output.suffix}")


def parse_browser_arg_options(prefix: str, opts: Sequence[str]) -> List[str]:
    """Turn 'name' / 'name,value' specs into '<prefix>name' / '<prefix>name=value' arguments."""
    parsed = []
    for opt in opts:
        name, sep, value = opt.partition(",")
        parsed.append(f"{prefix}{name}={value}" if sep else f"{prefix}{name}")
    return parsed


def margin_to_cm(margin: str) -> float:
    """Parse one CSS length (inches when no unit is given) into centimeters.

    Raises:
        ValueError: Unknown format, or outside the 0 to 3 inch range.
    """
    match = MARGIN_PATTERN.match(margin.strip())
    if not match:
        raise ValueError(f"Invalid margin format: '{margin}'. Use format like '1in', '2.5cm', '10mm', etc.")
    value, unit = match.groups()
    cm = float(value) * MARGIN_UNITS_CM[unit or "in"]
    if not 0 <= cm <= MAX_MARGIN_CM:
        raise ValueError(f"Margin out of range: '{margin}'. Use 0 to 3 inches (7.62cm).")
    return cm


def parse_margins(page_margins: str) -> Dict[str, float]:
    """Expand a CSS margin shorthand (1, 2 or 4 values) into per-side centimeters."""
    parts = [margin_to_cm(part) for part in page_margins.split()]
    if len(parts) in (1, 2):
        parts = parts * (4 // len(parts))
    elif len(parts) != 4:
        raise ValueError(f"Invalid margin format: '{page_margins}'. Use 1, 2, or 4 values.")
    return dict(zip(MARGIN_SIDES, parts))


def pdf_margins(page_margins: str) -> Dict[str, str]:
    """Margins in the form page.pdf() expects (Playwright has no 'pt' unit)."""
    return {side: f"{round(cm, 4)}cm" for side, cm in parse_margins(page_margins).items()}


@dataclass(frozen=True)
class Options:
    """Immutable run configuration. Times are in milliseconds unless noted."""

    timeout: int = 60000
    pdf_timeout: int = 60000
    retries: int = 0
    wait_time: float = 0  # seconds
    leniency: int = 0
    max_resource_errors: int = 0
    idle_concurrency: int = 2
    idle_time: float = 0.5  # seconds
    poll_interval: float = 0.1  # seconds
    max_scrolls: int = 50
    proxies: Tuple[str, ...] = ()
    user_agent: Optional[str] = None
    page_http_errors: FrozenSet[int] = HTTP_RETRY_STATUS_CODES
    resource_http_errors: FrozenSet[int] = HTTP_RETRY_STATUS_CODES
    http_error_domain_suffixes: Tuple[str, ...] = (".volvocars.com",)
    url_domain_suffixes: Tuple[str, ...] = (".volvocars.com",)
    error_url_exceptions: Tuple[str, ...] = ()
    error_texts: Tuple[str, ...] = DEFAULT_ERROR_TEXTS
    pdf_page_size: str = "A4"
    page_margins: str = "0.4in"
    print_background: bool = True
    display_header_footer: bool = False
    browser_args: Tuple[str, ...] = ()
    headless: bool = True
    insecure: bool = False
    new_browser_per_urls: int = 100
    force: bool = False
    links: bool = False
    toc: bool = True
    toc_limit: int = 0
    timestamp: str = field(default_factory=formatted_timestamp)
    cleanup: bool = False
    cleanup_sensitivity: float = 0.008
    output: Path = Path("manual.pdf")
    user_dir: Optional[Path] = None
    pdf_dir: Optional[Path] = None

    def __post_init__(self):
        validate_options(self)


def validate_options(options: Options) -> None:
    """Raise ConfigurationError if any option is out of range."""
    if not str(options.output).strip() or options.output.name in ("", "."):
        raise ConfigurationError("output path must not be empty")
    if not 0 <= options.leniency <= MAX_LENIENCY:
        raise ConfigurationError(f"leniency must be between 0 and {MAX_LENIENCY}, got {options.leniency}")
    for name in ("timeout", "pdf_timeout"):
        if getattr(options, name) <= 0:
            raise ConfigurationError(f"{name} must be positive")
    for name in ("retries", "wait_time", "max_resource_errors", "idle_concurrency",
                 "new_browser_per_urls", "toc_limit", "cleanup_sensitivity", "idle_time"):
        if getattr(options, name) < 0:
            raise ConfigurationError(f"{name} must not be negative")
    if options.max_scrolls < 1:
        raise ConfigurationError("max_scrolls must be at least 1")
    if options.pdf_page_size not in PAGE_SIZES:
        raise ConfigurationError(f"unknown page size '{options.pdf_page_size}', choose one of {', '.join(PAGE_SIZES)}")
    try:
        parse_margins(options.page_margins)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    for pattern in options.error_url_exceptions:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"invalid URL exception pattern '{pattern}': {e}") from e
    for name in ("user_dir", "pdf_dir"):
        path = getattr(options, name)
        if path is not None and not Path(path).is_dir():
            raise ConfigurationError(f"the path given for {name} does not exist: {path}")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in value.split(",") if x.strip())


def _parse_int_set(value: str) -> FrozenSet[int]:
    try:
        return frozenset(int(x) for x in _parse_list(value))
    except ValueError as e:
        raise ConfigurationError(f"'{value}' is not a comma-separated list of numbers") from e


class Config:
    """Layered option lookup: CLI values, then environment, then defaults.

    Environment variables are the upper-cased option name prefixed with
    `MANUAL_TO_PDF_`, e.g. `MANUAL_TO_PDF_PDF_DIR` or `MANUAL_TO_PDF_PROXIES`
    (lists are comma separated).
    """

    ENV_PREFIX = "MANUAL_TO_PDF_"

    CONVERTERS = {
        "timeout": int,
        "pdf_timeout": int,
        "retries": int,
        "wait_time": float,
        "leniency": int,
        "max_resource_errors": int,
        "idle_concurrency": int,
        "idle_time": float,
        "max_scrolls": int,
        "proxies": _parse_list,
        "user_agent": str,
        "page_http_errors": _parse_int_set,
        "resource_http_errors": _parse_int_set,
        "http_error_domain_suffixes": _parse_list,
        "url_domain_suffixes": _parse_list,
        "error_url_exceptions": _parse_list,
        "error_texts": _parse_list,
        "pdf_page_size": str,
        "page_margins": str,
        "print_background": _parse_bool,
        "display_header_footer": _parse_bool,
        "browser_args": _parse_list,
        "headless": _parse_bool,
        "insecure": _parse_bool,
        "new_browser_per_urls": int,
        "force": _parse_bool,
        "links": _parse_bool,
        "toc": _parse_bool,
        "toc_limit": int,
        "timestamp": str,
        "cleanup": _parse_bool,
        "cleanup_sensitivity": float,
        "output": Path,
        "user_dir": Path,
        "pdf_dir": Path,
    }

    def __init__(self, cli_config: Optional[Dict[str, Any]] = None, environ: Optional[Mapping[str, str]] = None):
        self.cli_config = {k: v for k, v in (cli_config or {}).items() if v is not None}
        self.environ = os.environ if environ is None else environ

    def get(self, key: str) -> Any:
        """Return the configured value for `key`, or None to use the default."""
        if key not in self.CONVERTERS:
            raise KeyError(key)
        if key in self.cli_config:
            return self.cli_config[key]
        raw = self.environ.get(f"{self.ENV_PREFIX}{key.upper()}")
        if raw is None or raw == "":
            return None
        try:
            return self.CONVERTERS[key](raw)
        except ValueError as e:
            raise ConfigurationError(f"invalid value for {self.ENV_PREFIX}{key.upper()}: {raw!r}") from e

    def build_options(self) -> Options:
        """Resolve every option and return the validated, immutable result."""
        values = {}
        for key in self.CONVERTERS:
            value = self.get(key)
            if value is None:
                continue
            if key in ("page_http_errors", "resource_http_errors"):
                value = frozenset(value)
            elif key in ("output", "user_dir", "pdf_dir"):
                value = Path(value)
            elif isinstance(value, list):
                value = tuple(value)
            values[key] = value
        for key in ("page_http_errors", "resource_http_errors"):
            if key in values and not values[key]:
                values[key] = HTTP_RETRY_STATUS_CODES
        return Options(**values)
