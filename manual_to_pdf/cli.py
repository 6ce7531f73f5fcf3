"""
Command line interface: parse arguments, build the run options, and map
failures onto distinct exit codes.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from colorama import Fore, Style

from .config import PAGE_SIZES, Config, parse_browser_arg_options
from .dependencies import check_dependencies, install_browsers
from .errors import (
    EXIT_CLEANUP_FAILED,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    ManualToPdfError,
)
from .generator import ManualPdfGenerator
from .log import LOG_LEVELS, set_log_level


def _comma_list(value: str) -> List[str]:
    return [x for x in value.split(",") if x]


def _comma_int_list(value: str) -> List[int]:
    try:
        return [int(x) for x in _comma_list(value)]
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a comma-separated list of numbers")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manual-to-pdf",
        description="Render a web-based, paginated user manual into a single PDF")
    parser.add_argument("url", help="URL of the manual's table-of-contents page")
    parser.add_argument("-o", "--output", default=None, help="Path of the PDF file to write (default: manual.pdf, a timestamp is appended)")
    parser.add_argument("-u", "--url-domain-suffix", type=_comma_list, default=None, help="Comma-separated domain suffixes a ToC link must match to be rendered (default: .volvocars.com)")
    parser.add_argument("-p", "--proxy", action="append", default=None, help="Proxy URL for the browser; repeat to build a round-robin pool")
    parser.add_argument("-a", "--user-agent", default=None, help="User agent string (default: the browser's own, with a generalized version)")
    parser.add_argument("--browser-long-option", action="append", default=[], metavar="NAME[,VALUE]", help="Long browser command line option, without the '--' prefix")
    parser.add_argument("--browser-short-option", action="append", default=[], metavar="NAME[,VALUE]", help="Short browser command line option, without the '-' prefix")
    parser.add_argument("-t", "--timeout", type=int, default=None, help="Network timeout in milliseconds (default: 60000)")
    parser.add_argument("--pdf-timeout", type=int, default=None, help="PDF capture timeout in milliseconds (default: 60000)")
    parser.add_argument("-n", "--no-toc", action="store_true", help="Render the URL as a single content page instead of a table of contents")
    parser.add_argument("--toc-limit", type=int, default=None, help="Number of ToC links to render (default: 0, no limit)")
    parser.add_argument("--no-headless", action="store_true", help="Show the browser window")
    parser.add_argument("-i", "--insecure", action="store_true", help="Ignore TLS errors")
    parser.add_argument("-l", "--links", action="store_true", help="Keep the 'Related documents' and 'More in this topic' sections")
    parser.add_argument("-r", "--retries", type=int, default=None, help="Attempts per page; 0 means retry forever (default: 0)")
    parser.add_argument("-e", "--http-errors", type=_comma_int_list, default=None, help="Comma-separated HTTP status codes that count as resource errors (default: 4xx except 401/404/407, and 5xx)")
    parser.add_argument("--page-http-errors", type=_comma_int_list, default=None, help="Comma-separated HTTP status codes that fail the page itself (default: same as --http-errors)")
    parser.add_argument("-m", "--http-error-domain-suffixes", type=_comma_list, default=None, help="Comma-separated domain suffixes to watch for resource errors (default: .volvocars.com)")
    parser.add_argument("-x", "--error-url-exception", action="append", default=None, help="Regular expression for resource URLs whose errors are ignored; repeatable")
    parser.add_argument("--error-text", action="append", default=None, help="Text that marks a served page as an error page; repeatable")
    parser.add_argument("--max-resource-errors", type=int, default=None, help="Resource errors tolerated per step (default: 0)")
    parser.add_argument("-d", "--user-dir", default=None, help="Existing directory for the browser profile (default: temporary)")
    parser.add_argument("-f", "--pdf-dir", default=None, help="Existing directory for per-page PDFs, allows resuming a run (default: temporary)")
    parser.add_argument("--force", action="store_true", help="Render pages even if a cached PDF exists")
    parser.add_argument("-w", "--wait-time", type=float, default=None, help="Seconds to wait after every proxy failed on a page (default: 0)")
    parser.add_argument("--timestamp", default=None, help="Timestamp used in the file name and on the ToC page (default: now, UTC)")
    parser.add_argument("-c", "--leniency", action="count", default=None, help="Tolerate more server errors; repeat up to 11 times")
    parser.add_argument("-b", "--new-browser-per-urls", type=int, default=None, help="Start a new browser after this many pages (default: 100, 0 disables)")
    parser.add_argument("--pdf-page-size", choices=PAGE_SIZES, default=None, help="PDF page size (default: A4)")
    parser.add_argument("--margins", default=None, help="Page margins in CSS format, 1, 2 or 4 values. Units: in, cm, mm, pt, px (default: 0.4in)")
    parser.add_argument("--no-background", action="store_true", help="Do not print background graphics")
    parser.add_argument("--header-footer", action="store_true", help="Print the browser's default header and footer")
    parser.add_argument("--idle-concurrency", type=int, default=None, help=argparse.SUPPRESS)
    parser.add_argument("--cleanup", action="store_true", help="Remove near-empty pages using Ghostscript's ink coverage")
    parser.add_argument("--cleanup-sensitivity", type=float, default=None, help="Summed ink coverage below which a page is removed (default: 0.008)")
    parser.add_argument("--log-level", choices=list(LOG_LEVELS), default="info", help="Log level (default: info)")
    parser.add_argument("--debug", action="store_true", help="Shorthand for --log-level debug")
    parser.add_argument("--install-browser", action="store_true", help="Install Playwright's Chromium before running")
    return parser


def cli_config_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed arguments into the `Config` CLI layer (None means unset)."""
    browser_args = (parse_browser_arg_options("--", args.browser_long_option)
                    + parse_browser_arg_options("-", args.browser_short_option))
    return {
        "output": args.output,
        "url_domain_suffixes": args.url_domain_suffix,
        "proxies": args.proxy,
        "user_agent": args.user_agent,
        "browser_args": browser_args or None,
        "timeout": args.timeout,
        "pdf_timeout": args.pdf_timeout,
        "toc": False if args.no_toc else None,
        "toc_limit": args.toc_limit,
        "headless": False if args.no_headless else None,
        "insecure": True if args.insecure else None,
        "links": True if args.links else None,
        "retries": args.retries,
        "resource_http_errors": args.http_errors,
        "page_http_errors": args.page_http_errors if args.page_http_errors is not None else args.http_errors,
        "http_error_domain_suffixes": args.http_error_domain_suffixes,
        "error_url_exceptions": args.error_url_exception,
        "error_texts": args.error_text,
        "max_resource_errors": args.max_resource_errors,
        "user_dir": args.user_dir,
        "pdf_dir": args.pdf_dir,
        "force": True if args.force else None,
        "wait_time": args.wait_time,
        "timestamp": args.timestamp,
        "leniency": args.leniency,
        "new_browser_per_urls": args.new_browser_per_urls,
        "pdf_page_size": args.pdf_page_size,
        "page_margins": args.margins,
        "print_background": False if args.no_background else None,
        "display_header_footer": True if args.header_footer else None,
        "idle_concurrency": args.idle_concurrency,
        "cleanup": True if args.cleanup else None,
        "cleanup_sensitivity": args.cleanup_sensitivity,
    }


def run(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    set_log_level("debug" if args.debug else args.log_level)

    if args.install_browser and not install_browsers():
        return EXIT_FAILURE
    if not check_dependencies(check_optional=args.cleanup):
        return EXIT_FAILURE

    try:
        options = Config(cli_config_from_args(args)).build_options()
        result = ManualPdfGenerator(options).run(args.url)
    except KeyboardInterrupt:
        print(f"{Fore.YELLOW}[WARNING]{Style.RESET_ALL} Interrupted")
        return EXIT_INTERRUPTED
    except ManualToPdfError as e:
        print(f"{Fore.RED}[ERROR]{Style.RESET_ALL} {e}")
        return e.exit_code

    print(f"{Fore.GREEN}[OK]{Style.RESET_ALL} Wrote {result.page_count} pages to {result.output}")
    return EXIT_CLEANUP_FAILED if result.cleanup_failed else EXIT_OK


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
