"""
Tests for option defaults, layering (CLI > environment > defaults),
validation, and the small formatting helpers in manual_to_pdf.config.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from manual_to_pdf.config import (
    HTTP_RETRY_STATUS_CODES,
    MAX_LENIENCY,
    Config,
    Options,
    formatted_timestamp,
    parse_browser_arg_options,
    margin_to_cm,
    parse_margins,
    pdf_margins,
    timestamped_output_path,
)
from manual_to_pdf.errors import EXIT_CONFIGURATION, ConfigurationError


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def test_default_status_set_excludes_auth_and_not_found() -> None:
    assert 429 in HTTP_RETRY_STATUS_CODES
    assert 503 in HTTP_RETRY_STATUS_CODES
    for code in (401, 404, 407, 200, 302):
        assert code not in HTTP_RETRY_STATUS_CODES


def test_default_options() -> None:
    options = Options()
    assert options.retries == 0
    assert options.leniency == 0
    assert options.max_resource_errors == 0
    assert options.pdf_page_size == "A4"
    assert options.http_error_domain_suffixes == (".volvocars.com",)
    assert options.new_browser_per_urls == 100
    assert options.toc is True


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("leniency", [-1, MAX_LENIENCY + 1])
def test_leniency_outside_range_is_rejected(leniency: int) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        Options(leniency=leniency)
    assert excinfo.value.exit_code == EXIT_CONFIGURATION


def test_leniency_bounds_are_accepted() -> None:
    assert Options(leniency=0).leniency == 0
    assert Options(leniency=MAX_LENIENCY).leniency == MAX_LENIENCY


@pytest.mark.parametrize("overrides", [
    {"timeout": 0},
    {"pdf_timeout": -5},
    {"retries": -1},
    {"wait_time": -0.5},
    {"max_resource_errors": -1},
    {"max_scrolls": 0},
    {"pdf_page_size": "B5"},
    {"page_margins": "1in 2in 3in"},
    {"page_margins": "5in"},
    {"error_url_exceptions": ("([unclosed",)},
    {"output": Path("")},
])
def test_invalid_options_raise_configuration_error(overrides: dict) -> None:
    with pytest.raises(ConfigurationError):
        Options(**overrides)


def test_missing_user_dir_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="user_dir"):
        Options(user_dir=tmp_path / "missing")
    assert Options(user_dir=tmp_path).user_dir == tmp_path


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------

def test_cli_value_wins_over_environment() -> None:
    config = Config({"retries": 7}, environ={"MANUAL_TO_PDF_RETRIES": "3"})
    assert config.get("retries") == 7


def test_environment_value_used_when_cli_unset() -> None:
    config = Config({"retries": None}, environ={"MANUAL_TO_PDF_RETRIES": "3",
                                                 "MANUAL_TO_PDF_PROXIES": "http://a:1, http://b:2",
                                                 "MANUAL_TO_PDF_CLEANUP": "yes"})
    options = config.build_options()
    assert options.retries == 3
    assert options.proxies == ("http://a:1", "http://b:2")
    assert options.cleanup is True


def test_unset_everywhere_falls_back_to_defaults() -> None:
    options = Config({}, environ={}).build_options()
    assert options == Options(timestamp=options.timestamp)


def test_invalid_environment_value_is_a_configuration_error() -> None:
    config = Config({}, environ={"MANUAL_TO_PDF_TIMEOUT": "soon"})
    with pytest.raises(ConfigurationError, match="MANUAL_TO_PDF_TIMEOUT"):
        config.get("timeout")


def test_unknown_key_raises_key_error() -> None:
    with pytest.raises(KeyError):
        Config({}, environ={}).get("colour")


def test_build_options_normalizes_cli_lists() -> None:
    options = Config({
        "proxies": ["http://a:1"],
        "resource_http_errors": [503, 429],
        "page_http_errors": [],
        "output": "out/manual.pdf",
    }, environ={}).build_options()

    assert options.proxies == ("http://a:1",)
    assert options.resource_http_errors == frozenset({503, 429})
    assert options.page_http_errors == HTTP_RETRY_STATUS_CODES
    assert options.output == Path("out/manual.pdf")


def test_directories_from_cli_and_environment(tmp_path: Path) -> None:
    options = Config({"pdf_dir": str(tmp_path)}, environ={"MANUAL_TO_PDF_USER_DIR": str(tmp_path)}).build_options()
    assert options.pdf_dir == tmp_path
    assert options.user_dir == tmp_path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_margins_css_shorthand() -> None:
    assert parse_margins("1in") == pytest.approx({"top": 2.54, "right": 2.54, "bottom": 2.54, "left": 2.54})
    assert parse_margins("1cm 2cm") == pytest.approx({"top": 1.0, "right": 2.0, "bottom": 1.0, "left": 2.0})
    assert parse_margins("1 2mm 72pt 96px") == pytest.approx({"top": 2.54, "right": 0.2, "bottom": 2.54, "left": 2.54})


@pytest.mark.parametrize("page_margins", ["", "1in 2in 3in", "-1cm", "3.1in", "2 furlongs"])
def test_invalid_margins(page_margins: str) -> None:
    with pytest.raises(ValueError):
        parse_margins(page_margins)


def test_margin_range_is_inclusive() -> None:
    assert margin_to_cm("0") == 0
    assert margin_to_cm("3in") == pytest.approx(7.62)


def test_pdf_margins_are_in_centimeters() -> None:
    margins = pdf_margins("10mm 1in")
    assert margins["top"] == "1.0cm"
    assert margins["left"] == "2.54cm"


def test_formatted_timestamp_is_utc() -> None:
    moment = datetime(2024, 3, 9, 17, 5, 1, tzinfo=timezone.utc)
    assert formatted_timestamp(moment) == "2024-03-09 17:05:01"


def test_timestamped_output_path_is_filesystem_safe() -> None:
    path = timestamped_output_path(Path("out/manual.pdf"), "2024-03-09 17:05:01")
    assert path == Path("out/manual_2024-03-09_17-05-01.pdf")


def test_browser_arg_options() -> None:
    assert parse_browser_arg_options("--", ["disable-gpu", "lang,en-US"]) == ["--disable-gpu", "--lang=en-US"]
    assert parse_browser_arg_options("-", ["v,1"]) == ["-v=1"]
