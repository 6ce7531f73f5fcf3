"""
Checks for the Python packages and external tools the generator needs.
"""

import importlib
import shutil
import subprocess
import sys

from colorama import Fore, Style

REQUIRED_MODULES = {
    "playwright": "pip install playwright && playwright install chromium",
    "pypdf": "pip install pypdf",
    "colorama": "pip install colorama",
    "tqdm": "pip install tqdm",
}


def _ok(message: str) -> None:
    print(f"{Fore.GREEN}✓{Style.RESET_ALL} {message}")


def _missing(message: str) -> None:
    print(f"{Fore.RED}✗{Style.RESET_ALL} {message}")


def check_command(name: str) -> bool:
    """Check if an executable is available on PATH."""
    return shutil.which(name) is not None


def check_dependencies(check_optional: bool = False) -> bool:
    """Print a check list of dependencies and return True if all required ones are present.

    Args:
        check_optional: Also require Ghostscript, used for empty page cleanup.
    """
    ready = True

    if sys.version_info < (3, 10):
        _missing("Python 3.10 or higher is required")
        ready = False

    for module, hint in REQUIRED_MODULES.items():
        try:
            importlib.import_module(module)
        except ImportError:
            _missing(f"Error: {module} is required but not found. Run: {hint}")
            ready = False
        else:
            _ok(f"{module} is available")

    if check_optional:
        if check_command("gs"):
            _ok("Ghostscript is available")
        else:
            _missing("Error: Ghostscript (gs) is required for --cleanup but not found. "
                     "Please install it from https://www.ghostscript.com/")
            ready = False

    return ready


def install_browsers() -> bool:
    """Install the Chromium build Playwright drives."""
    print("Installing Playwright Chromium...")
    try:
        subprocess.run([sys.executable, "-m", "playwright", "install", "chromium"],
                       check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        _missing(f"Failed to install Playwright Chromium: {e.stderr}")
        return False
    _ok("Playwright Chromium installed successfully")
    return True
