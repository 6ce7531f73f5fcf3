"""
Colored console logging shared by every component of the generator.
"""

import threading
from typing import Dict

from colorama import init, Fore, Style

# Initialize colorama for cross-platform colored output
init(autoreset=True)

LOG_LEVELS: Dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
}

_lock = threading.Lock()
_state = {"level": LOG_LEVELS["info"]}


def set_log_level(level: str) -> None:
    """Set the global log level by name (debug, info, warning, error)."""
    name = level.lower()
    if name not in LOG_LEVELS:
        available = ", ".join(LOG_LEVELS)
        raise ValueError(f"Invalid log level '{level}'. Available levels: {available}")
    _state["level"] = LOG_LEVELS[name]


def _emit(threshold: int, tag: str, message: str) -> None:
    if _state["level"] > threshold:
        return
    with _lock:
        print(f"{tag}{Style.RESET_ALL} {message}")


class ColorLogMixin:
    """Adds the colored `_log_*` helpers to a class."""

    def _log_debug(self, message: str) -> None:
        """Log debug message with color (only if debug level is enabled)."""
        _emit(LOG_LEVELS["debug"], f"{Fore.CYAN}[DEBUG]", message)

    def _log_info(self, message: str) -> None:
        """Log info message with color."""
        _emit(LOG_LEVELS["info"], f"{Fore.GREEN}[INFO]", message)

    def _log_warning(self, message: str) -> None:
        """Log warning message with color."""
        _emit(LOG_LEVELS["warning"], f"{Fore.YELLOW}[WARNING]", message)

    def _log_error(self, message: str) -> None:
        """Log error message with color."""
        _emit(LOG_LEVELS["error"], f"{Fore.RED}[ERROR]", message)

    def _log_success(self, message: str) -> None:
        """Log success message with color."""
        _emit(LOG_LEVELS["info"], f"{Fore.GREEN}[OK]", message)
