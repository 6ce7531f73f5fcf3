"""Exception hierarchy and the process exit codes attached to it."""

from typing import Optional

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_RETRIES_EXHAUSTED = 3
EXIT_CLEANUP_FAILED = 4
EXIT_ASSEMBLY = 5
EXIT_INTERRUPTED = 130


class ManualToPdfError(Exception):
    """Base class for all generator errors."""

    exit_code = EXIT_FAILURE


class ConfigurationError(ManualToPdfError):
    """Run options violate an invariant; nothing was rendered."""

    exit_code = EXIT_CONFIGURATION


class TransientRenderError(ManualToPdfError):
    """A gated pipeline step failed under the current leniency."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step


class ExhaustedRetriesError(ManualToPdfError):
    """The retry budget for a page was used up."""

    exit_code = EXIT_RETRIES_EXHAUSTED

    def __init__(self, url: str, attempts: int):
        super().__init__(f"failed to load page at {url} after {attempts} attempts")
        self.url = url
        self.attempts = attempts


class CleanupToolError(ManualToPdfError):
    """The ink coverage tool is missing, failed, or printed garbage."""

    exit_code = EXIT_CLEANUP_FAILED

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class AssemblyError(ManualToPdfError):
    """The combined document ended up without pages."""

    exit_code = EXIT_ASSEMBLY
