"""
Browser session lifecycle: launch, tab recycling, and full resets that wipe
the on-disk profile so nothing carries over between attempts.
"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config import Options
from .log import ColorLogMixin
from .monitor import ResourceErrorMonitor
from .polling import poll_until
from .proxy import next_proxy

# give in-flight requests ~5s to drain before the browser is closed
PENDING_POLL_ATTEMPTS = 50


def generalize_user_agent(user_agent: str) -> str:
    """Drop the headless marker and the minor version parts of Chrome's version."""
    user_agent = user_agent.replace("HeadlessChrome/", "Chrome/")
    return re.sub(r"Chrome/(\d+)(?:\.\d+)+", r"Chrome/\1.0.0.0", user_agent)


@dataclass
class Session:
    """One browser instance (persistent context) and its active tab."""

    context: Any
    page: Any
    proxy_index: int
    proxy: Optional[str]
    user_agent: str


class SessionManager(ColorLogMixin):
    """Creates, recycles, and resets the single live browser session."""

    def __init__(self, browser_type: Any, user_dir: Path, options: Options, monitor: ResourceErrorMonitor):
        """
        Args:
            browser_type: Playwright BrowserType used to launch instances (e.g. `playwright.chromium`).
            user_dir: Browser profile directory, wiped on every reset.
            options: Run options.
            monitor: Monitor attached to every new tab.
        """
        self.browser_type = browser_type
        self.user_dir = Path(user_dir)
        self.options = options
        self.monitor = monitor
        self.proxy_index = 0
        self.reset_count = 0
        self._derived_user_agent: Optional[str] = None

    async def new_session(self, start_new: bool, previous: Optional[Session] = None) -> Session:
        """Launch a fresh browser, or open a new tab on the previous session's browser."""
        if start_new or previous is None:
            context, proxy = await self._launch()
            page = context.pages[0] if context.pages else await context.new_page()
        else:
            context, proxy = previous.context, previous.proxy
            try:
                self._log_debug("Closing previous tab")
                await previous.page.close()
            except Exception as e:
                self._log_error(f"Error while closing tab: {e}")
            page = await context.new_page()

        user_agent = await self._apply_user_agent(context, page)
        self.monitor.subscribe(page)
        return Session(context=context, page=page, proxy_index=self.proxy_index, proxy=proxy, user_agent=user_agent)

    async def _launch(self):
        launch_opts = {
            "headless": self.options.headless,
            "args": list(self.options.browser_args),
            "ignore_https_errors": self.options.insecure,
            "no_viewport": True,
        }
        proxy = None
        picked = next_proxy(self.proxy_index, self.options.proxies)
        if picked is not None:
            proxy, self.proxy_index = picked
            launch_opts["proxy"] = {"server": proxy}
        self._log_info(f"Launching new browser instance{f' via proxy {proxy}' if proxy else ''}")
        self._log_debug(f"Launch options: {launch_opts}")
        context = await self.browser_type.launch_persistent_context(str(self.user_dir), **launch_opts)
        return context, proxy

    async def _apply_user_agent(self, context: Any, page: Any) -> str:
        user_agent = self.options.user_agent
        if not user_agent:
            if self._derived_user_agent is None:
                native = await page.evaluate("() => navigator.userAgent")
                self._derived_user_agent = generalize_user_agent(native)
                self._log_debug(f"Browser user agent {native!r} generalized to {self._derived_user_agent!r}")
            user_agent = self._derived_user_agent
        cdp = await context.new_cdp_session(page)
        await cdp.send("Network.setUserAgentOverride", {"userAgent": user_agent})
        return user_agent

    async def reset(self, session: Optional[Session]) -> None:
        """Close tab and browser, then wipe and recreate the profile directory.

        Every sub-step is best-effort: failures are logged and the reset
        carries on.
        """
        self.reset_count += 1
        if session is not None:
            outcome = await poll_until(lambda: self.monitor.in_flight == 0,
                                       self.options.poll_interval, PENDING_POLL_ATTEMPTS)
            if not outcome.satisfied:
                self._log_debug(f"{self.monitor.in_flight} requests still pending, closing anyway")
            try:
                await session.page.close()
                self._log_debug("Tab was closed")
            except Exception as e:
                self._log_error(f"Error while closing tab: {e}")
            try:
                await session.context.close()
                self._log_debug("Browser was closed")
            except Exception as e:
                self._log_error(f"Error while closing browser: {e}")

        try:
            shutil.rmtree(self.user_dir)
            self._log_debug(f"Deleted profile directory at {self.user_dir}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self._log_error(f"Failed to delete profile directory at {self.user_dir}: {e}")
        try:
            self.user_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._log_error(f"Failed to re-create profile directory at {self.user_dir}: {e}")
