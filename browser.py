"""Remote browser session used to drive harness pages."""
from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import SessionConfig
from config.models import BrowserName
from exceptions import (
    HarnessTimeoutError,
    NavigationError,
    ScriptEvaluationError,
    SessionNotStartedError,
    SessionUnavailableError,
)

# Evaluated through indirect eval so expressions run in the page's global scope.
_EVAL_AS_STRING = "expression => String((0, eval)(expression))"

_SESSION_LOST_MARKERS = ("has been closed", "target closed", "browser closed", "crash")


def _is_closed_error(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _SESSION_LOST_MARKERS)


class RemoteSession:
    """A single browser page that harness pages are loaded into one after another."""

    def __init__(
        self,
        browser_type: BrowserName = "chromium",
        headless: bool = True,
        slow_mo: int = 0,
        navigation_timeout_ms: int = 30000,
        poll_interval_ms: int = 100,
        launch_attempts: int = 3,
        logger: Optional[logging.Logger] = None,
    ):
        self.browser_type = browser_type
        self.headless = headless
        self.slow_mo = slow_mo
        self.navigation_timeout_ms = navigation_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self.launch_attempts = launch_attempts
        self.logger = logger or logging.getLogger("browser")

        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.current_url: Optional[str] = None
        self.crashed = False
        self._console_errors: list[str] = []

    @classmethod
    def from_config(cls, config: SessionConfig, logger: Optional[logging.Logger] = None) -> "RemoteSession":
        return cls(
            browser_type=config.browser,
            headless=config.headless,
            slow_mo=config.slow_mo,
            navigation_timeout_ms=config.navigation_timeout_ms,
            poll_interval_ms=config.poll_interval_ms,
            launch_attempts=config.launch_attempts,
            logger=logger,
        )

    @property
    def is_open(self) -> bool:
        return self.page is not None and not self.page.is_closed()

    def _ensure_available(self) -> Page:
        """Return the live page or raise if the session is gone."""
        if self.page is None:
            raise SessionNotStartedError()
        if self.crashed:
            raise SessionUnavailableError("Browser page crashed", {"browser": self.browser_type})
        if self.page.is_closed():
            raise SessionUnavailableError("Browser page has been closed", {"browser": self.browser_type})
        return self.page

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Launch the browser, retrying transient launch failures."""
        launch = retry(
            stop=stop_after_attempt(self.launch_attempts),
            wait=wait_exponential(multiplier=1.0, min=1.0, max=8),
            retry=retry_if_exception_type(PlaywrightError),
            reraise=True,
        )(self._launch)
        try:
            await launch()
        except PlaywrightError as e:
            await self.close()
            raise SessionUnavailableError(
                f"Could not launch {self.browser_type}: {e}",
                {"browser": self.browser_type, "attempts": self.launch_attempts},
            ) from e
        except Exception:
            await self.close()
            raise

        self.logger.info(f"Browser started: {self.browser_type} (headless={self.headless})")

    async def _launch(self) -> None:
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        browser_launcher = getattr(self._playwright, self.browser_type, None)
        if browser_launcher is None:
            raise SessionUnavailableError(
                f"Unsupported browser: {self.browser_type}", {"browser": self.browser_type}
            )
        launch_options: dict[str, Any] = {"headless": self.headless}
        if self.slow_mo > 0:
            launch_options["slow_mo"] = self.slow_mo

        self.browser = await browser_launcher.launch(**launch_options)
        self.context = await self.browser.new_context()
        self.page = await self.context.new_page()
        self.crashed = False

        self.page.on("console", self._handle_console)
        self.page.on("pageerror", self._handle_page_error)
        self.page.on("crash", self._handle_crash)

    async def close(self) -> None:
        """Close the browser and clean up resources."""
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
        except PlaywrightError as e:
            self.logger.warning(f"Browser did not close cleanly: {e}")
        finally:
            if self._playwright:
                await self._playwright.stop()
            self._playwright = None
            self.browser = None
            self.context = None
            self.page = None
        self.logger.info("Browser closed")

    def _handle_console(self, msg: Any) -> None:
        if msg.type == "error":
            self._console_errors.append(msg.text)
            # Keep only last 100 messages
            if len(self._console_errors) > 100:
                self._console_errors = self._console_errors[-100:]

    def _handle_page_error(self, error: Any) -> None:
        self._console_errors.append(f"Uncaught: {error}")

    def _handle_crash(self, page: Any) -> None:
        self.crashed = True
        self.logger.error(f"Browser page crashed while on {self.current_url}")

    def take_console_errors(self) -> list[str]:
        """Return and clear errors logged by the current page."""
        errors, self._console_errors = self._console_errors, []
        return errors

    # ─────────────────────────────────────────────────────────────────────────
    # Remote-control operations
    # ─────────────────────────────────────────────────────────────────────────

    async def open(self, target: str) -> None:
        """Navigate the session to a target page."""
        page = self._ensure_available()
        self._console_errors.clear()
        try:
            response = await page.goto(target, wait_until="load", timeout=self.navigation_timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationError(
                f"Navigation timed out: {target}", url=target, timeout=self.navigation_timeout_ms
            ) from e
        except PlaywrightError as e:
            if _is_closed_error(e):
                raise SessionUnavailableError(f"Session closed while opening {target}") from e
            raise NavigationError(f"Navigation failed: {e}", url=target) from e

        # file:// targets have no response
        if response is not None and response.status >= 400:
            raise NavigationError(
                f"Target returned HTTP {response.status}: {target}", url=target, status=response.status
            )
        self.current_url = target
        self.logger.debug(f"Opened {target}")

    async def wait_for_condition(self, expression: str, timeout_ms: int) -> None:
        """Poll a page expression until it is truthy or the budget runs out."""
        page = self._ensure_available()
        try:
            await page.wait_for_function(expression, timeout=timeout_ms, polling=self.poll_interval_ms)
        except PlaywrightTimeout as e:
            raise HarnessTimeoutError(expression, timeout_ms, url=self.current_url) from e
        except PlaywrightError as e:
            if _is_closed_error(e):
                raise SessionUnavailableError("Session closed while waiting for the harness") from e
            raise ScriptEvaluationError(f"Condition failed to evaluate: {e}", expression=expression) from e

    async def eval_script(self, expression: str) -> str:
        """Evaluate an expression in the page and return its string form."""
        page = self._ensure_available()
        try:
            return await page.evaluate(_EVAL_AS_STRING, expression)
        except PlaywrightError as e:
            if _is_closed_error(e):
                raise SessionUnavailableError("Session closed during script evaluation") from e
            raise ScriptEvaluationError(f"Script evaluation failed: {e}", expression=expression) from e
