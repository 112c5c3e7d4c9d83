"""Run one harness page and read back what it reported."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from config import HarnessConfig
from exceptions import TargetValidationError
from suite_types import SuiteOutcome


class HarnessSession(Protocol):
    """Remote-control operations the runner needs from a browser session."""

    async def open(self, target: str) -> None: ...

    async def wait_for_condition(self, expression: str, timeout_ms: int) -> None: ...

    async def eval_script(self, expression: str) -> str: ...


class PageSuiteRunner:
    """Load a page, wait for its embedded harness to finish, collect the verdict."""

    def __init__(
        self,
        session: HarnessSession,
        harness: Optional[HarnessConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.harness = harness or HarnessConfig()
        self.logger = logger or logging.getLogger("page_suite")

    async def run_suite(self, target: str, timeout_ms: int) -> SuiteOutcome:
        """
        Run the harness page at ``target``.

        Args:
            target: URL of the page to load
            timeout_ms: Maximum time to wait for the harness to finish

        Returns:
            The outcome the harness reported

        Raises:
            HarnessTimeoutError: The harness did not finish in time
            NavigationError: The page could not be loaded
            SessionUnavailableError: The browser session is gone
        """
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise TargetValidationError(
                f"timeout_ms must be a positive integer, got {timeout_ms!r}", field="timeout_ms"
            )

        await self.session.open(target)
        await self.session.wait_for_condition(self.harness.finished_expression, timeout_ms)

        success = await self.session.eval_script(self.harness.success_expression)
        if success == "true":
            self.logger.debug(f"Harness passed: {target}")
            return SuiteOutcome(success=True)

        report = await self.session.eval_script(self.harness.report_expression)
        self.logger.debug(f"Harness failed: {target}")
        return SuiteOutcome(success=False, report=report)
