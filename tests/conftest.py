"""Pytest fixtures for page suite tests."""
from __future__ import annotations

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from exceptions import HarnessTimeoutError, NavigationError, SessionUnavailableError
from suite_types import SuiteRunResult, TargetResult, TargetStatus, TestTarget

PAGES_BASE = "http://pages.test/kemia"


class FakeSession:
    """Scripted stand-in for RemoteSession.

    ``pages`` maps a page file name to how its harness behaves: ``"pass"``,
    ``("fail", report)``, ``"timeout"``, ``"navigation"`` or ``"lost"``. A list
    value is consumed one entry per visit.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, Any]] = None,
        browser_type: str = "chromium",
        fail_start: bool = False,
    ):
        self.pages = pages or {}
        self.browser_type = browser_type
        self.fail_start = fail_start
        self.opened: List[str] = []
        self.started = False
        self.closed = False
        self._current: Any = None

    async def start(self) -> None:
        if self.fail_start:
            raise SessionUnavailableError(f"Could not launch {self.browser_type}")
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def open(self, target: str) -> None:
        self.opened.append(target)
        behavior = self.pages.get(target.rsplit("/", 1)[-1], "pass")
        if isinstance(behavior, list):
            behavior = behavior.pop(0)
        if behavior == "navigation":
            raise NavigationError(f"Navigation failed: {target}", url=target)
        if behavior == "lost":
            raise SessionUnavailableError("Browser page has been closed")
        self._current = behavior

    async def wait_for_condition(self, expression: str, timeout_ms: int) -> None:
        if self._current == "timeout":
            raise HarnessTimeoutError(expression, timeout_ms)

    async def eval_script(self, expression: str) -> str:
        if "isSuccess" in expression:
            return "true" if self._current == "pass" else "false"
        return self._current[1]

    def take_console_errors(self) -> List[str]:
        return []


@pytest.fixture
def fake_session_factory():
    """Build a factory that hands out one FakeSession and records its config."""

    def build(pages: Optional[Dict[str, Any]] = None, fail_start: bool = False):
        session = FakeSession(pages, fail_start=fail_start)
        seen_configs: List[Any] = []

        def factory(session_config):
            seen_configs.append(session_config)
            session.browser_type = session_config.browser
            return session

        factory.session = session
        factory.configs = seen_configs
        return factory

    return build


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock remote session for testing."""
    session = MagicMock()
    session.browser_type = "chromium"
    session.start = AsyncMock()
    session.close = AsyncMock()
    session.open = AsyncMock()
    session.wait_for_condition = AsyncMock()
    session.eval_script = AsyncMock(return_value="true")
    session.take_console_errors = MagicMock(return_value=[])
    return session


@pytest.fixture
def sample_targets() -> List[TestTarget]:
    return [
        TestTarget(name="model", page="model/model_test.html", tags=frozenset({"model"})),
        TestTarget(name="smiles", page="io/smiles/smiles_parser_test.html", tags=frozenset({"io"})),
        TestTarget(name="sssr", page="ring/sssr_test.html", timeout_ms=10000, tags=frozenset({"ring"})),
    ]


@pytest.fixture
def sample_suite_result(sample_targets: List[TestTarget]) -> SuiteRunResult:
    """A run with one result in each state."""
    started = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    model, smiles, sssr = sample_targets
    skipped = TestTarget(name="mdl", page="io/mdl_test.html", skip=True, skip_reason="flaky")
    return SuiteRunResult(
        profile="chrome",
        browser_type="chromium",
        started_at=started,
        finished_at=datetime(2024, 1, 1, 10, 0, 9, tzinfo=timezone.utc),
        results=[
            TargetResult(
                target=model,
                status=TargetStatus.PASSED,
                started_at=started,
                finished_at=datetime(2024, 1, 1, 10, 0, 1, tzinfo=timezone.utc),
                url=f"{PAGES_BASE}/model/model_test.html",
            ),
            TargetResult(
                target=smiles,
                status=TargetStatus.FAILED,
                started_at=started,
                finished_at=datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc),
                url=f"{PAGES_BASE}/io/smiles/smiles_parser_test.html",
                report="3 of 10 assertions failed <testParseRing>",
                console_errors=["Uncaught TypeError: atom is undefined"],
            ),
            TargetResult(
                target=sssr,
                status=TargetStatus.ERROR,
                started_at=started,
                finished_at=datetime(2024, 1, 1, 10, 0, 7, tzinfo=timezone.utc),
                url=f"{PAGES_BASE}/ring/sssr_test.html",
                error="Harness did not finish within 10000ms",
                error_type="HarnessTimeoutError",
            ),
            TargetResult(
                target=skipped,
                status=TargetStatus.SKIPPED,
                started_at=started,
                finished_at=started,
                error="Skipped: flaky",
            ),
        ],
    )


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_suite_yaml() -> str:
    """Sample YAML suite definition."""
    return """
base_url: http://pages.test/kemia
default_timeout_ms: 4000
targets:
  - name: model
    page: model/model_test.html
    tags: [model]
  - name: smiles
    page: io/smiles/smiles_parser_test.html
    tags: [io, parser]
    timeout_ms: 8000
  - name: mdl
    page: io/mdl_test.html
    tags: [io]
    skip: true
    skip_reason: Waiting on fixture files
  - ring/sssr_test.html
profiles:
  chrome:
    browser: chromium
  safari:
    browser: webkit
    description: Parsers only
    tags: [io]
    timeout_ms: 12000
  smoke:
    targets: [sssr_test, model]
"""
