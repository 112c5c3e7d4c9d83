"""Real-browser fixtures; every test here is skipped when no browser can be launched."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from browser import RemoteSession
from exceptions import SessionUnavailableError
from page_suite import PageSuiteRunner
from target_loader import resolve_target_url

PAGES_DIR = Path(__file__).parent / "pages"


@pytest.fixture(scope="module")
def browser_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(scope="module")
def live_session(browser_loop):
    """One headless chromium shared by every test in the module."""
    session = RemoteSession(launch_attempts=1, poll_interval_ms=50)
    try:
        browser_loop.run_until_complete(session.start())
    except SessionUnavailableError as e:
        pytest.skip(f"No browser available: {e}")
    yield session
    browser_loop.run_until_complete(session.close())


@pytest.fixture
def run_page(browser_loop, live_session):
    """Run a fixture page by file name and return its outcome."""
    runner = PageSuiteRunner(live_session)

    def run(page: str, timeout_ms: int = 5000):
        url = resolve_target_url(str(PAGES_DIR), page)
        return browser_loop.run_until_complete(runner.run_suite(url, timeout_ms))

    return run
