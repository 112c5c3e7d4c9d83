"""Unit tests for the remote browser session."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

import browser
from browser import RemoteSession
from config import SessionConfig
from exceptions import (
    HarnessTimeoutError,
    NavigationError,
    ScriptEvaluationError,
    SessionNotStartedError,
    SessionUnavailableError,
)

PAGE = "file:///srv/kemia/kemia/ring/sssr_test.html"


@pytest.fixture
def fake_page() -> MagicMock:
    page = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.goto = AsyncMock(return_value=None)
    page.wait_for_function = AsyncMock()
    page.evaluate = AsyncMock(return_value="true")
    return page


@pytest.fixture
def session(fake_page: MagicMock) -> RemoteSession:
    session = RemoteSession(poll_interval_ms=50, navigation_timeout_ms=15000)
    session.page = fake_page
    return session


class TestLifecycle:
    """Tests for session start and availability."""

    def test_from_config(self):
        config = SessionConfig(browser="webkit", headless=False, poll_interval_ms=250, launch_attempts=2)
        session = RemoteSession.from_config(config)
        assert session.browser_type == "webkit"
        assert session.headless is False
        assert session.poll_interval_ms == 250
        assert session.launch_attempts == 2

    def test_use_before_start(self):
        session = RemoteSession()
        assert session.is_open is False
        with pytest.raises(SessionNotStartedError):
            asyncio.run(session.open(PAGE))

    def test_not_started_is_session_unavailable(self):
        assert issubclass(SessionNotStartedError, SessionUnavailableError)

    def test_closed_page_is_unavailable(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.is_closed.return_value = True
        assert session.is_open is False
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.eval_script("1 + 1"))

    def test_launch_failure_raises_session_unavailable(self, monkeypatch):
        driver = MagicMock()
        driver.start = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
        monkeypatch.setattr(browser, "async_playwright", lambda: driver)

        session = RemoteSession(launch_attempts=1)
        with pytest.raises(SessionUnavailableError) as exc_info:
            asyncio.run(session.start())

        assert "Could not launch chromium" in str(exc_info.value)
        assert session.page is None

    def test_launch_is_retried(self, monkeypatch):
        driver = MagicMock()
        driver.start = AsyncMock(side_effect=PlaywrightError("Browser closed unexpectedly"))
        monkeypatch.setattr(browser, "async_playwright", lambda: driver)

        session = RemoteSession(launch_attempts=2)
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.start())

        assert driver.start.await_count == 2

    def test_start_opens_page(self, monkeypatch):
        page = MagicMock()
        context = MagicMock()
        context.new_page = AsyncMock(return_value=page)
        launched = MagicMock()
        launched.new_context = AsyncMock(return_value=context)
        playwright = MagicMock()
        playwright.firefox.launch = AsyncMock(return_value=launched)
        driver = MagicMock()
        driver.start = AsyncMock(return_value=playwright)
        monkeypatch.setattr(browser, "async_playwright", lambda: driver)

        session = RemoteSession(browser_type="firefox", slow_mo=50)
        asyncio.run(session.start())

        playwright.firefox.launch.assert_awaited_once_with(headless=True, slow_mo=50)
        assert session.page is page
        page.on.assert_any_call("console", session._handle_console)
        page.on.assert_any_call("crash", session._handle_crash)

    def test_unknown_browser_is_unavailable_and_cleaned_up(self, monkeypatch):
        playwright = SimpleNamespace(stop=AsyncMock())
        driver = MagicMock()
        driver.start = AsyncMock(return_value=playwright)
        monkeypatch.setattr(browser, "async_playwright", lambda: driver)

        session = RemoteSession(browser_type="safari", launch_attempts=1)
        with pytest.raises(SessionUnavailableError) as exc_info:
            asyncio.run(session.start())

        assert "Unsupported browser: safari" in str(exc_info.value)
        playwright.stop.assert_awaited_once()
        assert session._playwright is None

    def test_unexpected_launch_error_still_closes(self, monkeypatch):
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        playwright.chromium.launch = AsyncMock(side_effect=RuntimeError("driver went away"))
        driver = MagicMock()
        driver.start = AsyncMock(return_value=playwright)
        monkeypatch.setattr(browser, "async_playwright", lambda: driver)

        session = RemoteSession(launch_attempts=1)
        with pytest.raises(RuntimeError):
            asyncio.run(session.start())

        playwright.stop.assert_awaited_once()
        assert session.page is None


class TestOpen:
    """Tests for navigation."""

    def test_opens_file_page(self, session: RemoteSession, fake_page: MagicMock):
        asyncio.run(session.open(PAGE))
        fake_page.goto.assert_awaited_once_with(PAGE, wait_until="load", timeout=15000)
        assert session.current_url == PAGE

    def test_http_error_status(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.goto.return_value = MagicMock(status=404)
        with pytest.raises(NavigationError) as exc_info:
            asyncio.run(session.open("http://localhost:8000/missing_test.html"))
        assert exc_info.value.status == 404

    def test_navigation_timeout(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.goto.side_effect = PlaywrightTimeout("Timeout 15000ms exceeded")
        with pytest.raises(NavigationError) as exc_info:
            asyncio.run(session.open(PAGE))
        assert exc_info.value.timeout == 15000

    def test_unreachable_target(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.goto.side_effect = PlaywrightError("net::ERR_FILE_NOT_FOUND")
        with pytest.raises(NavigationError):
            asyncio.run(session.open(PAGE))

    def test_closed_while_opening(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.goto.side_effect = PlaywrightError("Target page, context or browser has been closed")
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.open(PAGE))

    def test_navigation_into_crashed_page(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.goto.side_effect = PlaywrightError("Navigation failed because page crashed!")
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.open(PAGE))


class TestWaitForCondition:
    """Tests for harness polling."""

    def test_polls_with_configured_interval(self, session: RemoteSession, fake_page: MagicMock):
        asyncio.run(session.wait_for_condition("window.done", 5000))
        fake_page.wait_for_function.assert_awaited_once_with("window.done", timeout=5000, polling=50)

    def test_timeout(self, session: RemoteSession, fake_page: MagicMock):
        session.current_url = PAGE
        fake_page.wait_for_function.side_effect = PlaywrightTimeout("Timeout 1000ms exceeded")

        with pytest.raises(HarnessTimeoutError) as exc_info:
            asyncio.run(session.wait_for_condition("window.done", 1000))

        assert exc_info.value.timeout_ms == 1000
        assert exc_info.value.url == PAGE
        assert session.is_open

    def test_predicate_throws(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.wait_for_function.side_effect = PlaywrightError("ReferenceError: harness is not defined")
        with pytest.raises(ScriptEvaluationError):
            asyncio.run(session.wait_for_condition("harness.done", 1000))

    def test_browser_crash(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.wait_for_function.side_effect = PlaywrightError("Target closed")
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.wait_for_condition("window.done", 1000))

    def test_renderer_crash_while_waiting(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.wait_for_function.side_effect = PlaywrightError("Target crashed")
        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.wait_for_condition("window.done", 1000))

    def test_crash_event_makes_session_unavailable(self, session: RemoteSession, fake_page: MagicMock):
        session._handle_crash(fake_page)

        with pytest.raises(SessionUnavailableError):
            asyncio.run(session.eval_script("1 + 1"))
        fake_page.evaluate.assert_not_awaited()


class TestEvalScript:
    """Tests for script evaluation."""

    def test_returns_string(self, session: RemoteSession, fake_page: MagicMock):
        result = asyncio.run(session.eval_script("window.G_testRunner.isSuccess()"))
        assert result == "true"
        fake_page.evaluate.assert_awaited_once_with(browser._EVAL_AS_STRING, "window.G_testRunner.isSuccess()")

    def test_script_error(self, session: RemoteSession, fake_page: MagicMock):
        fake_page.evaluate.side_effect = PlaywrightError("TypeError: Cannot read properties of undefined")
        with pytest.raises(ScriptEvaluationError) as exc_info:
            asyncio.run(session.eval_script("window.G_testRunner.getReport()"))
        assert exc_info.value.expression == "window.G_testRunner.getReport()"


class TestConsoleCapture:
    """Tests for console error collection."""

    def test_only_errors_are_kept(self, session: RemoteSession):
        session._handle_console(MagicMock(type="log", text="loading"))
        session._handle_console(MagicMock(type="error", text="Failed to load goog/base.js"))
        session._handle_page_error("ReferenceError: kemia is not defined")

        assert session.take_console_errors() == [
            "Failed to load goog/base.js",
            "Uncaught: ReferenceError: kemia is not defined",
        ]
        assert session.take_console_errors() == []
