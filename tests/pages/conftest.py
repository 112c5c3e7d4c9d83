"""Expose each target of a suite profile as its own pytest test.

The profile comes from ``PAGE_SUITE_PROFILE`` (default ``chrome``) and the
suite file from ``PAGE_SUITE_FILE`` (default ``suites/kemia.yaml``). Pages are
resolved against ``PAGE_SUITE_BASE_URL`` or the ``base_url`` of the config
file; without one every test here is skipped.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from browser import RemoteSession
from config import SessionConfig, load_config
from page_suite import PageSuiteRunner
from target_loader import SuiteProfile, load_suite_file, resolve_target_url

REPO_ROOT = Path(__file__).resolve().parents[2]


def _load_profile() -> SuiteProfile:
    suite_file = Path(os.getenv("PAGE_SUITE_FILE", REPO_ROOT / "suites" / "kemia.yaml"))
    suite = load_suite_file(suite_file)
    return suite.profile(os.getenv("PAGE_SUITE_PROFILE", "chrome"))


def pytest_generate_tests(metafunc):
    if "page_target" in metafunc.fixturenames:
        targets = _load_profile().targets
        metafunc.parametrize("page_target", targets, ids=[t.name for t in targets])


@pytest.fixture(scope="session")
def page_profile() -> SuiteProfile:
    return _load_profile()


@pytest.fixture(scope="session")
def page_config():
    return load_config()


@pytest.fixture(scope="session")
def pages_base_url(page_config, page_profile) -> str:
    base_url = page_config.base_url or page_profile.base_url
    if not base_url:
        pytest.skip("No base URL configured for harness pages (set PAGE_SUITE_BASE_URL)")
    return base_url


@pytest.fixture(scope="session")
def pages_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(scope="session")
def page_runner(pages_loop, page_config, page_profile, pages_base_url):
    """One browser session shared by every page, as in a serial suite run."""
    session_config = page_config.session
    if page_profile.browser:
        session_config = SessionConfig.model_validate({**session_config.model_dump(), "browser": page_profile.browser})

    session = RemoteSession.from_config(session_config)
    pages_loop.run_until_complete(session.start())
    yield PageSuiteRunner(session, page_config.harness)
    pages_loop.run_until_complete(session.close())


@pytest.fixture
def suite_outcome(page_target, page_runner, pages_loop, pages_base_url):
    """Run the page here so infrastructure errors surface as test errors."""
    if page_target.skip:
        pytest.skip(page_target.skip_reason or "Target marked skip")
    url = resolve_target_url(pages_base_url, page_target.page)
    return pages_loop.run_until_complete(page_runner.run_suite(url, page_target.timeout_ms))
