"""Keep unit tests independent of the caller's environment."""
from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("PAGE_SUITE_BASE_URL", raising=False)
    monkeypatch.delenv("PAGE_SUITE_BROWSER", raising=False)
