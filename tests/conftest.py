# -*- coding: utf-8 -*-
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_sessionstart(session) -> None:
    # Ensure project root is importable for tests
    root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(root))


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "NC_OUTPUT_DIR",
        "NC_MAX_CONCURRENT",
        "NC_RETRY_ATTEMPTS",
        "NC_DELAY_MS",
        "NC_INCLUDE_CONTENT",
        "NC_SOURCES",
        "NC_SELECTORS_FILE",
        "NC_USE_PLAYWRIGHT",
        "NC_SCRAPER_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
