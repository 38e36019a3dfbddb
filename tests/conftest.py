"""Pytest configuration shared across the suite."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Fresh SQLite file shared by the stores built within one test."""
    return str(tmp_path / "uploader.db")
