"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch) -> None:
    """Keep the developer's Trello credentials and API logging out of tests."""
    for name in ("TRELLO_API_KEY", "TRELLO_TOKEN", "TRELLO_HOST", "TRO_LOG_API", "TRO_LOG_API_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """Create a temporary workspace directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
