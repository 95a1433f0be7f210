"""Pytest configuration and fixtures for smokegate tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from smokegate.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging at debug level for the whole test session.

    Nothing is sent to logfire.dev and no log files are written.
    """
    test_log_root = Path(tempfile.gettempdir()) / "smokegate-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["smokegate"]
    yield
    sys.argv = original


@pytest.fixture
def write_script(tmp_path):
    """Write an executable shell script under tmp_path.

    Returns a function taking (name, body) and returning the path.
    """
    def _write(name: str, body: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(0o755)
        return path

    return _write
