"""Pytest configuration.

The worker and backend tests need a running Qt application for queued signal
delivery. A single `QApplication` is created for the whole session as early
as possible (offscreen, so CI needs no display) and shut down at the end.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = QApplication([]) if app is None else app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def make_files(tmp_path: Path):
    """Create empty files under tmp_path; returns their paths in order."""

    def _make(*names: str, base: Path | None = None) -> list[Path]:
        root = base or tmp_path
        out: list[Path] = []
        for name in names:
            p = root / name
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(b"")
            out.append(p)
        return out

    return _make
