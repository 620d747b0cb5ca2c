"""Path normalization utilities.

This module centralizes the project's path rules:

- Inputs are canonicalized (user-expanded, absolute, symlinks and ``..``
  resolved) before they are compared or stored on a Job.
- The canonical string form is the deduplication key for the job registry.

Keep this module free of Qt and pyvips dependencies.
"""

from __future__ import annotations

from pathlib import Path

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def canonical_path(path: str | Path) -> Path:
    """Return an absolute, resolved path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except (OSError, RuntimeError):
        return p.absolute()


def canonical_path_str(path: str | Path) -> str:
    """Canonical, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(canonical_path(path)))


def canonical_dir(path: str | Path) -> Path:
    """Canonical directory path.

    If the path exists and is not a directory, returns its parent.
    """
    p = canonical_path(path)
    try:
        if p.exists() and not p.is_dir():
            return p.parent
    except OSError:
        pass
    return p


def canonical_dir_str(path: str | Path) -> str:
    return _normalize_drive_letter(str(canonical_dir(path)))


def is_hidden(path: str | Path) -> bool:
    return Path(path).name.startswith(".")
