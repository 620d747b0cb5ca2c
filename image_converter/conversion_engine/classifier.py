from __future__ import annotations

import os
from pathlib import Path

SUPPORTED_EXTENSIONS = frozenset(
    {"jpg", "jpeg", "png", "tiff", "tif", "nef", "cr2", "cr3", "raw", "dng", "heic", "arw", "orf", "pef"}
)


def is_eligible(path: str | Path) -> bool:
    """True if ``path`` has an extension on the supported input allow-list."""
    ext = os.path.splitext(os.fspath(path))[1]
    if not ext:
        return False
    return ext[1:].lower() in SUPPORTED_EXTENSIONS
