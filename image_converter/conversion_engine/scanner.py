"""Expand user-supplied paths into new conversion jobs.

Directories are expanded one level only and hidden entries are skipped.
Every path is canonicalized before classification so symlinks, relative
components and repeated inputs collapse onto a single job.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from image_converter.logger import get_logger
from image_converter.path_utils import canonical_path, canonical_path_str, is_hidden

from .classifier import is_eligible
from .metrics import metrics
from .registry import Job

_logger = get_logger("scanner")


def _list_directory(folder: Path) -> list[Path]:
    entries: list[Path] = []
    try:
        with os.scandir(folder) as it:
            for entry in it:
                if is_hidden(entry.name):
                    continue
                entries.append(Path(entry.path))
    except OSError as e:
        _logger.warning("cannot list directory %s: %s", folder, e)
        return []
    return entries


def scan(input_paths: Iterable[str | os.PathLike[str]], existing: Iterable[str] = ()) -> list[Job]:
    """Return new jobs for ``input_paths`` in discovery order.

    ``existing`` holds the canonical paths already registered; anything in it,
    or produced earlier in this call, is dropped. Nonexistent and ineligible
    paths are skipped silently. The registry is not touched.
    """
    seen = set(existing)
    jobs: list[Job] = []

    def _consider(listed: Path, resolved: Path) -> None:
        # The name as listed decides eligibility; the resolved path is the key.
        key = canonical_path_str(resolved)
        if not is_eligible(listed.name):
            _logger.debug("skip (ext): %s", listed)
            metrics.inc("scanner.skipped_ineligible")
            return
        if key in seen:
            _logger.debug("skip (duplicate): %s", key)
            metrics.inc("scanner.skipped_duplicate")
            return
        seen.add(key)
        jobs.append(Job(source_path=key))

    for raw in input_paths:
        p = canonical_path(raw)
        try:
            if p.is_dir():
                for child in _list_directory(p):
                    child_path = canonical_path(child)
                    if child_path.is_file():
                        _consider(child, child_path)
            elif p.is_file():
                _consider(Path(raw), p)
            else:
                _logger.debug("skip (missing): %s", p)
                metrics.inc("scanner.skipped_missing")
        except OSError as e:
            _logger.warning("skip (unreadable): %s: %s", p, e)

    _logger.debug("scan produced %d new job(s)", len(jobs))
    return jobs
