"""Small preview bitmaps for a front end's job list.

Independent of job identity: callers pass a path and get an RGB numpy array
(or ``None`` if the file cannot be decoded). Results are cached per file
version, keyed on path, mtime and size.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import numpy as np

from image_converter.logger import get_logger
from image_converter.path_utils import canonical_path_str

from .converter import RGB_CHANNELS, get_pyvips_module

_logger = get_logger("thumbnail")

DEFAULT_THUMBNAIL_SIZE = 120


def _decode_thumbnail(path: str, max_size: int) -> np.ndarray:
    pyvips = get_pyvips_module()
    # thumbnail() applies the orientation tag itself
    image = pyvips.Image.thumbnail(path, max_size, height=max_size, size="down")
    image = image.colourspace("srgb")
    if image.hasalpha():
        image = image.flatten(background=[0, 0, 0])
    if image.bands > RGB_CHANNELS:
        image = image.extract_band(0, n=RGB_CHANNELS)
    elif image.bands < RGB_CHANNELS:
        image = image.bandjoin([image] * (RGB_CHANNELS - image.bands))
    if image.format != "uchar":
        image = image.cast("uchar")

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands).copy()
    if array.shape[2] != RGB_CHANNELS:
        raise RuntimeError(f"Unsupported band count after conversion: {array.shape[2]}")
    array.setflags(write=False)
    return array


@lru_cache(maxsize=256)
def _cached_thumbnail(path: str, mtime_ns: int, size: int, max_size: int) -> np.ndarray | None:  # noqa: ARG001
    try:
        return _decode_thumbnail(path, max_size)
    except Exception as e:
        _logger.debug("thumbnail failed: %s: %s", path, e)
        return None


def load_thumbnail(path: str | Path, max_size: int = DEFAULT_THUMBNAIL_SIZE) -> np.ndarray | None:
    """Return a read-only (H, W, 3) uint8 preview no larger than ``max_size``."""
    key = canonical_path_str(path)
    try:
        st = os.stat(key)
    except OSError:
        return None
    return _cached_thumbnail(key, st.st_mtime_ns, st.st_size, int(max_size))


def clear_thumbnail_cache() -> None:
    _cached_thumbnail.cache_clear()
