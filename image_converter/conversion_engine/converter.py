"""Single-image conversion using pyvips.

``convert_image`` performs exactly one decode, encode and write cycle. It never
raises for a bad input or an unwritable destination; the failure is returned
inside a ``ConversionOutcome`` so the pipeline can record it and move on.

Memory: the libvips operation cache is disabled and every image reference is
dropped before returning, so converting many large RAW files in a row does
not accumulate decoded buffers.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from image_converter.logger import get_logger

from .errors import ConversionError, ConversionStage
from .formats import EncoderConfig, OutputFormat

_logger = get_logger("converter")

RGB_CHANNELS = 3
_JPEG_BACKGROUND = [255, 255, 255]
# mkstemp creates 0600 files; outputs get ordinary file permissions.
_OUTPUT_MODE = 0o644

_pyvips: Any | None = None


def get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Configure pyvips caches to avoid memory growth across items
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


@dataclass(frozen=True)
class ConversionOutcome:
    source: str
    destination: str
    success: bool
    error: ConversionError | None = None


def destination_for(source_path: str | Path, destination_dir: str | Path, fmt: OutputFormat) -> Path:
    """``<source stem>.<format extension>`` inside ``destination_dir``."""
    return Path(destination_dir) / f"{Path(source_path).stem}.{fmt.extension}"


def _to_rgb(image: Any, pyvips: Any) -> Any:
    try:
        return image.colourspace("srgb")
    except pyvips.Error as e:
        # No sRGB conversion available for this interpretation: treat the
        # pixels as generic RGB instead.
        _logger.debug("srgb conversion unavailable, using generic rgb: %s", e)
        if image.bands < RGB_CHANNELS:
            alpha = image.extract_band(1) if image.bands == 2 else None
            mono = image.extract_band(0)
            image = mono.bandjoin([mono, mono])
            if alpha is not None:
                image = image.bandjoin(alpha)
        return image.copy(interpretation="rgb")


def _shape_for(image: Any, config: EncoderConfig, pyvips: Any) -> Any:
    image = _to_rgb(image, pyvips)
    if image.format != "uchar":
        image = image.cast("uchar")
    if config.has_alpha:
        if not image.hasalpha():
            image = image.bandjoin(255)
    elif image.hasalpha():
        image = image.flatten(background=_JPEG_BACKGROUND)
        if image.format != "uchar":
            image = image.cast("uchar")
    if image.bands > config.bands:
        image = image.extract_band(0, n=config.bands)
    return image


def _decode(source_path: str, pyvips: Any) -> Any:
    # fail_on="error" rejects truncated and corrupt files instead of padding
    # them with grey. libvips decodes lazily, so copy_memory() forces the
    # whole decode here and any failure is reported as a decode failure.
    image = pyvips.Image.new_from_file(source_path, access="sequential", fail_on="error")
    image = image.copy_memory()
    # Apply the EXIF orientation tag so the output is upright.
    return image.autorot()


def _is_missing_encoder(err: Exception) -> bool:
    return "unsupported compression" in str(err).lower()


def _encode(image: Any, target: str, config: EncoderConfig) -> None:
    pyvips = get_pyvips_module()
    saver = getattr(image, config.saver)
    attempts = [config.save_options(), *config.fallback_save_options()]
    for i, options in enumerate(attempts):
        try:
            saver(target, **options)
            return
        except pyvips.Error as e:
            if i + 1 == len(attempts) or not _is_missing_encoder(e):
                raise
            _logger.debug("%s without %s, retrying with %s", config.saver, options, attempts[i + 1])


def convert_image(
    source_path: str | Path, destination_dir: str | Path, fmt: OutputFormat
) -> ConversionOutcome:
    """Convert one image into ``destination_dir`` using ``fmt``.

    An existing file at the destination is replaced. The output is first
    written to a hidden temporary file next to it and renamed into place, so a
    failed encode never leaves a truncated file behind.
    """
    source = str(source_path)
    destination = destination_for(source, destination_dir, fmt)
    config = fmt.config
    image: Any = None
    tmp_path: str | None = None

    try:
        try:
            pyvips = get_pyvips_module()
            image = _decode(source, pyvips)
            image = _shape_for(image, config, pyvips)
        except Exception as e:
            err = ConversionError(ConversionStage.DECODE, str(e).strip() or type(e).__name__)
            _logger.warning("[X] %s: %s", os.path.basename(source), err)
            return ConversionOutcome(source, str(destination), False, err)

        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{destination.stem}.", suffix=f".{config.extension}.part", dir=str(destination.parent)
            )
            os.close(fd)
            _encode(image, tmp_path, config)
            os.chmod(tmp_path, _OUTPUT_MODE)
            os.replace(tmp_path, destination)
            tmp_path = None
        except Exception as e:
            err = ConversionError(ConversionStage.ENCODE, str(e).strip() or type(e).__name__)
            _logger.warning("[X] %s -> %s: %s", os.path.basename(source), destination.name, err)
            return ConversionOutcome(source, str(destination), False, err)

        _logger.info("[✓] %s -> %s", os.path.basename(source), destination.name)
        return ConversionOutcome(source, str(destination), True)
    finally:
        del image
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
