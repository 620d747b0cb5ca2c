"""Output formats and their encoder configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class EncoderConfig:
    extension: str
    saver: str  # name of the pyvips.Image save method
    bands: int  # 3 = RGB, 4 = RGBA
    quality: int | None = None  # libvips Q, 1-100
    bit_depth: int = 8
    colour_space: str = "srgb"
    options: tuple[tuple[str, Any], ...] = ()
    # Tried in order when the codec library lacks the encoder named in options.
    fallback_options: tuple[tuple[tuple[str, Any], ...], ...] = ()

    @property
    def has_alpha(self) -> bool:
        return self.bands == 4

    def save_options(self) -> dict[str, Any]:
        opts = dict(self.options)
        if self.quality is not None:
            opts["Q"] = self.quality
        return opts

    def fallback_save_options(self) -> list[dict[str, Any]]:
        return [{**self.save_options(), **dict(alt)} for alt in self.fallback_options]


class OutputFormat(Enum):
    JPEG = EncoderConfig(extension="jpg", saver="jpegsave", bands=3, quality=90)
    PNG = EncoderConfig(extension="png", saver="pngsave", bands=4)
    TIFF = EncoderConfig(extension="tiff", saver="tiffsave", bands=4)
    HEIC = EncoderConfig(
        extension="heic",
        saver="heifsave",
        bands=4,
        quality=85,
        options=(("compression", "hevc"),),
        # AV1 in the same HEIF container when libheif has no HEVC encoder.
        fallback_options=((("compression", "av1"),),),
    )

    @property
    def config(self) -> EncoderConfig:
        return self.value

    @property
    def extension(self) -> str:
        return self.value.extension

    @classmethod
    def parse(cls, text: str) -> OutputFormat:
        """Look up a format by name or extension, case-insensitively."""
        key = (text or "").strip().lower().lstrip(".")
        for fmt in cls:
            if key in (fmt.name.lower(), fmt.extension):
                return fmt
        raise ValueError(f"unknown output format: {text!r}")
