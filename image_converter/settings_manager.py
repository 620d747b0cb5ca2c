"""Persisted user preferences: output format, last destination folder, thumbnail size.

Stored as a small JSON object. A missing or unreadable file yields defaults;
write failures are logged and never interrupt a conversion.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from .conversion_engine.formats import OutputFormat
from .logger import get_logger
from .path_utils import canonical_dir_str

_logger = get_logger("settings")

_MIN_THUMBNAIL_SIZE = 16


def default_settings_path() -> str:
    env = (os.getenv("IMAGE_CONVERTER_SETTINGS") or "").strip()
    if env:
        return env
    return str(Path.home() / ".image_converter" / "settings.json")


class SettingsManager:
    DEFAULTS: dict[str, Any] = {
        "output_format": OutputFormat.JPEG.name.lower(),
        "thumbnail_size": 120,
    }

    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        self._settings = {}
        if not os.path.exists(self.settings_path):
            return
        try:
            with open(self.settings_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
            return
        if not isinstance(data, dict):
            _logger.warning("settings file is not a JSON object: %s", self.settings_path)
            return
        self._settings = data
        _logger.debug("settings loaded: %s", self.settings_path)

    def save(self) -> None:
        folder = os.path.dirname(self.settings_path) or "."
        tmp_path = None
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".settings.", suffix=".tmp", dir=folder)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.settings_path)
            tmp_path = None
            _logger.debug("settings saved: %s", self.settings_path)
        except (OSError, TypeError) as e:
            _logger.error("settings save failed: %s", e)
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        return default if default is not None else self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def update(self, **values: Any) -> None:
        """Store several values and write the file once."""
        folder = values.get("last_destination_dir")
        if folder:
            values["last_destination_dir"] = canonical_dir_str(folder)
        self._settings.update(values)
        self.save()

    def set(self, key: str, value: Any) -> None:
        self.update(**{key: value})

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def output_format(self) -> OutputFormat:
        raw = self.get("output_format")
        try:
            return OutputFormat.parse(str(raw))
        except ValueError:
            _logger.warning("saved output_format invalid: %s", raw)
            return OutputFormat.JPEG

    @property
    def last_destination_dir(self) -> str | None:
        val = self.get("last_destination_dir")
        return val if isinstance(val, str) and os.path.isdir(val) else None

    @property
    def thumbnail_size(self) -> int:
        try:
            return max(_MIN_THUMBNAIL_SIZE, int(self.get("thumbnail_size")))
        except (TypeError, ValueError):
            return int(self.DEFAULTS["thumbnail_size"])
