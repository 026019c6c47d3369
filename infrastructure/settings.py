"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULTS: dict[str, Any] = {
    "history": {"capacity": 50, "coalesce_seconds": 0.25},
    "grid": {
        "origin_x": 50,
        "origin_y": 150,
        "gutter": 20,
        "margin": 50,
        "min_height": 400,
        "row_tolerance": 50,
        "narrow_breakpoint": 768,
        "narrow_width": 130,
        "wide_width": 220,
    },
    "wall": {"default_width": 12, "default_height": 10, "default_unit": "ft"},
    "image_store": {"dir": None},
    "catalog": {"csv_path": None},
    "logging": {"dir": None, "level": "INFO"},
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    Values from the file are layered over `DEFAULTS`; a missing file simply
    yields the defaults.
    """

    def __init__(self, settings_path: str | Path | None = None, data: dict[str, Any] | None = None) -> None:
        self._path = Path(settings_path) if settings_path is not None else None
        loaded: dict[str, Any] = {}
        if self._path is not None:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError(f"settings root must be an object: {self._path}")
            else:
                logger.warning("settings.json not found, using defaults: {}", self._path)
        if data:
            loaded = _merge(loaded, data)
        self._data = _merge(DEFAULTS, loaded)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_float(self, key: str, default: float) -> float:
        """Return a finite float for `key`, falling back to `default` on bad values."""
        raw = self.get(key, default)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.warning("Setting {} is not a number ({!r}); using {}", key, raw, default)
            return default
        if not math.isfinite(value):
            return default
        return value

    def get_int(self, key: str, default: int) -> int:
        return int(self.get_float(key, float(default)))
