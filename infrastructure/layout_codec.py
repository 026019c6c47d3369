"""JSON persistence for editor layouts (`*.sequence` files).

The document is the only durable contract of the editor:

    {version, documentTitle, photos: [...], wall: {...}, settings: {...}, timestamp}

Loading is all-or-nothing. `deserialize` either returns a complete decoded
layout or raises `LayoutParseError` listing every structural problem; it never
touches live editor state. Version 1 documents (the legacy `cards` format with
CSS pixel strings) are migrated explicitly; unknown versions are rejected.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import math
from pathlib import Path
import re
from typing import Any
import uuid

from loguru import logger

from core.errors import LayoutParseError, ValidationError
from core.models import (
    MEASUREMENT_UNITS,
    MIN_SIZE,
    WALL_UNITS,
    Card,
    EditorSettings,
    EditorState,
    FrameSpec,
    HangHeight,
    Wall,
)
from core.services import geometry

FORMAT_VERSION = 2
FILE_SUFFIX = ".sequence"
DEFAULT_FILE_NAME = "sequence-table"
LOCAL_PREFIX = "local:"

_REF_PREFIXES = ("http://", "https://", "data:", "file:", LOCAL_PREFIX)
_FILENAME_BAD = re.compile(r"[^a-zA-Z0-9\-_ ]")


@dataclass
class DecodedLayout:
    """Result of a successful `deserialize`."""

    cards: list[Card] = field(default_factory=list)
    wall: Wall = field(default_factory=Wall)
    settings: EditorSettings = field(default_factory=EditorSettings)
    title: str = "Untitled"
    migrated_from: int | None = None


def is_valid_reference(src: object) -> bool:
    """True if `src` is a remote URL or a non-empty `local:<id>` handle."""
    if not isinstance(src, str) or not src.strip():
        return False
    if src.startswith(LOCAL_PREFIX):
        return bool(src[len(LOCAL_PREFIX) :].strip())
    return src.startswith(_REF_PREFIXES)


def local_id(src: str) -> str | None:
    """Return the blob id of a `local:` reference, else None."""
    if src.startswith(LOCAL_PREFIX):
        return src[len(LOCAL_PREFIX) :]
    return None


# Serialization
def _frame_to_dict(frame: FrameSpec) -> dict[str, Any]:
    return {
        "enabled": frame.enabled,
        "matte": frame.matte,
        "frame": frame.frame,
        "unit": frame.unit,
        "color": frame.color,
    }


def serialize(state: EditorState, now: datetime | None = None) -> dict[str, Any]:
    """Produce a versioned JSON-ready document for `state`."""
    now = now or datetime.now(timezone.utc)
    wall = state.wall
    photos = [
        {
            "id": card.id,
            "src": card.src,
            "photographer": card.photographer,
            "x": card.x,
            "y": card.y,
            "rotation": card.rotation,
            "width": card.width,
            "height": card.height,
            "aspectRatio": card.aspect_ratio,
            "sized": card.sized,
            "zIndex": card.z_index,
            "gridIndex": card.grid_index,
            "frame": _frame_to_dict(card.frame),
        }
        for card in state.cards
    ]
    hang = wall.hang_height
    return {
        "version": FORMAT_VERSION,
        "documentTitle": state.title,
        "photos": photos,
        "wall": {
            "width": wall.width,
            "height": wall.height,
            "unit": wall.unit,
            "color": wall.color,
            "visible": wall.visible,
            "scale": wall.scale,
            "hangHeight": (
                {"value": hang.value, "unit": hang.unit, "enabled": hang.enabled}
                if hang is not None
                else None
            ),
        },
        "settings": {
            "gridMode": state.settings.grid_mode,
            "gridLocked": state.settings.grid_locked,
            "measurementUnit": state.settings.measurement_unit,
            "showDimensions": state.settings.show_dimensions,
            "frameDefaults": _frame_to_dict(state.settings.frame_defaults),
        },
        "timestamp": now.isoformat(),
    }


# Deserialization
class _Reader:
    """Collects problems while pulling typed fields out of raw dicts."""

    def __init__(self) -> None:
        self.problems: list[str] = []

    def number(self, obj: dict, key: str, where: str, default: float | None = None) -> float:
        raw = obj.get(key, default)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
            self.problems.append(f"{where}.{key} must be a finite number (got {raw!r})")
            return 0.0 if default is None else float(default)
        return float(raw)

    def boolean(self, obj: dict, key: str, where: str, default: bool = False) -> bool:
        raw = obj.get(key, default)
        if not isinstance(raw, bool):
            self.problems.append(f"{where}.{key} must be a boolean (got {raw!r})")
            return default
        return raw

    def text(self, obj: dict, key: str, where: str, default: str = "") -> str:
        raw = obj.get(key, default)
        if raw is None:
            return default
        if not isinstance(raw, str):
            self.problems.append(f"{where}.{key} must be a string (got {raw!r})")
            return default
        return raw

    def frame(self, raw: Any, where: str) -> FrameSpec:
        if raw is None:
            return FrameSpec()
        if not isinstance(raw, dict):
            self.problems.append(f"{where} must be an object")
            return FrameSpec()
        spec = FrameSpec(
            enabled=self.boolean(raw, "enabled", where, False),
            matte=self.number(raw, "matte", where, 0.0),
            frame=self.number(raw, "frame", where, 0.0),
            unit=self.text(raw, "unit", where, "in"),
            color=self.text(raw, "color", where, "black"),
        )
        if spec.matte < 0 or spec.frame < 0:
            self.problems.append(f"{where}: thickness must not be negative")
        if spec.unit not in ("in", "cm", "ft", "m"):
            self.problems.append(f"{where}.unit unknown: {spec.unit!r}")
        return spec


def _read_card(r: _Reader, raw: Any, pos: int) -> Card | None:
    where = f"photos[{pos}]"
    if not isinstance(raw, dict):
        r.problems.append(f"{where} must be an object")
        return None
    card_id = raw.get("id")
    if not isinstance(card_id, str) or not card_id:
        r.problems.append(f"{where}.id is missing")
        card_id = ""
    src = raw.get("src")
    if not is_valid_reference(src):
        r.problems.append(f"{where}.src is not a resolvable image reference ({src!r})")
        src = ""
    width = r.number(raw, "width", where)
    height = r.number(raw, "height", where)
    aspect = raw.get("aspectRatio")
    if isinstance(aspect, bool) or not isinstance(aspect, (int, float)) or not math.isfinite(aspect) or aspect <= 0:
        if width > 0 and height > 0:
            aspect = width / height
        else:
            r.problems.append(f"{where}.aspectRatio must be positive")
            aspect = 1.0
    if width <= 0 or height <= 0:
        r.problems.append(f"{where} width and height must be positive")
    elif width < MIN_SIZE or height < MIN_SIZE:
        logger.warning("{} smaller than {} px; clamping", where, MIN_SIZE)
        width, height = geometry.clamp_size(width, height)
    z_raw = raw.get("zIndex", 0)
    if isinstance(z_raw, bool) or not isinstance(z_raw, int):
        r.problems.append(f"{where}.zIndex must be an integer")
        z_raw = 0
    grid_index = raw.get("gridIndex")
    if grid_index is not None and (isinstance(grid_index, bool) or not isinstance(grid_index, int)):
        r.problems.append(f"{where}.gridIndex must be an integer or null")
        grid_index = None
    return Card(
        id=card_id,
        src=src,
        photographer=r.text(raw, "photographer", where),
        x=r.number(raw, "x", where),
        y=r.number(raw, "y", where),
        rotation=r.number(raw, "rotation", where, 0.0),
        width=width,
        height=height,
        aspect_ratio=float(aspect),
        sized=r.boolean(raw, "sized", where, True),
        z_index=z_raw,
        frame=r.frame(raw.get("frame"), f"{where}.frame"),
        grid_index=grid_index,
    )


def _read_wall(r: _Reader, raw: Any) -> Wall:
    if raw is None:
        return Wall()
    if not isinstance(raw, dict):
        r.problems.append("wall must be an object")
        return Wall()
    wall = Wall(
        width=r.number(raw, "width", "wall", 12.0),
        height=r.number(raw, "height", "wall", 10.0),
        unit=r.text(raw, "unit", "wall", "ft"),
        color=r.text(raw, "color", "wall", "#f0f0f0") or "#f0f0f0",
        visible=r.boolean(raw, "visible", "wall", False),
        scale=r.number(raw, "scale", "wall", 10.0),
    )
    if wall.width <= 0 or wall.height <= 0:
        r.problems.append("wall dimensions must be positive")
    if wall.scale <= 0:
        r.problems.append("wall.scale must be positive")
    if wall.unit not in WALL_UNITS:
        r.problems.append(f"wall.unit unknown: {wall.unit!r}")
    hang = raw.get("hangHeight")
    if isinstance(hang, dict):
        value = r.number(hang, "value", "wall.hangHeight")
        if value <= 0:
            r.problems.append("wall.hangHeight.value must be positive")
        wall.hang_height = HangHeight(
            value=value,
            unit=r.text(hang, "unit", "wall.hangHeight", "in"),
            enabled=r.boolean(hang, "enabled", "wall.hangHeight", True),
        )
        if wall.hang_height.unit not in WALL_UNITS:
            r.problems.append(f"wall.hangHeight.unit unknown: {wall.hang_height.unit!r}")
    elif hang is not None:
        r.problems.append("wall.hangHeight must be an object or null")
    return wall


def _read_settings(r: _Reader, raw: Any) -> EditorSettings:
    if raw is None:
        return EditorSettings()
    if not isinstance(raw, dict):
        r.problems.append("settings must be an object")
        return EditorSettings()
    settings = EditorSettings(
        grid_mode=r.boolean(raw, "gridMode", "settings", False),
        grid_locked=r.boolean(raw, "gridLocked", "settings", False),
        measurement_unit=r.text(raw, "measurementUnit", "settings", "px"),
        show_dimensions=r.boolean(raw, "showDimensions", "settings", False),
    )
    if settings.measurement_unit not in MEASUREMENT_UNITS:
        r.problems.append(f"settings.measurementUnit unknown: {settings.measurement_unit!r}")
    if raw.get("frameDefaults") is not None:
        settings.frame_defaults = r.frame(raw["frameDefaults"], "settings.frameDefaults")
    return settings


def detect_version(document: Any) -> int:
    """Return the document version; legacy documents without one count as 1."""
    if not isinstance(document, dict):
        raise LayoutParseError(["document root must be a JSON object"])
    version = document.get("version")
    if version is None:
        if "cards" in document:
            return 1
        raise LayoutParseError(["version field is missing"])
    if isinstance(version, bool) or not isinstance(version, int):
        raise LayoutParseError([f"version must be an integer (got {version!r})"])
    return version


def deserialize(document: Any) -> DecodedLayout:
    """Validate and decode a layout document.

    Raises:
        LayoutParseError: On any structural violation, listing every problem.
    """
    version = detect_version(document)
    migrated_from: int | None = None
    if version == 1:
        document = migrate_v1(document)
        migrated_from = 1
    elif version != FORMAT_VERSION:
        raise LayoutParseError([f"unsupported document version {version}"])

    r = _Reader()
    photos = document.get("photos")
    cards: list[Card] = []
    if not isinstance(photos, list):
        r.problems.append("photos must be a list")
    else:
        seen: set[str] = set()
        for pos, raw in enumerate(photos):
            card = _read_card(r, raw, pos)
            if card is None:
                continue
            if card.id and card.id in seen:
                r.problems.append(f"photos[{pos}].id duplicates {card.id}")
            seen.add(card.id)
            cards.append(card)

    wall = _read_wall(r, document.get("wall"))
    settings = _read_settings(r, document.get("settings"))
    title = r.text(document, "documentTitle", "document", "Untitled") or "Untitled"

    if r.problems:
        logger.warning("Layout rejected: {} problem(s)", len(r.problems))
        raise LayoutParseError(r.problems)
    return DecodedLayout(
        cards=cards, wall=wall, settings=settings, title=title, migrated_from=migrated_from
    )


# Migration
def _px(value: Any) -> Any:
    """Parse CSS pixel strings like "120.5px"; pass numbers through."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().removesuffix("px").strip()
        try:
            return float(text)
        except ValueError:
            return value
    return value


def migrate_v1(document: dict[str, Any]) -> dict[str, Any]:
    """Convert a legacy version-1 layout (`cards` with CSS px strings) to version 2."""
    legacy_cards = document.get("cards")
    photos: Any = legacy_cards
    if isinstance(legacy_cards, list):
        photos = []
        for item in legacy_cards:
            if not isinstance(item, dict):
                photos.append(item)
                continue
            z_raw = _px(item.get("zIndex"))
            framed = item.get("isFramedUpload") is True
            photos.append(
                {
                    "id": item.get("id") or uuid.uuid4().hex,
                    "src": item.get("src"),
                    "photographer": item.get("photographer") or "",
                    "x": _px(item.get("left", 0)),
                    "y": _px(item.get("top", 0)),
                    "rotation": _px(item.get("rotation", 0)),
                    "width": _px(item.get("width")),
                    "height": _px(item.get("height")),
                    "aspectRatio": item.get("aspectRatio"),
                    # Restored legacy cards always keep their saved size.
                    "sized": True,
                    "zIndex": int(z_raw) if isinstance(z_raw, (int, float)) else 0,
                    "gridIndex": None,
                    "frame": {
                        "enabled": framed,
                        "matte": _px(item.get("matteValue")) if framed and item.get("matteValue") is not None else 0.0,
                        "frame": _px(item.get("frameValue")) if framed and item.get("frameValue") is not None else 0.0,
                        "unit": (item.get("frameUnit") or "in") if framed else "in",
                        "color": (item.get("frameColor") or "black") if framed else "black",
                    },
                }
            )

    wall_raw = document.get("wall")
    wall: Any = wall_raw
    if isinstance(wall_raw, dict):
        wall = {
            "width": _px(wall_raw.get("width", 12)),
            "height": _px(wall_raw.get("height", 10)),
            "unit": wall_raw.get("unit") or "ft",
            "color": wall_raw.get("color") or "#f0f0f0",
            "visible": bool(wall_raw.get("visible", False)),
            "scale": _px(wall_raw.get("scale", 10)),
            "hangHeight": None,
        }
        hang = document.get("hangHeight")
        if isinstance(hang, dict):
            wall["hangHeight"] = {
                "value": _px(hang.get("value")),
                "unit": hang.get("unit") or "in",
                "enabled": hang.get("enabled") is not False,
            }

    return {
        "version": FORMAT_VERSION,
        "documentTitle": document.get("documentTitle") or "Untitled",
        "photos": photos,
        "wall": wall,
        "settings": None,
        "timestamp": document.get("timestamp"),
    }


# Files and share links
def sanitize_file_name(name: str | None) -> str:
    """Strip characters outside `[A-Za-z0-9-_ ]` and ensure the `.sequence` suffix."""
    raw = (name or "").strip()
    if raw.lower().endswith(FILE_SUFFIX):
        raw = raw[: -len(FILE_SUFFIX)]
    clean = _FILENAME_BAD.sub("", raw).strip()
    if not clean:
        clean = DEFAULT_FILE_NAME
    return clean + FILE_SUFFIX


def write_layout_file(path: str | Path, document: dict[str, Any]) -> Path:
    """Write `document` as pretty JSON; the file name is sanitized."""
    target = Path(path)
    target = target.with_name(sanitize_file_name(target.name))
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    logger.info("Layout written: {} ({} photos)", target, len(document.get("photos", [])))
    return target


def read_layout_file(path: str | Path) -> Any:
    """Read raw JSON from `path`; decode errors become `ValidationError`."""
    target = Path(path)
    try:
        with target.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as ex:
        raise LayoutParseError([f"not valid JSON: {ex.msg} (line {ex.lineno})"]) from ex
    except UnicodeDecodeError as ex:
        raise LayoutParseError(["file is not UTF-8 text"]) from ex


def to_share_token(document: dict[str, Any]) -> str:
    """URL-safe base64 encoding of a document for `?data=` share links."""
    payload = json.dumps(document, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(payload).decode("ascii")


def from_share_token(token: str) -> Any:
    """Decode a share token back to a raw document."""
    try:
        payload = base64.urlsafe_b64decode(token.encode("ascii"))
        return json.loads(payload.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as ex:
        raise ValidationError(f"Invalid share token: {ex}") from ex
