"""Unit conversion, aspect-preserving resize math and wall scale computation.

All inputs are validated at this boundary so that NaN or non-positive
dimensions never reach the layout or history engines.
"""

from __future__ import annotations

import math

from core.errors import ValidationError
from core.models import MIN_SIZE, FrameSpec, Wall

PX_PER_INCH = 96
CM_PER_INCH = 2.54

# Screen real estate reserved around the wall backdrop.
WALL_LEFT_UI = 300
WALL_RIGHT_MARGIN = 40
WALL_VERTICAL_CHROME = 60
WALL_TOP = 40
HANG_SNAP_RANGE = 12.0

# px per foot used for frame borders when no wall is shown
FALLBACK_FRAME_SCALE = 4.0

NARROW_BREAKPOINT = 768
NARROW_CARD_WIDTH = 130.0
WIDE_CARD_WIDTH = 220.0

_TO_FEET = {
    "ft": 1.0,
    "in": 1.0 / 12.0,
    "cm": 1.0 / 30.48,
    "m": 3.28084,
}


def to_feet(value: float, unit: str) -> float:
    """Convert `value` expressed in `unit` (ft/in/cm/m) to feet."""
    try:
        return float(value) * _TO_FEET[unit]
    except KeyError as ex:
        raise ValidationError(f"Unknown unit: {unit!r}") from ex


def px_to_unit(pixels: float, unit: str) -> str:
    """Format a screen pixel length in px, in or mm for dimension labels."""
    if unit == "in":
        return f"{pixels / PX_PER_INCH:.2f}"
    if unit == "mm":
        return f"{pixels / PX_PER_INCH * 25.4:.2f}"
    if unit == "px":
        return str(round(pixels))
    raise ValidationError(f"Unknown measurement unit: {unit!r}")


def dimension_label(
    width: float, height: float, border: tuple[float, float], unit: str
) -> str:
    """Two-line label: picture size, then the outer size including matte and frame."""
    outer = 2 * (border[0] + border[1])
    picture = f"{px_to_unit(width, unit)} {unit} × {px_to_unit(height, unit)} {unit}"
    framed = f"{px_to_unit(width + outer, unit)} {unit} × {px_to_unit(height + outer, unit)} {unit}"
    return f"{picture}\n{framed}"


def parse_dimension(raw: object) -> float:
    """Parse a user-entered dimension; reject NaN, infinities and values <= 0."""
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError) as ex:
        raise ValidationError(f"Not a number: {raw!r}") from ex
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"Dimension must be a positive number, got {raw!r}")
    return value


def compute_wall_scale(
    width: float, height: float, unit: str, viewport_width: float, viewport_height: float
) -> float:
    """Return pixels per foot so the wall fits the available viewport area.

    Raises:
        ValidationError: If either wall dimension is not a positive number.
    """
    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        raise ValidationError(f"Wall dimensions must be positive: {width} x {height}")
    width_ft = to_feet(width, unit)
    height_ft = to_feet(height, unit)
    avail_w = max(1.0, viewport_width - WALL_LEFT_UI - WALL_RIGHT_MARGIN)
    avail_h = max(1.0, viewport_height - WALL_VERTICAL_CHROME)
    return max(1e-6, min(avail_w / width_ft, avail_h / height_ft))


def wall_pixel_size(wall: Wall) -> tuple[float, float]:
    """On-screen (width, height) of the wall at its current scale."""
    return (to_feet(wall.width, wall.unit) * wall.scale, to_feet(wall.height, wall.unit) * wall.scale)


def hang_line_y(wall: Wall) -> float | None:
    """Y offset of the hang-height line from the top of the wall, if enabled."""
    hang = wall.hang_height
    if not wall.visible or hang is None or not hang.enabled:
        return None
    _, wall_h = wall_pixel_size(wall)
    return wall_h - to_feet(hang.value, hang.unit) * wall.scale


def wall_origin() -> tuple[float, float]:
    """Canvas position of the wall's top-left corner."""
    return (float(WALL_LEFT_UI), float(WALL_TOP))


def snap_to_hang_line(center_y: float, wall: Wall, snap_range: float = HANG_SNAP_RANGE) -> float:
    """Vertical offset that moves `center_y` onto the hang line when within range."""
    line = hang_line_y(wall)
    if line is None:
        return 0.0
    line_canvas = wall_origin()[1] + line
    delta = line_canvas - center_y
    return delta if abs(delta) < snap_range else 0.0


def frame_border_px(frame: FrameSpec, wall: Wall) -> tuple[float, float]:
    """Return (matte_px, frame_px) border thickness for a framed card.

    Borders follow the wall's real-world scale when the wall is visible and a
    fixed fallback of 4 px per foot otherwise.
    """
    if not frame.enabled:
        return (0.0, 0.0)
    scale = wall.scale if wall.visible else FALLBACK_FRAME_SCALE
    return (to_feet(frame.matte, frame.unit) * scale, to_feet(frame.frame, frame.unit) * scale)


def clamp_size(width: float, height: float, min_size: float = MIN_SIZE) -> tuple[float, float]:
    """Grow (width, height) until both sides reach `min_size`, keeping the ratio."""
    if width >= min_size and height >= min_size:
        return (width, height)
    if height <= width:
        return (width * min_size / height, float(min_size))
    return (float(min_size), height * min_size / width)


def fit_natural_size(width: int, height: int, max_side: int = 1000) -> tuple[int, int]:
    """Downscale natural image dimensions so the longer side is <= `max_side`."""
    width = max(1, int(width))
    height = max(1, int(height))
    if width > max_side or height > max_side:
        scale = max_side / max(width, height)
        width = max(1, round(width * scale))
        height = max(1, round(height * scale))
    return width, height


def resize_from_handle(
    handle: str,
    start: tuple[float, float, float, float],
    dx: float,
    dy: float,
    aspect: float,
    min_size: float = MIN_SIZE,
) -> tuple[float, float, float, float]:
    """Aspect-preserving resize driven by one of the corner handles.

    Args:
        handle: One of "nw", "ne", "sw", "se" (plain "n"/"s"/"e"/"w" also work).
        start: (x, y, width, height) when the gesture began.
        dx: Pointer delta along x since the gesture began.
        dy: Pointer delta along y since the gesture began.
        aspect: Width / height ratio to preserve.
        min_size: Floor for the driving dimension.

    Returns:
        New (x, y, width, height). The edge opposite to the handle stays put.
        Neither dimension drops below `min_size`.
    """
    if aspect <= 0:
        raise ValidationError(f"Aspect ratio must be positive, got {aspect}")
    x0, y0, w0, h0 = start
    north, south = "n" in handle, "s" in handle
    west, east = "w" in handle, "e" in handle

    if north or south:
        h = h0 - dy if north else h0 + dy
        h = max(min_size, h)
        w = h * aspect
    elif east or west:
        w = w0 - dx if west else w0 + dx
        w = max(min_size, w)
        h = w / aspect
    else:
        raise ValidationError(f"Unknown resize handle: {handle!r}")

    # The driving dimension respects the floor; clamp the derived one too.
    w, h = clamp_size(w, h, min_size)

    if north or south:
        x = x0 if east else x0 + (w0 - w)
        y = y0 + (h0 - h) if north else y0
    else:
        x = x0 + (w0 - w) if west else x0
        y = y0
    return (x, y, w, h)


def rotation_from_pointer(
    center: tuple[float, float],
    pointer: tuple[float, float],
    start_pointer: tuple[float, float],
    start_rotation: float,
) -> float:
    """Rotation (degrees, normalized to [0, 360)) after dragging the rotate handle."""
    cx, cy = center
    a0 = math.atan2(start_pointer[1] - cy, start_pointer[0] - cx)
    a1 = math.atan2(pointer[1] - cy, pointer[0] - cx)
    return (start_rotation + math.degrees(a1 - a0)) % 360.0


def rects_intersect(
    a: tuple[float, float, float, float], b: tuple[float, float, float, float]
) -> bool:
    """Closed-interval intersection of two (x1, y1, x2, y2) rectangles."""
    return not (a[2] < b[0] or a[0] > b[2] or a[3] < b[1] or a[1] > b[3])


def normalize_rect(
    p1: tuple[float, float], p2: tuple[float, float]
) -> tuple[float, float, float, float]:
    return (min(p1[0], p2[0]), min(p1[1], p2[1]), max(p1[0], p2[0]), max(p1[1], p2[1]))
