"""
UI/view constants centralized for reuse across view modules.

Geometry values are in scene pixels, which map 1:1 to canvas coordinates.
"""

from __future__ import annotations

from PySide6.QtGui import QColor

# Canvas chrome
CANVAS_BACKGROUND = QColor("#fafafa")
SELECTION_COLOR = QColor("#2f80ed")
MARQUEE_FILL = QColor(47, 128, 237, 40)
HANG_LINE_COLOR = QColor("#d9534f")
CAPTION_COLOR = QColor("#555555")
DIMENSION_COLOR = QColor("#1a1a1a")

# Handles
HANDLE_SIZE: float = 10.0
HANDLE_HIT_SLOP: float = 4.0
ROTATE_HANDLE_OFFSET: float = 24.0
RESIZE_HANDLES: tuple[str, ...] = ("nw", "ne", "sw", "se")

# Keyboard nudge
NUDGE_PX: float = 10.0
NUDGE_FINE_PX: float = 1.0

# Toolbar
ADD_PHOTOS_COUNT: int = 1
STATUS_TIMEOUT_MS: int = 3000

# Frame colors offered in the frame dialog
FRAME_COLORS: list[str] = ["black", "white", "#8b5a2b", "#c0c0c0", "#d4af37"]
