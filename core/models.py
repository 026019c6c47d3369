"""Core domain models for cards, frames, the wall and editor state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import math

MIN_SIZE = 50.0
Z_INDEX_BASE = 10000

FRAME_UNITS = ("in", "cm", "ft", "m")
WALL_UNITS = ("ft", "in", "cm", "m")
MEASUREMENT_UNITS = ("px", "in", "mm")


@dataclass
class FrameSpec:
    """Matte/frame descriptor; thicknesses are expressed in `unit`."""

    enabled: bool = False
    matte: float = 0.0
    frame: float = 0.0
    unit: str = "in"
    color: str = "black"


@dataclass
class Card:
    """A single photo placed on the canvas.

    Geometry is canonical as (x, y, rotation); `left/top` style positioning is
    purely a rendering concern.
    """

    id: str
    src: str
    photographer: str = ""
    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    width: float = 220.0
    height: float = 165.0
    aspect_ratio: float = 1.5
    sized: bool = False
    z_index: int = Z_INDEX_BASE
    frame: FrameSpec = field(default_factory=FrameSpec)
    selected: bool = False
    grid_index: int | None = None

    @property
    def center(self) -> tuple[float, float]:
        """Center point of the card's unrotated bounding box."""
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def bounds(self) -> tuple[float, float, float, float]:
        """Return (x1, y1, x2, y2) of the unrotated bounding box."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def copy(self) -> Card:
        """Deep copy (the only nested mutable is the frame)."""
        return replace(self, frame=replace(self.frame))


@dataclass
class HangHeight:
    """Horizontal guide line measured from the floor of the wall."""

    value: float
    unit: str = "in"
    enabled: bool = True


@dataclass
class Wall:
    """Optional backdrop representing a real-world surface.

    `scale` is derived (pixels per foot) and recomputed by the editor whenever
    dimensions, unit or viewport change.
    """

    width: float = 12.0
    height: float = 10.0
    unit: str = "ft"
    color: str = "#f0f0f0"
    visible: bool = False
    scale: float = 10.0
    hang_height: HangHeight | None = None

    def copy(self) -> Wall:
        hang = replace(self.hang_height) if self.hang_height is not None else None
        return replace(self, hang_height=hang)


@dataclass
class EditorSettings:
    """Editor-wide toggles and the live frame settings."""

    frame_defaults: FrameSpec = field(
        default_factory=lambda: FrameSpec(enabled=True, matte=0.0, frame=0.0)
    )
    grid_mode: bool = False
    grid_locked: bool = False
    measurement_unit: str = "px"
    show_dimensions: bool = False

    def copy(self) -> EditorSettings:
        return replace(self, frame_defaults=replace(self.frame_defaults))


@dataclass
class EditorState:
    """The single mutable editor state shared by all engines."""

    cards: list[Card] = field(default_factory=list)
    wall: Wall = field(default_factory=Wall)
    settings: EditorSettings = field(default_factory=EditorSettings)
    title: str = "Untitled"
    viewport_width: float = 1280.0
    viewport_height: float = 800.0


@dataclass(frozen=True)
class Snapshot:
    """Deep-copied, value-comparable capture of {cards, wall, title}.

    Selection flags are cleared so that selecting cards never produces a
    history entry.
    """

    cards: tuple[Card, ...]
    wall: Wall
    title: str

    @classmethod
    def capture(cls, state: EditorState) -> Snapshot:
        cards = []
        for card in state.cards:
            c = card.copy()
            c.selected = False
            cards.append(c)
        return cls(cards=tuple(cards), wall=state.wall.copy(), title=state.title)

    def restore_cards(self) -> list[Card]:
        """Fresh mutable copies of the captured cards."""
        return [c.copy() for c in self.cards]


def is_finite_number(value: object) -> bool:
    """True for int/float values that are neither NaN nor infinite."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
