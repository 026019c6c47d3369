"""Row-packing grid layout and live insertion-slot search.

The packer walks cards left to right and wraps to a new row whenever the next
card would cross `container_width - margin`. The insertion search re-runs the
packer once per candidate index, which makes it O(N^2) per pointer move. That
cost is accepted for the tens of cards a collage holds.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import math

from core.models import Card
from core.services import geometry


@dataclass(frozen=True)
class GridConfig:
    """Grid spacing and breakpoint parameters, in screen pixels."""

    origin_x: float = 50.0
    origin_y: float = 150.0
    gutter: float = 20.0
    margin: float = 50.0
    min_height: float = 400.0
    row_tolerance: float = 50.0
    narrow_breakpoint: float = geometry.NARROW_BREAKPOINT
    narrow_width: float = geometry.NARROW_CARD_WIDTH
    wide_width: float = geometry.WIDE_CARD_WIDTH

    @classmethod
    def from_settings(cls, settings) -> GridConfig:
        """Build from a `JsonSettings`-like object exposing `get_float`."""
        if settings is None:
            return cls()
        base = cls()
        return cls(
            **{
                name: settings.get_float(f"grid.{name}", getattr(base, name))
                for name in cls.__dataclass_fields__
            }
        )


@dataclass(frozen=True)
class Slot:
    """Packed position of one card."""

    card_id: str
    index: int
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)


@dataclass
class PackResult:
    slots: list[Slot] = field(default_factory=list)
    content_height: float = 0.0

    def slot_for(self, card_id: str) -> Slot:
        for slot in self.slots:
            if slot.card_id == card_id:
                return slot
        raise KeyError(card_id)


class GridLayoutEngine:
    """Deterministic row packer; no state beyond its config."""

    def __init__(self, config: GridConfig | None = None) -> None:
        self.config = config or GridConfig()

    def default_width(self, viewport_width: float) -> float:
        cfg = self.config
        return cfg.narrow_width if viewport_width < cfg.narrow_breakpoint else cfg.wide_width

    def default_size(self, aspect_ratio: float, viewport_width: float) -> tuple[float, float]:
        """Breakpoint width at `aspect_ratio`, grown so neither side is below the minimum."""
        width = self.default_width(viewport_width)
        return geometry.clamp_size(width, width / aspect_ratio)

    def card_size(self, card: Card, viewport_width: float) -> tuple[float, float]:
        """Explicit size for sized cards, breakpoint default for the rest."""
        if card.sized:
            return (card.width, card.height)
        return self.default_size(card.aspect_ratio, viewport_width)

    def pack(
        self, cards: Sequence[Card], container_width: float, viewport_width: float | None = None
    ) -> PackResult:
        """Compute row-packed slots for `cards` in their given order.

        Args:
            cards: Cards in grid order.
            container_width: Width of the gallery area.
            viewport_width: Used for the breakpoint default size of unsized
                cards; defaults to `container_width`.
        """
        if viewport_width is None:
            viewport_width = container_width
        cfg = self.config
        result = PackResult()
        if not cards:
            result.content_height = cfg.min_height
            return result

        x = cfg.origin_x
        y = cfg.origin_y
        row_height = 0.0
        limit = container_width - cfg.margin
        for index, card in enumerate(cards):
            w, h = self.card_size(card, viewport_width)
            if x + w > limit and x > cfg.origin_x:
                y += row_height + cfg.gutter
                x = cfg.origin_x
                row_height = 0.0
            result.slots.append(Slot(card.id, index, x, y, w, h))
            x += w + cfg.gutter
            row_height = max(row_height, h)

        result.content_height = max(cfg.min_height, y + row_height + cfg.origin_y)
        return result

    def apply(self, cards: Sequence[Card], result: PackResult, skip_id: str | None = None) -> None:
        """Write packed geometry back onto the cards.

        Grid mode is axis-aligned, so rotation is reset. `skip_id` leaves the
        card under the pointer where the user is holding it.
        """
        by_id = {c.id: c for c in cards}
        for slot in result.slots:
            card = by_id[slot.card_id]
            card.grid_index = slot.index
            if slot.card_id == skip_id:
                continue
            card.x = slot.x
            card.y = slot.y
            card.width = slot.width
            card.height = slot.height
            card.rotation = 0.0

    def layout(
        self, cards: Sequence[Card], container_width: float, viewport_width: float | None = None
    ) -> PackResult:
        """Pack and apply in one step."""
        result = self.pack(cards, container_width, viewport_width)
        self.apply(cards, result)
        return result

    def find_insertion_index(
        self,
        moving: Card,
        center: tuple[float, float],
        others: Sequence[Card],
        container_width: float,
        viewport_width: float | None = None,
    ) -> int:
        """Index in `others` where inserting `moving` puts it closest to `center`.

        Every candidate index 0..len(others) is packed in full and the slot
        center of `moving` is compared to `center` by Euclidean distance. Ties
        go to the lowest index.
        """
        best_index = 0
        best_distance = math.inf
        for i in range(len(others) + 1):
            trial = [*others[:i], moving, *others[i:]]
            slot = self.pack(trial, container_width, viewport_width).slots[i]
            sx, sy = slot.center
            distance = math.hypot(center[0] - sx, center[1] - sy)
            if distance < best_distance:
                best_distance = distance
                best_index = i
        return best_index

    def snap_order(self, cards: Sequence[Card]) -> list[Card]:
        """Order cards by reading position to establish the initial grid order.

        Cards are bucketed into rows: a card joins the current row while its y
        lies within `row_tolerance` of the row's first card. Rows are then
        read left to right. Already-packed cards keep their order.
        """
        tol = self.config.row_tolerance
        by_y = sorted(enumerate(cards), key=lambda p: (p[1].y, p[1].x, p[0]))
        rows: list[list[tuple[int, Card]]] = []
        for item in by_y:
            if rows and abs(item[1].y - rows[-1][0][1].y) < tol:
                rows[-1].append(item)
            else:
                rows.append([item])
        ordered: list[Card] = []
        for row in rows:
            row.sort(key=lambda p: (p[1].x, p[0]))
            ordered.extend(card for _, card in row)
        return ordered

    def refresh_default_sizes(self, cards: Sequence[Card], viewport_width: float) -> int:
        """Recompute default size for unsized cards; sized cards are untouched.

        Returns:
            Number of cards whose size changed.
        """
        changed = 0
        for card in cards:
            if card.sized:
                continue
            w, h = self.card_size(card, viewport_width)
            if (w, h) != (card.width, card.height):
                card.width, card.height = w, h
                changed += 1
        return changed
