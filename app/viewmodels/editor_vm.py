"""View-model owning the editor state and exposing the toolbar operation set."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
import random
from typing import Any
import uuid

from loguru import logger

from core.errors import ResourceResolutionError, ValidationError
from core.models import (
    FRAME_UNITS,
    MEASUREMENT_UNITS,
    WALL_UNITS,
    Card,
    EditorState,
    FrameSpec,
    HangHeight,
    Snapshot,
)
from core.services import geometry
from core.services.card_registry import CardRegistry
from core.services.grid_layout import GridConfig, GridLayoutEngine
from core.services.history import (
    DEFAULT_CAPACITY,
    DEFAULT_COALESCE_SECONDS,
    History,
    RestoreGuard,
)
from core.services.interaction import InteractionController
from core.services.interfaces import ImageStore, LoadResult, PhotoRef, PhotoSource
from infrastructure import layout_codec

# Random placement keeps new cards clear of the toolbar column.
PLACEMENT_LEFT_OFFSET = 280
PLACEMENT_RIGHT_OFFSET = 10
PLACEMENT_MIN_TOP = 100
DUPLICATE_OFFSET = 30

ImageLoader = Callable[[Card, Callable[[], None]], None]


class EditorVM:
    """Main editor view-model.

    Owns the single `EditorState` and wires the registry, grid engine, history
    and interaction controller around it. Every public mutating operation ends
    with exactly one history record.
    """

    def __init__(
        self,
        photo_source: PhotoSource | None = None,
        image_store: ImageStore | None = None,
        settings: Any | None = None,
        state: EditorState | None = None,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Create an EditorVM.

        Args:
            photo_source: Catalog used by `add_cards`.
            image_store: Resolves and stores `local:` uploads.
            settings: `JsonSettings`-like object for history/grid/wall keys.
            state: Initial state (a fresh empty state by default).
            clock: Monotonic clock for history timestamps and coalescing.
            rng: Random source for initial card placement.
        """
        self.state = state or EditorState()
        self._settings = settings
        self._photos = photo_source
        self._images = image_store
        self._rng = rng or random.Random()
        self._listeners: list[Callable[[], None]] = []
        self._image_loader: ImageLoader | None = None

        self.registry = CardRegistry(self.state.cards)
        self.grid = GridLayoutEngine(GridConfig.from_settings(settings))
        capacity = DEFAULT_CAPACITY
        coalesce = DEFAULT_COALESCE_SECONDS
        if settings is not None:
            capacity = settings.get_int("history.capacity", DEFAULT_CAPACITY)
            coalesce = settings.get_float("history.coalesce_seconds", DEFAULT_COALESCE_SECONDS)
        self.history = History(self, capacity=capacity, coalesce_seconds=coalesce, clock=clock)
        self.interaction = InteractionController(
            self.state,
            self.registry,
            self.grid,
            self.history,
            commit=self.commit,
            container_width=lambda: self.container_width,
        )
        self.history.reset("init")

    # Plumbing
    @property
    def container_width(self) -> float:
        return self.state.viewport_width

    @property
    def cards(self) -> list[Card]:
        return self.registry.cards

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Register a callback fired after every state change."""
        self._listeners.append(callback)

    def set_image_loader(self, loader: ImageLoader | None) -> None:
        """Install the hook that (re)decodes a card's image asynchronously.

        The loader receives the card and a completion callable it must invoke
        when decoding finished. During restores this keeps the history guard
        held until every image has settled.
        """
        self._image_loader = loader

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb()

    def commit(self, kind: str, force: bool = False) -> bool:
        """Record one history entry for a completed mutation and notify views."""
        recorded = self.history.record(kind, force=force)
        self._notify()
        return recorded

    # StateSource
    def capture(self) -> Snapshot:
        return Snapshot.capture(self.state)

    def apply(self, snapshot: Snapshot, guard: RestoreGuard) -> None:
        """Restore `snapshot` into the live state, keeping surviving selections."""
        selected = set(self.registry.selected_ids())
        cards = snapshot.restore_cards()
        for card in cards:
            card.selected = card.id in selected
        self.registry.replace_all(cards)
        self.state.wall = snapshot.wall.copy()
        self.state.title = snapshot.title
        self._refresh_wall_scale()
        self.grid.refresh_default_sizes(self.registry.cards, self.state.viewport_width)
        if self._image_loader is not None:
            for card in self.registry.cards:
                self._image_loader(card, guard.defer())
        self._notify()

    # Card creation
    def _new_id(self) -> str:
        card_id = uuid.uuid4().hex[:12]
        while card_id in self.registry:
            card_id = uuid.uuid4().hex[:12]
        return card_id

    def _make_card(self, photo: PhotoRef) -> Card:
        aspect = photo.aspect_ratio
        if aspect is None and self._images is not None:
            size = self._images.natural_size(photo.src)
            if size:
                aspect = size[0] / size[1]
        aspect = aspect or 1.5
        width, height = self.grid.default_size(aspect, self.state.viewport_width)
        gallery_w = self.container_width
        span_x = max(0.0, gallery_w - width - PLACEMENT_LEFT_OFFSET - PLACEMENT_RIGHT_OFFSET)
        span_y = max(0.0, self.state.viewport_height - height - 10)
        return Card(
            id=self._new_id(),
            src=photo.src,
            photographer=photo.photographer,
            x=self._rng.random() * span_x + PLACEMENT_LEFT_OFFSET,
            y=max(PLACEMENT_MIN_TOP, self._rng.random() * span_y),
            width=width,
            height=height,
            aspect_ratio=aspect,
            sized=False,
        )

    def _place_new(self, photos: Iterable[PhotoRef]) -> list[Card]:
        added = [self.registry.add(self._make_card(p)) for p in photos]
        if added and self.state.settings.grid_mode:
            self._relayout()
        for card in added:
            if self._image_loader is not None:
                self._image_loader(card, lambda: None)
        return added

    def add_cards(self, count: int) -> list[Card]:
        """Add up to `count` photos drawn from the photo source."""
        if self._photos is None or count <= 0:
            return []
        added = self._place_new(self._photos.draw(count))
        if added:
            logger.info("Added {} photo(s)", len(added))
            self.commit("add")
        return added

    def add_uploads(self, blobs: Iterable[bytes], photographer: str = "Local Upload") -> list[Card]:
        """Store uploaded image bytes and add one card per upload.

        Every upload is stored before any card is created, so an unreadable
        file leaves the canvas unchanged.
        """
        if self._images is None:
            raise ResourceResolutionError("local:", "no image store configured")
        refs = [self._images.store(data) for data in blobs]
        photos = []
        for ref in refs:
            size = self._images.natural_size(ref) or (0, 0)
            photos.append(PhotoRef(src=ref, photographer=photographer, width=size[0], height=size[1]))
        added = self._place_new(photos)
        if added:
            logger.info("Uploaded {} photo(s)", len(added))
            self.commit("add")
        return added

    def on_image_loaded(self, card_id: str, natural_width: int, natural_height: int) -> bool:
        """Auto-size an unsized card from its decoded natural dimensions.

        Cards with an explicit size (user resize or restored from a layout)
        are left alone.
        """
        if card_id not in self.registry:
            return False
        card = self.registry.get(card_id)
        if card.sized or natural_width <= 0 or natural_height <= 0:
            return False
        w, h = geometry.fit_natural_size(natural_width, natural_height)
        card.aspect_ratio = w / h
        card.width, card.height = self.grid.card_size(card, self.state.viewport_width)
        if self.state.settings.grid_mode:
            self._relayout()
        self.history.amend()
        self._notify()
        return True

    # Removal
    def erase_all(self) -> bool:
        """Remove every card and hide the wall."""
        if not len(self.registry) and not self.state.wall.visible:
            return False
        self.interaction.cancel()
        self.registry.clear()
        self.state.wall.visible = False
        if self._photos is not None:
            self._photos.reset()
        logger.info("Erased all cards")
        return self.commit("remove_all")

    def delete_selected(self) -> int:
        ids = self.registry.selected_ids()
        for card_id in ids:
            self.registry.remove(card_id)
        if ids:
            if self.state.settings.grid_mode:
                self._relayout()
            self.commit("remove")
        return len(ids)

    def duplicate_selected(self) -> list[Card]:
        """Copy each selected card 30 px down and right; the copies become the selection."""
        originals = self.registry.selected()
        if not originals or self.interaction.active:
            return []
        copies = []
        for card in originals:
            clone = card.copy()
            clone.id = self._new_id()
            clone.x += DUPLICATE_OFFSET
            clone.y += DUPLICATE_OFFSET
            clone.grid_index = None
            copies.append(self.registry.add(clone))
        self.registry.select([c.id for c in copies])
        if self.state.settings.grid_mode:
            self._relayout()
        logger.info("Duplicated {} card(s)", len(copies))
        self.commit("add")
        return copies

    # Selection
    def select(self, card_ids: Iterable[str], additive: bool = False) -> None:
        self.registry.select(card_ids, additive)
        self._notify()

    def select_all(self) -> None:
        self.registry.select_all()
        self._notify()

    def clear_selection(self) -> None:
        self.registry.clear_selection()
        self._notify()

    def _resolve_selection(self, selection: Iterable[str] | None) -> list[Card]:
        ids = list(selection) if selection is not None else self.registry.selected_ids()
        return [self.registry.get(i) for i in ids]

    # Grid
    def _relayout(self) -> None:
        self.grid.layout(self.registry.cards, self.container_width, self.state.viewport_width)

    def snap_to_grid(self) -> bool:
        """Order cards by reading position, pack them and record a `snap`."""
        if not len(self.registry):
            return False
        ordered = self.grid.snap_order(self.registry.cards)
        self.registry.reorder([c.id for c in ordered])
        self._relayout()
        return self.commit("snap")

    def toggle_grid(self) -> bool:
        """Enter or leave grid mode; entering snaps the cards into rows."""
        settings = self.state.settings
        settings.grid_mode = not settings.grid_mode
        if settings.grid_mode:
            self.snap_to_grid()
        else:
            settings.grid_locked = False
            for card in self.registry:
                card.grid_index = None
            self.commit("snap")
        logger.info("Grid mode {}", "on" if settings.grid_mode else "off")
        return settings.grid_mode

    def toggle_lock(self) -> bool:
        """Lock or unlock the grid; locking implies grid mode and disables resize."""
        settings = self.state.settings
        settings.grid_locked = not settings.grid_locked
        if settings.grid_locked:
            settings.grid_mode = True
            self.snap_to_grid()
        logger.info("Grid lock {}", "on" if settings.grid_locked else "off")
        return settings.grid_locked

    # History
    def undo(self) -> bool:
        if self.interaction.active:
            return False
        return self.history.undo()

    def redo(self) -> bool:
        if self.interaction.active:
            return False
        return self.history.redo()

    # Persistence
    def save(self, path: str | Path | None = None, now: datetime | None = None) -> dict[str, Any]:
        """Serialize the arrangement; also writes a `.sequence` file when `path` is given."""
        document = layout_codec.serialize(self.state, now)
        if path is not None:
            layout_codec.write_layout_file(path, document)
        return document

    def load(self, document: Any) -> LoadResult:
        """Replace the arrangement with `document`, all-or-nothing.

        Raises:
            LayoutParseError: If the document is structurally invalid.
            ResourceResolutionError: If a `local:` reference cannot be resolved.
        """
        try:
            decoded = layout_codec.deserialize(document)
            self._check_references(decoded.cards)
            if decoded.wall.visible:
                decoded.wall.scale = geometry.compute_wall_scale(
                    decoded.wall.width,
                    decoded.wall.height,
                    decoded.wall.unit,
                    self.state.viewport_width,
                    self.state.viewport_height,
                )
        except (ValidationError, ResourceResolutionError) as ex:
            logger.error("Load failed: {}", ex)
            raise

        self.interaction.cancel()
        self.registry.replace_all(decoded.cards)
        self.state.wall = decoded.wall
        self.state.settings = decoded.settings
        self.state.title = decoded.title
        self.grid.refresh_default_sizes(self.registry.cards, self.state.viewport_width)
        logger.info(
            "Layout loaded: {} cards, wall {}",
            len(self.registry),
            "visible" if decoded.wall.visible else "hidden",
        )
        self.commit("load", force=True)
        return LoadResult(
            card_count=len(self.registry),
            wall_visible=decoded.wall.visible,
            migrated_from=decoded.migrated_from,
        )

    def load_file(self, path: str | Path) -> LoadResult:
        return self.load(layout_codec.read_layout_file(path))

    def load_share_token(self, token: str) -> LoadResult:
        """Load a layout from a share token produced by `layout_codec.to_share_token`."""
        try:
            document = layout_codec.from_share_token(token.strip())
        except ValidationError as ex:
            logger.error("Share token rejected: {}", ex)
            raise
        return self.load(document)

    def _check_references(self, cards: list[Card]) -> None:
        for card in cards:
            if layout_codec.local_id(card.src) is None:
                continue
            if self._images is None:
                raise ResourceResolutionError(card.src, "no image store configured")
            self._images.resolve(card.src)

    # Frames
    def set_frame_defaults(self, descriptor: FrameSpec) -> None:
        """Update the live frame settings used by `apply_frame`."""
        self._validate_frame(descriptor)
        self.state.settings.frame_defaults = FrameSpec(
            enabled=True,
            matte=descriptor.matte,
            frame=descriptor.frame,
            unit=descriptor.unit,
            color=descriptor.color,
        )

    @staticmethod
    def _validate_frame(descriptor: FrameSpec) -> None:
        for name in ("matte", "frame"):
            value = getattr(descriptor, name)
            if not isinstance(value, (int, float)) or value != value or value < 0:
                raise ValidationError(f"Frame {name} must be a non-negative number")
        if descriptor.unit not in FRAME_UNITS:
            raise ValidationError(f"Unknown frame unit: {descriptor.unit!r}")

    def apply_frame(
        self, selection: Iterable[str] | None = None, descriptor: FrameSpec | None = None
    ) -> int:
        """Frame the given cards (default: the selection) with `descriptor`."""
        spec = descriptor or self.state.settings.frame_defaults
        self._validate_frame(spec)
        cards = self._resolve_selection(selection)
        for card in cards:
            card.frame = FrameSpec(
                enabled=True, matte=spec.matte, frame=spec.frame, unit=spec.unit, color=spec.color
            )
        if cards:
            self.commit("frame_apply")
        return len(cards)

    def remove_frame(self, selection: Iterable[str] | None = None) -> int:
        cards = [c for c in self._resolve_selection(selection) if c.frame.enabled]
        for card in cards:
            card.frame = FrameSpec()
        if cards:
            self.commit("frame_remove")
        return len(cards)

    # Wall
    def _refresh_wall_scale(self) -> None:
        wall = self.state.wall
        if not wall.visible:
            return
        try:
            wall.scale = geometry.compute_wall_scale(
                wall.width,
                wall.height,
                wall.unit,
                self.state.viewport_width,
                self.state.viewport_height,
            )
        except ValidationError as ex:
            logger.warning("Wall scale not recomputed: {}", ex)

    def set_wall(self, width: Any = None, height: Any = None, unit: str | None = None) -> float:
        """Show the wall with real-world dimensions; returns the new px-per-foot scale.

        Empty input falls back to the configured default wall (12 x 10 ft).

        Raises:
            ValidationError: For non-numeric or non-positive dimensions.
        """
        if width in (None, "") or height in (None, ""):
            width, height, unit = self._default_wall()
        w = geometry.parse_dimension(width)
        h = geometry.parse_dimension(height)
        unit = unit or "ft"
        if unit not in WALL_UNITS:
            raise ValidationError(f"Unknown wall unit: {unit!r}")
        scale = geometry.compute_wall_scale(
            w, h, unit, self.state.viewport_width, self.state.viewport_height
        )
        wall = self.state.wall
        wall.width, wall.height, wall.unit = w, h, unit
        wall.scale = scale
        wall.visible = True
        logger.info("Wall set to {} x {} {} (scale {:.3f} px/ft)", w, h, unit, scale)
        self.commit("wall_set")
        return scale

    def _default_wall(self) -> tuple[float, float, str]:
        if self._settings is None:
            return (12.0, 10.0, "ft")
        return (
            self._settings.get_float("wall.default_width", 12.0),
            self._settings.get_float("wall.default_height", 10.0),
            str(self._settings.get("wall.default_unit", "ft") or "ft"),
        )

    def erase_wall(self) -> bool:
        wall = self.state.wall
        if not wall.visible:
            return False
        wall.visible = False
        wall.hang_height = None
        logger.info("Wall erased")
        return self.commit("wall_erase")

    def set_wall_color(self, color: str) -> bool:
        self.state.wall.color = color
        return self.commit("wall_set")

    def set_hang_height(self, value: Any, unit: str = "in", enabled: bool = True) -> bool:
        """Set the hang-height guide line measured from the floor.

        Raises:
            ValidationError: If no wall is shown or the height is invalid.
        """
        if not self.state.wall.visible:
            raise ValidationError("Create a wall first.")
        height = geometry.parse_dimension(value)
        geometry.to_feet(height, unit)
        self.state.wall.hang_height = HangHeight(value=height, unit=unit, enabled=enabled)
        return self.commit("wall_set")

    # Misc
    def set_title(self, title: str) -> bool:
        self.state.title = (title or "").strip() or "Untitled"
        return self.commit("title")

    # Dimension labels are a view preference and stay out of the history.
    def toggle_dimensions(self) -> bool:
        settings = self.state.settings
        settings.show_dimensions = not settings.show_dimensions
        self._notify()
        return settings.show_dimensions

    def set_measurement_unit(self, unit: str) -> None:
        if unit not in MEASUREMENT_UNITS:
            raise ValidationError(f"Unknown measurement unit: {unit!r}")
        self.state.settings.measurement_unit = unit
        self._notify()

    def dimension_label(self, card: Card) -> str | None:
        """Picture and framed size of `card` in the measurement unit, when labels are on."""
        settings = self.state.settings
        if not settings.show_dimensions:
            return None
        border = geometry.frame_border_px(card.frame, self.state.wall)
        return geometry.dimension_label(card.width, card.height, border, settings.measurement_unit)

    def nudge_selected(self, dx: float, dy: float) -> int:
        """Move selected cards by (dx, dy); refused in grid mode."""
        if self.state.settings.grid_mode or self.interaction.active:
            return 0
        cards = self.registry.selected()
        for card in cards:
            card.x += dx
            card.y += dy
        if cards:
            self.commit("move")
        return len(cards)

    def on_viewport_resize(self, width: float, height: float) -> None:
        """Recompute breakpoint sizes, wall scale and grid positions."""
        if width <= 0 or height <= 0:
            return
        self.state.viewport_width = float(width)
        self.state.viewport_height = float(height)
        changed = self.grid.refresh_default_sizes(self.registry.cards, self.state.viewport_width)
        self._refresh_wall_scale()
        if self.state.settings.grid_mode and not self.interaction.active:
            self._relayout()
        if changed:
            logger.debug("Viewport resize refreshed {} unsized card(s)", changed)
        self.history.amend()
        self._notify()
