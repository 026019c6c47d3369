"""Pointer gesture state machine: drag, grid slide, resize, rotate, marquee.

The controller mutates cards directly while a gesture is in flight and hands
one explicit `commit(kind)` to the editor when the gesture completes. A copy
of the pre-gesture state is kept in memory so `cancel()` can put everything
back without touching the history.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from core.models import EditorState, Snapshot
from core.services import geometry
from core.services.card_registry import CardRegistry
from core.services.grid_layout import GridLayoutEngine
from core.services.history import History

Point = tuple[float, float]


class GestureState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    SLIDING = "sliding"
    RESIZING = "resizing"
    ROTATING = "rotating"
    MARQUEE = "marquee"


@dataclass
class _Gesture:
    state: GestureState
    start_pointer: Point
    origin: Snapshot
    card_id: str | None = None
    offsets: dict[str, Point] = field(default_factory=dict)
    start_positions: dict[str, Point] = field(default_factory=dict)
    start_order: list[str] = field(default_factory=list)
    start_selection: set[str] = field(default_factory=set)
    handle: str = ""
    start_rect: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    start_rotation: float = 0.0
    additive: bool = False


class InteractionController:
    """Translates pointer events into card mutations and history commits.

    Only one gesture is in flight at a time; a new press while a gesture is
    active is ignored until `pointer_up` or `cancel`.
    """

    def __init__(
        self,
        state: EditorState,
        registry: CardRegistry,
        grid: GridLayoutEngine,
        history: History,
        commit: Callable[[str], bool],
        container_width: Callable[[], float],
    ) -> None:
        """Initialize with the shared editor state and its engines.

        Args:
            state: The live editor state.
            registry: Registry wrapping `state.cards`.
            grid: Grid engine used for slides and grid re-packing.
            history: History engine; consulted for the restoring guard and
                used to restore the pre-gesture state on cancel.
            commit: Called with an action kind once a gesture changed something.
            container_width: Returns the current gallery width.
        """
        self._state = state
        self._registry = registry
        self._grid = grid
        self._history = history
        self._commit = commit
        self._container_width = container_width
        self._gesture: _Gesture | None = None

    @property
    def gesture_state(self) -> GestureState:
        return self._gesture.state if self._gesture else GestureState.IDLE

    @property
    def active(self) -> bool:
        return self._gesture is not None

    def _can_start(self) -> bool:
        if self._gesture is not None:
            logger.debug("Pointer press ignored: {} in progress", self._gesture.state.value)
            return False
        if self._history.restoring:
            logger.debug("Pointer press ignored while history is restoring")
            return False
        return True

    def _begin(self, state: GestureState, point: Point, **kwargs) -> _Gesture:
        gesture = _Gesture(
            state=state,
            start_pointer=point,
            origin=Snapshot.capture(self._state),
            start_order=self._registry.ids(),
            start_selection=set(self._registry.selected_ids()),
            **kwargs,
        )
        self._gesture = gesture
        return gesture

    # Gesture entry points
    def pointer_down_card(self, card_id: str, point: Point, additive: bool = False) -> bool:
        """Press on a card body: toggles selection (additive) or starts a drag."""
        if not self._can_start():
            return False
        card = self._registry.get(card_id)
        if additive:
            card.selected = not card.selected
            return False
        if not card.selected:
            self._registry.select([card_id])

        settings = self._state.settings
        if settings.grid_mode:
            gesture = self._begin(GestureState.SLIDING, point, card_id=card_id)
            gesture.offsets[card_id] = (point[0] - card.x, point[1] - card.y)
            gesture.start_positions[card_id] = (card.x, card.y)
            return True

        gesture = self._begin(GestureState.DRAGGING, point, card_id=card_id)
        for moving in self._registry.selected():
            self._registry.bring_to_front(moving.id)
            gesture.offsets[moving.id] = (point[0] - moving.x, point[1] - moving.y)
            gesture.start_positions[moving.id] = (moving.x, moving.y)
        return True

    def pointer_down_handle(self, card_id: str, handle: str, point: Point) -> bool:
        """Press on a resize handle ("nw", "ne", "sw", "se")."""
        if not self._can_start() or self._state.settings.grid_locked:
            return False
        card = self._registry.get(card_id)
        self._registry.bring_to_front(card_id)
        self._begin(
            GestureState.RESIZING,
            point,
            card_id=card_id,
            handle=handle,
            start_rect=(card.x, card.y, card.width, card.height),
        )
        return True

    def pointer_down_rotate(self, card_id: str, point: Point) -> bool:
        """Press on the rotate handle. Grid mode is axis-aligned, so it is refused there."""
        if not self._can_start() or self._state.settings.grid_mode:
            return False
        card = self._registry.get(card_id)
        self._registry.bring_to_front(card_id)
        self._begin(
            GestureState.ROTATING,
            point,
            card_id=card_id,
            start_rect=(card.x, card.y, card.width, card.height),
            start_rotation=card.rotation,
        )
        return True

    def pointer_down_background(self, point: Point, additive: bool = False) -> bool:
        """Press on empty canvas: starts a marquee selection."""
        if not self._can_start():
            return False
        if not additive:
            self._registry.clear_selection()
        self._begin(GestureState.MARQUEE, point, additive=additive)
        return True

    # Movement
    def pointer_move(self, point: Point) -> None:
        gesture = self._gesture
        if gesture is None:
            return
        handler = {
            GestureState.DRAGGING: self._move_drag,
            GestureState.SLIDING: self._move_slide,
            GestureState.RESIZING: self._move_resize,
            GestureState.ROTATING: self._move_rotate,
            GestureState.MARQUEE: self._move_marquee,
        }[gesture.state]
        handler(gesture, point)

    def _move_drag(self, gesture: _Gesture, point: Point) -> None:
        wall = self._state.wall
        for card_id, (ox, oy) in gesture.offsets.items():
            card = self._registry.get(card_id)
            card.x = point[0] - ox
            card.y = point[1] - oy
            card.y += geometry.snap_to_hang_line(card.center[1], wall)

    def _move_slide(self, gesture: _Gesture, point: Point) -> None:
        if gesture.card_id is None:
            return
        card = self._registry.get(gesture.card_id)
        ox, oy = gesture.offsets[gesture.card_id]
        card.x = point[0] - ox
        card.y = point[1] - oy

        cards = self._registry.cards
        others = [c for c in cards if c.id != card.id]
        width = self._container_width()
        vw = self._state.viewport_width
        target = self._grid.find_insertion_index(card, card.center, others, width, vw)
        if target != self._registry.index_of(card.id):
            self._registry.move(card.id, target)
            result = self._grid.pack(self._registry.cards, width, vw)
            self._grid.apply(self._registry.cards, result, skip_id=card.id)

    def _move_resize(self, gesture: _Gesture, point: Point) -> None:
        if gesture.card_id is None:
            return
        card = self._registry.get(gesture.card_id)
        dx = point[0] - gesture.start_pointer[0]
        dy = point[1] - gesture.start_pointer[1]
        card.x, card.y, card.width, card.height = geometry.resize_from_handle(
            gesture.handle, gesture.start_rect, dx, dy, card.aspect_ratio
        )
        card.sized = True

    def _move_rotate(self, gesture: _Gesture, point: Point) -> None:
        if gesture.card_id is None:
            return
        card = self._registry.get(gesture.card_id)
        x0, y0, w0, h0 = gesture.start_rect
        center = (x0 + w0 / 2.0, y0 + h0 / 2.0)
        card.rotation = geometry.rotation_from_pointer(
            center, point, gesture.start_pointer, gesture.start_rotation
        )

    def _move_marquee(self, gesture: _Gesture, point: Point) -> None:
        rect = geometry.normalize_rect(gesture.start_pointer, point)
        self._registry.select(gesture.start_selection if gesture.additive else ())
        self._registry.select_in_rect(rect, additive=True)

    # Completion
    def pointer_up(self, point: Point | None = None) -> str | None:
        """Finish the gesture; returns the committed action kind, if any."""
        gesture = self._gesture
        if gesture is None:
            return None
        if point is not None:
            self.pointer_move(point)
        self._gesture = None

        kind: str | None = None
        if gesture.state is GestureState.DRAGGING:
            if any(
                (self._registry.get(cid).x, self._registry.get(cid).y) != pos
                for cid, pos in gesture.start_positions.items()
            ):
                kind = "move"
        elif gesture.state is GestureState.SLIDING:
            self._grid.layout(self._registry.cards, self._container_width(), self._state.viewport_width)
            if self._registry.ids() != gesture.start_order:
                kind = "sort"
        elif gesture.state is GestureState.RESIZING:
            card = self._registry.get(gesture.card_id)
            if (card.x, card.y, card.width, card.height) != gesture.start_rect:
                kind = "resize"
                if self._state.settings.grid_mode:
                    self._grid.layout(
                        self._registry.cards, self._container_width(), self._state.viewport_width
                    )
        elif gesture.state is GestureState.ROTATING:
            if self._registry.get(gesture.card_id).rotation != gesture.start_rotation:
                kind = "rotate"

        if kind is not None:
            self._commit(kind)
        return kind

    def cancel(self) -> bool:
        """Abort the in-flight gesture and restore the pre-gesture state."""
        gesture = self._gesture
        if gesture is None:
            return False
        self._gesture = None
        if gesture.state is GestureState.MARQUEE:
            self._registry.select(gesture.start_selection)
        else:
            self._history.apply(gesture.origin)
            self._registry.select(gesture.start_selection)
        logger.info("Gesture {} cancelled", gesture.state.value)
        return True
