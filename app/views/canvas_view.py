"""Canvas widget: renders the editor state and forwards pointer input.

The scene is a pure projection of `EditorVM.state`; it is rebuilt from the
view-model after every change notification. Pointer events are translated
into `InteractionController` calls, which own all gesture semantics.
"""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QBrush, QColor, QImage, QPainter, QPen, QPixmap, QTransform
from PySide6.QtWidgets import (
    QGraphicsItem,
    QGraphicsRectItem,
    QGraphicsScene,
    QGraphicsView,
)

from app.views.constants import (
    CANVAS_BACKGROUND,
    CAPTION_COLOR,
    DIMENSION_COLOR,
    HANDLE_HIT_SLOP,
    HANDLE_SIZE,
    HANG_LINE_COLOR,
    MARQUEE_FILL,
    RESIZE_HANDLES,
    ROTATE_HANDLE_OFFSET,
    SELECTION_COLOR,
)
from core.models import Card
from core.services import geometry


class CardItem(QGraphicsItem):
    """Paints one card: frame border, image (or placeholder) and caption."""

    def __init__(
        self,
        card: Card,
        border: tuple[float, float],
        pixmap: QPixmap | None,
        label: str | None = None,
    ) -> None:
        super().__init__()
        self.card_id = card.id
        self._card = card
        self._matte, self._frame = border
        self._pixmap = pixmap
        self._label = label
        w, h = card.width, card.height
        self.setPos(card.x + w / 2.0, card.y + h / 2.0)
        self.setRotation(card.rotation)
        self.setZValue(card.z_index)

    def boundingRect(self) -> QRectF:  # type: ignore[override]
        pad = self._matte + self._frame + ROTATE_HANDLE_OFFSET + HANDLE_SIZE
        w, h = self._card.width, self._card.height
        return QRectF(-w / 2 - pad, -h / 2 - pad, w + 2 * pad, h + 2 * pad)

    def paint(self, painter: QPainter, option: Any, widget: Any = None) -> None:  # type: ignore[override]
        card = self._card
        w, h = card.width, card.height
        rect = QRectF(-w / 2, -h / 2, w, h)
        if card.frame.enabled:
            outer = self._matte + self._frame
            painter.fillRect(rect.adjusted(-outer, -outer, outer, outer), QColor(card.frame.color))
            painter.fillRect(
                rect.adjusted(-self._matte, -self._matte, self._matte, self._matte), QColor("white")
            )
        if self._pixmap is not None and not self._pixmap.isNull():
            painter.drawPixmap(rect, self._pixmap, QRectF(self._pixmap.rect()))
        else:
            painter.fillRect(rect, QColor("#dddddd"))
        if card.photographer:
            painter.setPen(CAPTION_COLOR)
            painter.drawText(
                QRectF(-w / 2, h / 2 + 2, w, 16), Qt.AlignHCenter | Qt.AlignTop, card.photographer
            )
        if self._label:
            painter.setPen(DIMENSION_COLOR)
            painter.drawText(
                QRectF(-w / 2, -h / 2 + 4, w, 32), Qt.AlignHCenter | Qt.AlignTop, self._label
            )
        if card.selected:
            painter.setPen(QPen(SELECTION_COLOR, 2))
            painter.setBrush(Qt.NoBrush)
            painter.drawRect(rect)
            painter.setBrush(QBrush(SELECTION_COLOR))
            for hx, hy in self._handle_points().values():
                painter.drawRect(QRectF(hx - HANDLE_SIZE / 2, hy - HANDLE_SIZE / 2, HANDLE_SIZE, HANDLE_SIZE))
            painter.drawEllipse(QPointF(0, -h / 2 - ROTATE_HANDLE_OFFSET), HANDLE_SIZE / 2, HANDLE_SIZE / 2)

    def _handle_points(self) -> dict[str, tuple[float, float]]:
        w, h = self._card.width / 2, self._card.height / 2
        return {"nw": (-w, -h), "ne": (w, -h), "sw": (-w, h), "se": (w, h)}

    def hit_part(self, scene_point: QPointF) -> str:
        """Classify a scene point as a handle name, "rotate", "body" or ""."""
        local = self.mapFromScene(scene_point)
        reach = HANDLE_SIZE / 2 + HANDLE_HIT_SLOP
        if self._card.selected:
            for name in RESIZE_HANDLES:
                hx, hy = self._handle_points()[name]
                if abs(local.x() - hx) <= reach and abs(local.y() - hy) <= reach:
                    return name
            ry = -self._card.height / 2 - ROTATE_HANDLE_OFFSET
            if abs(local.x()) <= reach and abs(local.y() - ry) <= reach:
                return "rotate"
        w, h = self._card.width / 2, self._card.height / 2
        if -w <= local.x() <= w and -h <= local.y() <= h:
            return "body"
        return ""


class CanvasView(QGraphicsView):
    """QGraphicsView over the editor scene."""

    def __init__(self, vm: Any, parent: Any = None) -> None:
        super().__init__(parent)
        self._vm = vm
        self._pixmaps: dict[str, QPixmap] = {}
        self._marquee_origin: QPointF | None = None
        self.setScene(QGraphicsScene(self))
        self.setRenderHints(QPainter.Antialiasing | QPainter.SmoothPixmapTransform)
        self.setBackgroundBrush(CANVAS_BACKGROUND)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setTransformationAnchor(QGraphicsView.NoAnchor)
        self.setFocusPolicy(Qt.StrongFocus)
        self._marquee = QGraphicsRectItem()
        self._marquee.setBrush(MARQUEE_FILL)
        self._marquee.setPen(QPen(SELECTION_COLOR, 1, Qt.DashLine))
        vm.subscribe(self.rebuild)

    # Image cache
    def set_image(self, src: str, image: QImage | None) -> None:
        if image is None or image.isNull():
            return
        self._pixmaps[src] = QPixmap.fromImage(image)

    # Projection
    def rebuild(self) -> None:
        """Re-project the whole editor state onto the scene."""
        scene = self.scene()
        if self._marquee.scene() is scene:
            scene.removeItem(self._marquee)
        scene.clear()
        state = self._vm.state
        self._draw_wall(scene, state.wall)
        bottom = 0.0
        for card in state.cards:
            border = geometry.frame_border_px(card.frame, state.wall) if card.frame.enabled else (0.0, 0.0)
            label = self._vm.dimension_label(card)
            scene.addItem(CardItem(card, border, self._pixmaps.get(card.src), label))
            bottom = max(bottom, card.y + card.height)
        height = max(float(state.viewport_height), bottom + 50.0)
        if state.settings.grid_mode:
            height = max(height, self._vm.grid.pack(state.cards, self._vm.container_width).content_height)
        scene.setSceneRect(QRectF(0, 0, float(state.viewport_width), height))
        scene.addItem(self._marquee)
        self._marquee.setVisible(self._marquee_origin is not None)

    def _draw_wall(self, scene: QGraphicsScene, wall: Any) -> None:
        if not wall.visible:
            return
        ox, oy = geometry.wall_origin()
        w, h = geometry.wall_pixel_size(wall)
        rect = scene.addRect(QRectF(ox, oy, w, h), QPen(QColor("#999999")), QBrush(QColor(wall.color)))
        rect.setZValue(-1)
        line_y = geometry.hang_line_y(wall)
        if line_y is not None:
            line = scene.addLine(
                ox, oy + line_y, ox + w, oy + line_y, QPen(HANG_LINE_COLOR, 1, Qt.DashLine)
            )
            line.setZValue(-0.5)

    def _card_item_at(self, point: QPointF) -> tuple[CardItem | None, str]:
        for item in self.scene().items(point, Qt.IntersectsItemBoundingRect, Qt.DescendingOrder, QTransform()):
            if isinstance(item, CardItem):
                part = item.hit_part(point)
                if part:
                    return item, part
        return None, ""

    # Pointer input
    def mousePressEvent(self, event: Any) -> None:  # type: ignore[override]
        if event.button() != Qt.LeftButton:
            super().mousePressEvent(event)
            return
        pos = self.mapToScene(event.position().toPoint())
        point = (pos.x(), pos.y())
        additive = bool(event.modifiers() & (Qt.ShiftModifier | Qt.ControlModifier))
        interaction = self._vm.interaction
        item, part = self._card_item_at(pos)
        if item is None:
            if interaction.pointer_down_background(point, additive):
                self._marquee_origin = pos
                self._marquee.setRect(QRectF(pos, pos))
                self._marquee.setVisible(True)
        elif part == "rotate":
            interaction.pointer_down_rotate(item.card_id, point)
        elif part in RESIZE_HANDLES:
            interaction.pointer_down_handle(item.card_id, part, point)
        else:
            interaction.pointer_down_card(item.card_id, point, additive)
        self.rebuild()

    def mouseMoveEvent(self, event: Any) -> None:  # type: ignore[override]
        interaction = self._vm.interaction
        if not interaction.active:
            super().mouseMoveEvent(event)
            return
        pos = self.mapToScene(event.position().toPoint())
        interaction.pointer_move((pos.x(), pos.y()))
        if self._marquee_origin is not None:
            self._marquee.setRect(QRectF(self._marquee_origin, pos).normalized())
        self.rebuild()

    def mouseReleaseEvent(self, event: Any) -> None:  # type: ignore[override]
        if event.button() != Qt.LeftButton:
            super().mouseReleaseEvent(event)
            return
        pos = self.mapToScene(event.position().toPoint())
        self._marquee_origin = None
        if self._vm.interaction.pointer_up((pos.x(), pos.y())) is None:
            self.rebuild()

    def keyPressEvent(self, event: Any) -> None:  # type: ignore[override]
        if event.key() == Qt.Key_Escape and self._vm.interaction.active:
            self._marquee_origin = None
            self._vm.interaction.cancel()
            self.rebuild()
            return
        super().keyPressEvent(event)


class CanvasViewport:
    """Viewport adapter reporting the visible size of a `CanvasView`."""

    def __init__(self, view: QGraphicsView) -> None:
        self._view = view

    @property
    def width(self) -> float:
        return float(self._view.viewport().width())

    @property
    def height(self) -> float:
        return float(self._view.viewport().height())
