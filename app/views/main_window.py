"""Main editor window.

Hosts the canvas, wires menu actions to `EditorVM` operations and reports
failures through message boxes and the status bar.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from PySide6.QtCore import Qt, QUrl, Signal
from PySide6.QtGui import QDesktopServices, QGuiApplication
from PySide6.QtWidgets import (
    QColorDialog,
    QDialog,
    QFileDialog,
    QInputDialog,
    QMainWindow,
    QMessageBox,
)
from loguru import logger

from app.views.canvas_view import CanvasView, CanvasViewport
from app.views.components.menu_controller import MenuController
from app.views.constants import ADD_PHOTOS_COUNT, NUDGE_FINE_PX, NUDGE_PX, STATUS_TIMEOUT_MS
from app.views.dialogs.frame_dialog import FrameDialog
from app.views.dialogs.wall_dialog import WallDialog
from app.views.image_tasks import ImageTaskRunner
from core.errors import EditorError
from core.models import MEASUREMENT_UNITS, Card
from infrastructure import layout_codec
from infrastructure.logging import find_latest_log_file

_LAYOUT_FILTER = f"Layouts (*{layout_codec.FILE_SUFFIX} *.json)"
_IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.gif *.webp *.bmp *.heic *.heif)"


class MainWindow(QMainWindow):
    """Main application window."""

    imageLoaded = Signal(str, str, object)  # card id, src, QImage

    def __init__(self, vm: Any, image_store: Any | None = None, settings: Any | None = None) -> None:
        """Initialize MainWindow with the view-model and services.

        Args:
            vm: EditorVM instance owning the editor state
            image_store: Image store used to resolve local uploads
            settings: Settings instance for configuration
        """
        super().__init__()
        self._vm = vm
        self._store = image_store
        self._settings = settings
        self._pending: dict[str, list[Callable[[], None]]] = {}

        self.canvas = CanvasView(vm, self)
        self.viewport_adapter = CanvasViewport(self.canvas)
        self.setCentralWidget(self.canvas)
        self.menu_controller = MenuController(self)
        self.menu_controller.setup_menus()
        self._runner = ImageTaskRunner(image_store=image_store, receiver=self)

        self._connect_signals()
        self.setWindowTitle(f"Sequence Table - {vm.state.title}")
        self.resize(1280, 800)
        self.statusBar().showMessage("Ready", STATUS_TIMEOUT_MS)

    def _connect_signals(self) -> None:
        """Connect all signal/slot relationships."""
        handlers = {
            "save": self.on_save,
            "load": self.on_load,
            "upload": self.on_upload,
            "copy_link": self.on_copy_link,
            "load_share": self.on_load_share,
            "open_latest_log": self.on_open_latest_log,
            "exit": self.close,
            "undo": self._report(self._vm.undo),
            "redo": self._report(self._vm.redo),
            "select_all": self._vm.select_all,
            "delete": self._vm.delete_selected,
            "duplicate": self._vm.duplicate_selected,
            "toggle_dimensions": self._vm.toggle_dimensions,
            "measurement_unit": self.on_measurement_unit,
            "set_title": self.on_set_title,
            "add_photos": lambda: self._guarded(self._vm.add_cards, ADD_PHOTOS_COUNT),
            "erase_all": self.on_erase_all,
            "apply_frame": self.on_apply_frame,
            "remove_frame": lambda: self._guarded(self._vm.remove_frame),
            "toggle_grid": lambda: self._guarded(self._vm.toggle_grid),
            "toggle_lock": lambda: self._guarded(self._vm.toggle_lock),
            "snap": lambda: self._guarded(self._vm.snap_to_grid),
            "set_wall": self.on_set_wall,
            "wall_color": self.on_wall_color,
            "hang_height": self.on_hang_height,
            "erase_wall": lambda: self._guarded(self._vm.erase_wall),
        }
        self.menu_controller.connect_actions(handlers)
        self.imageLoaded.connect(self._on_image_loaded)
        self._vm.set_image_loader(self._request_image)
        self._vm.subscribe(self._sync_chrome)

    # Image loading
    def _request_image(self, card: Card, done: Callable[[], None]) -> None:
        self._pending.setdefault(card.id, []).append(done)
        try:
            self._runner.request(card.id, card.src)
        except EditorError as ex:
            logger.warning("Image for card {} unavailable: {}", card.id, ex)
            self._finish_image(card.id)

    def _on_image_loaded(self, card_id: str, src: str, image: Any) -> None:
        """Cache the decoded image and let the view-model auto-size the card."""
        self.canvas.set_image(src, image)
        if image is not None and not image.isNull():
            self._vm.on_image_loaded(card_id, image.width(), image.height())
        self._finish_image(card_id)
        self.canvas.rebuild()

    def _finish_image(self, card_id: str) -> None:
        for done in self._pending.pop(card_id, []):
            done()

    # Helpers
    def _guarded(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a view-model operation, turning editor errors into a message box."""
        try:
            return fn(*args)
        except EditorError as ex:
            logger.warning("{} failed: {}", getattr(fn, "__name__", "operation"), ex)
            QMessageBox.warning(self, "Sequence Table", str(ex))
            return None

    def _report(self, fn: Callable[[], bool]) -> Callable[[], None]:
        def _run() -> None:
            if not fn():
                self.statusBar().showMessage(f"Nothing to {fn.__name__}", STATUS_TIMEOUT_MS)

        return _run

    def _sync_chrome(self) -> None:
        settings = self._vm.state.settings
        self.menu_controller.set_checked("toggle_grid", settings.grid_mode)
        self.menu_controller.set_checked("toggle_lock", settings.grid_locked)
        self.menu_controller.set_checked("toggle_dimensions", settings.show_dimensions)
        self.menu_controller.enable_action("undo", self._vm.history.can_undo)
        self.menu_controller.enable_action("redo", self._vm.history.can_redo)
        self.setWindowTitle(f"Sequence Table - {self._vm.state.title}")

    # Menu actions
    def on_save(self) -> None:
        default_name = layout_codec.sanitize_file_name(self._vm.state.title)
        path, _ = QFileDialog.getSaveFileName(self, "Save Layout", default_name, _LAYOUT_FILTER)
        if not path:
            return
        try:
            self._vm.save(path)
        except OSError as ex:
            logger.error("Save failed: {}", ex)
            QMessageBox.warning(self, "Save Failed", f"Failed to save layout:\n{ex}")
            return
        self.statusBar().showMessage(f"Saved {Path(path).name}", STATUS_TIMEOUT_MS)

    def on_load(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Load Layout", "", _LAYOUT_FILTER)
        if not path:
            return
        try:
            result = self._vm.load_file(path)
        except (EditorError, OSError) as ex:
            QMessageBox.warning(self, "Load Failed", f"Could not load layout:\n{ex}")
            return
        message = f"Loaded {result.card_count} photo(s)"
        if result.migrated_from is not None:
            message += f" (upgraded from version {result.migrated_from})"
        self.statusBar().showMessage(message, STATUS_TIMEOUT_MS)

    def on_upload(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Upload Photos", "", _IMAGE_FILTER)
        if not paths:
            return
        try:
            blobs = [Path(p).read_bytes() for p in paths]
        except OSError as ex:
            QMessageBox.warning(self, "Upload Failed", str(ex))
            return
        self._guarded(self._vm.add_uploads, blobs)

    def on_copy_link(self) -> None:
        token = layout_codec.to_share_token(self._vm.save())
        QGuiApplication.clipboard().setText(token)
        self.statusBar().showMessage("Share token copied to clipboard", STATUS_TIMEOUT_MS)

    def on_load_share(self) -> None:
        token, ok = QInputDialog.getText(self, "Load Share Link", "Share token")
        if not ok or not token.strip():
            return
        try:
            result = self._vm.load_share_token(token)
        except EditorError as ex:
            QMessageBox.warning(self, "Load Failed", f"Could not load shared layout:\n{ex}")
            return
        self.statusBar().showMessage(f"Loaded {result.card_count} photo(s)", STATUS_TIMEOUT_MS)

    def on_measurement_unit(self) -> None:
        units = list(MEASUREMENT_UNITS)
        current = units.index(self._vm.state.settings.measurement_unit)
        unit, ok = QInputDialog.getItem(self, "Measurement Unit", "Unit", units, current, False)
        if ok:
            self._vm.set_measurement_unit(unit)

    def on_open_latest_log(self) -> None:
        latest = find_latest_log_file()
        if latest is None:
            QMessageBox.information(self, "Logs", "No log file found.")
            return
        QDesktopServices.openUrl(QUrl.fromLocalFile(str(latest)))

    def on_set_title(self) -> None:
        title, ok = QInputDialog.getText(self, "Set Title", "Title", text=self._vm.state.title)
        if ok:
            self._vm.set_title(title)

    def on_erase_all(self) -> None:
        reply = QMessageBox.question(
            self,
            "Erase All",
            "Remove every photo and the wall from the canvas?",
            QMessageBox.Yes | QMessageBox.No,
            QMessageBox.No,
        )
        if reply == QMessageBox.Yes:
            self._vm.erase_all()

    def on_apply_frame(self) -> None:
        if not self._vm.registry.selected_ids():
            self.statusBar().showMessage("Select photos to frame first", STATUS_TIMEOUT_MS)
            return
        dlg = FrameDialog(self._vm.state.settings.frame_defaults, self)
        if dlg.exec() != QDialog.Accepted:
            return
        descriptor = dlg.descriptor()
        self._guarded(self._vm.set_frame_defaults, descriptor)
        self._guarded(self._vm.apply_frame, None, descriptor)

    def on_set_wall(self) -> None:
        wall = self._vm.state.wall
        dlg = WallDialog(self, unit=wall.unit)
        if dlg.exec() != QDialog.Accepted:
            return
        width, height, unit = dlg.values()
        self._guarded(self._vm.set_wall, width or None, height or None, unit)

    def on_wall_color(self) -> None:
        if not self._vm.state.wall.visible:
            self.statusBar().showMessage("Create a wall first", STATUS_TIMEOUT_MS)
            return
        color = QColorDialog.getColor(parent=self)
        if color.isValid():
            self._vm.set_wall_color(color.name())

    def on_hang_height(self) -> None:
        value, ok = QInputDialog.getDouble(self, "Hang Height", "Height from floor (in)", 57.0, 1.0, 1000.0, 1)
        if ok:
            self._guarded(self._vm.set_hang_height, value, "in")

    # Qt events
    def resizeEvent(self, event: Any) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        viewport = self.viewport_adapter
        self._vm.on_viewport_resize(viewport.width, viewport.height)

    def keyPressEvent(self, event: Any) -> None:  # type: ignore[override]
        step = NUDGE_FINE_PX if event.modifiers() & Qt.ShiftModifier else NUDGE_PX
        deltas = {
            Qt.Key_Left: (-step, 0.0),
            Qt.Key_Right: (step, 0.0),
            Qt.Key_Up: (0.0, -step),
            Qt.Key_Down: (0.0, step),
        }
        delta = deltas.get(event.key())
        if delta is not None and self._vm.nudge_selected(*delta):
            return
        super().keyPressEvent(event)
