"""MenuController: Manages menu creation, shortcuts and action connections."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QMainWindow, QMenuBar

# (menu, action name, label, shortcut); None entries are separators.
_MENU_LAYOUT: list[tuple[str, str, str, str | QKeySequence.StandardKey | None] | None] = [
    ("File", "save", "Save Layout…", QKeySequence.Save),
    ("File", "load", "Load Layout…", QKeySequence.Open),
    ("File", "upload", "Upload Photos…", "Ctrl+U"),
    ("File", "copy_link", "Copy Share Link", None),
    ("File", "load_share", "Load Share Link…", None),
    ("File", "open_latest_log", "Open Latest Log", None),
    None,
    ("File", "exit", "Exit", QKeySequence.Quit),
    ("Edit", "undo", "Undo", QKeySequence.Undo),
    ("Edit", "redo", "Redo", QKeySequence.Redo),
    None,
    ("Edit", "select_all", "Select All", QKeySequence.SelectAll),
    ("Edit", "duplicate", "Duplicate Selected", "Ctrl+D"),
    ("Edit", "delete", "Delete Selected", QKeySequence.Delete),
    ("Edit", "set_title", "Set Title…", None),
    ("Photos", "add_photos", "Add Photo", "Ctrl+N"),
    ("Photos", "erase_all", "Erase All", None),
    None,
    ("Photos", "apply_frame", "Frame Selected…", "Ctrl+F"),
    ("Photos", "remove_frame", "Remove Frame", None),
    ("Grid", "toggle_grid", "Grid Mode", "Ctrl+G"),
    ("Grid", "toggle_lock", "Lock Grid", "Ctrl+L"),
    ("Grid", "snap", "Snap to Grid", None),
    ("Wall", "set_wall", "Set Wall…", None),
    ("Wall", "wall_color", "Wall Color…", None),
    ("Wall", "hang_height", "Hang Height…", None),
    ("Wall", "erase_wall", "Erase Wall", None),
    ("View", "toggle_dimensions", "Show Dimensions", "Ctrl+Shift+D"),
    ("View", "measurement_unit", "Measurement Unit…", None),
]


class MenuController:
    """Manages main window menu creation and action connections."""

    def __init__(self, main_window: QMainWindow) -> None:
        """Initialize with main window reference.

        Args:
            main_window: The QMainWindow to create menus for
        """
        self.window = main_window
        self.actions: dict[str, QAction] = {}

    def setup_menus(self) -> dict[str, QAction]:
        """Create all menus and return action references.

        Returns:
            Dictionary mapping action names to QAction instances
        """
        menubar = QMenuBar(self.window)
        menus: dict[str, object] = {}
        last_menu = None
        for entry in _MENU_LAYOUT:
            if entry is None:
                if last_menu is not None:
                    last_menu.addSeparator()
                continue
            menu_name, name, label, shortcut = entry
            menu = menus.get(menu_name)
            if menu is None:
                menu = menubar.addMenu(menu_name)
                menus[menu_name] = menu
            action = menu.addAction(label)
            if shortcut is not None:
                action.setShortcut(QKeySequence(shortcut))
            self.actions[name] = action
            last_menu = menu

        for name in ("toggle_grid", "toggle_lock", "toggle_dimensions"):
            self.actions[name].setCheckable(True)

        self.window.setMenuBar(menubar)
        return self.actions

    def connect_actions(self, handlers: dict[str, Callable]) -> None:
        """Connect menu actions to their handler methods.

        Args:
            handlers: Dictionary mapping action names to handler callables
        """
        for name, handler in handlers.items():
            action = self.actions.get(name)
            if action is not None:
                action.triggered.connect(lambda _checked=False, h=handler: h())
        if "exit" not in handlers:
            self.actions["exit"].triggered.connect(self.window.close)

    def enable_action(self, name: str, enabled: bool = True) -> None:
        """Enable or disable a specific action.

        Args:
            name: Action name
            enabled: Whether to enable the action
        """
        action = self.actions.get(name)
        if action:
            action.setEnabled(enabled)

    def set_checked(self, name: str, checked: bool) -> None:
        action = self.actions.get(name)
        if action:
            action.blockSignals(True)
            action.setChecked(checked)
            action.blockSignals(False)
