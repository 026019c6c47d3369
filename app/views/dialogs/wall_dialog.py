from __future__ import annotations

from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
)

from core.models import WALL_UNITS


class WallDialog(QDialog):
    """Asks for wall width, height and unit. Empty fields mean the default wall."""

    def __init__(self, parent=None, width: str = "", height: str = "", unit: str = "ft") -> None:
        super().__init__(parent)
        self.setWindowTitle("Set Wall")

        root = QVBoxLayout(self)

        row = QHBoxLayout()
        row.addWidget(QLabel("Width"))
        self.width_edit = QLineEdit(width)
        self.width_edit.setPlaceholderText("12")
        row.addWidget(self.width_edit)
        row.addWidget(QLabel("Height"))
        self.height_edit = QLineEdit(height)
        self.height_edit.setPlaceholderText("10")
        row.addWidget(self.height_edit)
        self.unit_combo = QComboBox()
        self.unit_combo.addItems(list(WALL_UNITS))
        idx = self.unit_combo.findText(unit)
        if idx >= 0:
            self.unit_combo.setCurrentIndex(idx)
        row.addWidget(self.unit_combo)
        root.addLayout(row)

        tips = QLabel("Leave both fields empty for a 12 x 10 ft wall.")
        tips.setWordWrap(True)
        root.addWidget(tips)

        btns = QHBoxLayout()
        self.btn_ok = QPushButton("Create")
        self.btn_cancel = QPushButton("Cancel")
        btns.addStretch(1)
        btns.addWidget(self.btn_ok)
        btns.addWidget(self.btn_cancel)
        root.addLayout(btns)

        self.btn_ok.clicked.connect(self.accept)
        self.btn_cancel.clicked.connect(self.reject)

    def values(self) -> tuple[str, str, str]:
        return (
            self.width_edit.text().strip(),
            self.height_edit.text().strip(),
            self.unit_combo.currentText(),
        )
