from __future__ import annotations

from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QDoubleSpinBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QVBoxLayout,
)

from app.views.constants import FRAME_COLORS
from core.models import FRAME_UNITS, FrameSpec


class FrameDialog(QDialog):
    """Edits matte/frame thickness, unit and color for the selected cards."""

    def __init__(self, current: FrameSpec, parent=None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Frame Selected")

        root = QVBoxLayout(self)

        row = QHBoxLayout()
        row.addWidget(QLabel("Matte"))
        self.matte = QDoubleSpinBox()
        self.matte.setRange(0.0, 100.0)
        self.matte.setDecimals(2)
        self.matte.setValue(current.matte)
        row.addWidget(self.matte)
        row.addWidget(QLabel("Frame"))
        self.frame = QDoubleSpinBox()
        self.frame.setRange(0.0, 100.0)
        self.frame.setDecimals(2)
        self.frame.setValue(current.frame)
        row.addWidget(self.frame)
        self.unit = QComboBox()
        self.unit.addItems(list(FRAME_UNITS))
        idx = self.unit.findText(current.unit)
        if idx >= 0:
            self.unit.setCurrentIndex(idx)
        row.addWidget(self.unit)
        root.addLayout(row)

        row2 = QHBoxLayout()
        row2.addWidget(QLabel("Color"))
        self.color = QComboBox()
        self.color.setEditable(True)
        self.color.addItems(FRAME_COLORS)
        self.color.setCurrentText(current.color)
        row2.addWidget(self.color)
        root.addLayout(row2)

        btns = QHBoxLayout()
        self.btn_ok = QPushButton("Apply")
        self.btn_cancel = QPushButton("Cancel")
        btns.addStretch(1)
        btns.addWidget(self.btn_ok)
        btns.addWidget(self.btn_cancel)
        root.addLayout(btns)

        self.btn_ok.clicked.connect(self.accept)
        self.btn_cancel.clicked.connect(self.reject)

    def descriptor(self) -> FrameSpec:
        return FrameSpec(
            enabled=True,
            matte=self.matte.value(),
            frame=self.frame.value(),
            unit=self.unit.currentText(),
            color=self.color.currentText().strip() or "black",
        )
