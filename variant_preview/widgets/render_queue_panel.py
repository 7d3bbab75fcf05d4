# variant_preview/widgets/render_queue_panel.py
from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..queue_mapper import RenderQueue


class RenderQueuePanel(QGroupBox):
    """
    Render queue list with load / remove / save actions.

    Emits:
      - load_requested(index)   bring a queued item back into the editor
      - remove_requested(index)
      - save_requested()        write render_queue.json + render_request.json
    """
    load_requested = pyqtSignal(int)
    remove_requested = pyqtSignal(int)
    save_requested = pyqtSignal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__("Render Queue", parent)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(6)

        self.list = QListWidget()
        self.list.itemDoubleClicked.connect(lambda item: self.load_requested.emit(self.list.row(item)))
        layout.addWidget(self.list, stretch=1)

        row = QHBoxLayout()
        row.setSpacing(4)
        self.btn_load = QPushButton("Load")
        self.btn_remove = QPushButton("Remove")
        self.btn_save = QPushButton("Save Queue")
        self.btn_load.clicked.connect(self._emit_for_current(self.load_requested))
        self.btn_remove.clicked.connect(self._emit_for_current(self.remove_requested))
        self.btn_save.clicked.connect(self.save_requested.emit)
        row.addWidget(self.btn_load)
        row.addWidget(self.btn_remove)
        row.addStretch()
        row.addWidget(self.btn_save)
        layout.addLayout(row)

        self.set_queue(RenderQueue())

    def _emit_for_current(self, signal):
        def handler():
            row = self.list.currentRow()
            if row >= 0:
                signal.emit(row)
        return handler

    def set_queue(self, queue: RenderQueue) -> None:
        self.list.blockSignals(True)
        try:
            self.list.clear()
            for item in queue.items:
                marker = " *" if item.user_selection else ""
                text = f"{item.title}{marker}\nScenes: {item.scenes}  ({item.duration})"
                li = QListWidgetItem(text)
                li.setData(Qt.UserRole, item)
                li.setToolTip(item.description)
                self.list.addItem(li)
        finally:
            self.list.blockSignals(False)

        has_items = len(queue) > 0
        self.btn_load.setEnabled(has_items)
        self.btn_remove.setEnabled(has_items)
        self.btn_save.setEnabled(has_items)
        self.setTitle(f"Render Queue ({len(queue)})")
