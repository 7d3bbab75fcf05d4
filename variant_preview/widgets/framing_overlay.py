# variant_preview/widgets/framing_overlay.py
from __future__ import annotations

from typing import List, Optional

from PyQt5.QtCore import QRectF, Qt, pyqtSignal
from PyQt5.QtGui import QColor, QFont, QPainter, QPen
from PyQt5.QtWidgets import QGraphicsObject

from ..annotations import AnnotationStore, OverlayBox
from ..framing import FramingEditor


BOX_COLOR = "#81c784"
LABEL_H = 32


class FramingOverlay(QGraphicsObject):
    """
    Draws the active boxes of an AnnotationStore over the video, in video pixels.

    When an editor is attached and editing is allowed, the crop-area box can be
    dragged horizontally; the hold under the playhead is rewritten on release.
    """

    framing_committed = pyqtSignal(int)  # frames changed
    drag_refused = pyqtSignal()
    drag_started = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._store: Optional[AnnotationStore] = None
        self._editor: Optional[FramingEditor] = None
        self._editable = False
        self._show_boxes = True
        self._t = 0.0
        self._w = 0.0
        self._h = 0.0

        self._press_x: Optional[float] = None
        self._drag_dx = 0.0

        self.setAcceptedMouseButtons(Qt.LeftButton)
        self.setZValue(10)

    # ---------------- Public API ----------------

    def set_store(self, store: Optional[AnnotationStore], editor: Optional[FramingEditor] = None) -> None:
        if self._editor is not None:
            self._editor.cancel()
        self._store = store
        self._editor = editor
        self._press_x = None
        self._drag_dx = 0.0
        self.update()

    def set_editable(self, editable: bool) -> None:
        self._editable = bool(editable)
        self.setCursor(Qt.SizeHorCursor if self._editable else Qt.ArrowCursor)

    def set_visible_boxes(self, show: bool) -> None:
        if bool(show) != self._show_boxes:
            self._show_boxes = bool(show)
            self.update()

    def set_time(self, t: float) -> None:
        self._t = float(t)
        self.update()

    def set_frame_size(self, w: float, h: float) -> None:
        self.prepareGeometryChange()
        self._w = float(w)
        self._h = float(h)
        self.update()

    def is_dragging(self) -> bool:
        return self._press_x is not None

    # ---------------- Painting ----------------

    def boundingRect(self) -> QRectF:
        return QRectF(0, 0, self._w, self._h)

    def _boxes(self) -> List[OverlayBox]:
        if self._store is None:
            return []
        boxes = self._store.active_boxes(self._t)
        if self._editor is not None and self._editor.is_dragging():
            preview = self._editor.preview_box(self._drag_dx)
            if preview is not None:
                boxes = [b for b in boxes if b.name != preview.name] + [preview]
        return boxes

    def paint(self, painter: QPainter, option, widget=None):
        if not self._show_boxes and not self.is_dragging():
            return
        color = QColor(BOX_COLOR)
        font = QFont("Roboto")
        font.setPixelSize(20)
        painter.setFont(font)

        for b in self._boxes():
            painter.setPen(QPen(color, 4))
            painter.setBrush(Qt.NoBrush)
            painter.drawRect(QRectF(b.x, b.y, b.width, b.height))
            painter.fillRect(QRectF(b.x, b.y, b.width, LABEL_H), color)
            painter.setPen(QPen(QColor("#ffffff"), 1))
            painter.drawText(QRectF(b.x + 5, b.y, max(0.0, b.width - 10), LABEL_H),
                             Qt.AlignVCenter | Qt.AlignLeft, b.name)

    # ---------------- Interaction ----------------

    def mousePressEvent(self, event):
        if not self._editable or self._editor is None:
            event.ignore()
            return
        if not self._editor.begin_drag(self._t):
            self.drag_refused.emit()
            event.ignore()
            return
        self._press_x = event.pos().x()
        self._drag_dx = 0.0
        self.drag_started.emit()
        event.accept()

    def mouseMoveEvent(self, event):
        if self._press_x is None:
            return super().mouseMoveEvent(event)
        self._drag_dx = event.pos().x() - self._press_x
        self.update()
        event.accept()

    def mouseReleaseEvent(self, event):
        if self._press_x is None or self._editor is None:
            return super().mouseReleaseEvent(event)
        dx = event.pos().x() - self._press_x
        self._press_x = None
        self._drag_dx = 0.0
        changed = self._editor.end_drag(dx)
        self.update()
        self.framing_committed.emit(int(changed))
        event.accept()
