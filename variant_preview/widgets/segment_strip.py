# variant_preview/widgets/segment_strip.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from PyQt5.QtCore import QPoint, QRect, Qt, pyqtSignal
from PyQt5.QtGui import QColor, QFontMetrics, QPainter, QPen
from PyQt5.QtWidgets import QScrollArea, QWidget

from ..domain import Segment
from ..timeutils import ms_to_time_str, seconds_to_ms


SELECTED_COLOR = "#3CB44B"
PLAYED_COLOR = "#1E6B2A"
UNSELECTED_COLOR = "#4a4a4a"


@dataclass
class _HitBlock:
    segment_id: int
    rect: QRect


class _SegmentStripCanvas(QWidget):
    segment_clicked = pyqtSignal(int)          # 0-based id, left click
    toggle_requested = pyqtSignal(int)         # 0-based id, right click

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self._segments: List[Segment] = []
        self._duration_ms: int = 0
        self._playhead_ms: int = 0
        self._current_id: Optional[int] = None

        self._pad_x = 10
        self._pad_y = 10
        self._block_h = 36

        self._hit_blocks: List[_HitBlock] = []

        self.setMouseTracking(True)
        self.setMinimumHeight(self._pad_y * 2 + self._block_h)
        self.setMinimumWidth(600)

    # ---------------- Public API ----------------

    def set_segments(self, segments: List[Segment]) -> None:
        self._segments = list(segments or [])
        self.update()

    def set_duration_ms(self, duration_ms: int) -> None:
        self._duration_ms = max(0, int(duration_ms))
        self.update()

    def set_playhead_ms(self, ms: int) -> None:
        self._playhead_ms = max(0, int(ms))
        self.update()

    def set_current_segment(self, segment_id: Optional[int]) -> None:
        self._current_id = segment_id
        self.update()

    # ---------------- Geometry helpers ----------------

    def _timeline_end_ms(self) -> int:
        if self._duration_ms > 0:
            return self._duration_ms
        if self._segments:
            return max(seconds_to_ms(s.end_s) for s in self._segments)
        return 0

    def _ms_to_x(self, ms: int) -> int:
        end = self._timeline_end_ms()
        if end <= 0:
            return self._pad_x
        w = max(1, self.width() - 2 * self._pad_x)
        ms = max(0, min(int(ms), end))
        return self._pad_x + int(round((ms / end) * w))

    # ---------------- Painting ----------------

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.fillRect(self.rect(), QColor("#141414"))

        content = self.rect().adjusted(self._pad_x, self._pad_y, -self._pad_x, -self._pad_y)
        painter.setPen(QPen(QColor("#2b2b2b"), 1))
        painter.drawRect(content)

        self._hit_blocks = []
        fm = QFontMetrics(self.font())
        top = self._pad_y + (content.height() - self._block_h) // 2

        # Timeline order, not render order
        for seg in sorted(self._segments, key=lambda s: s.id):
            x1 = self._ms_to_x(seconds_to_ms(seg.start_s))
            x2 = self._ms_to_x(seconds_to_ms(seg.end_s))
            if x2 <= x1:
                x2 = x1 + 1
            rect = QRect(x1, top, x2 - x1, self._block_h)

            if seg.selected:
                c = QColor(PLAYED_COLOR if seg.played else SELECTED_COLOR)
            else:
                c = QColor(UNSELECTED_COLOR)
            c.setAlpha(200)
            painter.fillRect(rect, c)

            if self._current_id == seg.id:
                painter.setPen(QPen(QColor("#ffffff"), 2))
            else:
                painter.setPen(QPen(QColor("#000000"), 1))
            painter.drawRect(rect)

            txt = str(seg.id + 1)
            if fm.horizontalAdvance(txt) + 6 < rect.width():
                painter.setPen(QPen(QColor("#f0f0f0"), 1))
                painter.drawText(rect.adjusted(3, 0, -3, 0), Qt.AlignVCenter | Qt.AlignLeft, txt)

            self._hit_blocks.append(_HitBlock(segment_id=seg.id, rect=rect))

        if self._timeline_end_ms() > 0:
            x = self._ms_to_x(self._playhead_ms)
            painter.setPen(QPen(QColor("#ff2d2d"), 2))
            painter.drawLine(x, self._pad_y, x, self.height() - self._pad_y)

        painter.end()

    # ---------------- Interaction ----------------

    def _hit_test(self, pos: QPoint) -> Optional[_HitBlock]:
        for hb in self._hit_blocks:
            if hb.rect.contains(pos):
                return hb
        return None

    def mousePressEvent(self, event):
        hb = self._hit_test(event.pos())
        if hb is None:
            return super().mousePressEvent(event)
        if event.button() == Qt.LeftButton:
            self.segment_clicked.emit(hb.segment_id)
        elif event.button() == Qt.RightButton:
            self.toggle_requested.emit(hb.segment_id)
        event.accept()

    def mouseMoveEvent(self, event):
        hb = self._hit_test(event.pos())
        if hb is None:
            self.setToolTip("")
            self.unsetCursor()
        else:
            seg = next((s for s in self._segments if s.id == hb.segment_id), None)
            if seg is not None:
                self.setToolTip(
                    f"Segment {seg.id + 1}: {ms_to_time_str(seconds_to_ms(seg.start_s))}"
                    f" - {ms_to_time_str(seconds_to_ms(seg.end_s))}"
                    f"{' (selected)' if seg.selected else ''}"
                )
            self.setCursor(Qt.PointingHandCursor)
        return super().mouseMoveEvent(event)


class SegmentStrip(QScrollArea):
    """
    Scrollable strip of segments (selected / played / skipped) with a playhead.

    Left click a segment to jump to it; right click toggles its selection.
    Signals are forwarded from the canvas.
    """
    segment_clicked = pyqtSignal(int)
    toggle_requested = pyqtSignal(int)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self.setWidgetResizable(True)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAlwaysOff)

        self.canvas = _SegmentStripCanvas(self)
        self.setWidget(self.canvas)

        self.canvas.segment_clicked.connect(self.segment_clicked.emit)
        self.canvas.toggle_requested.connect(self.toggle_requested.emit)

    def set_segments(self, segments: List[Segment]) -> None:
        self.canvas.set_segments(segments)

    def set_duration_ms(self, duration_ms: int) -> None:
        self.canvas.set_duration_ms(duration_ms)

    def set_playhead_ms(self, ms: int) -> None:
        self.canvas.set_playhead_ms(ms)

    def set_current_segment(self, segment_id: Optional[int]) -> None:
        self.canvas.set_current_segment(segment_id)
