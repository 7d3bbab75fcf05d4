# variant_preview/widgets/preview_player.py
from __future__ import annotations

import logging
import os
from typing import Optional

from PyQt5.QtCore import QRectF, QSizeF, Qt, QTimer, QUrl, pyqtSignal
from PyQt5.QtGui import QColor, QPainter
from PyQt5.QtMultimedia import QMediaContent, QMediaPlayer
from PyQt5.QtMultimediaWidgets import QGraphicsVideoItem
from PyQt5.QtWidgets import QGraphicsScene, QGraphicsView, QSizePolicy, QVBoxLayout, QWidget

from ..sequencer import PlaybackSequencer
from ..timeutils import ms_to_seconds, seconds_to_ms
from .framing_overlay import FramingOverlay

logger = logging.getLogger(__name__)


class QtMediaClock:
    """MediaClock over a QMediaPlayer (seconds in, milliseconds to Qt)."""

    def __init__(self, player: QMediaPlayer):
        self._player = player

    def position(self) -> float:
        return ms_to_seconds(self._player.position())

    def duration(self) -> float:
        return ms_to_seconds(self._player.duration())

    def seek(self, seconds: float) -> None:
        # fire-and-forget: the next tick observes the new position
        self._player.setPosition(seconds_to_ms(seconds))

    def play(self) -> None:
        self._player.play()


class _VideoView(QGraphicsView):
    """Keeps the video item fitted to the view, letterboxed."""

    def __init__(self, scene: QGraphicsScene, video_item: QGraphicsVideoItem, parent: Optional[QWidget] = None):
        super().__init__(scene, parent)
        self._video_item = video_item
        self.setRenderHint(QPainter.Antialiasing, True)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setBackgroundBrush(QColor("black"))
        self.setFrameShape(QGraphicsView.NoFrame)

    def fit(self) -> None:
        rect = self._video_item.boundingRect()
        if rect.width() > 0 and rect.height() > 0:
            self.fitInView(self._video_item, Qt.KeepAspectRatio)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.fit()


class PreviewPlayer(QWidget):
    """
    Single-video preview with a tracking / crop overlay.

    Key behaviors:
      - The tick timer runs only while the player is in PlayingState; pausing
        stops it so played flags never change on a frozen frame.
      - Each tick runs the sequencer (skip / seek / mark played) and refreshes the overlay.
      - End-of-media is forwarded as playback_ended (the owner resets the preview).
    """

    position_changed = pyqtSignal(int)         # ms
    duration_changed = pyqtSignal(int)         # ms
    current_segment_changed = pyqtSignal(int)  # 0-based segment id
    playback_ended = pyqtSignal()
    video_size_changed = pyqtSignal(int, int)  # native width, height
    playing_changed = pyqtSignal(bool)

    def __init__(self, tick_interval_ms: int = 10, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self._scene = QGraphicsScene(self)
        self._video_item = QGraphicsVideoItem()
        self._scene.addItem(self._video_item)
        self.overlay = FramingOverlay()
        self._scene.addItem(self.overlay)

        self._view = _VideoView(self._scene, self._video_item, self)
        self._view.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

        lay = QVBoxLayout(self)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.addWidget(self._view)

        self.player = QMediaPlayer(None, QMediaPlayer.VideoSurface)
        self.player.setVideoOutput(self._video_item)
        self.player.positionChanged.connect(self._on_position_changed)
        self.player.durationChanged.connect(lambda d: self.duration_changed.emit(int(d or 0)))
        self.player.stateChanged.connect(self._on_state_changed)
        self.player.mediaStatusChanged.connect(self._on_media_status)
        self._video_item.nativeSizeChanged.connect(self._on_native_size)

        self.clock = QtMediaClock(self.player)
        self.sequencer: Optional[PlaybackSequencer] = None
        self._last_segment_id: Optional[int] = None

        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(max(1, int(tick_interval_ms)))
        self._tick_timer.timeout.connect(self._tick)

    # ---------------- Public API ----------------

    def load(self, path: str) -> None:
        self.stop()
        if os.path.exists(path):
            self.player.setMedia(QMediaContent(QUrl.fromLocalFile(os.path.abspath(path))))
        else:
            logger.warning("Video file not found: %s", path)
            self.player.setMedia(QMediaContent())

    def clear(self) -> None:
        self.stop()
        self.player.setMedia(QMediaContent())
        self.sequencer = None
        self._last_segment_id = None
        self.overlay.set_store(None)

    def set_sequencer(self, sequencer: Optional[PlaybackSequencer]) -> None:
        self.sequencer = sequencer
        self._last_segment_id = None

    def video_size(self):
        s = self._video_item.nativeSize()
        return int(s.width()), int(s.height())

    def play(self) -> None:
        self.player.play()

    def pause(self) -> None:
        self.player.pause()

    def stop(self) -> None:
        self.player.stop()
        self._tick_timer.stop()

    def is_playing(self) -> bool:
        return self.player.state() == QMediaPlayer.PlayingState

    # ---------------- Tick ----------------

    def _tick(self) -> None:
        if self.sequencer is None:
            self.overlay.set_time(self.clock.position())
            return
        result = self.sequencer.process_tick()
        self.overlay.set_visible_boxes(result.draw_overlay)
        self.overlay.set_time(self.clock.position())
        if result.current_segment_id is not None and result.current_segment_id != self._last_segment_id:
            self._last_segment_id = result.current_segment_id
            self.current_segment_changed.emit(int(result.current_segment_id))

    # ---------------- Player signal handlers ----------------

    def _on_state_changed(self, state) -> None:
        playing = state == QMediaPlayer.PlayingState
        if playing:
            if not self._tick_timer.isActive():
                self._tick_timer.start()
        else:
            self._tick_timer.stop()
        self.playing_changed.emit(playing)

    def _on_position_changed(self, pos: int) -> None:
        self.position_changed.emit(int(pos))
        if not self.is_playing():
            # scrubbing while paused: keep the overlay in step without ticking
            self.overlay.set_time(ms_to_seconds(pos))

    def _on_media_status(self, status) -> None:
        if status == QMediaPlayer.EndOfMedia:
            self._tick_timer.stop()
            self.playback_ended.emit()

    def _on_native_size(self, size: QSizeF) -> None:
        if size.width() <= 0 or size.height() <= 0:
            return
        self._video_item.setSize(size)
        self._scene.setSceneRect(QRectF(0, 0, size.width(), size.height()))
        self.overlay.set_frame_size(size.width(), size.height())
        self._view.fit()
        self.video_size_changed.emit(int(size.width()), int(size.height()))
