# variant_preview/main_window.py
from __future__ import annotations

import logging
import os
from typing import Optional

from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from .domain import AUDIO_SETTINGS, EditorConfig, RenderSettings
from .errors import VariantPreviewError
from .framing import FramingEditor
from .persistence import (
    RunData,
    load_render_queue,
    load_run,
    save_render_queue,
    save_render_request,
    video_path,
)
from .queue_mapper import RenderQueue, build_render_request, load_queue_item, to_render_queue_item
from .segments import SegmentRegistry
from .sequencer import PlaybackSequencer
from .timeutils import default_target_duration, ms_to_seconds, ms_to_time_str
from .widgets.preview_player import PreviewPlayer
from .widgets.render_queue_panel import RenderQueuePanel
from .widgets.segment_strip import SegmentStrip

logger = logging.getLogger(__name__)


PREVIEW_ORIGINAL = "Object tracking"
PREVIEW_SQUARE = "Square crop"
PREVIEW_VERTICAL = "Vertical crop"


class MainWindow(QMainWindow):
    def __init__(self, cfg: Optional[EditorConfig] = None, run_folder: Optional[str] = None):
        super().__init__()
        self.setWindowTitle("Variant Preview")
        self.resize(1600, 950)

        self.cfg: EditorConfig = cfg or EditorConfig()
        self.registry = SegmentRegistry()
        self.queue = RenderQueue()
        self.run: Optional[RunData] = None
        self.sequencer: Optional[PlaybackSequencer] = None

        self._folder: Optional[str] = None
        self._awaiting_video_size = False

        # Loading a queued item sets the variant combo; don't treat that as a variant change.
        self._loading_variant = False

        # Crop drags pause playback; resume afterwards only if it was playing.
        self._drag_was_playing = False

        self._build_ui()
        self._update_enabled_state()

        if run_folder:
            self.open_run(run_folder)

    # ---------------- UI ----------------

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(6, 6, 6, 6)
        main_layout.setSpacing(6)

        # ===== Top: run folder =====
        top_box = QGroupBox("Run")
        top = QHBoxLayout(top_box)
        top.setContentsMargins(6, 6, 6, 6)
        self.folder_label = QLabel("No run loaded")
        self.folder_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.btn_open = QPushButton("Open Run Folder")
        self.btn_open.clicked.connect(self._choose_run_folder)
        top.addWidget(self.folder_label, stretch=1)
        top.addWidget(self.btn_open)
        main_layout.addWidget(top_box)

        split = QSplitter(Qt.Horizontal)
        main_layout.addWidget(split, stretch=1)

        # ===== Left: player + controls + strip =====
        left = QWidget()
        left_lay = QVBoxLayout(left)
        left_lay.setContentsMargins(0, 0, 0, 0)
        left_lay.setSpacing(6)

        self.player = PreviewPlayer(tick_interval_ms=self.cfg.tick_interval_ms)
        self.player.position_changed.connect(self._on_position)
        self.player.duration_changed.connect(self._on_duration)
        self.player.current_segment_changed.connect(self._on_current_segment)
        self.player.playback_ended.connect(self._on_playback_ended)
        self.player.video_size_changed.connect(self._on_video_size)
        self.player.playing_changed.connect(lambda _p: self._update_play_pause_buttons())
        self.player.overlay.drag_started.connect(self._on_drag_started)
        self.player.overlay.framing_committed.connect(self._on_framing_committed)
        self.player.overlay.drag_refused.connect(
            lambda: self.statusBar().showMessage("No crop position to adjust here.", 3000)
        )
        left_lay.addWidget(self.player, stretch=10)

        play_bar = QHBoxLayout()
        play_bar.setSpacing(8)
        self.btn_play = QPushButton("Play")
        self.btn_pause = QPushButton("Pause")
        self.btn_play.clicked.connect(self.player.play)
        self.btn_pause.clicked.connect(self.player.pause)
        self.timeline_label = QLabel("00:00 / 00:00")

        self.combo_preview = QComboBox()
        self.combo_preview.addItems([PREVIEW_ORIGINAL, PREVIEW_SQUARE, PREVIEW_VERTICAL])
        self.combo_preview.currentTextChanged.connect(lambda _t: self._load_preview())
        self.chk_tracking = QCheckBox("Show overlay")
        self.chk_tracking.setChecked(self.cfg.display_object_tracking)
        self.chk_tracking.toggled.connect(self._on_tracking_toggled)

        play_bar.addWidget(self.btn_play)
        play_bar.addWidget(self.btn_pause)
        play_bar.addSpacing(12)
        play_bar.addWidget(self.timeline_label)
        play_bar.addStretch()
        play_bar.addWidget(QLabel("Preview:"))
        play_bar.addWidget(self.combo_preview)
        play_bar.addWidget(self.chk_tracking)
        left_lay.addLayout(play_bar)

        self.strip = SegmentStrip()
        self.strip.segment_clicked.connect(self._on_segment_clicked)
        self.strip.toggle_requested.connect(self._on_segment_toggle)
        left_lay.addWidget(self.strip, stretch=1)

        self.current_segment_label = QLabel("Current segment: -")
        left_lay.addWidget(self.current_segment_label)

        # ===== Right: variants, render settings, queue, combos =====
        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.setContentsMargins(0, 0, 0, 0)
        right_lay.setSpacing(6)

        var_box = QGroupBox("Variant")
        var_lay = QVBoxLayout(var_box)
        var_lay.setContentsMargins(6, 6, 6, 6)
        self.combo_variant = QComboBox()
        self.combo_variant.currentIndexChanged.connect(self._on_variant_changed)
        self.variant_label = QLabel("")
        self.variant_label.setWordWrap(True)
        self.variant_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        var_lay.addWidget(self.combo_variant)
        var_lay.addWidget(self.variant_label)
        self.target_label = QLabel("")
        var_lay.addWidget(self.target_label)

        reorder_row = QHBoxLayout()
        self.chk_reorder = QCheckBox("Reorder segments")
        self.chk_reorder.toggled.connect(self._on_reorder_toggled)
        self.btn_move_left = QPushButton("Move earlier")
        self.btn_move_right = QPushButton("Move later")
        self.btn_move_left.clicked.connect(lambda: self._move_current_segment(-1))
        self.btn_move_right.clicked.connect(lambda: self._move_current_segment(1))
        reorder_row.addWidget(self.chk_reorder)
        reorder_row.addStretch()
        reorder_row.addWidget(self.btn_move_left)
        reorder_row.addWidget(self.btn_move_right)
        var_lay.addLayout(reorder_row)
        self.order_label = QLabel("")
        var_lay.addWidget(self.order_label)
        right_lay.addWidget(var_box)

        settings_box = QGroupBox("Render Settings")
        settings_lay = QVBoxLayout(settings_box)
        settings_lay.setContentsMargins(6, 6, 6, 6)
        self.chk_assets = QCheckBox("Generate image and text assets")
        self.chk_assets.setChecked(self.cfg.demand_gen_assets)
        self.chk_all_formats = QCheckBox("Render all formats")
        self.chk_all_formats.setChecked(self.cfg.render_all_formats)
        self.combo_audio = QComboBox()
        self.combo_audio.addItems(list(AUDIO_SETTINGS))
        self.combo_audio.setCurrentText(self.cfg.audio_settings)
        audio_row = QHBoxLayout()
        audio_row.addWidget(QLabel("Audio:"))
        audio_row.addWidget(self.combo_audio, stretch=1)
        self.btn_enqueue = QPushButton("Add to Render Queue")
        self.btn_enqueue.clicked.connect(self._add_to_render_queue)
        settings_lay.addWidget(self.chk_assets)
        settings_lay.addWidget(self.chk_all_formats)
        settings_lay.addLayout(audio_row)
        settings_lay.addWidget(self.btn_enqueue)
        right_lay.addWidget(settings_box)

        self.queue_panel = RenderQueuePanel()
        self.queue_panel.load_requested.connect(self._load_queue_item)
        self.queue_panel.remove_requested.connect(self._remove_queue_item)
        self.queue_panel.save_requested.connect(self._save_queue)
        right_lay.addWidget(self.queue_panel, stretch=2)

        combos_box = QGroupBox("Rendered Combos")
        combos_lay = QVBoxLayout(combos_box)
        combos_lay.setContentsMargins(6, 6, 6, 6)
        self.combos_list = QListWidget()
        combos_lay.addWidget(self.combos_list)
        right_lay.addWidget(combos_box, stretch=1)

        split.addWidget(left)
        split.addWidget(right)
        split.setStretchFactor(0, 12)
        split.setStretchFactor(1, 4)

    # ---------------- Run loading ----------------

    def _choose_run_folder(self):
        d = QFileDialog.getExistingDirectory(self, "Select Run Folder")
        if d:
            self.open_run(d)

    def open_run(self, folder: str) -> None:
        """Load the run's video first; the analysis is parsed once the video size is known."""
        self._reset_state()
        path = video_path(folder, self.cfg)
        if not os.path.exists(path):
            QMessageBox.critical(self, "Cannot open run", f"Video not found:\n{path}")
            return
        self._folder = folder
        self.folder_label.setText(folder)
        self._awaiting_video_size = True
        self.player.load(path)
        # Show the first frame so the native size is reported
        self.player.play()
        self.player.pause()

    def _on_video_size(self, w: int, h: int) -> None:
        if not self._awaiting_video_size or not self._folder:
            return
        self._awaiting_video_size = False
        try:
            run = load_run(self._folder, w, h, self.cfg)
            queue = load_render_queue(self._folder)
        except (VariantPreviewError, ValueError) as e:
            logger.error("Failed to load run %s: %s", self._folder, e)
            QMessageBox.critical(self, "Cannot open run", str(e))
            self._reset_state()
            return

        self.run = run
        run.populate(self.registry)
        self.queue = queue
        self.sequencer = PlaybackSequencer(self.registry, self.player.clock,
                                           display_overlay=self.chk_tracking.isChecked())
        self.player.set_sequencer(self.sequencer)

        self._populate_variants()
        self._populate_combos()
        self._load_preview()
        self.queue_panel.set_queue(self.queue)
        if self.registry.variant() is not None:
            self.sequencer.reset_variant_preview()
        self._refresh_segments()
        self._update_enabled_state()

    def _reset_state(self) -> None:
        self.player.clear()
        self.registry.clear()
        self.queue = RenderQueue()
        self.run = None
        self.sequencer = None
        self._folder = None
        self._awaiting_video_size = False
        self.folder_label.setText("No run loaded")
        self.target_label.setText("")
        self.combo_variant.blockSignals(True)
        self.combo_variant.clear()
        self.combo_variant.blockSignals(False)
        self.combo_preview.setCurrentText(PREVIEW_ORIGINAL)
        self.chk_reorder.setChecked(False)
        self.combos_list.clear()
        self.queue_panel.set_queue(self.queue)
        self._refresh_segments()
        self._update_enabled_state()

    def _populate_variants(self) -> None:
        self.combo_variant.blockSignals(True)
        try:
            self.combo_variant.clear()
            for i, v in enumerate(self.registry.variants):
                self.combo_variant.addItem(f"{i + 1}. {v.title} ({v.score:g})")
            if self.registry.active_variant is not None:
                self.combo_variant.setCurrentIndex(self.registry.active_variant)
        finally:
            self.combo_variant.blockSignals(False)
        self._update_variant_label()

    def _populate_combos(self) -> None:
        self.combos_list.clear()
        for combo in (self.run.combos if self.run else []):
            item = QListWidgetItem(f"{combo.title}\nScenes: {combo.scenes}  ({combo.duration})")
            item.setToolTip(combo.description)
            self.combos_list.addItem(item)

    # ---------------- Preview mode ----------------

    def _load_preview(self) -> None:
        if self.run is None:
            self.player.overlay.set_store(None)
            return
        mode = self.combo_preview.currentText()
        store = self.run.objects
        if mode == PREVIEW_SQUARE:
            store = self.run.square
        elif mode == PREVIEW_VERTICAL:
            store = self.run.vertical

        if mode == PREVIEW_ORIGINAL or store is None:
            self.player.overlay.set_store(store)
            self.player.overlay.set_editable(False)
        else:
            self.player.overlay.set_store(store, FramingEditor(store, self.cfg.crop_entity_name))
            self.player.overlay.set_editable(True)
            self.chk_tracking.setChecked(True)

    def _on_tracking_toggled(self, checked: bool) -> None:
        if self.sequencer is not None:
            self.sequencer.display_overlay = bool(checked)
        self.player.overlay.set_visible_boxes(bool(checked))

    def _on_drag_started(self) -> None:
        self._drag_was_playing = self.player.is_playing()
        if self._drag_was_playing:
            self.player.pause()

    def _on_framing_committed(self, changed: int) -> None:
        if changed:
            self.statusBar().showMessage(f"Crop position updated on {changed} frame(s).", 3000)
        if self._drag_was_playing:
            self.player.play()
            QTimer.singleShot(250, self._update_play_pause_buttons)
        self._drag_was_playing = False

    # ---------------- Playback ----------------

    def _update_play_pause_buttons(self) -> None:
        loaded = self.run is not None
        playing = self.player.is_playing()
        self.btn_play.setEnabled(loaded and not playing)
        self.btn_pause.setEnabled(loaded and playing)

    def _on_duration(self, dur_ms: int) -> None:
        self.strip.set_duration_ms(dur_ms)
        if dur_ms > 0:
            target, step = default_target_duration(ms_to_seconds(dur_ms))
            self.target_label.setText(f"Default target duration: {target}s (step {step}s)")
        self._update_timeline_label(self.player.player.position(), dur_ms)

    def _on_position(self, pos_ms: int) -> None:
        self.strip.set_playhead_ms(pos_ms)
        self._update_timeline_label(pos_ms, self.player.player.duration())
        if self.sequencer is not None and not self.player.is_playing():
            if self.sequencer.update_current_segment():
                self._on_current_segment(self.sequencer.current_segment_id)

    def _update_timeline_label(self, pos_ms: int, dur_ms: int) -> None:
        self.timeline_label.setText(f"{ms_to_time_str(pos_ms)} / {ms_to_time_str(dur_ms)}")

    def _on_current_segment(self, segment_id: Optional[int]) -> None:
        self.strip.set_current_segment(segment_id)
        self.strip.set_segments(self.registry.segments)
        if segment_id is None:
            self.current_segment_label.setText("Current segment: -")
        else:
            self.current_segment_label.setText(f"Current segment: {segment_id + 1}")

    def _on_playback_ended(self) -> None:
        if self.sequencer is not None:
            self.sequencer.reset_variant_preview()
        self._refresh_segments()
        self._update_play_pause_buttons()

    # ---------------- Segments / variants ----------------

    def _refresh_segments(self) -> None:
        self.strip.set_segments(self.registry.segments)
        if self.sequencer is not None:
            self._on_current_segment(self.sequencer.current_segment_id)
        order = ", ".join(str(s.id + 1) for s in self.registry.selected_segments())
        self.order_label.setText(f"Render order: {order}" if order else "")

    def _update_variant_label(self) -> None:
        v = self.registry.variant()
        if v is None:
            self.variant_label.setText("No variants in this run.")
            return
        scenes = ", ".join(str(s) for s in v.scenes)
        self.variant_label.setText(f"{v.description}\n\nScenes: {scenes}\nScore: {v.score:g}\n{v.reasoning}")

    def _on_variant_changed(self, index: int) -> None:
        if self._loading_variant or index < 0 or self.sequencer is None:
            return
        self.registry.select_variant(index)
        self.chk_reorder.setChecked(False)
        self.sequencer.reset_variant_preview()
        self._update_variant_label()
        self._refresh_segments()

    def _on_segment_clicked(self, segment_id: int) -> None:
        if self.sequencer is not None:
            self.sequencer.seek_to_segment(segment_id)

    def _on_segment_toggle(self, segment_id: int) -> None:
        if self.registry.segment(segment_id) is None:
            return
        self.registry.toggle_selected(segment_id)
        self._refresh_segments()

    def _on_reorder_toggled(self, checked: bool) -> None:
        self.btn_move_left.setEnabled(bool(checked) and self.run is not None)
        self.btn_move_right.setEnabled(bool(checked) and self.run is not None)
        if not checked and self.registry.restore_original():
            self._refresh_segments()

    def _move_current_segment(self, step: int) -> None:
        if self.sequencer is None or self.sequencer.current_segment_id is None:
            return
        seg = self.registry.segment(self.sequencer.current_segment_id)
        pos = self.registry.segments.index(seg)
        dst = pos + step
        if 0 <= dst < len(self.registry.segments):
            self.registry.move_segment(pos, dst)
            self._refresh_segments()

    # ---------------- Render queue ----------------

    def _render_settings(self) -> RenderSettings:
        return RenderSettings.from_ui(
            self.chk_assets.isChecked(),
            self.chk_all_formats.isChecked(),
            self.combo_audio.currentText(),
        )

    def _add_to_render_queue(self) -> None:
        v = self.registry.variant()
        if v is None:
            return
        item = to_render_queue_item(self.registry.active_variant, v, self.registry.segments, self._render_settings())
        if not self.queue.dedupe_enqueue(item):
            self.statusBar().showMessage("This variant is already in the render queue.", 3000)
        self.queue_panel.set_queue(self.queue)

    def _load_queue_item(self, index: int) -> None:
        item = self.queue[index]
        self._loading_variant = True
        try:
            settings = load_queue_item(self.registry, item)
            self.combo_variant.setCurrentIndex(item.original_variant_id)
        except (IndexError, ValueError) as e:
            QMessageBox.warning(self, "Cannot load queued variant", str(e))
            return
        finally:
            self._loading_variant = False
        self.chk_assets.setChecked(settings.demand_gen_assets)
        self.chk_all_formats.setChecked(settings.render_all_formats)
        self.combo_audio.setCurrentText(settings.audio_settings)
        self._update_variant_label()
        self._refresh_segments()

    def _remove_queue_item(self, index: int) -> None:
        self.queue.remove(index)
        self.queue_panel.set_queue(self.queue)

    def _save_queue(self) -> None:
        if not self._folder or self.run is None:
            return
        try:
            queue_path = save_render_queue(self._folder, self.queue)
            payload = build_render_request(
                self.queue, self.run.square, self.run.vertical, self.player.video_size(),
                weights=self.cfg.weights(),
            )
            request_path = save_render_request(self._folder, payload)
        except OSError as e:
            logger.error("Saving render queue failed: %s", e)
            QMessageBox.warning(self, "Save failed", str(e))
            return
        logger.info("Wrote %s and %s", queue_path, request_path)
        self.statusBar().showMessage(f"Saved {len(self.queue)} queued variant(s).", 3000)

    # ---------------- Enabled state ----------------

    def _update_enabled_state(self) -> None:
        loaded = self.run is not None
        has_variant = self.registry.variant() is not None
        self.combo_variant.setEnabled(has_variant)
        self.chk_reorder.setEnabled(has_variant)
        self.btn_move_left.setEnabled(has_variant and self.chk_reorder.isChecked())
        self.btn_move_right.setEnabled(has_variant and self.chk_reorder.isChecked())
        self.btn_enqueue.setEnabled(has_variant)
        self.combo_preview.setEnabled(loaded)
        self._update_play_pause_buttons()

    def closeEvent(self, event):
        self.player.stop()
        super().closeEvent(event)
