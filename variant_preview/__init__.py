'''
variant_preview/
    __init__.py
    __main__.py

    app.py                 # argparse + logging + QApplication boot
    main_window.py         # QMainWindow layout + wiring

    domain.py              # dataclasses: Segment, Variant, TimedEntity, RenderQueueItem, EditorConfig
    errors.py              # VariantPreviewError, LoadError, SelectionError
    segments.py            # segment registry: selection, played flags, original snapshot, reorder
    sequencer.py           # playback tick state machine (skip / seek / end-of-pass)
    annotations.py         # analysis parsing + timed annotation store
    framing.py             # crop-area hold detection + drag editor
    queue_mapper.py        # variant -> render queue item, dedupe queue, rendered combos
    persistence.py         # run folder loading, config.json, render_queue.json
    timeutils.py           # ms<->time, analysis timestamps, default target duration

    widgets/
      preview_player.py    # video view + tick timer + media clock adapter
      framing_overlay.py   # boxes over the video + crop drag interaction
      segment_strip.py     # segment strip with playhead + click / toggle
      render_queue_panel.py # queued variants + load / remove / save
'''

from __future__ import annotations

__all__ = ["__version__", "run_app"]

__version__ = "0.1.0"


def run_app(argv=None) -> int:
    # Qt is only imported when the GUI starts; the editing core stays importable headless.
    from .app import run_app as _run_app
    return _run_app(argv)
