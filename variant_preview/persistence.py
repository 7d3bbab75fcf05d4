# variant_preview/persistence.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .annotations import AnnotationStore, confidence_above, named
from .domain import EditorConfig, RenderedVariant, RenderQueueItem, Variant
from .errors import LoadError
from .queue_mapper import RenderQueue, from_rendered_combos
from .segments import SegmentRegistry, parse_segments, parse_variants

logger = logging.getLogger(__name__)


# Filenames (within a run folder)
SEGMENTS_FILENAME = "data.json"
ANALYSIS_FILENAME = "analysis.json"
VARIANTS_FILENAME = "variants.json"
COMBOS_FILENAME = "combos.json"
SQUARE_PREVIEW_FILENAME = "square.json"
VERTICAL_PREVIEW_FILENAME = "vertical.json"
RENDER_QUEUE_FILENAME = "render_queue.json"

CONFIG_ENV_VAR = "VARIANT_PREVIEW_CONFIG"
CONFIG_FILENAME = "config.json"


# -----------------------------
# Atomic file helpers
# -----------------------------

def _atomic_write_text(path: str, text: str, encoding: str = "utf-8") -> None:
    d = os.path.dirname(path) or "."
    os.makedirs(d, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=d)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _atomic_write_json(path: str, payload) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    _atomic_write_text(path, text + "\n")


def _read_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_json(folder: str, filename: str, required: bool = True):
    """Read one run-folder file, turning I/O and JSON errors into LoadError."""
    path = os.path.join(folder, filename)
    if not os.path.exists(path):
        if required:
            raise LoadError(filename, f"file not found in {folder}")
        return None
    try:
        return _read_json(path)
    except (OSError, json.JSONDecodeError) as e:
        raise LoadError(filename, str(e)) from e


# -----------------------------
# Config
# -----------------------------

def default_config_path() -> str:
    return str(Path.home() / ".variant_preview" / CONFIG_FILENAME)


def resolve_config_path(config_path: Optional[str] = None) -> str:
    """Explicit path, then $VARIANT_PREVIEW_CONFIG, then ~/.variant_preview/config.json."""
    return config_path or os.environ.get(CONFIG_ENV_VAR) or default_config_path()


def load_config(config_path: Optional[str] = None) -> EditorConfig:
    """
    Loads the editor config.

    If missing or invalid, returns defaults (a warning is logged for invalid files).
    """
    path = resolve_config_path(config_path)
    if not os.path.exists(path):
        return EditorConfig()
    try:
        return EditorConfig.from_dict(_read_json(path))
    except (OSError, json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning("Ignoring invalid config %s: %s", path, e)
        return EditorConfig()


def save_config(cfg: EditorConfig, config_path: Optional[str] = None) -> str:
    path = resolve_config_path(config_path)
    _atomic_write_json(path, cfg.to_dict())
    return path


# -----------------------------
# Run folder
# -----------------------------

@dataclass
class RunData:
    """
    Everything read from one analysis run folder, fully validated.
    Nothing here touches a registry until populate() is called.
    """
    folder: str
    segments_raw: List[Dict]
    variants: List[Variant] = field(default_factory=list)
    objects: AnnotationStore = field(default_factory=AnnotationStore)
    square: Optional[AnnotationStore] = None
    vertical: Optional[AnnotationStore] = None
    combos: List[RenderedVariant] = field(default_factory=list)

    def populate(self, registry: SegmentRegistry) -> None:
        registry.clear()
        registry.load_segments(self.segments_raw)
        if self.variants:
            registry.set_variants(self.variants)
            registry.select_variant(0)


def load_run(folder: str, width: float, height: float,
             cfg: Optional[EditorConfig] = None) -> RunData:
    """
    Load a run folder all-or-nothing.

    data.json and analysis.json are required; variants, combos and crop previews
    are optional. Raises LoadError on the first problem.
    """
    cfg = cfg or EditorConfig()
    if not os.path.isdir(folder):
        raise LoadError(folder, "run folder does not exist")

    segments_raw = _load_json(folder, SEGMENTS_FILENAME)
    parse_segments(segments_raw, source=SEGMENTS_FILENAME)

    analysis = _load_json(folder, ANALYSIS_FILENAME)
    objects = AnnotationStore.from_analysis(
        analysis, width, height,
        keep=confidence_above(cfg.confidence_threshold),
        source=ANALYSIS_FILENAME,
    )

    variants_raw = _load_json(folder, VARIANTS_FILENAME, required=False)
    variants = parse_variants(variants_raw, source=VARIANTS_FILENAME) if variants_raw is not None else []
    for i, v in enumerate(variants):
        bad = [s for s in v.scenes if not (1 <= s <= len(segments_raw))]
        if bad:
            raise LoadError(VARIANTS_FILENAME, f"unknown scenes {bad}", field=f"[{i}].scenes")

    crops: Dict[str, Optional[AnnotationStore]] = {}
    for filename in (SQUARE_PREVIEW_FILENAME, VERTICAL_PREVIEW_FILENAME):
        raw = _load_json(folder, filename, required=False)
        crops[filename] = None if raw is None else AnnotationStore.from_analysis(
            raw, width, height, keep=named(cfg.crop_entity_name), source=filename,
        )

    combos_raw = _load_json(folder, COMBOS_FILENAME, required=False)
    combos = from_rendered_combos(combos_raw, source=COMBOS_FILENAME) if combos_raw is not None else []

    logger.info(
        "Loaded run %s: %d segments, %d variants, %d objects, %d combos",
        folder, len(segments_raw), len(variants), len(objects), len(combos),
    )
    return RunData(
        folder=folder,
        segments_raw=segments_raw,
        variants=variants,
        objects=objects,
        square=crops[SQUARE_PREVIEW_FILENAME],
        vertical=crops[VERTICAL_PREVIEW_FILENAME],
        combos=combos,
    )


def video_path(folder: str, cfg: Optional[EditorConfig] = None) -> str:
    cfg = cfg or EditorConfig()
    return os.path.join(folder, cfg.video_filename)


# -----------------------------
# Render queue (run/render_queue.json)
# -----------------------------

def render_queue_path(folder: str) -> str:
    return os.path.join(folder, RENDER_QUEUE_FILENAME)


def save_render_queue(folder: str, queue: RenderQueue) -> str:
    path = render_queue_path(folder)
    _atomic_write_json(path, queue.to_list())
    return path


def load_render_queue(folder: str) -> RenderQueue:
    raw = _load_json(folder, RENDER_QUEUE_FILENAME, required=False)
    if raw is None:
        return RenderQueue()
    if not isinstance(raw, list):
        raise LoadError(RENDER_QUEUE_FILENAME, "expected a list")
    try:
        return RenderQueue(RenderQueueItem.from_dict(d) for d in raw)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise LoadError(RENDER_QUEUE_FILENAME, str(e)) from e


def save_render_request(folder: str, payload: Dict, filename: str = "render_request.json") -> str:
    path = os.path.join(folder, filename)
    _atomic_write_json(path, payload)
    return path
