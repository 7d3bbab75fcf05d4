# variant_preview/queue_mapper.py
from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .annotations import AnnotationStore
from .domain import (
    QueueSegment,
    RenderedVariant,
    RenderQueueItem,
    RenderSettings,
    Segment,
    Variant,
)
from .errors import LoadError
from .segments import SegmentRegistry
from .timeutils import seconds_to_time_str, total_duration_s

logger = logging.getLogger(__name__)


def canonical_json(payload) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# -----------------------------
# Registry -> queue item
# -----------------------------

def to_render_queue_item(
    variant_index: int,
    variant: Variant,
    segments: Iterable[Segment],
    settings: RenderSettings,
) -> RenderQueueItem:
    """
    Snapshot the selected segments (in list order) of a variant.
    user_selection is set when the selected ids differ from the variant's scenes.
    """
    selected = [
        QueueSegment(
            av_segment_id=s.id + 1,
            start_s=s.start_s,
            end_s=s.end_s,
            segment_screenshot_uri=s.screenshot_uri,
        )
        for s in segments
        if s.selected
    ]
    scene_ids = [s.av_segment_id for s in selected]
    duration = total_duration_s((s.start_s, s.end_s) for s in selected)
    return RenderQueueItem(
        original_variant_id=int(variant_index),
        av_segments=tuple(selected),
        title=variant.title,
        description=variant.description,
        score=variant.score,
        score_reasoning=variant.reasoning,
        render_settings=settings,
        duration=seconds_to_time_str(duration),
        scenes=", ".join(str(i) for i in scene_ids),
        user_selection=list(variant.scenes) != scene_ids,
    )


class RenderQueue:
    """Ordered render queue that ignores exact duplicates (by canonical JSON)."""

    def __init__(self, items: Optional[Iterable[RenderQueueItem]] = None):
        self._items: List[RenderQueueItem] = []
        self._keys: List[str] = []
        for item in items or []:
            self.dedupe_enqueue(item)

    @property
    def items(self) -> List[RenderQueueItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> RenderQueueItem:
        return self._items[index]

    def dedupe_enqueue(self, item: RenderQueueItem) -> bool:
        """Append item unless an identical one is already queued. Returns True if appended."""
        key = canonical_json(item.to_dict())
        if key in self._keys:
            logger.debug("Render queue already contains %r", item.title)
            return False
        self._keys.append(key)
        self._items.append(item)
        return True

    def remove(self, index: int) -> RenderQueueItem:
        self._keys.pop(index)
        return self._items.pop(index)

    def clear(self) -> None:
        self._items = []
        self._keys = []

    def to_list(self) -> List[Dict]:
        return [i.to_dict() for i in self._items]


def load_queue_item(registry: SegmentRegistry, item: RenderQueueItem) -> RenderSettings:
    """
    Bring a queued item back into the editor: activate its original variant and
    re-select its segments. Returns its render settings for the UI.
    """
    if not (0 <= item.original_variant_id < len(registry.variants)):
        raise IndexError(f"queued variant {item.original_variant_id} is not loaded")
    registry.active_variant = item.original_variant_id
    registry.apply_selection(item.segment_ids())
    return item.render_settings


# -----------------------------
# Rendered combos
# -----------------------------

def from_rendered_combo(raw: Dict, source: str = "combos.json") -> RenderedVariant:
    """Reshape one rendered combo (segments keyed by id) for display."""
    try:
        segments: Dict[str, Dict] = dict(raw["av_segments"])
        duration = total_duration_s(
            (float(s["start_s"]), float(s["end_s"])) for s in segments.values()
        )
        rendered = RenderedVariant(
            variant_id=raw.get("variant_id"),
            av_segments=segments,
            title=str(raw.get("title", "")),
            description=str(raw.get("description", "")),
            score=float(raw.get("score", 0.0) or 0.0),
            reasoning=str(raw.get("score_reasoning", "")),
            variants=dict(raw.get("variants") or {}),
            duration=seconds_to_time_str(duration),
            scenes=", ".join(str(k) for k in segments.keys()),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise LoadError(source, f"bad combo ({e})", field=str(raw.get("variant_id", "?")) if isinstance(raw, dict) else None) from e

    if raw.get("images"):
        rendered.images = raw["images"]
    if raw.get("texts"):
        rendered.texts = raw["texts"]
    return rendered


def from_rendered_combos(raw: Dict, source: str = "combos.json") -> List[RenderedVariant]:
    if not isinstance(raw, dict):
        raise LoadError(source, "expected an object keyed by variant id")
    return [from_rendered_combo(c, source=source) for c in raw.values()]


# -----------------------------
# Render request
# -----------------------------

def build_render_request(
    queue: RenderQueue,
    square: Optional[AnnotationStore],
    vertical: Optional[AnnotationStore],
    source_size: Tuple[int, int],
    weights: Optional[Dict] = None,
) -> Dict:
    """Payload for the renderer: the queue plus the (possibly edited) crop analyses."""
    w, h = source_size
    payload = {
        "queue": queue.to_list(),
        "squareCropAnalysis": square.export_normalized() if square is not None else None,
        "verticalCropAnalysis": vertical.export_normalized() if vertical is not None else None,
        "sourceDimensions": {"w": int(w), "h": int(h)},
    }
    if weights is not None:
        payload["weights"] = weights
    return payload
