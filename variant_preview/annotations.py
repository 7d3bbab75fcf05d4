# variant_preview/annotations.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .domain import Frame, TimedEntity
from .errors import LoadError
from .timeutils import seconds_to_timestamp, timestamp_to_seconds

logger = logging.getLogger(__name__)


EntityFilter = Callable[[Dict], bool]


# -----------------------------
# Parsing (normalized -> pixels)
# -----------------------------

def confidence_above(threshold: float) -> EntityFilter:
    return lambda e: float(e.get("confidence", 0.0) or 0.0) > threshold


def named(name: str) -> EntityFilter:
    return lambda e: ((e.get("entity") or {}).get("description")) == name


def _object_annotations(raw: Dict, source: str) -> List[Dict]:
    try:
        results = raw["annotation_results"]
        return list(results[0]["object_annotations"])
    except (KeyError, IndexError, TypeError) as e:
        raise LoadError(source, f"missing {e}", field="annotation_results[0].object_annotations") from e


def _parse_frame(f: Dict, width: float, height: float) -> Frame:
    box = f.get("normalized_bounding_box") or {}
    left = float(box.get("left") or 0)
    top = float(box.get("top") or 0)
    right = float(box.get("right") or 0)
    bottom = float(box.get("bottom") or 0)
    return Frame(
        x=width * left,
        y=height * top,
        width=width * (right - left),
        height=height * (bottom - top),
        time=timestamp_to_seconds(f.get("time_offset")),
    )


def parse_analysis(
    raw: Dict,
    width: float,
    height: float,
    keep: Optional[EntityFilter] = None,
    source: str = "analysis.json",
) -> List[TimedEntity]:
    """
    Convert an object-tracking analysis payload into pixel-space entities.

    Bounding boxes are normalized (0..1) upstream; missing edges count as 0.
    Raises LoadError on shape mismatches or frames that go back in time.
    """
    entities: List[TimedEntity] = []
    for i, e in enumerate(_object_annotations(raw, source)):
        path = f"object_annotations[{i}]"
        try:
            if not isinstance(e, dict):
                raise TypeError(f"expected an object, got {type(e).__name__}")
            if keep is not None and not keep(e):
                continue
            segment = e["segment"]
            entity = TimedEntity(
                name=str(e["entity"]["description"]),
                start_s=timestamp_to_seconds(segment.get("start_time_offset")),
                end_s=timestamp_to_seconds(segment.get("end_time_offset")),
                frames=[_parse_frame(f, width, height) for f in e.get("frames") or []],
                confidence=float(e.get("confidence", 1.0) or 0.0),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as ex:
            raise LoadError(source, str(ex), field=path) from ex

        for j in range(1, len(entity.frames)):
            if entity.frames[j].time < entity.frames[j - 1].time:
                raise LoadError(source, "frames are not ordered by time", field=f"{path}.frames[{j}]")
        entities.append(entity)

    logger.debug("Parsed %d entities from %s", len(entities), source)
    return entities


# -----------------------------
# Store
# -----------------------------

@dataclass(frozen=True)
class OverlayBox:
    """Where to draw one labelled rectangle for the current instant."""
    name: str
    x: float
    y: float
    width: float
    height: float


def frame_at(entity: TimedEntity, t: float) -> Optional[Frame]:
    """First frame whose time is at or after t."""
    for f in entity.frames:
        if f.time >= t:
            return f
    return None


class AnnotationStore:
    """
    Holds timed entities for one preview (object tracking, square crop, vertical crop).
    Independent of playback; frames are mutated in place by the framing editor.
    """

    def __init__(self, entities: Optional[List[TimedEntity]] = None,
                 width: float = 0.0, height: float = 0.0):
        self.entities: List[TimedEntity] = list(entities or [])
        self.width = float(width)
        self.height = float(height)

    @classmethod
    def from_analysis(cls, raw: Dict, width: float, height: float,
                      keep: Optional[EntityFilter] = None,
                      source: str = "analysis.json") -> "AnnotationStore":
        return cls(parse_analysis(raw, width, height, keep=keep, source=source), width, height)

    def __len__(self) -> int:
        return len(self.entities)

    def entity(self, name: str) -> Optional[TimedEntity]:
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def active_boxes(self, t: float) -> List[OverlayBox]:
        """Boxes to draw at t: one per active entity that still has a frame ahead."""
        out: List[OverlayBox] = []
        for e in self.entities:
            if not e.is_active(t):
                continue
            f = frame_at(e, t)
            if f is None:
                continue
            out.append(OverlayBox(name=e.name, x=f.x, y=f.y, width=f.width, height=f.height))
        return out

    def export_normalized(self) -> Dict:
        """
        Re-normalize the (possibly edited) entities into the analysis payload shape,
        so edits can be sent along with a render request.
        """
        w = self.width or 1.0
        h = self.height or 1.0
        objects: List[Dict] = []
        for e in self.entities:
            frames = []
            for f in e.frames:
                frames.append({
                    "normalized_bounding_box": {
                        "left": f.x / w,
                        "top": f.y / h,
                        "right": (f.x + f.width) / w,
                        "bottom": (f.y + f.height) / h,
                    },
                    "time_offset": seconds_to_timestamp(f.time),
                })
            objects.append({
                "entity": {"description": e.name},
                "confidence": e.confidence,
                "segment": {
                    "start_time_offset": seconds_to_timestamp(e.start_s),
                    "end_time_offset": seconds_to_timestamp(e.end_s),
                },
                "frames": frames,
            })
        return {"annotation_results": [{"object_annotations": objects}]}
