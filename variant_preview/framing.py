# variant_preview/framing.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .annotations import AnnotationStore, OverlayBox
from .domain import Frame, TimedEntity

logger = logging.getLogger(__name__)


HoldRange = Tuple[int, int]  # [start, end)


@dataclass(frozen=True)
class LocatedFrame:
    frame: Frame
    index: int


# -----------------------------
# Hold algorithm
# -----------------------------

def locate_active_frame(entity: TimedEntity, t: float) -> Optional[LocatedFrame]:
    """First frame (in time order) with time >= t; None past the last frame."""
    for i, f in enumerate(entity.frames):
        if f.time >= t:
            return LocatedFrame(frame=f, index=i)
    return None


def find_hold_range(entity: TimedEntity, index: int, x: float) -> HoldRange:
    """
    Maximal run of consecutive frames around index sharing x.

    The crop position is piecewise-constant (it only moves at scene cuts), so a
    drag applies to the whole run rather than a single sample.
    """
    frames = entity.frames
    if not (0 <= index < len(frames)):
        raise IndexError(f"frame index {index} out of range")
    if frames[index].x != x:
        raise ValueError(f"frame {index} has x={frames[index].x}, not {x}")

    start = index
    while start > 0 and frames[start - 1].x == x:
        start -= 1
    end = index + 1
    while end < len(frames) and frames[end].x == x:
        end += 1
    return start, end


def commit_drag(entity: TimedEntity, hold: HoldRange, delta_x: float, reference_x: float) -> int:
    """
    Shift x by delta_x for every frame in the hold that still sits at reference_x.
    Returns the number of frames changed.
    """
    start, end = hold
    changed = 0
    for f in entity.frames[start:end]:
        if f.x == reference_x:
            f.x = reference_x + delta_x
            changed += 1
    return changed


# -----------------------------
# Drag session
# -----------------------------

class FramingEditor:
    """
    Drag interaction on the crop-area entity of an AnnotationStore.

    begin_drag(t) pins the hold under the playhead; end_drag(delta_x) rewrites it.
    Horizontal deltas are clamped so the crop rectangle stays inside the frame.
    """

    def __init__(self, store: AnnotationStore, crop_entity_name: str = "crop-area"):
        self.store = store
        self.crop_entity_name = crop_entity_name
        self._entity: Optional[TimedEntity] = None
        self._located: Optional[LocatedFrame] = None
        self._hold: Optional[HoldRange] = None
        self._reference_x: float = 0.0

    def is_dragging(self) -> bool:
        return self._hold is not None

    def crop_entity(self) -> Optional[TimedEntity]:
        return self.store.entity(self.crop_entity_name)

    def begin_drag(self, t: float) -> bool:
        """Start a drag at playback time t. Refused (False) when no crop frame applies."""
        self.cancel()
        entity = self.crop_entity()
        if entity is None or not entity.is_active(t):
            logger.debug("Drag refused: no active crop area at %.3fs", t)
            return False
        located = locate_active_frame(entity, t)
        if located is None:
            logger.debug("Drag refused: no crop frame at or after %.3fs", t)
            return False
        self._entity = entity
        self._located = located
        self._reference_x = located.frame.x
        self._hold = find_hold_range(entity, located.index, self._reference_x)
        return True

    def clamp_delta(self, delta_x: float) -> float:
        if self._located is None:
            return 0.0
        f = self._located.frame
        width = self.store.width
        if width <= 0:
            return delta_x
        lo = -f.x
        hi = max(lo, width - f.width - f.x)
        return max(lo, min(delta_x, hi))

    def preview_box(self, delta_x: float) -> Optional[OverlayBox]:
        """The crop rectangle as it would look after applying delta_x."""
        if self._located is None or self._entity is None:
            return None
        f = self._located.frame
        return OverlayBox(
            name=self._entity.name,
            x=f.x + self.clamp_delta(delta_x),
            y=f.y,
            width=f.width,
            height=f.height,
        )

    def hold_range(self) -> Optional[HoldRange]:
        return self._hold

    def end_drag(self, delta_x: float) -> int:
        """Commit the drag. Returns the number of frames rewritten (0 if nothing to do)."""
        if self._entity is None or self._located is None or self._hold is None:
            return 0
        entity, hold = self._entity, self._hold
        reference_x = self._reference_x
        delta = self.clamp_delta(delta_x)
        self.cancel()
        if delta == 0:
            return 0
        changed = commit_drag(entity, hold, delta, reference_x)
        logger.info("Shifted crop area by %.1fpx on frames %d..%d (%d changed)",
                    delta, hold[0], hold[1] - 1, changed)
        return changed

    def cancel(self) -> None:
        self._entity = None
        self._located = None
        self._hold = None
