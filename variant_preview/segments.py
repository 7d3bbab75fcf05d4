# variant_preview/segments.py
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .domain import Segment, SegmentSource, Variant
from .errors import LoadError, SelectionError

logger = logging.getLogger(__name__)


def parse_segments(raw: Sequence[Dict], source: str = "data.json") -> List[Segment]:
    """
    Parse and validate an upstream segment list.

    Enforces: av_segment_id equals list position, start_s <= end_s,
    sorted by start_s and non-overlapping (touching edges allowed).
    """
    if not isinstance(raw, (list, tuple)):
        raise LoadError(source, "expected a list of segments")
    out: List[Segment] = []
    for i, d in enumerate(raw):
        try:
            seg = Segment.from_dict(d)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise LoadError(source, f"bad segment ({e})", field=f"[{i}]") from e
        if seg.id != i:
            raise LoadError(source, f"av_segment_id {seg.id} does not match position {i}", field=f"[{i}]")
        if seg.end_s < seg.start_s:
            raise LoadError(source, "end_s is before start_s", field=f"[{i}]")
        if out and seg.start_s < out[-1].end_s:
            raise LoadError(source, "segments overlap or are out of order", field=f"[{i}]")
        out.append(seg)
    return out


def parse_variants(raw: Sequence[Dict], source: str = "variants.json") -> List[Variant]:
    if not isinstance(raw, (list, tuple)):
        raise LoadError(source, "expected a list of variants")
    out: List[Variant] = []
    for i, d in enumerate(raw):
        try:
            out.append(Variant.from_dict(d))
        except (TypeError, ValueError, AttributeError) as e:
            raise LoadError(source, f"bad variant ({e})", field=f"[{i}]") from e
    return out


class SegmentRegistry:
    """
    Owns the live segment list, the variants and the active variant.

    The live list may be re-ordered by the user (render order); lookups by id
    never depend on list position. An immutable snapshot of the loaded data is kept
    so ad-hoc edits can be discarded.
    """

    def __init__(self):
        self.segments: List[Segment] = []
        self.variants: List[Variant] = []
        self.active_variant: Optional[int] = None
        self._original: Tuple[SegmentSource, ...] = ()
        self._by_id: Dict[int, Segment] = {}

    # ---------------- Loading ----------------

    def load_segments(self, raw: Sequence[Dict]) -> List[Segment]:
        segments = parse_segments(raw)
        self._original = tuple(s.source() for s in segments)
        self._set_live(segments)
        if not self.variants:
            self.active_variant = None
        logger.info("Loaded %d segments", len(segments))
        return self.segments

    def set_variants(self, variants: Iterable) -> None:
        parsed = [v if isinstance(v, Variant) else Variant.from_dict(v) for v in variants]
        self.variants = parsed
        self.active_variant = 0 if parsed else None

    def clear(self) -> None:
        self.segments = []
        self.variants = []
        self.active_variant = None
        self._original = ()
        self._by_id = {}

    def _set_live(self, segments: List[Segment]) -> None:
        self.segments = segments
        self._by_id = {s.id: s for s in segments}

    # ---------------- Variants / selection ----------------

    def variant(self) -> Optional[Variant]:
        if self.active_variant is None or not (0 <= self.active_variant < len(self.variants)):
            return None
        return self.variants[self.active_variant]

    def select_variant(self, index: int) -> Variant:
        """Activate a variant: discard all edits and played state, then apply its scenes."""
        if not (0 <= index < len(self.variants)):
            raise IndexError(f"variant index {index} out of range (0..{len(self.variants) - 1})")
        self.active_variant = index
        self._set_live([Segment.from_source(s) for s in self._original])
        self.apply_selection()
        return self.variants[index]

    def apply_selection(self, ids: Optional[Sequence[int]] = None) -> bool:
        """
        Mark exactly the given 1-based ids as selected (or the active variant's scenes).
        Returns False (no change) when neither ids nor an active variant is available.
        """
        if ids is None:
            variant = self.variant()
            if variant is None:
                logger.debug("apply_selection: no ids and no active variant")
                return False
            ids = variant.scenes

        wanted = [int(i) - 1 for i in ids]
        unknown = [i + 1 for i in wanted if i not in self._by_id]
        if unknown:
            raise SelectionError(unknown, len(self.segments))

        for s in self.segments:
            s.selected = False
        for i in wanted:
            self._by_id[i].selected = True
        return True

    def toggle_selected(self, segment_id: int) -> bool:
        seg = self._by_id[segment_id]
        seg.selected = not seg.selected
        return seg.selected

    # ---------------- Snapshot / edits ----------------

    def is_modified(self) -> bool:
        """True when the live source data (order, timing, uri, extras) differs from the snapshot."""
        return tuple(s.source() for s in self.segments) != self._original

    def restore_original(self) -> bool:
        """
        Discard ad-hoc edits: rebuild from the snapshot and re-apply the active
        variant's selection. Skipped when nothing differs, so played flags survive.
        """
        if not self.is_modified():
            return False
        self._set_live([Segment.from_source(s) for s in self._original])
        self.apply_selection()
        logger.debug("Restored original segment order")
        return True

    def move_segment(self, src_pos: int, dst_pos: int) -> None:
        """Move the segment at list position src_pos to dst_pos (render order only)."""
        n = len(self.segments)
        if not (0 <= src_pos < n and 0 <= dst_pos < n):
            raise IndexError(f"positions must be within 0..{n - 1}")
        seg = self.segments.pop(src_pos)
        self.segments.insert(dst_pos, seg)

    # ---------------- Played flags ----------------

    def mark_played(self, segment_id: int) -> None:
        self._by_id[segment_id].played = True

    def reset_played(self) -> None:
        for s in self.segments:
            s.played = False

    # ---------------- Queries ----------------

    def __len__(self) -> int:
        return len(self.segments)

    def segment(self, segment_id: int) -> Optional[Segment]:
        return self._by_id.get(segment_id)

    def in_id_order(self) -> List[Segment]:
        return [self._by_id[i] for i in sorted(self._by_id)]

    def segment_at(self, t: float) -> Optional[Segment]:
        for s in self.in_id_order():
            if s.contains(t):
                return s
        return None

    def next_playable(self) -> Optional[Segment]:
        for s in self.in_id_order():
            if s.selected and not s.played:
                return s
        return None

    def last_selected(self) -> Optional[Segment]:
        for s in reversed(self.in_id_order()):
            if s.selected:
                return s
        return None

    def selected_ids(self) -> List[int]:
        """1-based ids of selected segments, in id order."""
        return [s.id + 1 for s in self.in_id_order() if s.selected]

    def played_ids(self) -> List[int]:
        """1-based ids of played segments, in id order."""
        return [s.id + 1 for s in self.in_id_order() if s.played]

    def selected_segments(self) -> List[Segment]:
        """Selected segments in live (render) order."""
        return [s for s in self.segments if s.selected]

    def first_variant_segment(self) -> Optional[Segment]:
        variant = self.variant()
        if variant is None or not variant.scenes:
            return None
        return self._by_id.get(variant.scenes[0] - 1)
