# variant_preview/sequencer.py
"""
Selected-segments preview: decides, on every playback tick, whether to keep
playing, jump to the next selected segment, or stop at the end of a full pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .segments import SegmentRegistry

logger = logging.getLogger(__name__)


class MediaClock(Protocol):
    """The media-playback primitive the sequencer drives. Times are seconds."""

    def position(self) -> float: ...

    def duration(self) -> float: ...

    def seek(self, seconds: float) -> None: ...

    def play(self) -> None: ...


@dataclass(frozen=True)
class TickResult:
    skipped: bool
    current_segment_id: Optional[int]
    draw_overlay: bool


class PlaybackSequencer:
    """
    State machine over a SegmentRegistry and a MediaClock.

    Selected segments play in ascending id order; unselected segments are skipped
    by seeking to the next playable one. Once every selected segment has played and
    the position passes the last selected segment, it seeks to end-of-media once
    and then stays idle until reset_variant_preview().
    """

    def __init__(self, registry: SegmentRegistry, clock: MediaClock,
                 display_overlay: bool = True):
        self.registry = registry
        self.clock = clock
        self.display_overlay = display_overlay
        self.current_segment_id: Optional[int] = None
        self.exhausted = False

    # ---------------- Per-tick ----------------

    def tick(self) -> bool:
        """Run one step of the state machine. Returns True when the tick was a skip."""
        reg = self.registry
        if not reg.segments or reg.variant() is None or self.exhausted:
            return False

        t = self.clock.position()
        current = reg.segment_at(t)
        if current is None:
            return False

        next_playable = reg.next_playable()
        last_selected = reg.last_selected()
        selected_ids = reg.selected_ids()
        played_ids = reg.played_ids()
        next_is_other = next_playable is not None and next_playable.id != current.id

        is_playing_next = next_playable is not None and next_playable.id == current.id
        not_next_but_selected_unplayed = current.selected and not current.played and next_is_other
        all_played = (
            last_selected is not None
            and played_ids == selected_ids
            and t >= last_selected.end_s
        )
        # Literal rule: "most recent" is the last entry of the id-ordered played list.
        already_played_out_of_order = (
            current.played
            and played_ids.index(current.id + 1) != len(played_ids) - 1
            and next_is_other
        )
        should_skip = (not current.selected) or already_played_out_of_order

        if is_playing_next:
            if not current.played:
                logger.debug("Playing segment %d", current.id)
            reg.mark_played(current.id)
        elif not_next_but_selected_unplayed or already_played_out_of_order or not current.selected:
            if next_playable is not None:
                logger.debug("Skipping segment %d -> %d", current.id, next_playable.id)
                self.clock.seek(next_playable.start_s)
            else:
                self._seek_to_end()
        elif all_played:
            self._seek_to_end()

        return should_skip

    def _seek_to_end(self) -> None:
        logger.debug("Pass complete, seeking to end of media")
        self.exhausted = True
        self.clock.seek(self.clock.duration())

    def update_current_segment(self) -> bool:
        """Refresh current_segment_id from the clock. Returns True if it changed."""
        if not self.registry.segments:
            changed = self.current_segment_id is not None
            self.current_segment_id = None
            return changed
        current = self.registry.segment_at(self.clock.position())
        if current is None or current.id == self.current_segment_id:
            return False
        self.current_segment_id = current.id
        return True

    def process_tick(self) -> TickResult:
        """tick() plus the indicator update, which is suppressed on skip ticks."""
        skipped = self.tick()
        if not skipped:
            self.update_current_segment()
        return TickResult(
            skipped=skipped,
            current_segment_id=self.current_segment_id,
            draw_overlay=self.display_overlay,
        )

    # ---------------- Entry / reset ----------------

    def reset_variant_preview(self) -> None:
        """
        Called when a variant is chosen or playback ends.

        Resumes at the first selected-but-unplayed segment when there is one; else
        starts a new pass from the first scene of the active variant.
        """
        reg = self.registry
        self.exhausted = False
        first_unplayed = reg.next_playable()
        first_selected = reg.first_variant_segment()

        if first_unplayed is not None:
            target = first_unplayed.start_s
        elif first_selected is not None:
            target = first_selected.start_s
        else:
            target = 0.0
        self.clock.seek(target)
        self.update_current_segment()

        if (first_unplayed is not None and first_selected is not None
                and first_unplayed.id != first_selected.id):
            logger.debug("Resuming preview at segment %d", first_unplayed.id)
            self.clock.play()
        elif first_unplayed is None:
            logger.debug("Starting a new preview pass")
            reg.reset_played()

    def reset(self) -> None:
        self.exhausted = False
        self.current_segment_id = None

    def seek_to_segment(self, segment_id: int) -> None:
        seg = self.registry.segment(segment_id)
        if seg is None:
            return
        self.exhausted = False
        self.clock.seek(seg.start_s)
