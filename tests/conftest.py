"""Shared fixtures for the editing-core tests (no Qt needed)."""

import json
import os

import pytest

from variant_preview.domain import Variant
from variant_preview.segments import SegmentRegistry


class FakeClock:
    """MediaClock stand-in that records seeks and play() calls."""

    def __init__(self, duration=20.0, position=0.0):
        self._duration = duration
        self.t = position
        self.seeks = []
        self.play_calls = 0

    def position(self):
        return self.t

    def duration(self):
        return self._duration

    def seek(self, seconds):
        self.seeks.append(seconds)
        self.t = seconds

    def play(self):
        self.play_calls += 1


@pytest.fixture
def segments_raw():
    return [
        {"av_segment_id": 0, "start_s": 0.0, "end_s": 5.0, "segment_screenshot_uri": "gs://b/0.png"},
        {"av_segment_id": 1, "start_s": 5.0, "end_s": 10.0, "segment_screenshot_uri": "gs://b/1.png"},
        {"av_segment_id": 2, "start_s": 10.0, "end_s": 15.0, "segment_screenshot_uri": "gs://b/2.png",
         "description": "closing shot"},
    ]


@pytest.fixture
def variants():
    return [
        Variant(title="Short cut", description="First and last", score=87.0,
                reasoning="Strong open", scenes=(1, 3)),
        Variant(title="Middle", description="Only the middle", score=50.0, scenes=(2,)),
    ]


@pytest.fixture
def registry(segments_raw, variants):
    reg = SegmentRegistry()
    reg.load_segments(segments_raw)
    reg.set_variants(variants)
    reg.select_variant(0)
    return reg


@pytest.fixture
def clock():
    return FakeClock()


def _box(left, top, right, bottom, t):
    return {
        "normalized_bounding_box": {"left": left, "top": top, "right": right, "bottom": bottom},
        "time_offset": {"seconds": int(t), "nanos": int(round((t - int(t)) * 1e9))},
    }


@pytest.fixture
def analysis_raw():
    """Two tracked objects; the dog is below the default confidence threshold."""
    return {
        "annotation_results": [{
            "object_annotations": [
                {
                    "entity": {"description": "person"},
                    "confidence": 0.92,
                    "segment": {"start_time_offset": {"seconds": 0}, "end_time_offset": {"seconds": 4}},
                    "frames": [_box(0.1, 0.2, 0.3, 0.6, 0.0), _box(0.2, 0.2, 0.4, 0.6, 2.0)],
                },
                {
                    "entity": {"description": "dog"},
                    "confidence": 0.4,
                    "segment": {"start_time_offset": "1s", "end_time_offset": "3.5s"},
                    "frames": [_box(0.5, 0.5, 0.7, 0.9, 1.0)],
                },
            ]
        }]
    }


@pytest.fixture
def crop_raw():
    """A crop-area track that holds at left=0.25 for three frames, then moves."""
    return {
        "annotation_results": [{
            "object_annotations": [
                {
                    "entity": {"description": "crop-area"},
                    "confidence": 1.0,
                    "segment": {"start_time_offset": {}, "end_time_offset": {"seconds": 10}},
                    "frames": [
                        _box(0.25, 0.0, 0.5, 1.0, 0.0),
                        _box(0.25, 0.0, 0.5, 1.0, 1.0),
                        _box(0.25, 0.0, 0.5, 1.0, 2.0),
                        _box(0.5, 0.0, 0.75, 1.0, 3.0),
                        _box(0.5, 0.0, 0.75, 1.0, 4.0),
                    ],
                },
            ]
        }]
    }


@pytest.fixture
def write_json():
    def _write(folder, name, payload):
        path = os.path.join(str(folder), name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        return path
    return _write
