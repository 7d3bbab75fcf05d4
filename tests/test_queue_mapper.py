"""Tests for render queue mapping, dedupe and rendered combos."""

import json

import pytest

from variant_preview.annotations import AnnotationStore
from variant_preview.domain import RenderQueueItem, RenderSettings
from variant_preview.errors import LoadError, SelectionError
from variant_preview.queue_mapper import (
    RenderQueue,
    build_render_request,
    canonical_json,
    from_rendered_combo,
    from_rendered_combos,
    load_queue_item,
    to_render_queue_item,
)


@pytest.fixture
def settings():
    return RenderSettings.from_ui(True, True, "segment")


def _item(registry, settings):
    return to_render_queue_item(registry.active_variant, registry.variant(), registry.segments, settings)


class TestToRenderQueueItem:
    """Snapshotting the current selection."""

    def test_unchanged_selection(self, registry, settings):
        item = _item(registry, settings)

        assert item.original_variant_id == 0
        assert item.segment_ids() == [1, 3]
        assert item.av_segments[1].segment_screenshot_uri == "gs://b/2.png"
        assert item.scenes == "1, 3"
        assert item.duration == "00:10"
        assert item.title == "Short cut"
        assert item.score_reasoning == "Strong open"
        assert item.user_selection is False

    def test_user_selection_flag(self, registry, settings):
        registry.toggle_selected(1)
        item = _item(registry, settings)

        assert item.segment_ids() == [1, 2, 3]
        assert item.duration == "00:15"
        assert item.user_selection is True

    def test_follows_render_order(self, registry, settings):
        registry.move_segment(2, 0)
        item = _item(registry, settings)

        assert item.segment_ids() == [3, 1]
        assert item.user_selection is True

    def test_serialized_keys(self, registry, settings):
        d = _item(registry, settings).to_dict()

        assert d["userSelection"] is False
        assert d["av_segments"][0] == {
            "av_segment_id": 1,
            "start_s": 0.0,
            "end_s": 5.0,
            "segment_screenshot_uri": "gs://b/0.png",
        }
        assert d["render_settings"]["use_music_overlay"] is False
        assert RenderQueueItem.from_dict(json.loads(json.dumps(d))) == _item(registry, settings)


class TestRenderQueue:
    """Dedupe and ordering."""

    def test_enqueue_same_item_twice(self, registry, settings):
        queue = RenderQueue()

        assert queue.dedupe_enqueue(_item(registry, settings)) is True
        assert queue.dedupe_enqueue(_item(registry, settings)) is False
        assert len(queue) == 1

    def test_different_settings_are_distinct(self, registry, settings):
        queue = RenderQueue()
        queue.dedupe_enqueue(_item(registry, settings))
        queue.dedupe_enqueue(_item(registry, RenderSettings.from_ui(True, True, "music")))
        assert len(queue) == 2

    def test_remove_allows_requeue(self, registry, settings):
        queue = RenderQueue([_item(registry, settings)])
        removed = queue.remove(0)

        assert removed.title == "Short cut"
        assert len(queue) == 0
        assert queue.dedupe_enqueue(removed) is True

    def test_constructor_dedupes(self, registry, settings):
        item = _item(registry, settings)
        queue = RenderQueue([item, item])
        assert queue.to_list() == [item.to_dict()]

    def test_canonical_json_ignores_key_order(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})


class TestLoadQueueItem:
    """Bringing a queued item back into the editor."""

    def test_restores_variant_and_selection(self, registry, settings):
        registry.toggle_selected(1)
        item = _item(registry, RenderSettings.from_ui(False, True, "continuous"))
        registry.select_variant(1)

        restored = load_queue_item(registry, item)

        assert registry.active_variant == 0
        assert registry.selected_ids() == [1, 2, 3]
        assert restored.audio_settings == "continuous"
        assert restored.demand_gen_assets is False

    def test_unknown_variant(self, registry, settings):
        item = _item(registry, settings)
        registry.set_variants([])
        with pytest.raises(IndexError):
            load_queue_item(registry, item)

    def test_unknown_segments(self, registry, settings):
        d = _item(registry, settings).to_dict()
        d["av_segments"][0]["av_segment_id"] = 12
        with pytest.raises(SelectionError):
            load_queue_item(registry, RenderQueueItem.from_dict(d))


class TestRenderedCombos:
    """Reshaping rendered combos for display."""

    @pytest.fixture
    def combo(self):
        return {
            "variant_id": "v1",
            "title": "Punchy",
            "description": "Fast cut",
            "score": 91,
            "score_reasoning": "Good hook",
            "av_segments": {
                "2": {"start_s": 5.0, "end_s": 10.0},
                "4": {"start_s": 20.0, "end_s": 32.5},
            },
            "variants": {"horizontal": {"path": "h.mp4"}},
            "images": ["a.png"],
            "texts": {},
        }

    def test_reshapes_combo(self, combo):
        rendered = from_rendered_combo(combo)

        assert rendered.variant_id == "v1"
        assert rendered.scenes == "2, 4"
        assert rendered.duration == "00:17"
        assert rendered.reasoning == "Good hook"
        assert rendered.variants == {"horizontal": {"path": "h.mp4"}}
        assert rendered.images == ["a.png"]
        assert rendered.texts is None

    def test_combos_keyed_object(self, combo):
        rendered = from_rendered_combos({"v1": combo, "v2": dict(combo, title="Other")})
        assert [r.title for r in rendered] == ["Punchy", "Other"]

    def test_combos_must_be_object(self, combo):
        with pytest.raises(LoadError):
            from_rendered_combos([combo])

    def test_bad_segment_times(self, combo):
        combo["av_segments"]["2"] = {"start_s": 5.0}
        with pytest.raises(LoadError):
            from_rendered_combo(combo)


class TestRenderRequest:
    """Payload handed to the renderer."""

    def test_includes_queue_crops_and_size(self, registry, settings, crop_raw):
        queue = RenderQueue([_item(registry, settings)])
        square = AnnotationStore.from_analysis(crop_raw, 400, 200)

        payload = build_render_request(queue, square, None, (400, 200), weights={"text": 1000})

        assert payload["queue"] == queue.to_list()
        assert payload["verticalCropAnalysis"] is None
        assert payload["squareCropAnalysis"]["annotation_results"][0]["object_annotations"][0]["entity"] == {
            "description": "crop-area"
        }
        assert payload["sourceDimensions"] == {"w": 400, "h": 200}
        assert payload["weights"] == {"text": 1000}

    def test_weights_are_optional(self):
        payload = build_render_request(RenderQueue(), None, None, (1, 1))
        assert "weights" not in payload
