"""Tests for analysis parsing and the AnnotationStore."""

import pytest

from variant_preview.annotations import (
    AnnotationStore,
    confidence_above,
    frame_at,
    named,
    parse_analysis,
)
from variant_preview.errors import LoadError
from variant_preview.framing import FramingEditor


class TestParseAnalysis:
    """Normalized boxes become pixel frames."""

    def test_denormalizes_boxes(self, analysis_raw):
        entities = parse_analysis(analysis_raw, 1000, 500)

        person = entities[0]
        assert person.name == "person"
        assert person.start_s == 0.0
        assert person.end_s == 4.0
        assert person.frames[0].x == pytest.approx(100.0)
        assert person.frames[0].y == pytest.approx(100.0)
        assert person.frames[0].width == pytest.approx(200.0)
        assert person.frames[0].height == pytest.approx(200.0)
        assert person.frames[1].time == 2.0

    def test_string_offsets(self, analysis_raw):
        dog = parse_analysis(analysis_raw, 1000, 500)[1]
        assert dog.start_s == 1.0
        assert dog.end_s == 3.5

    def test_confidence_filter_is_strict(self, analysis_raw):
        entities = parse_analysis(analysis_raw, 1000, 500, keep=confidence_above(0.7))
        assert [e.name for e in entities] == ["person"]

        analysis_raw["annotation_results"][0]["object_annotations"][1]["confidence"] = 0.7
        entities = parse_analysis(analysis_raw, 1000, 500, keep=confidence_above(0.7))
        assert [e.name for e in entities] == ["person"]

    def test_name_filter(self, analysis_raw):
        entities = parse_analysis(analysis_raw, 1000, 500, keep=named("dog"))
        assert [e.name for e in entities] == ["dog"]

    def test_missing_box_edges_count_as_zero(self):
        raw = {"annotation_results": [{"object_annotations": [{
            "entity": {"description": "cup"},
            "segment": {},
            "frames": [{"normalized_bounding_box": {"right": 0.5, "bottom": 0.5}}],
        }]}]}
        frame = parse_analysis(raw, 100, 100)[0].frames[0]
        assert (frame.x, frame.y, frame.width, frame.height, frame.time) == (0.0, 0.0, 50.0, 50.0, 0.0)

    def test_missing_results_is_load_error(self):
        with pytest.raises(LoadError) as exc:
            parse_analysis({"annotation_results": []}, 100, 100, source="square.json")
        assert exc.value.source == "square.json"

    def test_missing_entity_is_load_error(self, analysis_raw):
        del analysis_raw["annotation_results"][0]["object_annotations"][0]["entity"]
        with pytest.raises(LoadError, match=r"object_annotations\[0\]"):
            parse_analysis(analysis_raw, 100, 100)

    def test_non_object_entry_is_load_error(self):
        raw = {"annotation_results": [{"object_annotations": [None]}]}
        with pytest.raises(LoadError, match=r"object_annotations\[0\]"):
            parse_analysis(raw, 100, 100, keep=confidence_above(0.7))

    def test_string_entity_with_name_filter_is_load_error(self):
        raw = {"annotation_results": [{"object_annotations": [{"entity": "crop-area"}]}]}
        with pytest.raises(LoadError):
            parse_analysis(raw, 100, 100, keep=named("crop-area"))

    def test_frames_going_back_in_time(self, analysis_raw):
        frames = analysis_raw["annotation_results"][0]["object_annotations"][0]["frames"]
        frames.reverse()
        with pytest.raises(LoadError):
            parse_analysis(analysis_raw, 100, 100)


class TestAnnotationStore:
    """Time lookups and export."""

    def test_active_boxes(self, analysis_raw):
        store = AnnotationStore.from_analysis(analysis_raw, 1000, 500)

        boxes = store.active_boxes(1.5)

        assert [b.name for b in boxes] == ["person"]
        assert boxes[0].x == pytest.approx(200.0)

    def test_entity_without_frame_ahead_is_hidden(self, analysis_raw):
        store = AnnotationStore.from_analysis(analysis_raw, 1000, 500)
        # person is active until 4s but its last frame is at 2s
        assert store.active_boxes(3.0) == []

    def test_frame_at(self, analysis_raw):
        person = AnnotationStore.from_analysis(analysis_raw, 1000, 500).entity("person")
        assert frame_at(person, 0.0).time == 0.0
        assert frame_at(person, 0.1).time == 2.0
        assert frame_at(person, 2.1) is None

    def test_export_normalized_reflects_edits(self, crop_raw):
        store = AnnotationStore.from_analysis(crop_raw, 400, 200)
        editor = FramingEditor(store)
        editor.begin_drag(0.0)
        editor.end_drag(100.0)

        exported = store.export_normalized()

        obj = exported["annotation_results"][0]["object_annotations"][0]
        assert obj["entity"]["description"] == "crop-area"
        first = obj["frames"][0]["normalized_bounding_box"]
        assert first["left"] == pytest.approx(0.5)
        assert first["right"] == pytest.approx(0.75)
        assert obj["frames"][3]["normalized_bounding_box"]["left"] == pytest.approx(0.5)
        assert obj["frames"][1]["time_offset"] == {"seconds": 1, "nanos": 0}
        assert obj["segment"]["end_time_offset"] == {"seconds": 10, "nanos": 0}

    def test_export_can_be_parsed_again(self, analysis_raw):
        store = AnnotationStore.from_analysis(analysis_raw, 1000, 500)
        again = AnnotationStore.from_analysis(store.export_normalized(), 1000, 500)

        assert len(again) == 2
        assert again.entity("dog").end_s == pytest.approx(3.5)
        assert again.entity("person").frames[1].x == pytest.approx(200.0)
