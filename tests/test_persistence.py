"""Tests for run-folder loading, config and render queue files."""

import json
import os

import pytest

from variant_preview.domain import EditorConfig, RenderSettings
from variant_preview.errors import LoadError
from variant_preview.persistence import (
    CONFIG_ENV_VAR,
    load_config,
    load_render_queue,
    load_run,
    resolve_config_path,
    save_config,
    save_render_queue,
    save_render_request,
    video_path,
)
from variant_preview.queue_mapper import RenderQueue, to_render_queue_item
from variant_preview.segments import SegmentRegistry


@pytest.fixture
def run_folder(tmp_path, write_json, segments_raw, analysis_raw, crop_raw):
    write_json(tmp_path, "data.json", segments_raw)
    write_json(tmp_path, "analysis.json", analysis_raw)
    write_json(tmp_path, "variants.json", [
        {"title": "Short cut", "scenes": [1, 3], "score": 87},
        {"title": "Middle", "scenes": "2"},
    ])
    write_json(tmp_path, "square.json", crop_raw)
    return tmp_path


class TestLoadRun:
    """All-or-nothing run folder loading."""

    def test_loads_everything(self, run_folder):
        run = load_run(str(run_folder), 1000, 500)

        assert len(run.segments_raw) == 3
        assert [v.title for v in run.variants] == ["Short cut", "Middle"]
        # the dog is under the confidence threshold
        assert [e.name for e in run.objects.entities] == ["person"]
        assert run.square.entity("crop-area") is not None
        assert run.vertical is None
        assert run.combos == []

    def test_populate_selects_first_variant(self, run_folder):
        registry = SegmentRegistry()
        load_run(str(run_folder), 1000, 500).populate(registry)

        assert registry.active_variant == 0
        assert registry.selected_ids() == [1, 3]

    def test_confidence_threshold_from_config(self, run_folder):
        run = load_run(str(run_folder), 1000, 500, EditorConfig(confidence_threshold=0.1))
        assert len(run.objects) == 2

    def test_missing_required_file(self, run_folder):
        os.remove(run_folder / "analysis.json")
        with pytest.raises(LoadError, match="analysis.json"):
            load_run(str(run_folder), 1000, 500)

    def test_invalid_json(self, run_folder):
        (run_folder / "data.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(LoadError, match="data.json"):
            load_run(str(run_folder), 1000, 500)

    def test_variant_with_unknown_scene(self, run_folder, write_json):
        write_json(run_folder, "variants.json", [{"title": "Bad", "scenes": [1, 4]}])
        with pytest.raises(LoadError, match="scenes"):
            load_run(str(run_folder), 1000, 500)

    def test_failure_leaves_registry_untouched(self, run_folder, write_json, registry):
        write_json(run_folder, "vertical.json", {"annotation_results": []})

        with pytest.raises(LoadError):
            run = load_run(str(run_folder), 1000, 500)
            run.populate(registry)

        assert registry.selected_ids() == [1, 3]
        assert len(registry.variants) == 2

    def test_missing_folder(self, tmp_path):
        with pytest.raises(LoadError):
            load_run(str(tmp_path / "nope"), 1000, 500)

    def test_combos(self, run_folder, write_json):
        write_json(run_folder, "combos.json", {
            "a": {"variant_id": "a", "title": "A", "av_segments": {"1": {"start_s": 0, "end_s": 5}}},
        })
        run = load_run(str(run_folder), 1000, 500)
        assert [c.title for c in run.combos] == ["A"]
        assert run.combos[0].duration == "00:05"

    def test_video_path(self, run_folder):
        assert video_path(str(run_folder)).endswith("input.mp4")
        assert video_path(str(run_folder), EditorConfig(video_filename="src.mov")).endswith("src.mov")


class TestRenderQueueFiles:
    """render_queue.json and render_request.json."""

    def test_queue_round_trip(self, tmp_path, registry):
        settings = RenderSettings.from_ui(True, False, "music")
        queue = RenderQueue([
            to_render_queue_item(0, registry.variant(), registry.segments, settings),
        ])

        path = save_render_queue(str(tmp_path), queue)
        loaded = load_render_queue(str(tmp_path))

        assert os.path.basename(path) == "render_queue.json"
        assert loaded.to_list() == queue.to_list()
        assert loaded[0].render_settings.audio_settings == "music"

    def test_missing_queue_is_empty(self, tmp_path):
        assert len(load_render_queue(str(tmp_path))) == 0

    def test_malformed_queue(self, tmp_path, write_json):
        write_json(tmp_path, "render_queue.json", {"queue": []})
        with pytest.raises(LoadError):
            load_render_queue(str(tmp_path))

    def test_save_render_request(self, tmp_path):
        path = save_render_request(str(tmp_path), {"queue": []})
        with open(path, "r", encoding="utf-8") as f:
            assert json.load(f) == {"queue": []}
        assert [p for p in os.listdir(tmp_path) if p.startswith(".tmp_")] == []


class TestConfig:
    """config.json lookup and validation."""

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "config.json")
        cfg = EditorConfig(tick_interval_ms=25, audio_settings="continuous", weights_text_index=2)

        save_config(cfg, path)

        assert load_config(path) == cfg

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "missing.json")) == EditorConfig()

    def test_invalid_file_gives_defaults(self, tmp_path, write_json, caplog):
        path = write_json(tmp_path, "config.json", {"audio_settings": "loud"})

        with caplog.at_level("WARNING"):
            cfg = load_config(path)

        assert cfg == EditorConfig()
        assert "Ignoring invalid config" in caplog.text

    @pytest.mark.parametrize("payload", [[], "x", 1])
    def test_non_object_file_gives_defaults(self, tmp_path, write_json, payload):
        path = write_json(tmp_path, "config.json", payload)
        assert load_config(path) == EditorConfig()

    def test_boolean_strings(self):
        cfg = EditorConfig.from_dict({"display_object_tracking": "false", "demand_gen_assets": "True"})
        assert cfg.display_object_tracking is False
        assert cfg.demand_gen_assets is True

    def test_non_boolean_flag_is_rejected(self):
        with pytest.raises(ValueError):
            EditorConfig.from_dict({"render_all_formats": "nope"})

    def test_non_boolean_flag_in_file_gives_defaults(self, tmp_path, write_json):
        path = write_json(tmp_path, "config.json", {"render_all_formats": 0})
        assert load_config(path) == EditorConfig()

    def test_env_var_lookup(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.json"))
        assert resolve_config_path() == str(tmp_path / "env.json")
        assert resolve_config_path("explicit.json") == "explicit.json"

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert resolve_config_path().endswith(os.path.join(".variant_preview", "config.json"))

    def test_weights(self):
        assert EditorConfig().weights() == {"text": 1000, "face": 10, "objects": {"person": 10}}

    def test_render_settings_from_config(self):
        settings = EditorConfig(audio_settings="music", demand_gen_assets=False).render_settings()
        assert settings.use_music_overlay is True
        assert settings.generate_image_assets is False
