# variant_preview/domain.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


AUDIO_SETTINGS = ("segment", "music", "continuous")


def _scene_id(value) -> int:
    """1-based scene id; bools and non-integral numbers are rejected."""
    if isinstance(value, bool):
        raise ValueError(f"invalid scene id {value!r}")
    f = float(value)
    if not f.is_integer():
        raise ValueError(f"scene id {value!r} is not an integer")
    return int(f)


def _config_bool(value, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{name} must be true or false, got {value!r}")


# -----------------------------
# Segments / Variants
# -----------------------------

@dataclass(frozen=True)
class SegmentSource:
    """
    Immutable copy of a segment's upstream data (no session-local flags).
    The registry keeps a tuple of these as the "original" snapshot.
    """
    id: int
    start_s: float
    end_s: float
    screenshot_uri: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Segment:
    """
    A time-bounded slice of the source video.

    id is 0-based and equals the segment's position in the upstream list.
    selected/played are session-local UI state and never persisted.
    extra carries any other upstream fields (description, transcript, ...) untouched.
    """
    id: int
    start_s: float
    end_s: float
    screenshot_uri: str = ""
    selected: bool = False
    played: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s

    def contains(self, t: float) -> bool:
        return self.start_s <= t <= self.end_s

    def source(self) -> SegmentSource:
        return SegmentSource(
            id=self.id,
            start_s=self.start_s,
            end_s=self.end_s,
            screenshot_uri=self.screenshot_uri,
            extra=copy.deepcopy(self.extra),
        )

    @staticmethod
    def from_source(src: SegmentSource) -> "Segment":
        return Segment(
            id=src.id,
            start_s=src.start_s,
            end_s=src.end_s,
            screenshot_uri=src.screenshot_uri,
            extra=copy.deepcopy(src.extra),
        )

    def to_dict(self) -> Dict:
        d = dict(self.extra)
        d.update({
            "av_segment_id": int(self.id),
            "start_s": float(self.start_s),
            "end_s": float(self.end_s),
            "segment_screenshot_uri": self.screenshot_uri,
        })
        return d

    @staticmethod
    def from_dict(d: Dict) -> "Segment":
        known = {"av_segment_id", "start_s", "end_s", "segment_screenshot_uri",
                 "screenshot_uri", "selected", "played"}
        return Segment(
            id=int(d["av_segment_id"]),
            start_s=float(d["start_s"]),
            end_s=float(d["end_s"]),
            screenshot_uri=str(d.get("segment_screenshot_uri") or d.get("screenshot_uri") or ""),
            extra={k: copy.deepcopy(v) for k, v in d.items() if k not in known},
        )


@dataclass(frozen=True)
class Variant:
    """A named candidate edit: an ordered subset of 1-based segment ids plus metadata."""
    title: str
    description: str = ""
    score: float = 0.0
    reasoning: str = ""
    scenes: Tuple[int, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "description": self.description,
            "score": self.score,
            "reasoning": self.reasoning,
            "scenes": list(self.scenes),
        }

    @staticmethod
    def from_dict(d: Dict) -> "Variant":
        scenes = d.get("scenes") or []
        if isinstance(scenes, str):
            scenes = [s for s in scenes.replace(" ", "").split(",") if s]
        return Variant(
            title=str(d.get("title", "")),
            description=str(d.get("description", "")),
            score=float(d.get("score", 0.0) or 0.0),
            reasoning=str(d.get("reasoning", "")),
            scenes=tuple(_scene_id(s) for s in scenes),
        )


# -----------------------------
# Timed annotations
# -----------------------------

@dataclass
class Frame:
    """One analyzed instant of an entity, in pixels (x/y/width/height) and seconds."""
    x: float
    y: float
    width: float
    height: float
    time: float


@dataclass
class TimedEntity:
    """
    A detected object (or the crop-area) with its per-time frames.
    Frames are ordered by time; the entity is active while start_s <= t <= end_s.
    """
    name: str
    start_s: float
    end_s: float
    frames: List[Frame] = field(default_factory=list)
    confidence: float = 1.0

    def is_active(self, t: float) -> bool:
        return self.start_s <= t <= self.end_s


# -----------------------------
# Render queue
# -----------------------------

@dataclass(frozen=True)
class RenderSettings:
    generate_image_assets: bool = True
    generate_text_assets: bool = True
    render_all_formats: bool = True
    use_music_overlay: bool = False
    use_continuous_audio: bool = False

    @property
    def audio_settings(self) -> str:
        if self.use_music_overlay:
            return "music"
        if self.use_continuous_audio:
            return "continuous"
        return "segment"

    @property
    def demand_gen_assets(self) -> bool:
        return self.generate_text_assets and self.generate_image_assets

    @staticmethod
    def from_ui(demand_gen_assets: bool, render_all_formats: bool, audio_settings: str) -> "RenderSettings":
        if audio_settings not in AUDIO_SETTINGS:
            raise ValueError(f"audio_settings must be one of {AUDIO_SETTINGS}, got {audio_settings!r}")
        return RenderSettings(
            generate_image_assets=bool(demand_gen_assets),
            generate_text_assets=bool(demand_gen_assets),
            render_all_formats=bool(render_all_formats),
            use_music_overlay=audio_settings == "music",
            use_continuous_audio=audio_settings == "continuous",
        )

    def to_dict(self) -> Dict:
        return {
            "generate_image_assets": self.generate_image_assets,
            "generate_text_assets": self.generate_text_assets,
            "render_all_formats": self.render_all_formats,
            "use_music_overlay": self.use_music_overlay,
            "use_continuous_audio": self.use_continuous_audio,
        }

    @staticmethod
    def from_dict(d: Dict) -> "RenderSettings":
        return RenderSettings(
            generate_image_assets=bool(d.get("generate_image_assets", True)),
            generate_text_assets=bool(d.get("generate_text_assets", True)),
            render_all_formats=bool(d.get("render_all_formats", True)),
            use_music_overlay=bool(d.get("use_music_overlay", False)),
            use_continuous_audio=bool(d.get("use_continuous_audio", False)),
        )


@dataclass(frozen=True)
class QueueSegment:
    """A selected segment as sent to the renderer (av_segment_id is 1-based)."""
    av_segment_id: int
    start_s: float
    end_s: float
    segment_screenshot_uri: str = ""

    def to_dict(self) -> Dict:
        return {
            "av_segment_id": int(self.av_segment_id),
            "start_s": float(self.start_s),
            "end_s": float(self.end_s),
            "segment_screenshot_uri": self.segment_screenshot_uri,
        }

    @staticmethod
    def from_dict(d: Dict) -> "QueueSegment":
        return QueueSegment(
            av_segment_id=int(d["av_segment_id"]),
            start_s=float(d["start_s"]),
            end_s=float(d["end_s"]),
            segment_screenshot_uri=str(d.get("segment_screenshot_uri", "")),
        )


@dataclass(frozen=True)
class RenderQueueItem:
    """
    Snapshot of a variant's final selected segments and render settings.
    Two items are duplicates when their canonical JSON is identical.
    """
    original_variant_id: int
    av_segments: Tuple[QueueSegment, ...]
    title: str
    description: str
    score: float
    score_reasoning: str
    render_settings: RenderSettings
    duration: str
    scenes: str
    user_selection: bool = False

    def segment_ids(self) -> List[int]:
        return [s.av_segment_id for s in self.av_segments]

    def to_dict(self) -> Dict:
        return {
            "original_variant_id": int(self.original_variant_id),
            "av_segments": [s.to_dict() for s in self.av_segments],
            "title": self.title,
            "description": self.description,
            "score": self.score,
            "score_reasoning": self.score_reasoning,
            "render_settings": self.render_settings.to_dict(),
            "duration": self.duration,
            "scenes": self.scenes,
            "userSelection": bool(self.user_selection),
        }

    @staticmethod
    def from_dict(d: Dict) -> "RenderQueueItem":
        return RenderQueueItem(
            original_variant_id=int(d["original_variant_id"]),
            av_segments=tuple(QueueSegment.from_dict(s) for s in d.get("av_segments") or []),
            title=str(d.get("title", "")),
            description=str(d.get("description", "")),
            score=float(d.get("score", 0.0) or 0.0),
            score_reasoning=str(d.get("score_reasoning", "")),
            render_settings=RenderSettings.from_dict(d.get("render_settings") or {}),
            duration=str(d.get("duration", "")),
            scenes=str(d.get("scenes", "")),
            user_selection=bool(d.get("userSelection", False)),
        )


@dataclass
class RenderedVariant:
    """A rendered combo reshaped for display."""
    variant_id: Any
    av_segments: Dict[str, Dict]
    title: str = ""
    description: str = ""
    score: float = 0.0
    reasoning: str = ""
    variants: Dict[str, Any] = field(default_factory=dict)
    duration: str = "00:00"
    scenes: str = ""
    images: Optional[List[Any]] = None
    texts: Optional[Dict[str, Any]] = None


# -----------------------------
# Config payload
# -----------------------------

@dataclass
class EditorConfig:
    """
    Stored as JSON (see persistence.load_config).
    """
    tick_interval_ms: int = 10
    confidence_threshold: float = 0.7
    crop_entity_name: str = "crop-area"

    # framing weights offered in the UI; indexes pick a step for each weight
    weight_steps: List[int] = field(default_factory=lambda: [0, 10, 100, 1000])
    weights_text_index: int = 3
    weights_person_face_index: int = 1

    display_object_tracking: bool = True
    render_all_formats: bool = True
    audio_settings: str = "segment"
    demand_gen_assets: bool = True

    video_filename: str = "input.mp4"
    log_level: str = "INFO"

    def weights(self) -> Dict:
        person_face = self.weight_steps[self.weights_person_face_index]
        return {
            "text": self.weight_steps[self.weights_text_index],
            "face": person_face,
            "objects": {"person": person_face},
        }

    def render_settings(self) -> RenderSettings:
        return RenderSettings.from_ui(self.demand_gen_assets, self.render_all_formats, self.audio_settings)

    def to_dict(self) -> Dict:
        return {
            "tick_interval_ms": int(self.tick_interval_ms),
            "confidence_threshold": float(self.confidence_threshold),
            "crop_entity_name": self.crop_entity_name,
            "weight_steps": [int(x) for x in self.weight_steps],
            "weights_text_index": int(self.weights_text_index),
            "weights_person_face_index": int(self.weights_person_face_index),
            "display_object_tracking": bool(self.display_object_tracking),
            "render_all_formats": bool(self.render_all_formats),
            "audio_settings": self.audio_settings,
            "demand_gen_assets": bool(self.demand_gen_assets),
            "video_filename": self.video_filename,
            "log_level": self.log_level,
            "config_version": 1,
        }

    @staticmethod
    def from_dict(d: Dict) -> "EditorConfig":
        if not isinstance(d, dict):
            raise TypeError(f"config must be a JSON object, got {type(d).__name__}")
        default = EditorConfig()
        cfg = EditorConfig(
            tick_interval_ms=int(d.get("tick_interval_ms", default.tick_interval_ms)),
            confidence_threshold=float(d.get("confidence_threshold", default.confidence_threshold)),
            crop_entity_name=str(d.get("crop_entity_name", default.crop_entity_name)),
            weight_steps=[int(x) for x in (d.get("weight_steps") or default.weight_steps)],
            weights_text_index=int(d.get("weights_text_index", default.weights_text_index)),
            weights_person_face_index=int(d.get("weights_person_face_index", default.weights_person_face_index)),
            display_object_tracking=_config_bool(
                d.get("display_object_tracking", default.display_object_tracking), "display_object_tracking"),
            render_all_formats=_config_bool(
                d.get("render_all_formats", default.render_all_formats), "render_all_formats"),
            audio_settings=str(d.get("audio_settings", default.audio_settings)),
            demand_gen_assets=_config_bool(
                d.get("demand_gen_assets", default.demand_gen_assets), "demand_gen_assets"),
            video_filename=str(d.get("video_filename", default.video_filename)),
            log_level=str(d.get("log_level", default.log_level)).upper(),
        )
        if cfg.tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be > 0")
        if cfg.audio_settings not in AUDIO_SETTINGS:
            raise ValueError(f"audio_settings must be one of {AUDIO_SETTINGS}")
        for name in ("weights_text_index", "weights_person_face_index"):
            if not (0 <= getattr(cfg, name) < len(cfg.weight_steps)):
                raise ValueError(f"{name} out of range for weight_steps")
        return cfg
