# -*- coding: utf-8 -*-
"""
Domain models for composition requests, jobs and results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .layout import LayoutMode

IMAGE_MODES = ("auto",) + tuple(mode.value for mode in LayoutMode)


@dataclass(frozen=True)
class TransitionSpec:
    """Transition between adjacent clips"""

    type: str = "fade"
    duration: float = 0.5


@dataclass(frozen=True)
class EncodeQuality:
    """Optional encoder knobs; None keeps the platform profile value"""

    preset: Optional[str] = None
    crf: Optional[int] = None


@dataclass(frozen=True)
class TextCard:
    """Full-frame text card shown before or after the images.

    The first line is set at title size, the rest at subtitle size.
    """

    lines: tuple[str, ...]
    duration: float = 5.0
    background: str = "black"
    font_color: str = "white"
    font_file: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(str(line) for line in self.lines))

    @classmethod
    def intro(cls, title: str, subtitle: Optional[str] = None, **kwargs) -> "TextCard":
        return cls(tuple(line for line in (title, subtitle) if line), **kwargs)

    @classmethod
    def outro(
        cls,
        call_to_action: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        website: Optional[str] = None,
        **kwargs,
    ) -> "TextCard":
        """Call to action followed by one line per contact detail"""
        lines = [call_to_action]
        if phone:
            lines.append(f"Phone: {phone}")
        if email:
            lines.append(f"Email: {email}")
        if website:
            lines.append(f"Web: {website}")
        return cls(tuple(lines), **kwargs)


@dataclass(frozen=True)
class CompositionRequest:
    """Everything needed to compose one video"""

    platform: str
    images: tuple[Path, ...]
    output_path: Path
    logo: Optional[Path] = None
    review_card: Optional[Path] = None
    voice_over: Optional[Path] = None
    music: Optional[Path] = None
    target_duration: Optional[float] = None
    transition: Optional[TransitionSpec] = None
    quality: EncodeQuality = field(default_factory=EncodeQuality)
    image_mode: str = "auto"
    logo_anchor: Optional[str] = None
    intro: Optional[TextCard] = None
    outro: Optional[TextCard] = None
    keep_artifacts: bool = False

    def __post_init__(self):
        # accept any sequence of paths but store an immutable tuple
        object.__setattr__(self, "images", tuple(Path(p) for p in self.images))
        object.__setattr__(self, "output_path", Path(self.output_path))


@dataclass(frozen=True)
class RenderSettings:
    """Resolved encoder settings for one render"""

    preset: str
    crf: int
    vcodec: str = "libx264"
    acodec: str = "aac"
    audio_bitrate: str = "192k"
    audio_rate: int = 48000
    maxrate: Optional[str] = None
    bufsize: Optional[str] = None
    profile: Optional[str] = None
    level: Optional[str] = None
    threads: Optional[int] = None
    faststart: bool = True


class Stage(str, Enum):
    """Render job stages in execution order"""

    SIZING = "sizing"
    LAYOUT = "layout"
    BATCHING = "batching"
    ENCODING = "encoding"
    STITCHING = "stitching"
    FINALIZING = "finalizing"
    DONE = "done"


# overall percent range covered by each stage
STAGE_WEIGHTS = {
    Stage.SIZING: (0.0, 5.0),
    Stage.LAYOUT: (5.0, 10.0),
    Stage.BATCHING: (10.0, 15.0),
    Stage.ENCODING: (15.0, 75.0),
    Stage.STITCHING: (75.0, 85.0),
    Stage.FINALIZING: (85.0, 100.0),
    Stage.DONE: (100.0, 100.0),
}


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification sent to the caller"""

    percent: float
    stage: Stage
    stage_percent: float = 0.0
    message: str = ""
    platform: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"percent": round(self.percent, 2), "stage": self.stage.value}
        if self.platform is not None:
            data["platform"] = self.platform
        return data


@dataclass(frozen=True)
class VideoMetadata:
    """Probe result for a rendered video"""

    duration: float
    width: int
    height: int
    codec: str
    bitrate: Optional[int]
    fps: float
    has_audio: bool = False


@dataclass(frozen=True)
class CompositionResult:
    """Outcome of a successful composition"""

    output_path: Path
    metadata: VideoMetadata
    duration: float
    batch_count: int
    platform: str


@dataclass(frozen=True)
class PlatformOutcome:
    """Result or failure of one platform in a multi-platform run"""

    platform: str
    result: Optional[CompositionResult] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.result is not None
