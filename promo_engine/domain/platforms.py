# -*- coding: utf-8 -*-
"""
Platform template catalog

One immutable table keyed by platform identifier. Built once at import time
and handed by reference to the sizing engine and the graph builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping, Optional

from .errors import InvalidRequest
from .models.composition import TransitionSpec

PHI = 1.618033988749895
PHI_INVERSE = 0.618033988749895
MIN_CLEAR_SPACE_RATIO = 0.05


@dataclass(frozen=True)
class DurationRange:
    """Allowed output duration in seconds"""

    min: float
    max: float
    default: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass(frozen=True)
class AudioHints:
    """Audio mixing defaults for a platform"""

    voice_delay: float
    voice_volume: float
    music_volume: float
    music_fade_in: float
    music_fade_out: float


@dataclass(frozen=True)
class LogoRule:
    """Proportional logo sizing rule"""

    height_percent: float
    reference: Literal["width", "height"]
    min_size: int
    max_size: int
    max_width_percent: Optional[float] = None


@dataclass(frozen=True)
class EncodeProfile:
    """Final H.264 encode settings"""

    preset: str
    crf: int
    maxrate: str
    bufsize: str
    profile: str
    level: str
    audio_bitrate: str = "192k"
    audio_rate: int = 48000


@dataclass(frozen=True)
class PlatformTemplate:
    """Output constraints and defaults for one publishing platform"""

    id: str
    name: str
    resolution: tuple[int, int]
    duration: DurationRange
    transition: TransitionSpec
    audio: AudioHints
    logo_rule: LogoRule
    encode: EncodeProfile
    fps: int = 30
    safe_zone_ratio: float = 0.05
    text_scale: float = 1.0
    logo_anchor: str = "bottom-right"
    logo_persist: bool = True
    logo_intro_duration: float = 3.0

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def aspect(self) -> float:
        return self.resolution[0] / self.resolution[1]

    @property
    def is_vertical(self) -> bool:
        return self.resolution[1] > self.resolution[0]


YOUTUBE_ENCODE = EncodeProfile("medium", 21, "8M", "16M", "high", "4.1")
SHORTS_ENCODE = EncodeProfile("fast", 23, "5M", "10M", "main", "4.0")
TIKTOK_ENCODE = EncodeProfile("fast", 23, "4M", "8M", "main", "4.0")
INSTAGRAM_ENCODE = EncodeProfile("fast", 23, "5M", "10M", "main", "4.0")

# logo rules for landscape frames use frame height, vertical/square use width
HEIGHT_LOGO = LogoRule(0.0833, "height", 80, 200)
VERTICAL_LOGO = LogoRule(0.10, "width", 100, 200)
SQUARE_LOGO = LogoRule(0.125, "width", 100, 250)
LINKEDIN_LOGO = LogoRule(0.0625, "height", 70, 180, max_width_percent=0.25)


def _audio(voice_delay, music_volume, fade_in, fade_out, voice_volume=1.0):
    return AudioHints(voice_delay, voice_volume, music_volume, fade_in, fade_out)


_TEMPLATES = (
    PlatformTemplate(
        id="youtube",
        name="YouTube",
        resolution=(1920, 1080),
        duration=DurationRange(15, 43200, 35),
        transition=TransitionSpec("cross_fade", 0.5),
        audio=_audio(1.5, 0.15, 1.5, 1.5),
        logo_rule=HEIGHT_LOGO,
        encode=YOUTUBE_ENCODE,
        logo_anchor="bottom-right",
    ),
    PlatformTemplate(
        id="youtube_shorts",
        name="YouTube Shorts",
        resolution=(1080, 1920),
        duration=DurationRange(5, 60, 30),
        transition=TransitionSpec("quick_cut", 0.2),
        audio=_audio(0.5, 0.2, 0.5, 0.5),
        logo_rule=VERTICAL_LOGO,
        encode=SHORTS_ENCODE,
        logo_anchor="top-left",
    ),
    PlatformTemplate(
        id="instagram_reel",
        name="Instagram Reel",
        resolution=(1080, 1920),
        duration=DurationRange(15, 90, 30),
        transition=TransitionSpec("vertical_slide", 0.3),
        audio=_audio(1.0, 0.2, 1.0, 1.0),
        logo_rule=VERTICAL_LOGO,
        encode=INSTAGRAM_ENCODE,
        safe_zone_ratio=0.12,
        text_scale=1.2,
        logo_anchor="top-center",
    ),
    PlatformTemplate(
        id="instagram_feed",
        name="Instagram Feed",
        resolution=(1080, 1080),
        duration=DurationRange(3, 60, 15),
        transition=TransitionSpec("fade", 0.3),
        audio=_audio(0.5, 0.15, 0.5, 0.5),
        logo_rule=SQUARE_LOGO,
        encode=INSTAGRAM_ENCODE,
    ),
    PlatformTemplate(
        id="instagram",
        name="Instagram",
        resolution=(1080, 1080),
        duration=DurationRange(3, 60, 15),
        transition=TransitionSpec("fade", 0.3),
        audio=_audio(0.5, 0.15, 0.5, 0.5),
        logo_rule=VERTICAL_LOGO,
        encode=INSTAGRAM_ENCODE,
    ),
    PlatformTemplate(
        id="instagram_portrait",
        name="Instagram Portrait",
        resolution=(1080, 1350),
        duration=DurationRange(15, 60, 30),
        transition=TransitionSpec("fade", 0.3),
        audio=_audio(1.0, 0.2, 1.0, 1.0),
        logo_rule=VERTICAL_LOGO,
        encode=INSTAGRAM_ENCODE,
    ),
    PlatformTemplate(
        id="tiktok",
        name="TikTok",
        resolution=(1080, 1920),
        duration=DurationRange(5, 600, 30),
        transition=TransitionSpec("quick_cut", 0.15),
        audio=_audio(0.5, 0.25, 0.5, 0.5),
        logo_rule=VERTICAL_LOGO,
        encode=TIKTOK_ENCODE,
        safe_zone_ratio=0.1,
        text_scale=1.2,
        logo_anchor="top-left",
    ),
    PlatformTemplate(
        id="facebook",
        name="Facebook",
        resolution=(1920, 1080),
        duration=DurationRange(15, 14400, 60),
        transition=TransitionSpec("smooth_fade", 0.5),
        audio=_audio(1.5, 0.12, 1.5, 1.5),
        logo_rule=HEIGHT_LOGO,
        encode=YOUTUBE_ENCODE,
    ),
    PlatformTemplate(
        id="facebook_reels",
        name="Facebook Reels",
        resolution=(1080, 1920),
        duration=DurationRange(5, 90, 30),
        transition=TransitionSpec("smooth_cut", 0.3),
        audio=_audio(0.5, 0.15, 0.5, 0.5),
        logo_rule=VERTICAL_LOGO,
        encode=SHORTS_ENCODE,
    ),
    PlatformTemplate(
        id="linkedin",
        name="LinkedIn",
        resolution=(1920, 1080),
        duration=DurationRange(10, 600, 30),
        transition=TransitionSpec("professional_fade", 0.7),
        audio=_audio(0.5, 0.08, 2.0, 2.0),
        logo_rule=LINKEDIN_LOGO,
        encode=YOUTUBE_ENCODE,
    ),
    PlatformTemplate(
        id="twitter_landscape",
        name="Twitter Landscape",
        resolution=(1280, 720),
        duration=DurationRange(2, 140, 30),
        transition=TransitionSpec("fade", 0.5),
        audio=_audio(0.5, 0.15, 1.0, 1.0),
        logo_rule=HEIGHT_LOGO,
        encode=YOUTUBE_ENCODE,
    ),
    PlatformTemplate(
        id="twitter_portrait",
        name="Twitter Portrait",
        resolution=(720, 1280),
        duration=DurationRange(2, 140, 30),
        transition=TransitionSpec("fade", 0.5),
        audio=_audio(0.5, 0.15, 1.0, 1.0),
        logo_rule=VERTICAL_LOGO,
        encode=SHORTS_ENCODE,
    ),
    PlatformTemplate(
        id="twitter_square",
        name="Twitter Square",
        resolution=(720, 720),
        duration=DurationRange(2, 140, 30),
        transition=TransitionSpec("fade", 0.5),
        audio=_audio(0.5, 0.15, 1.0, 1.0),
        logo_rule=SQUARE_LOGO,
        encode=INSTAGRAM_ENCODE,
    ),
)

PLATFORMS: Mapping[str, PlatformTemplate] = MappingProxyType(
    {template.id: template for template in _TEMPLATES}
)


def get_template(platform: str) -> PlatformTemplate:
    """Look up a platform template; unknown identifiers are rejected"""
    try:
        return PLATFORMS[platform]
    except KeyError:
        raise InvalidRequest(
            f"Unknown platform '{platform}'. Available: {', '.join(sorted(PLATFORMS))}"
        ) from None


def list_platforms() -> list[str]:
    return sorted(PLATFORMS)
