# -*- coding: utf-8 -*-
"""
Media probing through FFprobe
"""

import json
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..domain.errors import AssetUnreadable
from ..domain.models.composition import VideoMetadata
from .logging import get_logger
from .paths import ffprobe_bin


def _parse_rate(rate: Optional[str]) -> float:
    if not rate or rate in ("0/0", "N/A"):
        return 0.0
    try:
        return float(Fraction(rate))
    except (ValueError, ZeroDivisionError):
        return 0.0


class MediaIO:
    """Probe local media files; every failure is an AssetUnreadable"""

    def __init__(self, ffprobe_path: Optional[str] = None, timeout: float = 30.0):
        self.logger = get_logger("MediaIO")
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def check_file(self, path: Path) -> Path:
        """Reject missing or zero-length files before probing"""
        path = Path(path)
        if not path.is_file():
            raise AssetUnreadable(path, "file not found")
        if path.stat().st_size == 0:
            raise AssetUnreadable(path, "file is empty")
        return path

    def _probe(self, path: Path, *args: str) -> Dict[str, Any]:
        path = self.check_file(path)
        cmd = [
            ffprobe_bin(self.ffprobe_path),
            "-v",
            "error",
            *args,
            "-of",
            "json",
            str(path),
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise AssetUnreadable(path, f"ffprobe not available: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise AssetUnreadable(path, f"ffprobe timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            reason = (e.stderr or "").strip().splitlines()
            raise AssetUnreadable(path, reason[-1] if reason else "ffprobe failed") from e

        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise AssetUnreadable(path, "unparseable ffprobe output") from e

    def get_image_size(self, image_path: Path) -> Tuple[int, int]:
        """Width and height of the first video stream of an image"""
        data = self._probe(
            image_path,
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
        )
        streams = data.get("streams") or []
        if not streams:
            raise AssetUnreadable(image_path, "no video stream")
        try:
            width = int(streams[0]["width"])
            height = int(streams[0]["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise AssetUnreadable(image_path, "missing dimensions") from e
        if width <= 0 or height <= 0:
            raise AssetUnreadable(image_path, f"invalid dimensions {width}x{height}")

        self.logger.debug("Dimensions of %s: %dx%d", image_path, width, height)
        return width, height

    def get_duration(self, media_path: Path) -> float:
        """Container duration in seconds"""
        data = self._probe(media_path, "-show_entries", "format=duration")
        try:
            duration = float(data["format"]["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise AssetUnreadable(media_path, "no duration") from e
        if duration <= 0:
            raise AssetUnreadable(media_path, f"invalid duration {duration}")

        self.logger.debug("Duration of %s: %.2fs", media_path, duration)
        return duration

    def get_audio_duration(self, audio_path: Path) -> float:
        """Duration of an audio file; it must carry an audio stream"""
        data = self._probe(
            audio_path,
            "-show_entries",
            "format=duration:stream=codec_type",
        )
        streams = data.get("streams") or []
        if not any(s.get("codec_type") == "audio" for s in streams):
            raise AssetUnreadable(audio_path, "no audio stream")
        try:
            duration = float(data["format"]["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise AssetUnreadable(audio_path, "no duration") from e
        if duration <= 0:
            raise AssetUnreadable(audio_path, f"invalid duration {duration}")
        return duration

    def probe_video(self, video_path: Path) -> VideoMetadata:
        """Metadata for a rendered video"""
        data = self._probe(
            video_path,
            "-show_entries",
            "format=duration,bit_rate:stream=codec_type,codec_name,width,height,avg_frame_rate",
        )
        streams = data.get("streams") or []
        video = next((s for s in streams if s.get("codec_type") == "video"), None)
        if video is None:
            raise AssetUnreadable(video_path, "no video stream")

        fmt = data.get("format") or {}
        try:
            duration = float(fmt.get("duration", 0.0))
        except (TypeError, ValueError):
            duration = 0.0
        bit_rate = fmt.get("bit_rate")

        metadata = VideoMetadata(
            duration=duration,
            width=int(video.get("width", 0)),
            height=int(video.get("height", 0)),
            codec=video.get("codec_name", ""),
            bitrate=int(bit_rate) if bit_rate and str(bit_rate).isdigit() else None,
            fps=_parse_rate(video.get("avg_frame_rate")),
            has_audio=any(s.get("codec_type") == "audio" for s in streams),
        )
        self.logger.info(
            "Probed %s: %.3fs %dx%d %s",
            video_path,
            metadata.duration,
            metadata.width,
            metadata.height,
            metadata.codec,
        )
        return metadata
