# -*- coding: utf-8 -*-
"""
FFmpeg command construction from a typed filter graph
"""

import re
from collections import Counter
from pathlib import Path
from typing import List, Optional

from ..domain.errors import InvalidGraph
from ..domain.models.composition import EncodeQuality, RenderSettings
from ..domain.models.graph import GraphDescription, format_value
from ..domain.platforms import EncodeProfile
from ..infra.logging import get_logger
from ..infra.paths import ffmpeg_bin

INPUT_PORT = re.compile(r"^(\d+):([va])$")


def final_settings(profile: EncodeProfile, quality: Optional[EncodeQuality] = None) -> RenderSettings:
    """Platform encode profile with optional request overrides"""
    quality = quality or EncodeQuality()
    return RenderSettings(
        preset=quality.preset or profile.preset,
        crf=quality.crf if quality.crf is not None else profile.crf,
        audio_bitrate=profile.audio_bitrate,
        audio_rate=profile.audio_rate,
        maxrate=profile.maxrate,
        bufsize=profile.bufsize,
        profile=profile.profile,
        level=profile.level,
    )


def intermediate_settings(preset: str = "ultrafast", crf: int = 18) -> RenderSettings:
    """Fast near-lossless settings for batch and stitch intermediates"""
    return RenderSettings(preset=preset, crf=crf, threads=1, faststart=False)


class CliBuilder:
    """Serializes filter graphs into FFmpeg argument lists"""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.logger = get_logger("CliBuilder")
        self.ffmpeg_path = ffmpeg_path

    def validate(self, graph: GraphDescription):
        """Check that every port is produced exactly once and consumed exactly once"""
        if not graph.chains:
            raise InvalidGraph("Graph has no filter chains")

        produced = Counter(label for chain in graph.chains for label in chain.outputs)
        duplicates = sorted(label for label, count in produced.items() if count > 1)
        if duplicates:
            raise InvalidGraph(f"Ports produced more than once: {', '.join(duplicates)}")

        consumed = Counter()
        for chain in graph.chains:
            if not chain.filters:
                raise InvalidGraph(f"Empty chain writing {list(chain.outputs)}")
            for label in chain.inputs:
                match = INPUT_PORT.match(label)
                if match:
                    index = int(match.group(1))
                    if index >= len(graph.inputs):
                        raise InvalidGraph(
                            f"Port [{label}] references input {index} of {len(graph.inputs)}"
                        )
                    continue
                if label not in produced:
                    raise InvalidGraph(f"Port [{label}] is consumed but never produced")
                consumed[label] += 1

        reused = sorted(label for label, count in consumed.items() if count > 1)
        if reused:
            raise InvalidGraph(f"Ports consumed more than once: {', '.join(reused)}")

        sinks = {graph.video_out}
        if graph.audio_out:
            sinks.add(graph.audio_out)
        for sink in sinks:
            if sink not in produced:
                raise InvalidGraph(f"Output port [{sink}] is never produced")
            if sink in consumed:
                raise InvalidGraph(f"Output port [{sink}] is consumed inside the graph")

        dangling = sorted(label for label in produced if label not in consumed and label not in sinks)
        if dangling:
            raise InvalidGraph(f"Ports produced but never used: {', '.join(dangling)}")

    def make_command(
        self, graph: GraphDescription, out_path: Path, settings: RenderSettings
    ) -> List[str]:
        """Full FFmpeg argv for rendering `graph` into `out_path`"""
        self.validate(graph)
        self.logger.info("Building FFmpeg command for %d inputs", len(graph.inputs))

        cmd = [ffmpeg_bin(self.ffmpeg_path), "-y", "-hide_banner", "-nostdin"]
        cmd.extend(["-progress", "pipe:1", "-nostats"])

        for media_input in graph.inputs:
            cmd.extend(media_input.options)
            cmd.extend(["-i", media_input.source])

        cmd.extend(["-filter_complex", graph.filter_complex()])
        cmd.extend(["-map", f"[{graph.video_out}]"])
        if graph.audio_out:
            cmd.extend(["-map", f"[{graph.audio_out}]"])

        cmd.extend(["-c:v", settings.vcodec])
        if settings.vcodec == "libx264":
            cmd.extend(["-preset", settings.preset, "-crf", str(settings.crf)])
        if settings.maxrate:
            cmd.extend(["-maxrate", settings.maxrate])
        if settings.bufsize:
            cmd.extend(["-bufsize", settings.bufsize])
        if settings.profile:
            cmd.extend(["-profile:v", settings.profile])
        if settings.level:
            cmd.extend(["-level", settings.level])
        if settings.threads:
            cmd.extend(["-threads", str(settings.threads)])

        cmd.extend(["-pix_fmt", "yuv420p", "-r", str(graph.fps)])

        if graph.audio_out:
            cmd.extend(
                [
                    "-c:a",
                    settings.acodec,
                    "-b:a",
                    settings.audio_bitrate,
                    "-ar",
                    str(settings.audio_rate),
                ]
            )
        else:
            cmd.append("-an")

        cmd.extend(["-t", format_value(float(graph.duration))])
        if settings.faststart:
            cmd.extend(["-movflags", "+faststart"])

        cmd.append(str(out_path))

        self.logger.debug("FFmpeg command: %s", " ".join(map(str, cmd)))
        return cmd
