# -*- coding: utf-8 -*-
"""
Shared fixtures: small generated media files for integration tests
"""

import shutil
import subprocess

import pytest

FFMPEG = shutil.which("ffmpeg")


def _lavfi(source, out_path, *extra):
    subprocess.run(
        [FFMPEG, "-y", "-hide_banner", "-f", "lavfi", "-i", source, *extra, str(out_path)],
        check=True,
        capture_output=True,
    )
    return out_path


@pytest.fixture
def make_image(tmp_path):
    """Factory for solid-color PNG images of a given size"""

    def _make(name, width, height, color="blue"):
        return _lavfi(f"color=c={color}:s={width}x{height}", tmp_path / name, "-frames:v", "1")

    return _make


@pytest.fixture
def make_tone(tmp_path):
    """Factory for sine-wave audio files of a given length"""

    def _make(name, seconds, frequency=440):
        return _lavfi(f"sine=frequency={frequency}:duration={seconds}", tmp_path / name)

    return _make
