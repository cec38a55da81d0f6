# -*- coding: utf-8 -*-
"""
Paths utilities for FFmpeg binaries and project structure
"""

import os
import shutil
from pathlib import Path
from typing import Optional


def _resolve_binary(name: str, configured: Optional[str]) -> str:
    if configured:
        return configured
    env_value = os.environ.get(f"{name.upper()}_PATH")
    if env_value:
        return env_value
    bundled = get_project_root() / "_internal" / "ffmpeg" / "bin"
    exe_name = f"{name}.exe" if os.name == "nt" else name
    if (bundled / exe_name).exists():
        return str(bundled / exe_name)
    return shutil.which(name) or name


def ffmpeg_bin(configured: Optional[str] = None) -> str:
    """Path to the FFmpeg binary: settings, FFMPEG_PATH, bundled copy, then PATH"""
    return _resolve_binary("ffmpeg", configured)


def ffprobe_bin(configured: Optional[str] = None) -> str:
    """Path to the FFprobe binary: settings, FFPROBE_PATH, bundled copy, then PATH"""
    return _resolve_binary("ffprobe", configured)


def get_project_root() -> Path:
    """Project root directory"""
    return Path(__file__).resolve().parents[2]
