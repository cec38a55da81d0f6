# -*- coding: utf-8 -*-
"""
Settings management using pydantic-settings
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine configuration; environment variables use the PROMO_ prefix"""

    model_config = SettingsConfigDict(
        env_prefix="PROMO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    temp_dir: Optional[str] = None

    batch_threshold: int = Field(6, ge=1)
    batch_size: int = Field(3, ge=2)
    max_parallel_batches: int = Field(1, ge=1, le=4)

    render_timeout: float = Field(600.0, gt=0)
    job_timeout: float = Field(1800.0, gt=0)
    probe_timeout: float = Field(30.0, gt=0)

    duration_tolerance: float = Field(0.1, ge=0)
    verify_duration: bool = True
    min_images: int = Field(3, ge=1)
    voice_end_padding: float = Field(1.0, ge=0)
    font_file: Optional[str] = None

    intermediate_preset: str = "ultrafast"
    intermediate_crf: int = Field(18, ge=0, le=51)

    allow_placeholder_assets: bool = False
    keep_artifacts: bool = False
    stderr_tail_lines: int = Field(20, ge=1)

    log_file: Optional[str] = "promo_engine.log"
    log_level: str = "INFO"


def load_settings(config_path: Union[str, Path] = "config.json") -> EngineSettings:
    """Load settings from config.json when present, else environment/defaults"""
    config_path = Path(config_path)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)
        return EngineSettings(**config_data)

    return EngineSettings()
