# -*- coding: utf-8 -*-
"""
Unit tests for the platform template catalog
"""

from dataclasses import FrozenInstanceError

import pytest

from promo_engine.domain.errors import InvalidRequest
from promo_engine.domain.platforms import PLATFORMS, get_template, list_platforms


def test_youtube_template():
    """YouTube is 1080p with a 15s minimum and a high-profile encode"""
    template = get_template("youtube")

    assert template.resolution == (1920, 1080)
    assert template.duration.min == 15
    assert template.duration.default == 35
    assert template.transition.type == "cross_fade"
    assert template.transition.duration == 0.5
    assert template.audio.voice_delay == 1.5
    assert template.encode.profile == "high"
    assert template.encode.maxrate == "8M"


def test_vertical_templates():
    """Short-form platforms are 1080x1920"""
    for platform in ("youtube_shorts", "instagram_reel", "tiktok", "facebook_reels"):
        template = get_template(platform)
        assert template.resolution == (1080, 1920)
        assert template.is_vertical


def test_unknown_platform():
    """Unknown identifiers raise InvalidRequest"""
    with pytest.raises(InvalidRequest) as exc_info:
        get_template("myspace")

    assert "myspace" in exc_info.value.diagnostic


def test_catalog_is_read_only():
    """Neither the table nor its templates can be modified"""
    with pytest.raises(TypeError):
        PLATFORMS["custom"] = get_template("youtube")

    with pytest.raises(FrozenInstanceError):
        get_template("youtube").fps = 60


def test_all_defaults_within_range():
    """Every default duration lies inside its platform range"""
    assert len(list_platforms()) == 13
    for template in PLATFORMS.values():
        assert template.duration.contains(template.duration.default)
        assert template.fps == 30
        assert template.width % 2 == 0 and template.height % 2 == 0
