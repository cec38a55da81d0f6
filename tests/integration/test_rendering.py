# -*- coding: utf-8 -*-
"""
Integration tests rendering real videos with FFmpeg
"""

import shutil

import pytest

from promo_engine.application.services.composition_service import CompositionService
from promo_engine.domain.errors import AssetUnreadable
from promo_engine.domain.models.composition import CompositionRequest, EncodeQuality, TransitionSpec
from promo_engine.infra.settings import EngineSettings

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="ffmpeg/ffprobe not installed",
    ),
]

FAST = EncodeQuality(preset="ultrafast", crf=30)


@pytest.fixture
def work_root(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def service(work_root):
    return CompositionService(settings=EngineSettings(temp_dir=str(work_root), log_file=None))


def test_single_pass_youtube(service, make_image, tmp_path, work_root):
    """Three images, logo and review card render to exactly 15 seconds"""
    images = [make_image(f"img_{i}.png", 1920, 1080, color) for i, color in enumerate(("red", "green", "blue"))]
    request = CompositionRequest(
        platform="youtube",
        images=images,
        output_path=tmp_path / "out" / "youtube.mp4",
        logo=make_image("logo.png", 400, 200, "white"),
        review_card=make_image("card.png", 800, 400, "yellow"),
        target_duration=15.0,
        quality=FAST,
    )

    result = service.compose(request)

    assert result.output_path.exists()
    assert result.metadata.duration == pytest.approx(15.0, abs=0.1)
    assert (result.metadata.width, result.metadata.height) == (1920, 1080)
    assert result.metadata.codec == "h264"
    assert result.metadata.has_audio
    assert list(work_root.iterdir()) == []


def test_batched_mixed_aspects(service, make_image, tmp_path):
    """Ten mixed-aspect images render through batches and stitching"""
    sizes = [(1920, 1080), (1600, 1200), (1080, 1920), (1000, 1000), (2400, 1000)] * 2
    images = [make_image(f"img_{i:02d}.png", w, h) for i, (w, h) in enumerate(sizes)]
    events = []

    result = service.compose(
        CompositionRequest(
            platform="youtube",
            images=images,
            output_path=tmp_path / "batched.mp4",
            target_duration=30.0,
            quality=FAST,
        ),
        on_progress=events.append,
    )

    assert result.batch_count == 4
    assert result.metadata.duration == pytest.approx(30.0, abs=0.1)
    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    assert percents[-1] == 100.0


def test_voice_over_extends_vertical_video(service, make_image, make_tone, tmp_path):
    """A long voice-over stretches a vertical video and is mixed with music"""
    images = [make_image(f"img_{i}.png", 1080, 1920) for i in range(3)]

    result = service.compose(
        CompositionRequest(
            platform="instagram_reel",
            images=images,
            output_path=tmp_path / "reel.mp4",
            voice_over=make_tone("voice.wav", 20),
            music=make_tone("music.wav", 5, frequency=220),
            target_duration=15.0,
            transition=TransitionSpec("fade", 0.3),
            quality=FAST,
        )
    )

    # delay + voice + end padding
    assert result.duration == pytest.approx(1.0 + 20.0 + 1.0, abs=0.05)
    assert result.metadata.duration == pytest.approx(result.duration, abs=0.1)
    assert (result.metadata.width, result.metadata.height) == (1080, 1920)


def test_unreadable_image_is_rejected(service, make_image, tmp_path, work_root):
    """A corrupt image fails before any encoder runs"""
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    images = [make_image("a.png", 640, 360), broken, make_image("b.png", 640, 360)]

    with pytest.raises(AssetUnreadable) as exc_info:
        service.compose(
            CompositionRequest(
                platform="youtube",
                images=images,
                output_path=tmp_path / "never.mp4",
                target_duration=15.0,
            )
        )

    assert exc_info.value.path == broken
    assert not (tmp_path / "never.mp4").exists()
    assert not work_root.exists()
