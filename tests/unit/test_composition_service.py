# -*- coding: utf-8 -*-
"""
Unit tests for the composition service with mocked probing and encoding
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from promo_engine.application.services.composition_service import CompositionService
from promo_engine.domain.errors import (
    AssetUnreadable,
    DurationMismatch,
    EncodeCancelled,
    EncodeExitNonZero,
    InvalidRequest,
)
from promo_engine.domain.models.composition import (
    CompositionRequest,
    EncodeQuality,
    Stage,
    TextCard,
    TransitionSpec,
    VideoMetadata,
)
from promo_engine.infra.settings import EngineSettings


@pytest.fixture
def work_root(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def settings(work_root):
    return EngineSettings(temp_dir=str(work_root), log_file=None)


@pytest.fixture
def media_io():
    probe = MagicMock()
    probe.get_image_size.return_value = (1920, 1080)
    probe.get_audio_duration.return_value = 20.0
    probe.expected_duration = None

    def _probe_video(path):
        return VideoMetadata(
            duration=probe.expected_duration,
            width=1920,
            height=1080,
            codec="h264",
            bitrate=4_000_000,
            fps=30.0,
            has_audio=True,
        )

    probe.probe_video.side_effect = _probe_video
    return probe


@pytest.fixture
def runner():
    fake = MagicMock()

    def _render(graph, out_path, settings, **kwargs):
        out_path = Path(out_path)
        out_path.write_bytes(b"\x00" * 16)
        return out_path

    fake.render.side_effect = _render
    return fake


def _service(settings, media_io, runner):
    return CompositionService(settings=settings, media_io=media_io, runner=runner)


def _request(tmp_path, count=3, **kwargs):
    params = dict(
        platform="youtube",
        images=[tmp_path / f"img_{i:02d}.png" for i in range(count)],
        output_path=tmp_path / "out" / "video.mp4",
        target_duration=15.0,
    )
    params.update(kwargs)
    return CompositionRequest(**params)


def _rendered_paths(runner):
    return [Path(c.args[1]).name for c in runner.render.call_args_list]


def test_single_pass_composition(tmp_path, settings, media_io, runner, work_root):
    """Three images render in one encoder pass to the exact target"""
    media_io.expected_duration = 15.0
    result = _service(settings, media_io, runner).compose(_request(tmp_path))

    assert runner.render.call_count == 1
    graph = runner.render.call_args.args[0]
    assert graph.duration == 15.0
    assert graph.audio_out == "aout"
    assert result.batch_count == 1
    assert result.duration == 15.0
    assert result.platform == "youtube"
    assert result.output_path.exists()
    assert list(work_root.iterdir()) == []


def test_batched_composition(tmp_path, settings, media_io, runner, work_root):
    """Ten images render as four batches, a stitch and a finalize pass"""
    media_io.expected_duration = 30.0
    result = _service(settings, media_io, runner).compose(
        _request(tmp_path, count=10, target_duration=30.0)
    )

    assert runner.render.call_count == 6
    assert _rendered_paths(runner) == [
        "batch_000.mp4",
        "batch_001.mp4",
        "batch_002.mp4",
        "batch_003.mp4",
        "stitched.mp4",
        "video.mp4",
    ]
    stitch_graph = runner.render.call_args_list[4].args[0]
    assert "offset=5.7" in stitch_graph.filter_complex()
    assert stitch_graph.duration == pytest.approx(30.0)

    batch_settings = runner.render.call_args_list[0].args[2]
    assert batch_settings.preset == "ultrafast"
    assert batch_settings.threads == 1

    assert result.batch_count == 4
    assert list(work_root.iterdir()) == []


def test_voice_over_extends_duration(tmp_path, settings, media_io, runner):
    """A 40s voice-over stretches the video to delay + voice + padding"""
    media_io.get_audio_duration.return_value = 40.0
    media_io.expected_duration = 42.5
    voice = tmp_path / "voice.mp3"

    result = _service(settings, media_io, runner).compose(_request(tmp_path, voice_over=voice))

    graph = runner.render.call_args.args[0]
    assert result.duration == 42.5
    assert graph.inputs[0].options[-1] == "14.5"
    assert "adelay=1500|1500" in graph.filter_complex()


def test_too_few_images_creates_nothing(tmp_path, settings, media_io, runner, work_root):
    """Validation failures happen before any temp file or subprocess"""
    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(_request(tmp_path, count=2))

    runner.render.assert_not_called()
    assert not work_root.exists()


def test_unknown_platform_creates_nothing(tmp_path, settings, media_io, runner, work_root):
    """An unknown platform is rejected before probing or temp files"""
    with pytest.raises(InvalidRequest) as exc_info:
        _service(settings, media_io, runner).compose(_request(tmp_path, platform="myspace"))

    assert "youtube" in exc_info.value.diagnostic
    media_io.get_image_size.assert_not_called()
    runner.render.assert_not_called()
    assert not work_root.exists()


def test_duration_outside_platform_range(tmp_path, settings, media_io, runner):
    """Targets outside the template range are rejected"""
    with pytest.raises(InvalidRequest) as exc_info:
        _service(settings, media_io, runner).compose(_request(tmp_path, target_duration=10.0))

    assert "youtube" in exc_info.value.diagnostic
    runner.render.assert_not_called()


def test_voice_over_beyond_platform_maximum(tmp_path, settings, media_io, runner):
    """Voice extension cannot push a short-form video past its maximum"""
    media_io.get_audio_duration.return_value = 70.0

    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(
            _request(tmp_path, platform="youtube_shorts", voice_over=tmp_path / "voice.mp3")
        )


@pytest.mark.parametrize(
    "quality",
    [EncodeQuality(crf=60), EncodeQuality(crf=-1), EncodeQuality(preset="warp")],
)
def test_bad_quality_is_rejected(tmp_path, settings, media_io, runner, quality):
    """Encoder knobs outside libx264 ranges are invalid requests"""
    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(_request(tmp_path, quality=quality))


def test_unknown_image_mode(tmp_path, settings, media_io, runner):
    """Only auto and the three layout modes are accepted"""
    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(_request(tmp_path, image_mode="stretch"))


def test_negative_stitch_offset_rejected_before_encoding(tmp_path, media_io, runner, work_root):
    """A transition longer than the overlap image fails validation"""
    settings = EngineSettings(temp_dir=str(work_root), log_file=None, batch_size=2)

    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(
            _request(tmp_path, count=10, transition=TransitionSpec("fade", 3.0))
        )

    runner.render.assert_not_called()
    assert not work_root.exists()


def test_unreadable_image(tmp_path, settings, media_io, runner):
    """Unreadable images fail the request by default"""
    broken = tmp_path / "img_01.png"

    def _size(path):
        if Path(path) == broken:
            raise AssetUnreadable(path, "not an image")
        return (1920, 1080)

    media_io.get_image_size.side_effect = _size

    with pytest.raises(AssetUnreadable) as exc_info:
        _service(settings, media_io, runner).compose(_request(tmp_path))

    assert exc_info.value.path == broken
    runner.render.assert_not_called()


def test_placeholder_for_unreadable_image(tmp_path, media_io, runner, work_root):
    """With placeholders allowed a missing image becomes a solid frame"""
    settings = EngineSettings(temp_dir=str(work_root), log_file=None, allow_placeholder_assets=True)
    broken = tmp_path / "img_01.png"

    def _size(path):
        if Path(path) == broken:
            raise AssetUnreadable(path, "file not found")
        return (1920, 1080)

    media_io.get_image_size.side_effect = _size
    media_io.expected_duration = 15.0

    _service(settings, media_io, runner).compose(_request(tmp_path))

    graph = runner.render.call_args.args[0]
    assert [i.kind for i in graph.inputs[:3]] == ["image", "lavfi", "image"]


def test_duration_mismatch(tmp_path, settings, media_io, runner):
    """Output drift beyond the tolerance is reported"""
    media_io.expected_duration = 14.5

    with pytest.raises(DurationMismatch) as exc_info:
        _service(settings, media_io, runner).compose(_request(tmp_path))

    assert exc_info.value.expected == 15.0
    assert exc_info.value.actual == 14.5


def test_encode_failure_cleans_up(tmp_path, settings, media_io, runner, work_root):
    """A failing encoder leaves neither temp files nor output behind"""
    runner.render.side_effect = EncodeExitNonZero("Encoder exited with code 1", returncode=1)
    request = _request(tmp_path)

    with pytest.raises(EncodeExitNonZero):
        _service(settings, media_io, runner).compose(request)

    assert list(work_root.iterdir()) == []
    assert not request.output_path.exists()


def test_batch_failure_stops_pipeline(tmp_path, settings, media_io, runner, work_root):
    """The first failing batch aborts the job before stitching"""

    def _render(graph, out_path, settings, **kwargs):
        if Path(out_path).name == "batch_001.mp4":
            raise EncodeExitNonZero("Encoder exited with code 1", returncode=1)
        Path(out_path).write_bytes(b"\x00")
        return Path(out_path)

    runner.render.side_effect = _render

    with pytest.raises(EncodeExitNonZero):
        _service(settings, media_io, runner).compose(
            _request(tmp_path, count=10, target_duration=30.0)
        )

    assert "stitched.mp4" not in _rendered_paths(runner)
    assert list(work_root.iterdir()) == []


def test_progress_is_monotonic(tmp_path, settings, media_io, runner):
    """Overall progress never decreases and ends at 100"""
    media_io.expected_duration = 30.0
    events = []

    _service(settings, media_io, runner).compose(
        _request(tmp_path, count=10, target_duration=30.0), on_progress=events.append
    )

    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    assert events[-1].percent == 100.0
    assert events[-1].stage is Stage.DONE
    stages = [e.stage for e in events]
    assert stages.index(Stage.ENCODING) < stages.index(Stage.STITCHING) < stages.index(Stage.FINALIZING)


def test_keep_artifacts(tmp_path, settings, media_io, runner, work_root):
    """Kept artifacts leave the batch files in the job directory"""
    media_io.expected_duration = 30.0

    _service(settings, media_io, runner).compose(
        _request(tmp_path, count=10, target_duration=30.0, keep_artifacts=True)
    )

    (job_dir,) = list(work_root.iterdir())
    names = sorted(p.name for p in job_dir.iterdir())
    assert names == [
        "batch_000.mp4",
        "batch_001.mp4",
        "batch_002.mp4",
        "batch_003.mp4",
        "stitched.mp4",
    ]


def test_prepare_resolves_template_defaults(tmp_path, settings, media_io, runner):
    """Without overrides the platform duration and transition apply"""
    prepared = _service(settings, media_io, runner).prepare(
        _request(tmp_path, target_duration=None)
    )

    assert prepared.duration == 35.0
    assert prepared.transition == TransitionSpec("fade", 0.5)
    assert prepared.batch_count == 1
    assert prepared.image_duration == pytest.approx(12.0)


def test_cut_transition_has_no_overlap(tmp_path, settings, media_io, runner):
    """Hard cuts resolve to a zero-length transition"""
    prepared = _service(settings, media_io, runner).prepare(
        _request(tmp_path, transition=TransitionSpec("cut", 0.5))
    )

    assert prepared.transition == TransitionSpec("none", 0.0)
    assert prepared.image_duration == pytest.approx(5.0)


def test_min_images_comes_from_settings(tmp_path, media_io, runner, work_root):
    """The configured image minimum decides how few images are accepted"""
    strict = EngineSettings(temp_dir=str(work_root), log_file=None, min_images=4)
    with pytest.raises(InvalidRequest):
        _service(strict, media_io, runner).prepare(_request(tmp_path, count=3))

    relaxed = EngineSettings(temp_dir=str(work_root), log_file=None, min_images=2)
    prepared = _service(relaxed, media_io, runner).prepare(_request(tmp_path, count=2))
    assert prepared.image_duration == pytest.approx(7.75)


def test_cancel_aborts_running_job(tmp_path, settings, media_io, runner, work_root):
    """Cancelling the service stops the encoders of its running job"""
    service = _service(settings, media_io, runner)

    def _render(graph, out_path, settings, **kwargs):
        service.cancel()
        raise EncodeCancelled("Encoder cancelled")

    runner.render.side_effect = _render

    with pytest.raises(EncodeCancelled):
        service.compose(_request(tmp_path))

    event = runner.render.call_args.kwargs["cancel_event"]
    assert event.is_set()
    runner.cancel_all.assert_called_once_with(event)
    assert list(work_root.iterdir()) == []


INTRO = TextCard.intro("Grand Opening", "Saturday 10am", duration=3.0)
OUTRO = TextCard.outro("Book today", phone="555-0100", website="example.com", duration=3.0)


def test_title_cards_share_the_target_duration(tmp_path, settings, media_io, runner):
    """Intro and outro time comes out of the image slots, not on top of the target"""
    prepared = _service(settings, media_io, runner).prepare(
        _request(tmp_path, intro=INTRO, outro=OUTRO)
    )

    assert prepared.duration == 15.0
    assert prepared.body_duration == pytest.approx(10.0)
    assert prepared.image_duration == pytest.approx(11.0 / 3)


def test_single_pass_with_title_cards(tmp_path, settings, media_io, runner):
    """Cards become lavfi inputs crossfaded before and after the images"""
    media_io.expected_duration = 15.0
    _service(settings, media_io, runner).compose(_request(tmp_path, intro=INTRO, outro=OUTRO))

    graph = runner.render.call_args.args[0]
    text = graph.filter_complex()
    assert [i.kind for i in graph.inputs] == ["image"] * 3 + ["lavfi", "lavfi"]
    assert "drawtext=text=Grand Opening" in text
    assert "Phone\\\\: 555-0100" in text
    assert "xfade=transition=fade:duration=0.5:offset=2.5[" in text
    assert "xfade=transition=fade:duration=0.5:offset=12[" in text
    assert graph.duration == 15.0


def test_batched_title_cards_added_in_finalize(tmp_path, settings, media_io, runner):
    """Batches carry only images; the finalize pass joins the cards"""
    media_io.expected_duration = 30.0
    _service(settings, media_io, runner).compose(
        _request(tmp_path, count=10, target_duration=30.0, intro=INTRO, outro=OUTRO)
    )

    stitch_graph = runner.render.call_args_list[4].args[0]
    assert stitch_graph.duration == pytest.approx(25.0)
    assert "drawtext" not in stitch_graph.filter_complex()

    final_graph = runner.render.call_args_list[5].args[0]
    text = final_graph.filter_complex()
    assert "trim=duration=25," in text
    assert text.count("drawtext") == 5
    assert final_graph.duration == 30.0


@pytest.mark.parametrize(
    "intro,outro",
    [
        (TextCard(("Hello",), duration=0.4), None),
        (TextCard(("Hello",), background="red;drop"), None),
        (TextCard(()), None),
        (TextCard(("Hello",), duration=10.0), TextCard(("Bye",), duration=10.0)),
    ],
)
def test_bad_title_cards_are_rejected(tmp_path, settings, media_io, runner, work_root, intro, outro):
    """Cards must outlast the transition, use plain colors and leave room for images"""
    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose(_request(tmp_path, intro=intro, outro=outro))

    runner.render.assert_not_called()
    assert not work_root.exists()


def test_compose_many_platforms(tmp_path, settings, media_io, runner):
    """Each platform gets its own output; a failing one does not stop the rest"""
    media_io.expected_duration = 30.0
    events = []

    outcomes = _service(settings, media_io, runner).compose_many(
        ["youtube", "tiktok", "myspace"],
        _request(tmp_path, target_duration=30.0),
        on_progress=events.append,
    )

    assert list(outcomes) == ["youtube", "tiktok", "myspace"]
    assert outcomes["youtube"].success
    assert outcomes["youtube"].result.output_path == tmp_path / "out" / "video_youtube.mp4"
    assert outcomes["tiktok"].result.output_path.exists()
    assert not outcomes["myspace"].success
    assert isinstance(outcomes["myspace"].error, InvalidRequest)
    assert _rendered_paths(runner) == ["video_youtube.mp4", "video_tiktok.mp4"]
    assert {e.platform for e in events} == {"youtube", "tiktok"}
    assert events[-1].to_dict() == {"percent": 100.0, "stage": "done", "platform": "tiktok"}


def test_compose_many_rejects_duplicate_platforms(tmp_path, settings, media_io, runner):
    """Listing a platform twice would overwrite its output"""
    with pytest.raises(InvalidRequest):
        _service(settings, media_io, runner).compose_many(["tiktok", "tiktok"], _request(tmp_path))

    runner.render.assert_not_called()
