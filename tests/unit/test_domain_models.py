# -*- coding: utf-8 -*-
"""
Unit tests for domain models and errors
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from promo_engine.domain.errors import (
    AssetUnreadable,
    CompositionError,
    DurationMismatch,
    EncodeExitNonZero,
    EncodeFailure,
    EncodeTimeout,
    InvalidRequest,
)
from promo_engine.domain.models.composition import (
    CompositionRequest,
    ProgressEvent,
    Stage,
    TransitionSpec,
)
from promo_engine.domain.models.graph import (
    Filter,
    FilterChain,
    GraphDescription,
    MediaInput,
    format_value,
)


def test_request_normalizes_paths():
    """Images become an immutable tuple of paths"""
    request = CompositionRequest(
        platform="youtube",
        images=["a.png", "b.png", "c.png"],
        output_path="out/video.mp4",
    )

    assert request.images == (Path("a.png"), Path("b.png"), Path("c.png"))
    assert request.output_path == Path("out/video.mp4")
    assert request.image_mode == "auto"
    assert request.transition is None

    with pytest.raises(FrozenInstanceError):
        request.platform = "tiktok"


def test_transition_defaults():
    """Default transition is a half-second fade"""
    assert TransitionSpec() == TransitionSpec("fade", 0.5)


def test_format_value():
    """Filter values have one stable text form"""
    assert format_value(5.0) == "5"
    assert format_value(5.333333333) == "5.333333"
    assert format_value(0.15) == "0.15"
    assert format_value(-0.0000001) == "0"
    assert format_value(True) == "1"
    assert format_value(30) == "30"
    assert format_value("0x2a2a2a") == "0x2a2a2a"


def test_filter_to_string():
    """Positional args come first, then key=value pairs"""
    assert Filter.of("null").to_string() == "null"
    assert Filter.of("scale", 1920, 1080, force_original_aspect_ratio="increase").to_string() == (
        "scale=1920:1080:force_original_aspect_ratio=increase"
    )


def test_chain_to_string():
    """Chains wrap their ports in brackets"""
    chain = FilterChain(("0:v", "1:v"), (Filter.of("overlay", x=10, y=20),), ("out",))

    assert chain.to_string() == "[0:v][1:v]overlay=x=10:y=20[out]"


def test_graph_serialization():
    """Graphs join chains with semicolons and serialize to sorted JSON"""
    graph = GraphDescription(
        inputs=(MediaInput("/a.png", "image", ("-loop", "1")),),
        chains=(
            FilterChain(("0:v",), (Filter.of("null"),), ("v0",)),
            FilterChain(("v0",), (Filter.of("format", "yuv420p"),), ("vout",)),
        ),
        video_out="vout",
        audio_out=None,
        duration=15.0,
    )

    assert graph.filter_complex() == "[0:v]null[v0];[v0]format=yuv420p[vout]"
    assert graph.to_json() == graph.to_json()
    assert '"duration": "15"' in graph.to_json()
    assert graph.inputs[0].path == Path("/a.png")
    assert MediaInput("color=c=black", "lavfi").path is None


def test_progress_event_dict():
    """Progress events serialize percent and stage"""
    event = ProgressEvent(percent=42.123, stage=Stage.ENCODING, stage_percent=45.0)

    assert event.to_dict() == {"percent": 42.12, "stage": "encoding"}


def test_error_hierarchy():
    """Every engine error is a CompositionError with a diagnostic"""
    for error in (
        InvalidRequest("bad"),
        AssetUnreadable(Path("x.png"), "file not found"),
        DurationMismatch(15.0, 14.0, 0.1),
        EncodeExitNonZero("exit 1", returncode=1),
        EncodeTimeout("slow"),
    ):
        assert isinstance(error, CompositionError)
        assert error.diagnostic

    assert issubclass(EncodeTimeout, EncodeFailure)
    assert "x.png" in AssetUnreadable(Path("x.png"), "file not found").diagnostic


def test_encode_failure_diagnostic_includes_stderr():
    """Encode failures append the stderr tail to their message"""
    error = EncodeExitNonZero("exit 1", returncode=1, stderr_tail=["line a", "line b"])

    assert error.diagnostic == "exit 1\nline a\nline b"
    assert error.stderr_tail == ("line a", "line b")
