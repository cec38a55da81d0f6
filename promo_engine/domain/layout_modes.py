# -*- coding: utf-8 -*-
"""
Layout mode selection for images whose aspect ratio differs from the frame

Mismatch is |image_aspect - frame_aspect| / frame_aspect:
  mismatch < 0.2          -> crop_fill
  0.2 <= mismatch < 0.5   -> blur_background
  mismatch >= 0.5         -> letterbox
Boundary values belong to the upper class.
"""

from __future__ import annotations

from typing import Optional, Union

from .errors import InvalidRequest
from .models.layout import LayoutMode, LayoutPlan

CROP_FILL_LIMIT = 0.2
BLUR_LIMIT = 0.5
SIMILAR_ASPECT_LIMIT = 0.15
LETTERBOX_COLOR = "0x2a2a2a"
BLUR_RADIUS = 30


def aspect_mismatch(image_aspect: float, frame_aspect: float) -> float:
    if image_aspect <= 0 or frame_aspect <= 0:
        raise InvalidRequest(
            f"Aspect ratios must be positive (image={image_aspect}, frame={frame_aspect})"
        )
    return abs(image_aspect - frame_aspect) / frame_aspect


def classify_image(image_aspect: float, frame_aspect: float) -> LayoutMode:
    """Pick the fitting strategy for one image"""
    mismatch = aspect_mismatch(image_aspect, frame_aspect)
    if mismatch < CROP_FILL_LIMIT:
        return LayoutMode.CROP_FILL
    if mismatch < BLUR_LIMIT:
        return LayoutMode.BLUR_BACKGROUND
    return LayoutMode.LETTERBOX


def _orientation(aspect: float) -> str:
    if aspect > 1:
        return "landscape"
    if aspect < 1:
        return "portrait"
    return "square"


def plan_layout(
    image_w: int,
    image_h: int,
    frame_w: int,
    frame_h: int,
    forced_mode: Optional[Union[LayoutMode, str]] = None,
) -> LayoutPlan:
    """Layout plan for one image; forced_mode overrides classification"""
    if image_w <= 0 or image_h <= 0:
        raise InvalidRequest(f"Image dimensions must be positive ({image_w}x{image_h})")

    image_aspect = image_w / image_h
    frame_aspect = frame_w / frame_h
    mismatch = aspect_mismatch(image_aspect, frame_aspect)

    if forced_mode in (None, "auto"):
        mode = classify_image(image_aspect, frame_aspect)
    else:
        mode = LayoutMode(forced_mode)
        # forced letterbox on a near-matching image would only add thin bars
        if (
            mode is LayoutMode.LETTERBOX
            and _orientation(image_aspect) == _orientation(frame_aspect)
            and mismatch < SIMILAR_ASPECT_LIMIT
        ):
            mode = LayoutMode.CROP_FILL

    return LayoutPlan(
        mode=mode,
        target=(frame_w, frame_h),
        background_color=LETTERBOX_COLOR,
        blur_radius=BLUR_RADIUS,
        mismatch=round(mismatch, 6),
    )


def placeholder_plan(frame_w: int, frame_h: int) -> LayoutPlan:
    """Plan for synthesized frames that already match the output size"""
    return LayoutPlan(LayoutMode.CROP_FILL, (frame_w, frame_h), LETTERBOX_COLOR, BLUR_RADIUS, 0.0)
