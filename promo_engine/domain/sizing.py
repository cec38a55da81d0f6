# -*- coding: utf-8 -*-
"""
Proportional sizing of overlay graphics

Logo size follows the platform logo rule (percentage of a reference frame
dimension, capped by a golden-section width limit, clamped to a pixel range).
Review cards use coverage bounds. Positions come from named anchors with a 5%
clear-space margin. Every function here is pure.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from ..infra.logging import get_logger
from .models.layout import OverlayPlacement, SafeZone, SizingResult
from .platforms import MIN_CLEAR_SPACE_RATIO, PHI_INVERSE, PlatformTemplate

logger = get_logger("Sizing")

FALLBACK_ASSET_SIZE = (1920, 1080)
DEFAULT_ANCHOR = "bottom-right"
ANCHORS = (
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
    "golden-top-left",
    "golden-bottom-right",
)

# font size as a fraction of frame height, with pixel bounds
TEXT_RULES = MappingProxyType(
    {
        "title": (0.05, 36, 72),
        "subtitle": (0.03, 24, 48),
        "body": (0.025, 18, 36),
        "caption": (0.02, 14, 24),
    }
)

REVIEW_CARD_MAX_COVERAGE = 0.45
REVIEW_CARD_MIN_COVERAGE = 0.25


def normalize_anchor(anchor: Optional[str]) -> str:
    """Canonical anchor name; unknown names fall back to bottom-right"""
    if not anchor:
        return DEFAULT_ANCHOR
    name = anchor.strip().lower().replace("_", "-")
    if name not in ANCHORS:
        logger.warning("Unknown anchor '%s', using %s", anchor, DEFAULT_ANCHOR)
        return DEFAULT_ANCHOR
    return name


def anchor_position(
    frame_w: int, frame_h: int, width: float, height: float, anchor: Optional[str]
) -> tuple[int, int]:
    """Top-left corner of an element placed at a named anchor"""
    margin_x = frame_w * MIN_CLEAR_SPACE_RATIO
    margin_y = frame_h * MIN_CLEAR_SPACE_RATIO
    golden_x = frame_w * PHI_INVERSE
    golden_y = frame_h * PHI_INVERSE

    left = margin_x
    center_x = (frame_w - width) / 2
    right = frame_w - width - margin_x
    top = margin_y
    center_y = (frame_h - height) / 2
    bottom = frame_h - height - margin_y

    positions = {
        "top-left": (left, top),
        "top-center": (center_x, top),
        "top-right": (right, top),
        "center-left": (left, center_y),
        "center": (center_x, center_y),
        "center-right": (right, center_y),
        "bottom-left": (left, bottom),
        "bottom-center": (center_x, bottom),
        "bottom-right": (right, bottom),
        "golden-top-left": (golden_x - width / 2, top),
        "golden-bottom-right": (
            frame_w - golden_x - width / 2,
            frame_h - golden_y - height / 2,
        ),
    }
    x, y = positions[normalize_anchor(anchor)]
    x = min(max(x, 0), max(frame_w - width, 0))
    y = min(max(y, 0), max(frame_h - height, 0))
    return round(x), round(y)


def _asset_aspect(asset_w: Optional[int], asset_h: Optional[int]) -> tuple[int, int, float]:
    if not asset_w or not asset_h or asset_w <= 0 or asset_h <= 0:
        logger.warning(
            "Asset dimensions unavailable (%sx%s), using fallback %dx%d",
            asset_w,
            asset_h,
            *FALLBACK_ASSET_SIZE,
        )
        asset_w, asset_h = FALLBACK_ASSET_SIZE
    return asset_w, asset_h, asset_w / asset_h


def reference_dimension(template: PlatformTemplate, frame_w: int, frame_h: int) -> int:
    """Frame width for width-referenced platforms and vertical or near-square frames"""
    if template.logo_rule.reference == "width" or frame_w / frame_h < 1.2:
        return frame_w
    return frame_h


def compute_overlay_size(
    template: PlatformTemplate,
    frame_w: int,
    frame_h: int,
    asset_w: Optional[int],
    asset_h: Optional[int],
    anchor: Optional[str] = None,
) -> OverlayPlacement:
    """Logo size and position for a frame, preserving the asset aspect ratio"""
    rule = template.logo_rule
    asset_w, asset_h, aspect = _asset_aspect(asset_w, asset_h)

    height = reference_dimension(template, frame_w, frame_h) * rule.height_percent
    width = height * aspect

    max_width = frame_w * PHI_INVERSE * 0.5
    if rule.max_width_percent is not None:
        max_width = min(max_width, frame_w * rule.max_width_percent)
    if width > max_width:
        width = max_width
        height = width / aspect

    # the minimum wins over the percentage and golden caps
    height = max(rule.min_size, min(height, rule.max_size))
    width = height * aspect

    # but never pushes the logo past the frame's clear space
    frame_limit = frame_w * (1 - 2 * MIN_CLEAR_SPACE_RATIO)
    if width > frame_limit:
        width = frame_limit
        height = width / aspect

    final_w, final_h = max(round(width), 1), max(round(height), 1)
    anchor_name = normalize_anchor(anchor or template.logo_anchor)
    x, y = anchor_position(frame_w, frame_h, final_w, final_h, anchor_name)
    return OverlayPlacement(
        width=final_w,
        height=final_h,
        x=x,
        y=y,
        scale=final_w / asset_w,
        anchor=anchor_name,
    )


def _round_even(value: float) -> int:
    return max(int(round(value / 2.0)) * 2, 2)


def compute_adaptive_graphic_size(
    frame_w: int,
    frame_h: int,
    asset_w: int,
    asset_h: int,
    max_coverage: float = REVIEW_CARD_MAX_COVERAGE,
    min_coverage: float = REVIEW_CARD_MIN_COVERAGE,
    anchor: str = "center",
) -> OverlayPlacement:
    """Fit a graphic between min and max frame coverage, even-sized"""
    aspect = asset_w / asset_h
    margin = frame_w * MIN_CLEAR_SPACE_RATIO
    max_allowed_w = frame_w - 2 * margin
    avail_w = min(frame_w * max_coverage, max_allowed_w)
    avail_h = frame_h * max_coverage

    if aspect > avail_w / avail_h:
        width = avail_w
        height = width / aspect
    else:
        height = avail_h
        width = height * aspect

    if width > max_allowed_w:
        width = max_allowed_w
        height = width / aspect

    min_w = min(frame_w * min_coverage, max_allowed_w)
    min_h = frame_h * min_coverage
    if width < min_w or height < min_h:
        factor = max(min_w / width, min_h / height)
        width *= factor
        height *= factor
        if width > max_allowed_w:
            width = max_allowed_w
            height = width / aspect

    height = min(height, frame_h)
    width = min(width, frame_w)
    final_w, final_h = _round_even(width), _round_even(height)
    x, y = anchor_position(frame_w, frame_h, final_w, final_h, anchor)
    return OverlayPlacement(final_w, final_h, x, y, scale=final_w / asset_w, anchor=anchor)


def compute_golden_card_size(frame_w: int, frame_h: int) -> OverlayPlacement:
    """Golden-ratio card used when the review card size is unknown"""
    aspect = frame_w / frame_h
    if aspect < 0.7:
        width = frame_w * 0.9
    elif aspect > 1.5:
        width = frame_w * 0.45
    else:
        width = frame_w * 0.7
    height = width * PHI_INVERSE

    max_height = frame_h * 0.6
    if height > max_height:
        height = max_height
        width = height / PHI_INVERSE

    final_w, final_h = _round_even(width), _round_even(height)
    x, y = anchor_position(frame_w, frame_h, final_w, final_h, "center")
    return OverlayPlacement(final_w, final_h, x, y, anchor="center")


def compute_review_card_size(
    frame_w: int,
    frame_h: int,
    asset_w: Optional[int] = None,
    asset_h: Optional[int] = None,
) -> OverlayPlacement:
    if asset_w and asset_h and asset_w > 0 and asset_h > 0:
        return compute_adaptive_graphic_size(frame_w, frame_h, asset_w, asset_h)
    return compute_golden_card_size(frame_w, frame_h)


def compute_text_size(kind: str, frame_h: int, template: PlatformTemplate) -> int:
    """Font size in pixels for title, subtitle, body or caption text"""
    ratio, low, high = TEXT_RULES.get(kind, TEXT_RULES["body"])
    size = frame_h * ratio * template.text_scale
    return round(max(low, min(size, high)))


def compute_safe_zone(frame_w: int, frame_h: int, ratio: float) -> SafeZone:
    margin_x = frame_w * ratio
    margin_y = frame_h * ratio
    return SafeZone(
        left=round(margin_x),
        top=round(margin_y),
        right=round(frame_w - margin_x),
        bottom=round(frame_h - margin_y),
    )


def compute_all_sizes(
    template: PlatformTemplate,
    logo_size: Optional[tuple[int, int]] = None,
    review_card_size: Optional[tuple[int, int]] = None,
    has_logo: bool = False,
    has_review_card: bool = False,
    logo_anchor: Optional[str] = None,
) -> SizingResult:
    """Every overlay geometry for a template; sizes are (width, height) or None"""
    frame_w, frame_h = template.resolution

    logo = None
    if has_logo or logo_size:
        logo_w, logo_h = logo_size or (None, None)
        logo = compute_overlay_size(template, frame_w, frame_h, logo_w, logo_h, logo_anchor)

    card = None
    if has_review_card or review_card_size:
        card_w, card_h = review_card_size or (None, None)
        card = compute_review_card_size(frame_w, frame_h, card_w, card_h)

    text_sizes: Mapping[str, int] = MappingProxyType(
        {kind: compute_text_size(kind, frame_h, template) for kind in TEXT_RULES}
    )
    return SizingResult(
        frame=(frame_w, frame_h),
        logo=logo,
        review_card=card,
        text_sizes=text_sizes,
        safe_zone=compute_safe_zone(frame_w, frame_h, template.safe_zone_ratio),
    )
