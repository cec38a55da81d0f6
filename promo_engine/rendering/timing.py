# -*- coding: utf-8 -*-
"""
Duration-compensated transition timing and batch scheduling

Every crossfade consumes T seconds of otherwise visible time, so image slots
are inflated to keep the final output at exactly the target duration:

    d = (D + (N - 1 + K - 1) * T) / N

where N is the image count and K the number of batches (K - 1 stitch seams).
With one batch this reduces to (D + (N - 1) * T) / N.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional, Sequence

from ..domain.errors import InvalidRequest
from ..domain.models.layout import LayoutPlan, RenderBatch


def batch_count(image_count: int, threshold: int, batch_size: int) -> int:
    """Number of batches: one up to the threshold, then ceil(n / size)"""
    if image_count <= threshold:
        return 1
    return math.ceil(image_count / batch_size)


def compensated_image_duration(
    target: float, image_count: int, transition: float, batches: int = 1
) -> float:
    """Per-image slot length before crossfades are applied"""
    if image_count <= 0:
        raise InvalidRequest("At least one image is required")
    seams = (image_count - 1) + (batches - 1)
    return (target + seams * transition) / image_count


def card_overhead(card_durations: Sequence[float], transition: float) -> float:
    """Seconds intro/outro cards add to the output; each card overlaps its neighbor by T"""
    return sum(duration - transition for duration in card_durations)


def xfade_offsets(count: int, clip_duration: float, transition: float) -> list[float]:
    """Offset of each join in a chain of equal clips (join i at i*(d-T))"""
    return [round(i * (clip_duration - transition), 6) for i in range(1, count)]


def segment_duration(image_count: int, image_duration: float, transition: float) -> float:
    """Length of a clip chain after its internal crossfades"""
    if image_count <= 0:
        return 0.0
    return image_count * image_duration - (image_count - 1) * transition


def partition(images: Sequence, batch_size: int) -> list[tuple[int, list]]:
    """Overlapping partition: each batch after the first repeats its predecessor's last item"""
    if batch_size < 2:
        raise InvalidRequest("Batch size must be at least 2")
    result = [(0, list(images[:batch_size]))]
    idx = batch_size
    while idx < len(images):
        result.append((idx - 1, [images[idx - 1]] + list(images[idx : idx + batch_size])))
        idx += batch_size
    return result


def schedule(
    images: Sequence[Path],
    image_duration: float,
    transition: float,
    threshold: int,
    batch_size: int,
    layout_plans: Optional[Sequence[LayoutPlan]] = None,
) -> list[RenderBatch]:
    """Split an image sequence into render batches.

    A sequence at or below the threshold is a single batch holding every
    image. Larger sequences are split into overlapping batches.
    """
    plans = list(layout_plans) if layout_plans is not None else []

    def _plans_for(start: int, count: int) -> tuple:
        return tuple(plans[start : start + count]) if plans else ()

    if len(images) <= threshold:
        return [
            RenderBatch(
                index=0,
                images=tuple(images),
                start_index=0,
                has_overlap=False,
                image_duration=image_duration,
                duration=segment_duration(len(images), image_duration, transition),
                layout_plans=_plans_for(0, len(images)),
            )
        ]

    batches = []
    for index, (start, chunk) in enumerate(partition(list(images), batch_size)):
        batches.append(
            RenderBatch(
                index=index,
                images=tuple(chunk),
                start_index=start,
                has_overlap=index > 0,
                image_duration=image_duration,
                duration=segment_duration(len(chunk), image_duration, transition),
                layout_plans=_plans_for(start, len(chunk)),
            )
        )
    return batches


def stitch_offsets(batches: Sequence[RenderBatch], transition: float) -> tuple[list[float], float]:
    """Crossfade offsets for joining batch outputs and the resulting total length.

    Seam k starts at cumulative - overlap_image_duration - T, where the
    overlap image duration is the slot it had in the producing batch.
    """
    if not batches:
        return [], 0.0

    offsets = []
    cumulative = batches[0].duration
    for previous, current in zip(batches, batches[1:]):
        offset = cumulative - previous.image_duration - transition
        if offset < 0:
            raise InvalidRequest(
                f"Negative stitch offset {offset:.3f}s at batch {current.index}; "
                "transition is too long for the image duration"
            )
        offsets.append(round(offset, 6))
        cumulative = offset + current.duration
    return offsets, round(cumulative, 6)


def total_duration(batches: Sequence[RenderBatch], transition: float) -> float:
    if len(batches) == 1:
        return round(batches[0].duration, 6)
    return stitch_offsets(batches, transition)[1]
