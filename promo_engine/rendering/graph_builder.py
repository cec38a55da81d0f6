# -*- coding: utf-8 -*-
"""
Filter graph construction for image slideshows, overlays and audio
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ..domain.errors import InvalidRequest
from ..domain.models.composition import TextCard, TransitionSpec
from ..domain.models.graph import Filter, FilterChain, GraphDescription, MediaInput, format_value
from ..domain.models.layout import LayoutMode, LayoutPlan, RenderBatch, SizingResult
from ..domain.platforms import AudioHints
from ..infra.logging import get_logger
from ..plugins.builtin.effects.logo import LogoEffect
from ..plugins.builtin.effects.review_card import ReviewCardEffect
from ..plugins.builtin.effects.title_card import TitleCardEffect
from ..plugins.builtin.transitions.registry import get_transition
from .timing import card_overhead, compensated_image_duration, stitch_offsets, xfade_offsets

PLACEHOLDER_COLOR = "0x333333"
MUSIC_SOLO_VOLUME = 0.3
VOICE_SOLO_FADE_OUT = 0.5
AUDIO_RATE = 48000


@dataclass(frozen=True)
class OverlayAssets:
    """Overlay graphics composited on the joined video"""

    logo: Optional[Path] = None
    review_card: Optional[Path] = None
    logo_window: Optional[tuple[float, float]] = None


@dataclass(frozen=True)
class AudioTracks:
    """Audio sources and their mixing hints"""

    hints: AudioHints
    voice: Optional[Path] = None
    music: Optional[Path] = None


@dataclass(frozen=True)
class TitleCards:
    """Intro and outro text cards joined around the image sequence"""

    intro: Optional[TextCard] = None
    outro: Optional[TextCard] = None

    @property
    def durations(self) -> tuple[float, ...]:
        return tuple(card.duration for card in (self.intro, self.outro) if card is not None)

    def __bool__(self) -> bool:
        return self.intro is not None or self.outro is not None


class _GraphParts:
    """Mutable accumulator used while a graph is being assembled"""

    def __init__(self):
        self.inputs: list[MediaInput] = []
        self.chains: list[FilterChain] = []

    def add_input(self, media_input: MediaInput) -> int:
        self.inputs.append(media_input)
        return len(self.inputs) - 1

    def add_chain(self, inputs: Sequence[str], filters: Sequence[Filter], outputs: Sequence[str]):
        self.chains.append(FilterChain(tuple(inputs), tuple(filters), tuple(outputs)))

    def freeze(self, video_out: str, audio_out: Optional[str], duration: float, fps: int) -> GraphDescription:
        return GraphDescription(
            inputs=tuple(self.inputs),
            chains=tuple(self.chains),
            video_out=video_out,
            audio_out=audio_out,
            duration=round(float(duration), 6),
            fps=fps,
        )


class GraphBuilder:
    """Builds typed filter graphs; nothing here touches the filesystem or the encoder"""

    def __init__(self):
        self.logger = get_logger("GraphBuilder")

    def build(
        self,
        images: Sequence[Optional[Path]],
        overlays: Optional[OverlayAssets],
        audio: Optional[AudioTracks],
        layout_plans: Sequence[LayoutPlan],
        sizing: Optional[SizingResult],
        duration: float,
        transition: TransitionSpec,
        fps: int = 30,
        image_duration: Optional[float] = None,
        cards: Optional[TitleCards] = None,
    ) -> GraphDescription:
        """Graph for an image sequence joined by transitions.

        A None image is rendered as a solid placeholder frame. Without
        overlays and audio the graph is video only, as used for batches.
        Title cards are counted inside `duration`.
        """
        if not images:
            raise InvalidRequest("Cannot build a graph without images")
        if len(layout_plans) != len(images):
            raise InvalidRequest(
                f"Expected {len(images)} layout plans, got {len(layout_plans)}"
            )

        self.logger.info(
            "Building graph: %d images, %.3fs, transition=%s/%.3fs",
            len(images),
            duration,
            transition.type,
            transition.duration,
        )

        effect = get_transition(transition.type)
        trans_dur = 0.0 if effect.is_cut else float(transition.duration)
        body_duration = self._body_duration(duration, cards, trans_dur)
        slot = (
            image_duration
            if image_duration is not None
            else compensated_image_duration(body_duration, len(images), trans_dur)
        )
        if not effect.is_cut and len(images) > 1 and slot <= trans_dur:
            raise InvalidRequest(
                f"Transition {trans_dur:.3f}s must be shorter than the image duration {slot:.3f}s"
            )

        parts = _GraphParts()
        clip_labels = []
        for idx, (image, plan) in enumerate(zip(images, layout_plans)):
            label = f"v{idx}"
            self._add_image_clip(parts, image, plan, slot, fps, label)
            clip_labels.append(label)

        joined = self._join_clips(parts, clip_labels, slot, trans_dur, effect)
        if cards:
            joined = self._add_cards(parts, joined, body_duration, cards, sizing, fps, trans_dur, effect)
        video_out = self._add_overlays(parts, joined, overlays, sizing, duration)
        audio_out = self._add_audio(parts, audio, duration) if audio is not None else None

        graph = parts.freeze(video_out, audio_out, duration, fps)
        self.logger.debug("Graph: %s", graph.to_json())
        return graph

    def build_batch(
        self,
        batch: RenderBatch,
        transition: TransitionSpec,
        fps: int = 30,
    ) -> GraphDescription:
        """Video-only graph for one render batch"""
        return self.build(
            images=batch.images,
            overlays=None,
            audio=None,
            layout_plans=batch.layout_plans,
            sizing=None,
            duration=batch.duration,
            transition=transition,
            fps=fps,
            image_duration=batch.image_duration,
        )

    def build_stitch(
        self,
        batch_outputs: Sequence[Path],
        batches: Sequence[RenderBatch],
        transition: TransitionSpec,
        fps: int = 30,
    ) -> GraphDescription:
        """Join rendered batches, hiding each duplicated overlap image"""
        if len(batch_outputs) != len(batches) or len(batches) < 2:
            raise InvalidRequest("Stitching needs one output per batch and at least two batches")

        effect = get_transition(transition.type)
        trans_dur = 0.0 if effect.is_cut else float(transition.duration)
        parts = _GraphParts()

        labels = []
        for idx, path in enumerate(batch_outputs):
            index = parts.add_input(MediaInput(str(path), "video"))
            label = f"b{idx}"
            filters = [Filter.of("settb", "AVTB"), Filter.of("fps", fps)]
            if effect.is_cut and idx > 0:
                # overlap image is dropped from the head of every later batch
                filters.append(Filter.of("trim", start=float(batches[idx].image_duration)))
            filters.append(Filter.of("setpts", "PTS-STARTPTS"))
            parts.add_chain((f"{index}:v",), filters, (label,))
            labels.append(label)

        if effect.is_cut:
            total = sum(b.duration for b in batches) - sum(b.image_duration for b in batches[1:])
            parts.add_chain(labels, (Filter.of("concat", n=len(labels), v=1, a=0),), ("stitched",))
        else:
            offsets, total = stitch_offsets(batches, trans_dur)
            current = labels[0]
            for seam, (label, offset) in enumerate(zip(labels[1:], offsets), start=1):
                out = f"s{seam}"
                parts.add_chain((current, label), (effect.build_filter(trans_dur, offset),), (out,))
                current = out
            parts.add_chain((current,), (Filter.of("null"),), ("stitched",))

        parts.add_chain(("stitched",), (Filter.of("format", "yuv420p"),), ("vout",))
        self.logger.info("Stitch graph for %d batches, total %.3fs", len(batches), total)
        return parts.freeze("vout", None, total, fps)

    def build_finalize(
        self,
        video: Path,
        overlays: Optional[OverlayAssets],
        audio: Optional[AudioTracks],
        sizing: Optional[SizingResult],
        duration: float,
        fps: int = 30,
        cards: Optional[TitleCards] = None,
        transition: Optional[TransitionSpec] = None,
    ) -> GraphDescription:
        """Apply title cards, overlays and the audio mix once, on the stitched video"""
        parts = _GraphParts()
        index = parts.add_input(MediaInput(str(video), "video"))
        effect = get_transition(transition.type if transition else "none")
        trans_dur = 0.0 if effect.is_cut else float(transition.duration)
        body_duration = self._body_duration(duration, cards, trans_dur)

        filters = [Filter.of("trim", duration=float(body_duration)), Filter.of("setpts", "PTS-STARTPTS")]
        if cards:
            # card joins need the stitched video on the same frame rate and format
            filters.extend(
                (Filter.of("setsar", 1), Filter.of("fps", fps), Filter.of("format", "yuv420p"))
            )
        parts.add_chain((f"{index}:v",), filters, ("base",))

        current = "base"
        if cards:
            current = self._add_cards(parts, "base", body_duration, cards, sizing, fps, trans_dur, effect)
        video_out = self._add_overlays(parts, current, overlays, sizing, duration)
        audio_out = self._add_audio(parts, audio, duration) if audio is not None else None
        return parts.freeze(video_out, audio_out, duration, fps)

    def _body_duration(self, duration: float, cards: Optional[TitleCards], trans_dur: float) -> float:
        if not cards:
            return float(duration)
        for card_duration in cards.durations:
            if card_duration <= trans_dur:
                raise InvalidRequest(
                    f"Title card of {card_duration:.3f}s must be longer than the transition {trans_dur:.3f}s"
                )
        body = float(duration) - card_overhead(cards.durations, trans_dur)
        if body <= 0:
            raise InvalidRequest(
                f"Title cards leave no time for images in a {float(duration):.3f}s video"
            )
        return round(body, 6)

    def _add_cards(
        self,
        parts: _GraphParts,
        body_label: str,
        body_duration: float,
        cards: TitleCards,
        sizing: Optional[SizingResult],
        fps: int,
        trans_dur: float,
        effect,
    ) -> str:
        if sizing is None:
            raise InvalidRequest("Title cards need text sizes and a safe zone")

        clips = []
        if cards.intro is not None:
            clips.append(("intro", cards.intro))
        clips.append((body_label, None))
        if cards.outro is not None:
            clips.append(("outro", cards.outro))

        lengths = []
        for label, card in clips:
            if card is None:
                lengths.append(body_duration)
                continue
            title = TitleCardEffect(card, sizing, fps)
            index = parts.add_input(title.source())
            parts.chains.append(title.build_chain(f"{index}:v", label))
            lengths.append(float(card.duration))

        labels = [label for label, _ in clips]
        if effect.is_cut:
            parts.add_chain(labels, (Filter.of("concat", n=len(labels), v=1, a=0),), ("carded",))
            return "carded"

        current, length = labels[0], lengths[0]
        for seam, (label, clip_length) in enumerate(zip(labels[1:], lengths[1:]), start=1):
            offset = length - trans_dur
            out = "carded" if seam == len(labels) - 1 else f"c{seam}"
            parts.add_chain((current, label), (effect.build_filter(trans_dur, round(offset, 6)),), (out,))
            current, length = out, offset + clip_length
        return current

    def _add_image_clip(
        self,
        parts: _GraphParts,
        image: Optional[Path],
        plan: LayoutPlan,
        slot: float,
        fps: int,
        label: str,
    ):
        width, height = plan.target
        tail = (
            Filter.of("setsar", 1),
            Filter.of("fps", fps),
            Filter.of("format", "yuv420p"),
            Filter.of("trim", duration=float(slot)),
            Filter.of("setpts", "PTS-STARTPTS"),
        )

        if image is None:
            source = f"color=c={PLACEHOLDER_COLOR}:s={width}x{height}:r={fps}:d={format_value(float(slot))}"
            index = parts.add_input(MediaInput(source, "lavfi", ("-f", "lavfi")))
            parts.add_chain((f"{index}:v",), tail, (label,))
            return

        index = parts.add_input(
            MediaInput(
                str(image),
                "image",
                ("-loop", "1", "-framerate", str(fps), "-t", format_value(float(slot))),
            )
        )
        port = f"{index}:v"

        if plan.mode is LayoutMode.CROP_FILL:
            parts.add_chain(
                (port,),
                (
                    Filter.of("scale", width, height, force_original_aspect_ratio="increase"),
                    Filter.of("crop", width, height, "(iw-ow)/2", "(ih-oh)/2"),
                )
                + tail,
                (label,),
            )
        elif plan.mode is LayoutMode.LETTERBOX:
            parts.add_chain(
                (port,),
                (
                    Filter.of("scale", width, height, force_original_aspect_ratio="decrease"),
                    Filter.of("pad", width, height, "(ow-iw)/2", "(oh-ih)/2", color=plan.background_color),
                )
                + tail,
                (label,),
            )
        else:
            bg, fg = f"{label}bg", f"{label}fg"
            parts.add_chain((port,), (Filter.of("split", 2),), (bg, fg))
            parts.add_chain(
                (bg,),
                (
                    Filter.of("scale", width, height, force_original_aspect_ratio="increase"),
                    Filter.of("crop", width, height),
                    Filter.of("boxblur", luma_radius=plan.blur_radius, luma_power=2),
                ),
                (f"{bg}b",),
            )
            parts.add_chain(
                (fg,),
                (Filter.of("scale", width, height, force_original_aspect_ratio="decrease"),),
                (f"{fg}s",),
            )
            parts.add_chain(
                (f"{bg}b", f"{fg}s"),
                (Filter.of("overlay", "(W-w)/2", "(H-h)/2"),) + tail,
                (label,),
            )

    def _join_clips(self, parts: _GraphParts, labels: list[str], slot: float, trans_dur: float, effect) -> str:
        if len(labels) == 1:
            parts.add_chain((labels[0],), (Filter.of("null"),), ("joined",))
            return "joined"

        if effect.is_cut:
            parts.add_chain(labels, (Filter.of("concat", n=len(labels), v=1, a=0),), ("joined",))
            return "joined"

        current = labels[0]
        offsets = xfade_offsets(len(labels), slot, trans_dur)
        for join, (label, offset) in enumerate(zip(labels[1:], offsets), start=1):
            out = "joined" if join == len(labels) - 1 else f"x{join}"
            parts.add_chain((current, label), (effect.build_filter(trans_dur, offset),), (out,))
            current = out
        return current

    def _add_overlays(
        self,
        parts: _GraphParts,
        video_label: str,
        overlays: Optional[OverlayAssets],
        sizing: Optional[SizingResult],
        duration: float,
    ) -> str:
        current = video_label
        if overlays is not None and sizing is not None:
            if overlays.logo is not None and sizing.logo is not None:
                index = parts.add_input(MediaInput(str(overlays.logo), "image"))
                logo = LogoEffect(sizing.logo, window=overlays.logo_window)
                for chain in logo.build_chains(current, f"{index}:v", "vlogo"):
                    parts.chains.append(chain)
                current = "vlogo"

            if overlays.review_card is not None and sizing.review_card is not None:
                index = parts.add_input(MediaInput(str(overlays.review_card), "image"))
                card = ReviewCardEffect(sizing.review_card, duration)
                for chain in card.build_chains(current, f"{index}:v", "vcard"):
                    parts.chains.append(chain)
                current = "vcard"

        parts.add_chain((current,), (Filter.of("format", "yuv420p"),), ("vout",))
        return "vout"

    def _add_audio(self, parts: _GraphParts, audio: AudioTracks, duration: float) -> str:
        hints = audio.hints
        duration = float(duration)
        finish = (
            Filter.of("apad"),
            Filter.of("atrim", duration=duration),
            Filter.of("asetpts", "PTS-STARTPTS"),
            Filter.of("aformat", sample_rates=AUDIO_RATE, channel_layouts="stereo"),
        )
        delay_ms = int(round(hints.voice_delay * 1000))

        voice_label = music_label = None
        if audio.voice is not None:
            index = parts.add_input(MediaInput(str(audio.voice), "audio"))
            voice_filters = [Filter.of("adelay", f"{delay_ms}|{delay_ms}")]
            if hints.voice_volume != 1.0:
                voice_filters.append(Filter.of("volume", float(hints.voice_volume)))
            if audio.music is None:
                fade = min(VOICE_SOLO_FADE_OUT, duration)
                voice_filters.append(Filter.of("afade", t="out", st=max(duration - fade, 0.0), d=fade))
            parts.add_chain((f"{index}:a",), voice_filters, ("voice",))
            voice_label = "voice"

        if audio.music is not None:
            index = parts.add_input(MediaInput(str(audio.music), "audio", ("-stream_loop", "-1")))
            fade_in = min(hints.music_fade_in, duration / 2)
            fade_out = min(hints.music_fade_out, duration / 2)
            volume = hints.music_volume if audio.voice is not None else MUSIC_SOLO_VOLUME
            music_filters = [Filter.of("atrim", duration=duration), Filter.of("asetpts", "PTS-STARTPTS")]
            if fade_in > 0:
                music_filters.append(Filter.of("afade", t="in", st=0.0, d=fade_in))
            if fade_out > 0:
                music_filters.append(Filter.of("afade", t="out", st=max(duration - fade_out, 0.0), d=fade_out))
            music_filters.append(Filter.of("volume", float(volume)))
            parts.add_chain((f"{index}:a",), music_filters, ("music",))
            music_label = "music"

        if voice_label and music_label:
            parts.add_chain(
                (voice_label, music_label),
                (Filter.of("amix", inputs=2, duration="longest", dropout_transition=0),) + finish,
                ("aout",),
            )
        elif voice_label or music_label:
            parts.add_chain((voice_label or music_label,), finish, ("aout",))
        else:
            parts.add_chain(
                (),
                (
                    Filter.of("anullsrc", channel_layout="stereo", sample_rate=AUDIO_RATE),
                    Filter.of("atrim", duration=duration),
                    Filter.of("asetpts", "PTS-STARTPTS"),
                ),
                ("aout",),
            )
        return "aout"
