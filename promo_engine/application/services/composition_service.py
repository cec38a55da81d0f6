# -*- coding: utf-8 -*-
"""
promo_engine/application/services/composition_service.py
Composition of platform-ready promo videos from images, overlays and audio
"""

import re
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from ...domain.errors import AssetUnreadable, CompositionError, DurationMismatch, InvalidRequest
from ...domain.layout_modes import placeholder_plan, plan_layout
from ...domain.models.composition import (
    IMAGE_MODES,
    CompositionRequest,
    CompositionResult,
    PlatformOutcome,
    ProgressEvent,
    RenderSettings,
    Stage,
    TextCard,
    TransitionSpec,
)
from ...domain.models.layout import RenderBatch, SizingResult
from ...domain.platforms import PlatformTemplate, get_template
from ...domain.sizing import compute_all_sizes
from ...infra.logging import get_logger
from ...infra.media_io import MediaIO
from ...infra.settings import EngineSettings, load_settings
from ...plugins.builtin.transitions.registry import get_transition
from ...rendering.batch_renderer import BatchRenderer
from ...rendering.cli_builder import CliBuilder, final_settings, intermediate_settings
from ...rendering.graph_builder import AudioTracks, GraphBuilder, OverlayAssets, TitleCards
from ...rendering.runner import Runner
from ...rendering.timing import (
    batch_count,
    card_overhead,
    compensated_image_duration,
    schedule,
    stitch_offsets,
)
from .render_job import RenderJob

X264_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
    "placebo",
)
COLOR_TOKEN = re.compile(r"^[A-Za-z0-9#@.]+$")


@dataclass(frozen=True)
class PreparedComposition:
    """Validated request with probed assets and resolved timing"""

    request: CompositionRequest
    template: PlatformTemplate
    images: tuple[Optional[Path], ...]
    image_sizes: tuple[Optional[tuple[int, int]], ...]
    logo: Optional[Path]
    logo_size: Optional[tuple[int, int]]
    review_card: Optional[Path]
    review_card_size: Optional[tuple[int, int]]
    voice_over: Optional[Path]
    music: Optional[Path]
    duration: float
    transition: TransitionSpec
    batch_count: int
    image_duration: float
    cards: TitleCards
    body_duration: float


class CompositionService:
    """Validates requests and drives sizing, layout, batching and encoding"""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        media_io: Optional[MediaIO] = None,
        runner: Optional[Runner] = None,
        graph_builder: Optional[GraphBuilder] = None,
    ):
        self.settings = settings or load_settings()
        self.logger = get_logger("CompositionService")
        self.media_io = media_io or MediaIO(self.settings.ffprobe_path, self.settings.probe_timeout)
        self.runner = runner or Runner(
            CliBuilder(self.settings.ffmpeg_path), self.settings.stderr_tail_lines
        )
        self.graph_builder = graph_builder or GraphBuilder()
        self.batch_renderer = BatchRenderer(
            self.runner, self.graph_builder, self.settings.max_parallel_batches
        )
        self._jobs: set = set()
        self._jobs_lock = threading.Lock()

    def compose(
        self,
        request: CompositionRequest,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> CompositionResult:
        """Render `request` to its output path and return the probed result"""
        self.logger.info(
            "Composition requested: platform=%s, images=%d, output=%s",
            request.platform,
            len(request.images),
            request.output_path,
        )
        prepared = self.prepare(request)

        with RenderJob(
            on_progress=on_progress,
            temp_root=self.settings.temp_dir,
            keep_artifacts=request.keep_artifacts or self.settings.keep_artifacts,
            timeout=self.settings.job_timeout,
            on_cancel=self.runner.cancel_all,
        ) as job:
            with self._jobs_lock:
                self._jobs.add(job)
            try:
                return self._execute(prepared, job)
            finally:
                with self._jobs_lock:
                    self._jobs.discard(job)

    def compose_many(
        self,
        platforms: Sequence[str],
        request: CompositionRequest,
        output_dir: Optional[Union[str, Path]] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> dict[str, PlatformOutcome]:
        """Render the same assets once per platform.

        Outputs are named `<stem>_<platform><suffix>` after the request's
        output path. A failing platform is recorded and the others still run.
        """
        if not platforms:
            raise InvalidRequest("At least one platform is required")
        duplicates = sorted({p for p in platforms if list(platforms).count(p) > 1})
        if duplicates:
            raise InvalidRequest(f"Platforms listed more than once: {', '.join(duplicates)}")

        base = request.output_path
        folder = Path(output_dir) if output_dir is not None else base.parent
        suffix = base.suffix or ".mp4"

        outcomes = {}
        for number, platform in enumerate(platforms, start=1):
            self.logger.info("Platform %d/%d: %s", number, len(platforms), platform)
            platform_request = replace(
                request,
                platform=platform,
                output_path=folder / f"{base.stem}_{platform}{suffix}",
            )
            forward = None
            if on_progress is not None:
                forward = lambda event, name=platform: on_progress(replace(event, platform=name))
            try:
                result = self.compose(platform_request, on_progress=forward)
            except CompositionError as e:
                self.logger.error("Platform %s failed: %s", platform, e.diagnostic)
                outcomes[platform] = PlatformOutcome(platform, error=e)
            else:
                outcomes[platform] = PlatformOutcome(platform, result=result)

        failed = [name for name, outcome in outcomes.items() if not outcome.success]
        self.logger.info(
            "Multi-platform run finished: %d succeeded, %d failed",
            len(outcomes) - len(failed),
            len(failed),
        )
        return outcomes

    def cancel(self):
        """Abort every composition running on this service"""
        with self._jobs_lock:
            jobs = list(self._jobs)
        for job in jobs:
            job.cancel()

    def prepare(self, request: CompositionRequest) -> PreparedComposition:
        """Validate and probe everything; creates no files and spawns no encoder"""
        template = get_template(request.platform)
        transition = self._validate_request(request, template)

        images, sizes = self._probe_images(request.images)
        logo, logo_size = self._probe_overlay(request.logo, "logo")
        card, card_size = self._probe_overlay(request.review_card, "review card")
        voice, voice_length = self._probe_audio(request.voice_over, "voice-over")
        music, _ = self._probe_audio(request.music, "music")

        if logo is None:
            self.logger.info("No logo provided, rendering without logo")
        if voice is None and music is None:
            self.logger.warning("No audio tracks provided, output will carry silence")

        duration = self._resolve_duration(request, template, voice_length)

        effect = get_transition(transition.type)
        trans_dur = 0.0 if effect.is_cut else transition.duration
        transition = TransitionSpec(effect.name, trans_dur)

        cards = TitleCards(self._resolve_card(request.intro), self._resolve_card(request.outro))
        for title in (cards.intro, cards.outro):
            if title is not None and title.duration <= trans_dur:
                raise InvalidRequest(
                    f"Title card of {title.duration}s must be longer than the {trans_dur:.3f}s transition"
                )
        body_duration = round(duration - card_overhead(cards.durations, trans_dur), 6)
        if body_duration <= 0:
            raise InvalidRequest(f"Title cards leave no time for images in a {duration:.3f}s video")

        count = batch_count(len(images), self.settings.batch_threshold, self.settings.batch_size)
        image_duration = compensated_image_duration(body_duration, len(images), trans_dur, count)
        if len(images) > 1 and not effect.is_cut and image_duration <= trans_dur:
            raise InvalidRequest(
                f"Transition of {trans_dur:.3f}s does not fit in {image_duration:.3f}s per image"
            )
        if count > 1:
            # negative stitch offsets are rejected here, before any encoder starts
            stitch_offsets(self._schedule(images, image_duration, trans_dur), trans_dur)

        self.logger.info(
            "Prepared %s: %.3fs, %d images x %.3fs, %d batch(es), transition %s/%.3fs",
            template.id,
            duration,
            len(images),
            image_duration,
            count,
            transition.type,
            trans_dur,
        )
        return PreparedComposition(
            request=request,
            template=template,
            images=tuple(images),
            image_sizes=tuple(sizes),
            logo=logo,
            logo_size=logo_size,
            review_card=card,
            review_card_size=card_size,
            voice_over=voice,
            music=music,
            duration=duration,
            transition=transition,
            batch_count=count,
            image_duration=image_duration,
            cards=cards,
            body_duration=body_duration,
        )

    def _resolve_card(self, card: Optional[TextCard]) -> Optional[TextCard]:
        if card is None:
            return None
        if not card.lines or not any(line.strip() for line in card.lines):
            raise InvalidRequest("Title card needs at least one line of text")
        if card.duration <= 0:
            raise InvalidRequest(f"Title card duration must be positive, got {card.duration}")
        for color in (card.background, card.font_color):
            if not COLOR_TOKEN.match(color):
                raise InvalidRequest(f"Invalid title card color '{color}'")
        if card.font_file is None and self.settings.font_file:
            card = replace(card, font_file=self.settings.font_file)
        return card

    def _validate_request(self, request: CompositionRequest, template: PlatformTemplate) -> TransitionSpec:
        if not request.images:
            raise InvalidRequest("At least one image is required")
        if len(request.images) < self.settings.min_images:
            raise InvalidRequest(
                f"{len(request.images)} image(s) given, at least {self.settings.min_images} required"
            )
        if request.image_mode not in IMAGE_MODES:
            raise InvalidRequest(
                f"Unknown image mode '{request.image_mode}'. Available: {', '.join(IMAGE_MODES)}"
            )

        quality = request.quality
        if quality.crf is not None and not 0 <= quality.crf <= 51:
            raise InvalidRequest(f"CRF must be between 0 and 51, got {quality.crf}")
        if quality.preset is not None and quality.preset not in X264_PRESETS:
            raise InvalidRequest(f"Unknown encoder preset '{quality.preset}'")

        transition = request.transition or template.transition
        if transition.duration < 0:
            raise InvalidRequest(f"Transition duration must be >= 0, got {transition.duration}")

        if request.target_duration is not None:
            if request.target_duration <= 0:
                raise InvalidRequest("Target duration must be positive")
            if not template.duration.contains(request.target_duration):
                raise InvalidRequest(
                    f"Duration {request.target_duration}s outside {template.id} range "
                    f"[{template.duration.min}, {template.duration.max}]"
                )
        return transition

    def _resolve_duration(
        self,
        request: CompositionRequest,
        template: PlatformTemplate,
        voice_length: Optional[float],
    ) -> float:
        duration = (
            request.target_duration
            if request.target_duration is not None
            else template.duration.default
        )
        if voice_length:
            required = template.audio.voice_delay + voice_length + self.settings.voice_end_padding
            if required > duration:
                self.logger.info(
                    "Voice-over of %.3fs extends video from %.3fs to %.3fs",
                    voice_length,
                    duration,
                    required,
                )
                duration = required
        if duration > template.duration.max:
            raise InvalidRequest(
                f"Duration {duration:.3f}s exceeds the {template.id} maximum of {template.duration.max}s"
            )
        return round(float(duration), 3)

    def _probe_images(self, paths) -> tuple[list, list]:
        images, sizes = [], []
        for path in paths:
            try:
                sizes.append(self.media_io.get_image_size(path))
                images.append(Path(path))
            except AssetUnreadable as e:
                if not self.settings.allow_placeholder_assets:
                    raise
                self.logger.warning("Using placeholder frame for %s: %s", path, e.reason)
                sizes.append(None)
                images.append(None)
        return images, sizes

    def _probe_overlay(self, path: Optional[Path], label: str):
        if path is None:
            return None, None
        try:
            return Path(path), self.media_io.get_image_size(path)
        except AssetUnreadable as e:
            if not self.settings.allow_placeholder_assets:
                raise
            self.logger.warning("Skipping unreadable %s %s: %s", label, path, e.reason)
            return None, None

    def _probe_audio(self, path: Optional[Path], label: str):
        if path is None:
            return None, None
        try:
            return Path(path), self.media_io.get_audio_duration(path)
        except AssetUnreadable as e:
            if not self.settings.allow_placeholder_assets:
                raise
            self.logger.warning("Skipping unreadable %s %s: %s", label, path, e.reason)
            return None, None

    def _schedule(self, images, image_duration: float, trans_dur: float, plans=None) -> list[RenderBatch]:
        return schedule(
            images,
            image_duration,
            trans_dur,
            self.settings.batch_threshold,
            self.settings.batch_size,
            plans,
        )

    def _execute(self, prepared: PreparedComposition, job: RenderJob) -> CompositionResult:
        request, template = prepared.request, prepared.template
        frame_w, frame_h = template.resolution

        job.enter_stage(Stage.SIZING)
        sizing = compute_all_sizes(
            template,
            logo_size=prepared.logo_size,
            review_card_size=prepared.review_card_size,
            has_logo=prepared.logo is not None,
            has_review_card=prepared.review_card is not None,
            logo_anchor=request.logo_anchor,
        )
        job.update(1.0)

        job.enter_stage(Stage.LAYOUT)
        forced = None if request.image_mode == "auto" else request.image_mode
        plans = [
            plan_layout(size[0], size[1], frame_w, frame_h, forced)
            if size is not None
            else placeholder_plan(frame_w, frame_h)
            for size in prepared.image_sizes
        ]
        self.logger.info(
            "Layout modes: %s", ", ".join(plan.mode.value for plan in plans)
        )
        job.update(1.0)

        job.enter_stage(Stage.BATCHING)
        batches = self._schedule(
            prepared.images, prepared.image_duration, prepared.transition.duration, plans
        )
        job.update(1.0)

        overlays = OverlayAssets(
            logo=prepared.logo,
            review_card=prepared.review_card,
            logo_window=None if template.logo_persist else (0.0, template.logo_intro_duration),
        )
        audio = AudioTracks(template.audio, prepared.voice_over, prepared.music)
        final = final_settings(template.encode, request.quality)
        output_path = request.output_path
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if len(batches) == 1:
            self._render_single_pass(prepared, job, sizing, plans, overlays, audio, final)
        else:
            self._render_batched(prepared, job, batches, sizing, overlays, audio, final)

        job.enter_stage(Stage.FINALIZING, "verifying output")
        metadata = self.media_io.probe_video(output_path)
        if self.settings.verify_duration:
            drift = abs(metadata.duration - prepared.duration)
            if drift > self.settings.duration_tolerance:
                self.logger.error(
                    "Duration contract violated for %s: expected %.3fs, got %.3fs",
                    output_path,
                    prepared.duration,
                    metadata.duration,
                )
                raise DurationMismatch(
                    prepared.duration,
                    metadata.duration,
                    self.settings.duration_tolerance,
                    output_path,
                )

        job.finish()
        self.logger.info("Composition finished: %s (%.3fs)", output_path, metadata.duration)
        return CompositionResult(
            output_path=output_path,
            metadata=metadata,
            duration=prepared.duration,
            batch_count=len(batches),
            platform=template.id,
        )

    def _render_single_pass(
        self,
        prepared: PreparedComposition,
        job: RenderJob,
        sizing: SizingResult,
        plans,
        overlays: OverlayAssets,
        audio: AudioTracks,
        final: RenderSettings,
    ):
        job.enter_stage(Stage.ENCODING, "single pass")
        graph = self.graph_builder.build(
            images=prepared.images,
            overlays=overlays,
            audio=audio,
            layout_plans=plans,
            sizing=sizing,
            duration=prepared.duration,
            transition=prepared.transition,
            fps=prepared.template.fps,
            image_duration=prepared.image_duration,
            cards=prepared.cards,
        )
        self.runner.render(
            graph,
            prepared.request.output_path,
            final,
            on_progress=lambda p: job.update((p.percent or 0.0) / 100.0),
            timeout=job.render_timeout(self.settings.render_timeout),
            cancel_event=job.cancel_event,
        )

    def _render_batched(
        self,
        prepared: PreparedComposition,
        job: RenderJob,
        batches: list[RenderBatch],
        sizing: SizingResult,
        overlays: OverlayAssets,
        audio: AudioTracks,
        final: RenderSettings,
    ):
        fps = prepared.template.fps
        fast = intermediate_settings(
            self.settings.intermediate_preset, self.settings.intermediate_crf
        )

        job.enter_stage(Stage.ENCODING, f"{len(batches)} batches")
        outputs = self.batch_renderer.render_batches(
            batches,
            prepared.transition,
            job.work_dir,
            fast,
            fps=fps,
            on_progress=job.update,
            timeout=lambda: job.render_timeout(self.settings.render_timeout),
            cancel_event=job.cancel_event,
        )

        job.enter_stage(Stage.STITCHING)
        stitched = self.batch_renderer.stitch(
            outputs,
            batches,
            prepared.transition,
            job.path("stitched.mp4"),
            fast,
            fps=fps,
            on_progress=job.update,
            timeout=job.render_timeout(self.settings.render_timeout),
            cancel_event=job.cancel_event,
        )
        if not job.keep_artifacts:
            for output in outputs:
                output.unlink(missing_ok=True)

        job.enter_stage(Stage.FINALIZING, "overlays and audio")
        graph = self.graph_builder.build_finalize(
            stitched,
            overlays,
            audio,
            sizing,
            prepared.duration,
            fps,
            cards=prepared.cards,
            transition=prepared.transition,
        )
        self.runner.render(
            graph,
            prepared.request.output_path,
            final,
            on_progress=lambda p: job.update((p.percent or 0.0) / 100.0 * 0.9),
            timeout=job.render_timeout(self.settings.render_timeout),
            cancel_event=job.cancel_event,
        )
