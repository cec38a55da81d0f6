# -*- coding: utf-8 -*-
"""
Batched rendering to bound memory on long image sequences

Batches are encoded independently (video only, fast settings) on a bounded
worker pool, then joined by a stitch pass once every batch has finished.
"""

import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..domain.errors import EncodeCancelled, EncodeFailure
from ..domain.models.composition import RenderSettings, TransitionSpec
from ..domain.models.layout import RenderBatch
from ..infra.logging import get_logger
from .graph_builder import GraphBuilder
from .runner import Progress, Runner

ProgressSink = Callable[[float], None]
TimeoutSource = Callable[[], Optional[float]]


class BatchRenderer:
    """Renders RenderBatch lists with at most `max_workers` concurrent encoders"""

    def __init__(
        self,
        runner: Runner,
        graph_builder: Optional[GraphBuilder] = None,
        max_workers: int = 1,
    ):
        self.logger = get_logger("BatchRenderer")
        self.runner = runner
        self.graph_builder = graph_builder or GraphBuilder()
        self.max_workers = max(1, max_workers)

    def render_batches(
        self,
        batches: Sequence[RenderBatch],
        transition: TransitionSpec,
        work_dir: Path,
        settings: RenderSettings,
        fps: int = 30,
        on_progress: Optional[ProgressSink] = None,
        timeout: Optional[TimeoutSource] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[Path]:
        """Encode every batch; the first failure cancels the remaining ones"""
        cancel_event = cancel_event or threading.Event()
        graphs = [self.graph_builder.build_batch(b, transition, fps) for b in batches]
        outputs = [Path(work_dir) / f"batch_{b.index:03d}.mp4" for b in batches]

        fractions = [0.0] * len(batches)
        lock = threading.Lock()

        def _report(index: int, progress: Progress):
            if progress.percent is None or on_progress is None:
                return
            with lock:
                fractions[index] = progress.percent / 100.0
                overall = sum(fractions) / len(fractions)
            on_progress(overall)

        def _render(index: int) -> Path:
            if cancel_event.is_set():
                raise EncodeCancelled(f"Batch {index} skipped after an earlier failure")
            self.logger.info(
                "Rendering batch %d/%d (%d images, %.3fs)",
                index + 1,
                len(batches),
                batches[index].image_count,
                batches[index].duration,
            )
            return self.runner.render(
                graphs[index],
                outputs[index],
                settings,
                on_progress=lambda p: _report(index, p),
                timeout=timeout() if timeout else None,
                cancel_event=cancel_event,
            )

        workers = min(self.max_workers, len(batches))
        self.logger.info("Rendering %d batches with %d worker(s)", len(batches), workers)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_render, i) for i in range(len(batches))]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)

            failure = next((f.exception() for f in done if f.exception() is not None), None)
            if failure is not None:
                self.logger.error("Batch rendering failed, cancelling siblings: %s", failure)
                cancel_event.set()
                for future in pending:
                    future.cancel()
                wait(pending)
                raise self._primary_failure(futures, failure)

        return [future.result() for future in futures]

    def stitch(
        self,
        batch_outputs: Sequence[Path],
        batches: Sequence[RenderBatch],
        transition: TransitionSpec,
        output_path: Path,
        settings: RenderSettings,
        fps: int = 30,
        on_progress: Optional[ProgressSink] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """Join batch outputs with duration-compensated crossfades"""
        missing = [str(p) for p in batch_outputs if not Path(p).exists()]
        if missing:
            raise EncodeFailure(f"Cannot stitch, missing batch outputs: {', '.join(missing)}")

        graph = self.graph_builder.build_stitch(batch_outputs, batches, transition, fps)
        self.logger.info("Stitching %d batches into %s", len(batch_outputs), output_path)

        def _report(progress: Progress):
            if progress.percent is not None and on_progress is not None:
                on_progress(progress.percent / 100.0)

        return self.runner.render(
            graph,
            output_path,
            settings,
            on_progress=_report,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    @staticmethod
    def _primary_failure(futures, fallback: BaseException) -> BaseException:
        # prefer the root cause over cancellations it triggered
        for future in futures:
            if future.cancelled() or not future.done():
                continue
            error = future.exception()
            if error is not None and not isinstance(error, EncodeCancelled):
                return error
        return fallback
