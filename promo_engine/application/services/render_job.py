# -*- coding: utf-8 -*-
"""
Runtime state of one composition: stage, progress, deadline and working directory
"""

import shutil
import tempfile
import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

from ...domain.errors import EncodeTimeout
from ...domain.models.composition import STAGE_WEIGHTS, ProgressEvent, Stage
from ...infra.logging import get_logger

ProgressCallback = Callable[[ProgressEvent], None]


class RenderJob:
    """Owns the job working directory; removes it on exit unless artifacts are kept"""

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        temp_root: Optional[str] = None,
        keep_artifacts: bool = False,
        timeout: Optional[float] = None,
        job_id: Optional[str] = None,
        on_cancel: Optional[Callable[[threading.Event], None]] = None,
    ):
        self.logger = get_logger("RenderJob")
        self.job_id = job_id or uuid.uuid4().hex[:12]
        self.on_progress = on_progress
        self.temp_root = temp_root
        self.keep_artifacts = keep_artifacts
        self.timeout = timeout
        self.on_cancel = on_cancel
        self.cancel_event = threading.Event()

        self.work_dir: Optional[Path] = None
        self.stage: Optional[Stage] = None
        self.stage_percent = 0.0
        self.percent = 0.0
        self._started_at: Optional[float] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "RenderJob":
        if self.temp_root:
            Path(self.temp_root).mkdir(parents=True, exist_ok=True)
        self.work_dir = Path(tempfile.mkdtemp(prefix=f"promo_{self.job_id}_", dir=self.temp_root))
        self._started_at = time.monotonic()
        self.logger.info("Job %s started in %s", self.job_id, self.work_dir)
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            self.cancel_event.set()
            self.logger.error("Job %s failed during %s: %s", self.job_id, self._stage_name(), exc)
        self.cleanup()
        return False

    def cleanup(self):
        if self.work_dir is None:
            return
        if self.keep_artifacts:
            self.logger.info("Keeping artifacts of job %s in %s", self.job_id, self.work_dir)
            return
        try:
            shutil.rmtree(self.work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning("Could not remove %s: %s", self.work_dir, e)
        self.work_dir = None

    def cancel(self):
        """Abort the running encoders of this job"""
        self.logger.warning("Job %s cancelled during %s", self.job_id, self._stage_name())
        self.cancel_event.set()
        if self.on_cancel is not None:
            self.on_cancel(self.cancel_event)

    def path(self, name: str) -> Path:
        if self.work_dir is None:
            raise RuntimeError("Job working directory is not open")
        return self.work_dir / name

    def enter_stage(self, stage: Stage, message: str = ""):
        with self._lock:
            self.stage = stage
            self.stage_percent = 0.0
        self._emit(0.0, message or stage.value)

    def update(self, fraction: float, message: str = ""):
        """Report progress inside the current stage (0.0 to 1.0)"""
        self._emit(min(max(fraction, 0.0), 1.0) * 100.0, message)

    def finish(self):
        self.enter_stage(Stage.DONE, "done")

    def remaining_time(self) -> Optional[float]:
        if self.timeout is None or self._started_at is None:
            return None
        return self.timeout - (time.monotonic() - self._started_at)

    def render_timeout(self, render_timeout: Optional[float]) -> Optional[float]:
        """Per-render timeout bounded by what is left of the job deadline"""
        remaining = self.remaining_time()
        if remaining is None:
            return render_timeout
        if remaining <= 0:
            raise EncodeTimeout(f"Job {self.job_id} exceeded its timeout of {self.timeout}s")
        return remaining if render_timeout is None else min(render_timeout, remaining)

    def _emit(self, stage_percent: float, message: str):
        with self._lock:
            if self.stage is None:
                return
            low, high = STAGE_WEIGHTS[self.stage]
            overall = low + (high - low) * stage_percent / 100.0
            # overall progress never moves backwards
            self.percent = max(self.percent, overall)
            self.stage_percent = stage_percent
            event = ProgressEvent(
                percent=self.percent,
                stage=self.stage,
                stage_percent=stage_percent,
                message=message,
            )
        if self.on_progress is not None:
            self.on_progress(event)

    def _stage_name(self) -> str:
        return self.stage.value if self.stage else "setup"
