# -*- coding: utf-8 -*-
"""
FFmpeg execution with streamed progress, timeouts and cancellation
"""

import queue
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..domain.errors import (
    EncodeCancelled,
    EncodeExitNonZero,
    EncodeFailure,
    EncodeTimeout,
)
from ..domain.models.composition import RenderSettings
from ..domain.models.graph import GraphDescription
from ..infra.logging import get_logger
from .cli_builder import CliBuilder

POLL_INTERVAL = 0.1
TERMINATE_GRACE = 5.0


@dataclass(frozen=True)
class Progress:
    """Render progress reported by FFmpeg"""

    out_time_ms: int
    speed: Optional[float]
    percent: Optional[float]
    frame: Optional[int] = None
    fps: Optional[float] = None
    bitrate: Optional[str] = None
    finished: bool = False


class _ProgressParser:
    """Accumulates `-progress` key=value lines into Progress blocks"""

    def __init__(self, expected_duration: Optional[float]):
        self.expected_duration = expected_duration
        self._block: dict = {}

    def feed(self, line: str) -> Optional[Progress]:
        if not line or "=" not in line:
            return None
        key, value = line.split("=", 1)
        self._block[key.strip()] = value.strip()
        if key.strip() != "progress":
            return None
        block, self._block = self._block, {}
        return self._to_progress(block)

    def _to_progress(self, data: dict) -> Optional[Progress]:
        # out_time_ms is reported in microseconds by FFmpeg
        raw = data.get("out_time_us", data.get("out_time_ms"))
        try:
            out_time_us = int(raw)
        except (TypeError, ValueError):
            return None

        def _num(key, cast):
            try:
                return cast(data[key].rstrip("x"))
            except (KeyError, ValueError):
                return None

        finished = data.get("progress") == "end"
        percent = None
        if self.expected_duration:
            percent = min(max(out_time_us / 1e6 / self.expected_duration * 100.0, 0.0), 100.0)
            if finished:
                percent = 100.0

        return Progress(
            out_time_ms=out_time_us // 1000,
            speed=_num("speed", float),
            percent=percent,
            frame=_num("frame", int),
            fps=_num("fps", float),
            bitrate=data.get("bitrate"),
            finished=finished,
        )


def _drain(stream, sink: Callable[[str], None]):
    for line in iter(stream.readline, ""):
        sink(line.rstrip("\r\n"))
    stream.close()


class Runner:
    """Runs one FFmpeg subprocess per call and tracks live processes"""

    def __init__(self, cli_builder: Optional[CliBuilder] = None, stderr_tail_lines: int = 20):
        self.logger = get_logger("Runner")
        self.cli_builder = cli_builder or CliBuilder()
        self.stderr_tail_lines = stderr_tail_lines
        self._live: dict = {}
        self._lock = threading.Lock()

    def run(
        self,
        cmd: list[str],
        on_progress: Optional[Callable[[Progress], None]] = None,
        timeout: Optional[float] = 600,
        expected_duration: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> subprocess.CompletedProcess:
        """Execute an FFmpeg command, streaming progress until it exits"""
        self.logger.info("Running FFmpeg command: %s", " ".join(map(str, cmd)))

        stderr_tail: deque = deque(maxlen=self.stderr_tail_lines)
        stdout_lines: queue.Queue = queue.Queue()
        parser = _ProgressParser(expected_duration)

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            self.logger.error("Could not start FFmpeg: %s", e)
            raise EncodeFailure(f"Could not start encoder: {e}", cmd=cmd) from e

        with self._lock:
            self._live[process] = cancel_event

        readers = [
            threading.Thread(target=_drain, args=(process.stdout, stdout_lines.put), daemon=True),
            threading.Thread(target=_drain, args=(process.stderr, stderr_tail.append), daemon=True),
        ]
        for reader in readers:
            reader.start()

        start_time = time.monotonic()
        try:
            while True:
                try:
                    line = stdout_lines.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    line = None

                if line is not None:
                    progress = parser.feed(line)
                    if progress and on_progress:
                        on_progress(progress)
                elif process.poll() is not None and not readers[0].is_alive() and stdout_lines.empty():
                    break

                if cancel_event is not None and cancel_event.is_set():
                    self._terminate(process)
                    self._join(readers)
                    self.logger.warning("FFmpeg cancelled")
                    raise EncodeCancelled(
                        "Encoder cancelled",
                        returncode=process.returncode,
                        stderr_tail=list(stderr_tail),
                        cmd=cmd,
                    )

                if timeout is not None and (time.monotonic() - start_time) > timeout:
                    self.logger.error("Timeout of %ss exceeded, terminating FFmpeg", timeout)
                    self._terminate(process)
                    self._join(readers)
                    raise EncodeTimeout(
                        f"Encoder exceeded timeout of {timeout}s",
                        returncode=process.returncode,
                        stderr_tail=list(stderr_tail),
                        cmd=cmd,
                    )
        finally:
            with self._lock:
                self._live.pop(process, None)

        self._join(readers)
        return_code = process.wait()
        tail = list(stderr_tail)

        if return_code != 0 and cancel_event is not None and cancel_event.is_set():
            raise EncodeCancelled(
                "Encoder cancelled", returncode=return_code, stderr_tail=tail, cmd=cmd
            )
        if return_code != 0:
            self.logger.error(
                "FFmpeg exited with code %d. Stderr tail:\n%s", return_code, "\n".join(tail)
            )
            raise EncodeExitNonZero(
                f"Encoder exited with code {return_code}",
                returncode=return_code,
                stderr_tail=tail,
                cmd=cmd,
            )

        self.logger.info("FFmpeg finished in %.1fs", time.monotonic() - start_time)
        return subprocess.CompletedProcess(
            args=cmd, returncode=return_code, stdout="", stderr="\n".join(tail)
        )

    def render(
        self,
        graph: GraphDescription,
        out_path: Path,
        settings: RenderSettings,
        on_progress: Optional[Callable[[Progress], None]] = None,
        timeout: Optional[float] = 600,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """Serialize `graph`, encode it to `out_path` and return the path"""
        cmd = self.cli_builder.make_command(graph, out_path, settings)
        self.logger.debug("Rendering graph %s", graph.to_json())
        out_path = Path(out_path)
        try:
            self.run(
                cmd,
                on_progress=on_progress,
                timeout=timeout,
                expected_duration=graph.duration,
                cancel_event=cancel_event,
            )
        except EncodeFailure:
            out_path.unlink(missing_ok=True)
            raise
        return out_path

    def cancel_all(self, cancel_event: Optional[threading.Event] = None):
        """Terminate live encoders of this runner.

        With `cancel_event` only the encoders started with that event are
        stopped, so one job can abort without touching its neighbors.
        """
        with self._lock:
            live = [
                process
                for process, event in self._live.items()
                if cancel_event is None or event is cancel_event
            ]
        if live:
            self.logger.warning("Terminating %d live encoder(s)", len(live))
        for process in live:
            self._terminate(process)

    def _terminate(self, process: subprocess.Popen):
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            self.logger.error("FFmpeg did not stop gracefully, killing")
            process.kill()
            process.wait()

    def _join(self, readers):
        for reader in readers:
            reader.join(timeout=TERMINATE_GRACE)
