# -*- coding: utf-8 -*-
"""
Typed errors raised by the composition engine
"""

from pathlib import Path
from typing import Optional, Sequence


class CompositionError(Exception):
    """Base class for every failure surfaced by the engine"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def diagnostic(self) -> str:
        """Human-readable description for the caller"""
        return self.message


class InvalidRequest(CompositionError):
    """Request rejected before any subprocess or temp file is created"""


class AssetUnreadable(CompositionError):
    """A referenced local file is missing, empty or not decodable"""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Asset unreadable: {path} ({reason})")
        self.path = Path(path)
        self.reason = reason


class DurationMismatch(CompositionError):
    """Output rendered fine but its probed duration drifted from the target"""

    def __init__(self, expected: float, actual: float, tolerance: float, output_path: Optional[Path] = None):
        super().__init__(
            f"Output duration {actual:.3f}s differs from target {expected:.3f}s "
            f"(tolerance {tolerance:.3f}s)"
        )
        self.expected = expected
        self.actual = actual
        self.tolerance = tolerance
        self.output_path = output_path


class EncodeFailure(CompositionError):
    """Encoder subprocess could not produce its output"""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr_tail: Sequence[str] = (),
        cmd: Sequence[str] = (),
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr_tail = tuple(stderr_tail)
        self.cmd = tuple(cmd)

    @property
    def diagnostic(self) -> str:
        if not self.stderr_tail:
            return self.message
        return self.message + "\n" + "\n".join(self.stderr_tail)


class EncodeExitNonZero(EncodeFailure):
    """Encoder exited with a non-zero status"""


class EncodeTimeout(EncodeFailure):
    """Encoder exceeded its time budget and was killed"""


class EncodeCancelled(EncodeFailure):
    """Encoder was aborted because a sibling render failed or the job was cancelled"""


class InvalidGraph(EncodeFailure):
    """Filter graph failed port validation before reaching the encoder"""
