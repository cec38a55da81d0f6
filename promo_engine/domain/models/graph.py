# -*- coding: utf-8 -*-
"""
Typed filter graph description

A graph is a list of media inputs plus chains of filters connected by named
ports. It is plain data: serialization to FFmpeg syntax happens only in the
CLI builder.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

InputKind = Literal["image", "video", "audio", "lavfi"]


def format_value(value: Any) -> str:
    """Stable text form for filter argument values"""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        text = f"{value:.6f}".rstrip("0").rstrip(".")
        return text if text not in ("", "-0") else "0"
    return str(value)


@dataclass(frozen=True)
class Filter:
    """One FFmpeg filter with ordered key/value or positional args"""

    name: str
    args: tuple[tuple[Optional[str], Any], ...] = ()

    @classmethod
    def of(cls, name: str, *positional: Any, **named: Any) -> "Filter":
        args = tuple((None, v) for v in positional) + tuple(named.items())
        return cls(name, args)

    def to_string(self) -> str:
        if not self.args:
            return self.name
        parts = [format_value(v) if k is None else f"{k}={format_value(v)}" for k, v in self.args]
        return f"{self.name}=" + ":".join(parts)

    def to_dict(self) -> dict:
        return {"name": self.name, "args": [[k, format_value(v)] for k, v in self.args]}


@dataclass(frozen=True)
class FilterChain:
    """Linear run of filters reading named ports and writing named ports"""

    inputs: tuple[str, ...]
    filters: tuple[Filter, ...]
    outputs: tuple[str, ...]

    def to_string(self) -> str:
        head = "".join(f"[{p}]" for p in self.inputs)
        tail = "".join(f"[{p}]" for p in self.outputs)
        return head + ",".join(f.to_string() for f in self.filters) + tail

    def to_dict(self) -> dict:
        return {
            "inputs": list(self.inputs),
            "filters": [f.to_dict() for f in self.filters],
            "outputs": list(self.outputs),
        }


@dataclass(frozen=True)
class MediaInput:
    """An encoder input: a file or a lavfi source plus its input options"""

    source: str
    kind: InputKind
    options: tuple[str, ...] = ()

    @property
    def path(self) -> Optional[Path]:
        return None if self.kind == "lavfi" else Path(self.source)

    def to_dict(self) -> dict:
        return {"source": self.source, "kind": self.kind, "options": list(self.options)}


@dataclass(frozen=True)
class GraphDescription:
    """Complete render description handed to the encoder invoker"""

    inputs: tuple[MediaInput, ...]
    chains: tuple[FilterChain, ...]
    video_out: str
    audio_out: Optional[str]
    duration: float
    fps: int = 30

    def filter_complex(self) -> str:
        return ";".join(chain.to_string() for chain in self.chains)

    def to_dict(self) -> dict:
        return {
            "inputs": [i.to_dict() for i in self.inputs],
            "chains": [c.to_dict() for c in self.chains],
            "video_out": self.video_out,
            "audio_out": self.audio_out,
            "duration": format_value(float(self.duration)),
            "fps": self.fps,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)
