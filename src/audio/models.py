"""Data models for audio handled by one pipeline request."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AudioAsset:
    """Raw uploaded bytes and the scratch file they were written to.

    The container/codec is unknown until ffmpeg decodes it.
    """

    data: bytes
    path: Path

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class AudioChunk:
    """One fixed-duration segment of the cleaned audio.

    ``path.name`` carries the zero-padded ``index`` so sorting file names
    lexicographically recovers temporal order.
    """

    index: int
    path: Path
    start_sec: float
    duration_sec: float
    silences: list[tuple[float, float]] = field(default_factory=list)

    @property
    def end_sec(self) -> float:
        return self.start_sec + self.duration_sec

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()
