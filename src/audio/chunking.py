"""Time-based segmentation of cleaned audio into ordered chunks."""

from __future__ import annotations

import logging
import math
from pathlib import Path

from src.audio.ffmpeg import ffmpeg_bin, parse_silences, probe_duration_seconds, run
from src.audio.models import AudioChunk
from src.pipeline.errors import AudioProcessingError

logger = logging.getLogger(__name__)

SILENCE_DETECT = "silencedetect=n=-50dB:d=0.3"

# Guards against float noise producing an empty trailing chunk (90.0000001s / 30s)
_DURATION_EPSILON = 1e-6


def expected_chunk_count(duration_sec: float, chunk_duration_sec: float) -> int:
    """``ceil(L / D)``, with at least one chunk for any source."""
    if chunk_duration_sec <= 0:
        raise ValueError("chunk_duration_sec must be positive")
    return max(1, math.ceil(duration_sec / chunk_duration_sec - _DURATION_EPSILON))


def nominal_durations(duration_sec: float, chunk_duration_sec: float) -> list[float]:
    """Per-chunk durations: full chunks followed by a possibly shorter last one.

    Example: 100s at 30s per chunk gives ``[30, 30, 30, 10]``.
    """
    count = expected_chunk_count(duration_sec, chunk_duration_sec)
    durations = [float(chunk_duration_sec)] * (count - 1)
    durations.append(max(0.0, round(duration_sec - chunk_duration_sec * (count - 1), 3)))
    return durations


def chunk_pad_width(count: int) -> int:
    """Zero-padding width so file names sort in temporal order."""
    return max(3, len(str(max(0, count - 1))))


class AudioChunker:
    """Split cleaned audio into fixed-duration, gapless WAV segments."""

    def __init__(self, chunk_duration_sec: int = 30, sample_rate: int = 16000, channels: int = 1) -> None:
        if chunk_duration_sec <= 0:
            raise ValueError("chunk_duration_sec must be positive")
        self.chunk_duration_sec = chunk_duration_sec
        self.sample_rate = sample_rate
        self.channels = channels

    def chunk(self, audio_path: Path, chunk_dir: Path) -> list[AudioChunk]:
        """Segment *audio_path* into ``chunk_dir/chunk_NNN.wav`` files.

        Segmentation is purely time-based; silence detection only annotates
        the resulting chunks.

        Raises:
            AudioProcessingError: ffmpeg fails or produces no segments.
        """
        duration = probe_duration_seconds(audio_path)
        expected = expected_chunk_count(duration, self.chunk_duration_sec)
        width = chunk_pad_width(expected)

        try:
            chunk_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AudioProcessingError(f"Cannot create chunk directory: {exc}") from exc

        cmd = [
            ffmpeg_bin(),
            "-y",
            "-hide_banner",
            "-i",
            str(audio_path),
            "-vn",
            "-af",
            SILENCE_DETECT,
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-c:a",
            "pcm_s16le",
            "-f",
            "segment",
            "-segment_time",
            str(self.chunk_duration_sec),
            "-reset_timestamps",
            "1",
            "-segment_format",
            "wav",
            str(chunk_dir / f"chunk_%0{width}d.wav"),
        ]
        completed = run(cmd)

        paths = sorted(p for p in chunk_dir.iterdir() if p.suffix == ".wav")
        if not paths:
            raise AudioProcessingError("Audio segmentation produced no chunks")
        if len(paths) != expected:
            logger.warning("Expected %d chunks for %.2fs, ffmpeg wrote %d", expected, duration, len(paths))

        silences = parse_silences(completed.stderr or "")
        chunks = self._plan(paths, duration, silences)
        logger.info("Split %.2fs of audio into %d chunks of %ds", duration, len(chunks), self.chunk_duration_sec)
        return chunks

    def _plan(
        self,
        paths: list[Path],
        duration: float,
        silences: list[tuple[float, float | None]],
    ) -> list[AudioChunk]:
        chunks: list[AudioChunk] = []
        for index, path in enumerate(paths):
            start = float(index * self.chunk_duration_sec)
            length = max(0.0, min(float(self.chunk_duration_sec), duration - start))
            chunks.append(
                AudioChunk(
                    index=index,
                    path=path,
                    start_sec=start,
                    duration_sec=round(length, 3),
                    silences=_silences_within(silences, start, start + length, duration),
                )
            )
        return chunks


def _silences_within(
    silences: list[tuple[float, float | None]],
    start: float,
    end: float,
    total: float,
) -> list[tuple[float, float]]:
    """Clip absolute silence intervals to ``[start, end)``, relative to *start*."""
    clipped: list[tuple[float, float]] = []
    for s_start, s_end in silences:
        s_end = total if s_end is None else s_end
        lo, hi = max(s_start, start), min(s_end, end)
        if hi > lo:
            clipped.append((round(lo - start, 3), round(hi - start, 3)))
    return clipped
