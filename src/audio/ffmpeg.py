"""Thin subprocess wrappers around the ffmpeg/ffprobe binaries."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from pathlib import Path

from src.config import settings
from src.pipeline.errors import AudioProcessingError

logger = logging.getLogger(__name__)

_MEAN_VOLUME_RE = re.compile(r"mean_volume:\s*(-?\d+(?:\.\d+)?) dB")
_SILENCE_START_RE = re.compile(r"silence_start:\s*(-?\d+(?:\.\d+)?)")
_SILENCE_END_RE = re.compile(r"silence_end:\s*(-?\d+(?:\.\d+)?)")


def ffmpeg_bin() -> str:
    return settings.ffmpeg_bin


def ffprobe_bin() -> str:
    return settings.ffprobe_bin


def run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    """Run an ffmpeg-family command, raising :class:`AudioProcessingError` on failure.

    ffmpeg writes its diagnostics (volumedetect, silencedetect) to stderr, so the
    completed process is returned for callers that parse it.
    """
    logger.debug("Running %s", " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as exc:
        raise AudioProcessingError(f"{cmd[0]} not found; install ffmpeg") from exc
    except subprocess.CalledProcessError as exc:
        tail = (exc.stderr or "").strip().splitlines()[-3:]
        raise AudioProcessingError(
            f"{Path(cmd[0]).name} exited with {exc.returncode}: {' | '.join(tail)}"
        ) from exc


def probe_duration_seconds(source: Path) -> float:
    """Return the container duration of *source* in seconds via ffprobe."""
    cmd = [
        ffprobe_bin(),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(source),
    ]
    completed = run(cmd)
    try:
        payload = json.loads(completed.stdout or "{}")
        duration = float(payload.get("format", {}).get("duration", 0) or 0)
    except (ValueError, AttributeError) as exc:
        raise AudioProcessingError(f"Could not read duration of {source.name}") from exc
    if duration <= 0:
        raise AudioProcessingError(f"Could not read duration of {source.name}")
    return duration


def parse_mean_volume(stderr: str) -> float | None:
    """Extract ``mean_volume`` (dB) from volumedetect output, if present."""
    match = _MEAN_VOLUME_RE.search(stderr)
    return float(match.group(1)) if match else None


def parse_silences(stderr: str) -> list[tuple[float, float | None]]:
    """Pair up silencedetect ``silence_start``/``silence_end`` markers in order.

    A trailing silence that runs to the end of the input has no end marker and
    is reported with ``None``.
    """
    silences: list[tuple[float, float | None]] = []
    pending: float | None = None
    for line in stderr.splitlines():
        start = _SILENCE_START_RE.search(line)
        if start:
            pending = max(0.0, float(start.group(1)))
            continue
        end = _SILENCE_END_RE.search(line)
        if end and pending is not None:
            silences.append((pending, float(end.group(1))))
            pending = None
    if pending is not None:
        silences.append((pending, None))
    return silences
