"""Audio clean-up before speech-to-text: filtering, gain boost and resampling."""

from __future__ import annotations

import logging
import math
from pathlib import Path

from src.audio.ffmpeg import ffmpeg_bin, parse_mean_volume, run
from src.pipeline.errors import AudioProcessingError

logger = logging.getLogger(__name__)

# ffmpeg filter expressions, applied in this order
HIGHPASS = "highpass=f=200"
LOWPASS = "lowpass=f=3000"
DYNAMIC_NORMALIZE = "dynaudnorm"
DENOISE = "afftdn"
SILENCE_TRIM = "silenceremove=start_periods=1:start_silence=0.5:start_threshold=-50dB"

LOUDNESS_THRESHOLD_DB = -30.0
MAX_GAIN_BOOST_DB = 10


def gain_boost_db(mean_volume: float, threshold: float = LOUDNESS_THRESHOLD_DB) -> int:
    """Gain (dB) to add for quiet recordings: half the deficit, capped at 10 dB."""
    if mean_volume >= threshold:
        return 0
    return min(MAX_GAIN_BOOST_DB, math.floor((threshold - mean_volume) / 2 + 0.5))


def build_filter_chain(boost_db: int = 0) -> str:
    """Return the comma-joined ``-af`` chain, ending with the optional gain boost."""
    filters = [HIGHPASS, LOWPASS, DYNAMIC_NORMALIZE, DENOISE, SILENCE_TRIM]
    if boost_db > 0:
        filters.append(f"volume={boost_db}dB")
    return ",".join(filters)


class AudioPreprocessor:
    """Denoise, normalise, trim and resample raw audio into mono PCM WAV."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels

    def probe_mean_volume(self, input_path: Path) -> float:
        """Measure mean volume without writing any output.

        Detection problems are not fatal: the threshold value is assumed so no
        boost gets applied.
        """
        cmd = [
            ffmpeg_bin(),
            "-hide_banner",
            "-nostats",
            "-i",
            str(input_path),
            "-vn",
            "-af",
            "volumedetect",
            "-f",
            "null",
            "-",
        ]
        try:
            completed = run(cmd)
        except AudioProcessingError as exc:
            logger.warning("Volume detection failed, assuming %.0f dB: %s", LOUDNESS_THRESHOLD_DB, exc)
            return LOUDNESS_THRESHOLD_DB

        mean_volume = parse_mean_volume(completed.stderr or "")
        if mean_volume is None:
            logger.warning("Could not detect mean volume, assuming %.0f dB", LOUDNESS_THRESHOLD_DB)
            return LOUDNESS_THRESHOLD_DB
        return mean_volume

    def preprocess(self, input_path: Path, output_path: Path) -> Path:
        """Write a cleaned copy of *input_path* to *output_path*.

        Raises:
            AudioProcessingError: The input is missing/empty or ffmpeg fails.
        """
        try:
            size = input_path.stat().st_size
        except OSError as exc:
            raise AudioProcessingError(f"Cannot read uploaded audio: {exc}") from exc
        if size == 0:
            raise AudioProcessingError("Uploaded audio is empty")

        mean_volume = self.probe_mean_volume(input_path)
        boost = gain_boost_db(mean_volume)
        filter_chain = build_filter_chain(boost)
        logger.info("mean_volume=%.1f dB, boost=%d dB, filters=%s", mean_volume, boost, filter_chain)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            ffmpeg_bin(),
            "-y",
            "-hide_banner",
            "-i",
            str(input_path),
            "-vn",
            "-af",
            filter_chain,
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-c:a",
            "pcm_s16le",
            str(output_path),
        ]
        run(cmd)

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise AudioProcessingError("Preprocessing produced no audio")
        logger.info("Preprocessed %s -> %s", input_path.name, output_path.name)
        return output_path
