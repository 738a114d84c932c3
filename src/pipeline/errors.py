"""Error taxonomy for the meeting pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for errors raised by the meeting pipeline."""


class AudioProcessingError(PipelineError):
    """Malformed audio, ffmpeg failure or scratch-file fault. Not retryable."""


class ProviderNotConfiguredError(PipelineError):
    """A provider required by the pipeline has no API key configured."""


class RetryExhaustedError(PipelineError):
    """Every primary attempt and the fallback call failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label or 'call'} failed after {attempts} attempts: {last_error}")


class StageTransitionError(PipelineError):
    """A pipeline stage was entered out of order."""
