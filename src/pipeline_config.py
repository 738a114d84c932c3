"""Pipeline configuration: language/stage enums and the PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.config import Settings

MIN_CHUNK_DURATION_SEC = 10
MAX_CHUNK_DURATION_SEC = 50


class Language(StrEnum):
    """Transcript languages with a tuned token heuristic and localized prompts."""

    PERSIAN = "fa"
    ENGLISH = "en"


class PipelineStage(StrEnum):
    """Lifecycle of one meeting-processing request."""

    UPLOADED = "uploaded"
    PREPROCESSED = "preprocessed"
    CHUNKED = "chunked"
    TRANSCRIBING = "transcribing"
    TRANSCRIPT_READY = "transcript_ready"
    SUMMARIZING = "summarizing"
    MINUTES_READY = "minutes_ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable per-request configuration for the meeting pipeline.

    Defaults mirror :class:`src.config.Settings`; request overrides (chunk
    duration, sample rate, language, minutes template, topic list) are applied
    through :meth:`from_settings`.
    """

    chunk_duration_sec: int = 30
    sample_rate: int = 16000
    channels: int = 1
    language: Language = Language.PERSIAN

    transcription_max_retries: int = 3
    primary_speech_model: str = "universal"
    fallback_speech_model: str = "whisper-1"
    transcription_prompt: str = ""
    transcription_temperature: float = 0.41
    diarize: bool = True

    summarization_model: str = "claude-sonnet-4-20250514"
    summarization_temperature: float = 0.1
    summarization_max_output_tokens: int = 2000
    max_tokens_per_chunk: int = 8000
    overlap_tokens: int = 500

    template: str | None = None
    topics: tuple[str, ...] = field(default_factory=tuple)

    request_timeout_sec: float = 120.0
    max_concurrency: int = 1
    min_call_interval_sec: float = 0.0
    retry_base_delay_sec: float = 1.0

    def __post_init__(self) -> None:
        if not MIN_CHUNK_DURATION_SEC <= self.chunk_duration_sec <= MAX_CHUNK_DURATION_SEC:
            raise ValueError(
                f"chunk_duration_sec must be between {MIN_CHUNK_DURATION_SEC} and "
                f"{MAX_CHUNK_DURATION_SEC}, got {self.chunk_duration_sec}"
            )
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels <= 0:
            raise ValueError(f"channels must be positive, got {self.channels}")
        if self.transcription_max_retries < 1:
            raise ValueError("transcription_max_retries must be at least 1")
        if self.max_tokens_per_chunk <= 0:
            raise ValueError("max_tokens_per_chunk must be positive")
        if not 0 <= self.overlap_tokens < self.max_tokens_per_chunk:
            raise ValueError("overlap_tokens must be in [0, max_tokens_per_chunk)")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        # Normalise plain strings handed in by callers
        object.__setattr__(self, "language", Language(self.language))
        object.__setattr__(self, "topics", tuple(t.strip() for t in self.topics if t.strip()))

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> PipelineConfig:
        """Build a config from application settings plus per-request overrides.

        ``None`` overrides are ignored so optional request fields can be passed
        straight through.
        """
        values: dict[str, Any] = {
            "chunk_duration_sec": settings.chunk_duration_sec,
            "sample_rate": settings.sample_rate,
            "channels": settings.channels,
            "language": settings.language,
            "transcription_max_retries": settings.transcription_max_retries,
            "primary_speech_model": settings.primary_speech_model,
            "fallback_speech_model": settings.fallback_speech_model,
            "transcription_prompt": settings.transcription_prompt,
            "transcription_temperature": settings.transcription_temperature,
            "summarization_model": settings.summarization_model,
            "summarization_temperature": settings.summarization_temperature,
            "summarization_max_output_tokens": settings.summarization_max_output_tokens,
            "max_tokens_per_chunk": settings.max_tokens_per_chunk,
            "overlap_tokens": settings.overlap_tokens,
            "request_timeout_sec": settings.request_timeout_sec,
            "max_concurrency": settings.max_concurrency,
            "min_call_interval_sec": settings.min_call_interval_sec,
            "retry_base_delay_sec": settings.retry_base_delay_sec,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
