from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    assemblyai_api_key: str = ""  # Primary speech-to-text
    openai_api_key: str = ""  # Whisper fallback speech-to-text
    anthropic_api_key: str = ""  # Summarisation

    # Logging
    log_level: str = "INFO"

    # ffmpeg binaries
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # Audio
    chunk_duration_sec: int = Field(default=30, ge=10, le=50)
    sample_rate: int = 16000
    channels: int = 1
    language: str = "fa"

    # Transcription
    transcription_max_retries: int = Field(default=3, ge=1)
    primary_speech_model: str = "universal"
    fallback_speech_model: str = "whisper-1"
    transcription_prompt: str = (
        "This is a meeting transcript. Please transcribe it without any additional "
        "information. Do not make guesses."
    )
    transcription_temperature: float = 0.41

    # Summarisation
    summarization_model: str = "claude-sonnet-4-20250514"
    summarization_temperature: float = 0.1
    summarization_max_output_tokens: int = 2000
    max_tokens_per_chunk: int = Field(default=8000, gt=0)
    overlap_tokens: int = Field(default=500, ge=0)

    # External calls
    request_timeout_sec: float = 120.0
    max_concurrency: int = Field(default=1, ge=1)
    min_call_interval_sec: float = 0.0
    retry_base_delay_sec: float = 1.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
