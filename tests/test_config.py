"""Tests for Settings, PipelineConfig and the language/stage enums."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config import Settings
from src.pipeline_config import Language, PipelineConfig, PipelineStage

# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestLanguage:
    def test_values(self) -> None:
        assert Language.PERSIAN.value == "fa"
        assert Language.ENGLISH.value == "en"

    def test_from_string(self) -> None:
        assert Language("fa") is Language.PERSIAN
        assert Language("en") is Language.ENGLISH

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            Language("de")

    def test_is_str_subclass(self) -> None:
        """Enum values behave as plain strings for JSON serialization."""
        assert isinstance(Language.PERSIAN, str)


class TestPipelineStage:
    def test_lifecycle_values(self) -> None:
        assert [stage.value for stage in PipelineStage] == [
            "uploaded",
            "preprocessed",
            "chunked",
            "transcribing",
            "transcript_ready",
            "summarizing",
            "minutes_ready",
            "failed",
        ]


# ---------------------------------------------------------------------------
# PipelineConfig tests
# ---------------------------------------------------------------------------


class TestPipelineConfig:
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        assert cfg.chunk_duration_sec == 30
        assert cfg.sample_rate == 16000
        assert cfg.channels == 1
        assert cfg.language is Language.PERSIAN
        assert cfg.transcription_max_retries == 3
        assert cfg.max_tokens_per_chunk == 8000
        assert cfg.overlap_tokens == 500
        assert cfg.max_concurrency == 1

    def test_immutable(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.chunk_duration_sec = 20  # type: ignore[misc]

    def test_language_string_normalised(self) -> None:
        cfg = PipelineConfig(language="en")  # type: ignore[arg-type]
        assert cfg.language is Language.ENGLISH

    def test_topics_are_stripped(self) -> None:
        cfg = PipelineConfig(topics=(" budget ", "", "hiring"))
        assert cfg.topics == ("budget", "hiring")

    @pytest.mark.parametrize("duration", [5, 9, 51, 120])
    def test_chunk_duration_out_of_range(self, duration: int) -> None:
        with pytest.raises(ValueError, match="chunk_duration_sec"):
            PipelineConfig(chunk_duration_sec=duration)

    @pytest.mark.parametrize("duration", [10, 30, 50])
    def test_chunk_duration_in_range(self, duration: int) -> None:
        assert PipelineConfig(chunk_duration_sec=duration).chunk_duration_sec == duration

    def test_overlap_must_be_smaller_than_chunk(self) -> None:
        with pytest.raises(ValueError, match="overlap_tokens"):
            PipelineConfig(max_tokens_per_chunk=500, overlap_tokens=500)

    def test_invalid_language(self) -> None:
        with pytest.raises(ValueError):
            PipelineConfig(language="xx")  # type: ignore[arg-type]

    def test_invalid_concurrency(self) -> None:
        with pytest.raises(ValueError):
            PipelineConfig(max_concurrency=0)


class TestFromSettings:
    def _settings(self, **kwargs: object) -> Settings:
        return Settings(_env_file=None, **kwargs)  # type: ignore[call-arg]

    def test_copies_settings(self) -> None:
        settings = self._settings(chunk_duration_sec=20, language="en", max_concurrency=2)
        cfg = PipelineConfig.from_settings(settings)
        assert cfg.chunk_duration_sec == 20
        assert cfg.language is Language.ENGLISH
        assert cfg.max_concurrency == 2

    def test_overrides_win(self) -> None:
        cfg = PipelineConfig.from_settings(
            self._settings(),
            chunk_duration_sec=45,
            sample_rate=8000,
            template="## Minutes",
            topics=("budget",),
        )
        assert cfg.chunk_duration_sec == 45
        assert cfg.sample_rate == 8000
        assert cfg.template == "## Minutes"
        assert cfg.topics == ("budget",)

    def test_none_overrides_ignored(self) -> None:
        cfg = PipelineConfig.from_settings(self._settings(), chunk_duration_sec=None, language=None)
        assert cfg.chunk_duration_sec == 30
        assert cfg.language is Language.PERSIAN

    def test_invalid_override_raises(self) -> None:
        with pytest.raises(ValueError):
            PipelineConfig.from_settings(self._settings(), chunk_duration_sec=5)


class TestSettings:
    def test_chunk_duration_validated(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, chunk_duration_sec=5)  # type: ignore[call-arg]

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.ffmpeg_bin == "ffmpeg"
        assert settings.fallback_speech_model == "whisper-1"
        assert settings.transcription_temperature == pytest.approx(0.41)
