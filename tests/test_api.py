"""Tests for API endpoints (no external API keys or ffmpeg required)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routes.minutes import parse_topics
from src.pipeline.errors import AudioProcessingError, ProviderNotConfiguredError
from src.pipeline.processor import ProcessingResult
from src.pipeline_config import Language, PipelineStage

client = TestClient(app)

AUDIO = b"\xff\xfb\x90\x00" + b"\x00" * 100  # fake MP3 binary header


def _fake_processor(result: ProcessingResult | None = None, error: Exception | None = None) -> MagicMock:
    processor = MagicMock()
    if error is not None:
        processor.process_meeting = AsyncMock(side_effect=error)
    else:
        processor.process_meeting = AsyncMock(
            return_value=result or ProcessingResult(transcript="سلام", markdown="#### ✅ تصمیمات\n- تایید")
        )
    return processor


def _post(data: dict[str, str] | None = None, content: bytes = AUDIO):
    return client.post(
        "/api/meeting-minutes",
        files={"audio": ("meeting.mp3", content, "audio/mpeg")},
        data=data or {},
    )


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_requires_audio() -> None:
    response = client.post("/api/meeting-minutes")
    assert response.status_code == 422


class TestMeetingMinutesEndpoint:
    def test_success(self) -> None:
        processor = _fake_processor()
        with patch("src.api.routes.minutes.build_processor", return_value=processor):
            response = _post()
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["transcript"] == "سلام"
        assert body["markdown"].startswith("#### ✅")
        assert body["transcript_ready"] is True
        assert body["meeting_minutes_ready"] is True
        assert body["stage"] == "minutes_ready"
        processor.process_meeting.assert_awaited_once_with(AUDIO)

    def test_overrides_reach_config(self) -> None:
        with patch("src.api.routes.minutes.build_processor", return_value=_fake_processor()) as build:
            response = _post(
                {
                    "chunk_duration": "20",
                    "sample_rate": "8000",
                    "language": "en",
                    "template": "## Custom",
                    "topics": "budget, hiring",
                }
            )
        assert response.status_code == 200, response.text
        config = build.call_args.args[0]
        assert config.chunk_duration_sec == 20
        assert config.sample_rate == 8000
        assert config.language is Language.ENGLISH
        assert config.template == "## Custom"
        assert config.topics == ("budget", "hiring")

    def test_partial_failure_reported(self) -> None:
        result = ProcessingResult(
            transcript="a\n\n[CHUNK FAILED]",
            markdown="fallback",
            failed_chunks=[1],
            used_fallback_summary=True,
            stage=PipelineStage.MINUTES_READY,
        )
        with patch("src.api.routes.minutes.build_processor", return_value=_fake_processor(result)):
            body = _post().json()
        assert body["failed_chunks"] == [1]
        assert body["used_fallback_summary"] is True

    def test_invalid_chunk_duration_returns_422(self) -> None:
        with patch("src.api.routes.minutes.build_processor") as build:
            response = _post({"chunk_duration": "5"})
        assert response.status_code == 422
        assert "chunk_duration_sec" in response.json()["detail"]
        build.assert_not_called()

    def test_invalid_language_returns_422(self) -> None:
        with patch("src.api.routes.minutes.build_processor") as build:
            response = _post({"language": "klingon"})
        assert response.status_code == 422
        build.assert_not_called()

    def test_too_large_returns_413(self) -> None:
        with patch("src.api.routes.minutes.MAX_UPLOAD_BYTES", 10):
            response = _post()
        assert response.status_code == 413

    def test_empty_upload_returns_422(self) -> None:
        response = _post(content=b"")
        assert response.status_code == 422

    def test_not_configured_returns_501(self) -> None:
        with patch(
            "src.api.routes.minutes.build_processor",
            side_effect=ProviderNotConfiguredError("Missing configuration: ASSEMBLYAI_API_KEY"),
        ):
            response = _post()
        assert response.status_code == 501
        assert "not configured" in response.json()["detail"].lower()

    def test_bad_audio_returns_422(self) -> None:
        processor = _fake_processor(error=AudioProcessingError("ffmpeg exited with 1: Invalid data"))
        with patch("src.api.routes.minutes.build_processor", return_value=processor):
            response = _post()
        assert response.status_code == 422
        assert "Invalid data" in response.json()["detail"]


class TestParseTopics:
    def test_comma_and_newline(self) -> None:
        assert parse_topics("budget, hiring\nroadmap") == ("budget", "hiring", "roadmap")

    def test_persian_comma(self) -> None:
        assert parse_topics("بودجه، استخدام") == ("بودجه", "استخدام")

    def test_empty(self) -> None:
        assert parse_topics(None) == ()
        assert parse_topics(" , ") == ()
