"""End-to-end tests for MeetingProcessor with faked ffmpeg steps and providers."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from src.audio.models import AudioChunk
from src.config import Settings
from src.pipeline.errors import AudioProcessingError, ProviderNotConfiguredError, StageTransitionError
from src.pipeline.processor import MeetingProcessor, StageTracker, build_processor
from src.pipeline.scratch import ScratchSpace
from src.pipeline_config import Language, PipelineConfig, PipelineStage
from src.summarization.orchestrator import SummarizationOrchestrator
from src.transcription.models import CHUNK_FAILED_SENTINEL
from src.transcription.orchestrator import TranscriptionOrchestrator
from src.transcription.providers import AssemblyAIProvider, WhisperProvider

MINUTES = "#### ✅ Decisions Made\n- Ship it"


class FakePreprocessor:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.scratch_dir: Path | None = None

    def preprocess(self, input_path: Path, output_path: Path) -> Path:
        self.scratch_dir = input_path.parent
        assert input_path.read_bytes() == b"raw-audio"
        if self.error is not None:
            raise self.error
        output_path.write_bytes(b"cleaned")
        return output_path


class FakeChunker:
    def __init__(self, count: int = 3, error: Exception | None = None) -> None:
        self.count = count
        self.error = error

    def chunk(self, audio_path: Path, chunk_dir: Path) -> list[AudioChunk]:
        if self.error is not None:
            raise self.error
        chunk_dir.mkdir()
        chunks = []
        for index in range(self.count):
            path = chunk_dir / f"chunk_{index:03d}.wav"
            path.write_bytes(f"chunk-{index}".encode())
            chunks.append(AudioChunk(index=index, path=path, start_sec=index * 30.0, duration_sec=30.0))
        return chunks


class FakeProvider:
    name = "fake-stt"

    def __init__(self, failing: set[bytes] | None = None) -> None:
        self.failing = failing or set()

    async def transcribe(self, audio: bytes, *, language: str, diarize: bool = True) -> Any:
        if audio in self.failing:
            raise ConnectionError("provider down")
        return {"text": f"said {audio.decode()}."}


class BlockingProvider:
    name = "blocking"

    def __init__(self, started: asyncio.Event) -> None:
        self.started = started

    async def transcribe(self, audio: bytes, *, language: str, diarize: bool = True) -> Any:
        self.started.set()
        await asyncio.sleep(60)
        return "never"


class FakeCompletionClient:
    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, system_prompt: str, user_prompt: str, model: str, temperature: float) -> str:
        self.calls += 1
        return MINUTES


def _processor(
    preprocessor: FakePreprocessor | None = None,
    chunker: FakeChunker | None = None,
    provider: Any = None,
) -> MeetingProcessor:
    return MeetingProcessor(
        preprocessor or FakePreprocessor(),  # type: ignore[arg-type]
        chunker or FakeChunker(),  # type: ignore[arg-type]
        TranscriptionOrchestrator(provider or FakeProvider(), language=Language.ENGLISH, max_retries=2, base_delay=0),
        SummarizationOrchestrator(FakeCompletionClient(), language=Language.ENGLISH),
    )


class TestProcessMeeting:
    def test_success(self) -> None:
        preprocessor = FakePreprocessor()
        stages: list[PipelineStage] = []
        result = asyncio.run(
            _processor(preprocessor).process_meeting(b"raw-audio", on_stage=stages.append)
        )

        assert result.transcript == "said chunk-0.\n\nsaid chunk-1.\n\nsaid chunk-2."
        assert result.markdown == MINUTES
        assert result.transcript_ready
        assert result.meeting_minutes_ready
        assert result.stage is PipelineStage.MINUTES_READY
        assert result.failed_chunks == []
        assert stages == [
            PipelineStage.UPLOADED,
            PipelineStage.PREPROCESSED,
            PipelineStage.CHUNKED,
            PipelineStage.TRANSCRIBING,
            PipelineStage.TRANSCRIPT_READY,
            PipelineStage.SUMMARIZING,
            PipelineStage.MINUTES_READY,
        ]
        assert preprocessor.scratch_dir is not None
        assert not preprocessor.scratch_dir.exists()

    def test_failed_chunk_degrades(self) -> None:
        result = asyncio.run(_processor(provider=FakeProvider({b"chunk-1"})).process_meeting(b"raw-audio"))
        assert result.transcript.split("\n\n") == ["said chunk-0.", CHUNK_FAILED_SENTINEL, "said chunk-2."]
        assert result.failed_chunks == [1]
        assert result.markdown
        assert result.stage is PipelineStage.MINUTES_READY

    def test_every_chunk_failing_still_returns_markdown(self) -> None:
        provider = FakeProvider({b"chunk-0", b"chunk-1"})
        result = asyncio.run(_processor(chunker=FakeChunker(2), provider=provider).process_meeting(b"raw-audio"))
        assert result.transcript == f"{CHUNK_FAILED_SENTINEL}\n\n{CHUNK_FAILED_SENTINEL}"
        assert result.used_fallback_summary
        assert "Automatic summary unavailable" in result.markdown

    def test_preprocessing_error_is_fatal(self) -> None:
        preprocessor = FakePreprocessor(error=AudioProcessingError("Invalid data found"))
        stages: list[PipelineStage] = []
        with pytest.raises(AudioProcessingError, match="Invalid data"):
            asyncio.run(_processor(preprocessor).process_meeting(b"raw-audio", on_stage=stages.append))
        assert stages[-1] is PipelineStage.FAILED
        assert not preprocessor.scratch_dir.exists()  # type: ignore[union-attr]

    def test_filesystem_error_becomes_audio_error(self) -> None:
        preprocessor = FakePreprocessor()
        stages: list[PipelineStage] = []
        processor = _processor(preprocessor, chunker=FakeChunker(error=PermissionError("read-only")))
        with pytest.raises(AudioProcessingError, match="read-only"):
            asyncio.run(processor.process_meeting(b"raw-audio", on_stage=stages.append))
        assert stages == [PipelineStage.UPLOADED, PipelineStage.PREPROCESSED, PipelineStage.FAILED]
        assert not preprocessor.scratch_dir.exists()  # type: ignore[union-attr]

    def test_cancellation_cleans_up(self) -> None:
        preprocessor = FakePreprocessor()

        async def main() -> None:
            started = asyncio.Event()
            processor = _processor(preprocessor, provider=BlockingProvider(started))
            task = asyncio.create_task(processor.process_meeting(b"raw-audio"))
            await started.wait()
            assert preprocessor.scratch_dir is not None and preprocessor.scratch_dir.exists()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())
        assert not preprocessor.scratch_dir.exists()  # type: ignore[union-attr]


class TestStageTracker:
    def test_rejects_skipping_stages(self) -> None:
        tracker = StageTracker()
        with pytest.raises(StageTransitionError):
            tracker.advance(PipelineStage.MINUTES_READY)

    def test_failed_not_reachable_after_transcription_starts(self) -> None:
        tracker = StageTracker()
        for stage in (PipelineStage.PREPROCESSED, PipelineStage.CHUNKED, PipelineStage.TRANSCRIBING):
            tracker.advance(stage)
        with pytest.raises(StageTransitionError):
            tracker.advance(PipelineStage.FAILED)

    def test_history(self) -> None:
        tracker = StageTracker()
        tracker.advance(PipelineStage.FAILED)
        assert tracker.history == [PipelineStage.UPLOADED, PipelineStage.FAILED]


class TestScratchSpace:
    def test_context_manager_removes_tree(self, tmp_path: Path) -> None:
        with ScratchSpace(base_dir=tmp_path) as scratch:
            nested = scratch.path("chunks")
            nested.mkdir()
            (nested / "chunk_000.wav").write_bytes(b"x")
            root = scratch.root
        assert root is not None
        assert not root.exists()

    def test_removed_on_error(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            with ScratchSpace(base_dir=tmp_path) as scratch:
                root = scratch.root
                raise RuntimeError("boom")
        assert not root.exists()  # type: ignore[union-attr]

    def test_cleanup_idempotent(self, tmp_path: Path) -> None:
        scratch = ScratchSpace(base_dir=tmp_path)
        scratch.open()
        scratch.cleanup()
        scratch.cleanup()
        assert list(tmp_path.iterdir()) == []

    def test_path_requires_open(self) -> None:
        with pytest.raises(RuntimeError):
            ScratchSpace().path("x")

    def test_unusable_base_dir(self, tmp_path: Path) -> None:
        with pytest.raises(AudioProcessingError):
            ScratchSpace(base_dir=tmp_path / "missing").open()


class TestBuildProcessor:
    def _settings(self, **keys: str) -> Settings:
        values = {"assemblyai_api_key": "", "openai_api_key": "", "anthropic_api_key": ""}
        values.update(keys)
        return Settings(_env_file=None, **values)  # type: ignore[call-arg]

    def test_missing_keys(self) -> None:
        with pytest.raises(ProviderNotConfiguredError, match="ASSEMBLYAI_API_KEY"):
            build_processor(PipelineConfig(), self._settings(anthropic_api_key="a"))
        with pytest.raises(ProviderNotConfiguredError, match="ANTHROPIC_API_KEY"):
            build_processor(PipelineConfig(), self._settings(assemblyai_api_key="a"))

    def test_wires_providers(self) -> None:
        settings = self._settings(assemblyai_api_key="a", anthropic_api_key="b", openai_api_key="c")
        processor = build_processor(PipelineConfig(chunk_duration_sec=20, request_timeout_sec=45.0), settings)
        assert isinstance(processor.transcriber.primary, AssemblyAIProvider)
        assert isinstance(processor.transcriber.fallback, WhisperProvider)
        assert processor.chunker.chunk_duration_sec == 20

    def test_request_timeout_reaches_every_client(self) -> None:
        settings = self._settings(assemblyai_api_key="a", anthropic_api_key="b", openai_api_key="c")
        processor = build_processor(PipelineConfig(request_timeout_sec=45.0), settings)
        assert processor.transcriber.primary.http_timeout == 45.0
        assert processor.transcriber.fallback.timeout == 45.0
        assert processor.summarizer.client.timeout == 45.0

    def test_whisper_optional(self) -> None:
        settings = self._settings(assemblyai_api_key="a", anthropic_api_key="b")
        processor = build_processor(PipelineConfig(), settings)
        assert processor.transcriber.fallback is None
