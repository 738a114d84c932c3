"""End-to-end meeting pipeline: preprocess -> chunk -> transcribe -> summarise."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from src.audio.chunking import AudioChunker
from src.audio.models import AudioAsset, AudioChunk
from src.audio.preprocessing import AudioPreprocessor
from src.config import Settings, get_settings
from src.pipeline.errors import AudioProcessingError, ProviderNotConfiguredError, StageTransitionError
from src.pipeline.scratch import ScratchSpace
from src.pipeline_config import PipelineConfig, PipelineStage
from src.summarization.client import AnthropicCompletionClient, CompletionClient
from src.summarization.orchestrator import SummarizationOrchestrator
from src.transcription.orchestrator import TranscriptionOrchestrator
from src.transcription.providers import AssemblyAIProvider, SpeechToTextProvider, WhisperProvider

logger = logging.getLogger(__name__)

StageCallback = Callable[[PipelineStage], None]

# FAILED is only reachable while the audio is being prepared; later steps degrade in place
STAGE_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.UPLOADED: frozenset({PipelineStage.PREPROCESSED, PipelineStage.FAILED}),
    PipelineStage.PREPROCESSED: frozenset({PipelineStage.CHUNKED, PipelineStage.FAILED}),
    PipelineStage.CHUNKED: frozenset({PipelineStage.TRANSCRIBING}),
    PipelineStage.TRANSCRIBING: frozenset({PipelineStage.TRANSCRIPT_READY}),
    PipelineStage.TRANSCRIPT_READY: frozenset({PipelineStage.SUMMARIZING}),
    PipelineStage.SUMMARIZING: frozenset({PipelineStage.MINUTES_READY}),
    PipelineStage.MINUTES_READY: frozenset(),
    PipelineStage.FAILED: frozenset(),
}

UPLOAD_FILENAME = "upload.bin"
CLEANED_FILENAME = "cleaned.wav"
CHUNK_DIRNAME = "chunks"


@dataclass
class ProcessingResult:
    """What the caller receives: transcript, minutes markdown and progress flags."""

    transcript: str
    markdown: str
    transcript_ready: bool = True
    meeting_minutes_ready: bool = True
    stage: PipelineStage = PipelineStage.MINUTES_READY
    failed_chunks: list[int] = field(default_factory=list)
    used_fallback_summary: bool = False


class StageTracker:
    """Current pipeline stage, validated against :data:`STAGE_TRANSITIONS`."""

    def __init__(self, on_stage: StageCallback | None = None) -> None:
        self.stage = PipelineStage.UPLOADED
        self.history = [self.stage]
        self.on_stage = on_stage
        self._notify()

    def advance(self, stage: PipelineStage) -> None:
        if stage not in STAGE_TRANSITIONS[self.stage]:
            raise StageTransitionError(f"Cannot move from {self.stage} to {stage}")
        logger.info("Pipeline stage %s -> %s", self.stage, stage)
        self.stage = stage
        self.history.append(stage)
        self._notify()

    def _notify(self) -> None:
        if self.on_stage is not None:
            self.on_stage(self.stage)


class MeetingProcessor:
    """Turn one recorded meeting into a transcript and Markdown minutes.

    All scratch files live in a per-request :class:`ScratchSpace` that is
    removed on every exit path, including cancellation.
    """

    def __init__(
        self,
        preprocessor: AudioPreprocessor,
        chunker: AudioChunker,
        transcriber: TranscriptionOrchestrator,
        summarizer: SummarizationOrchestrator,
    ) -> None:
        self.preprocessor = preprocessor
        self.chunker = chunker
        self.transcriber = transcriber
        self.summarizer = summarizer

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        primary: SpeechToTextProvider,
        fallback: SpeechToTextProvider | None,
        client: CompletionClient,
    ) -> MeetingProcessor:
        return cls(
            AudioPreprocessor(sample_rate=config.sample_rate, channels=config.channels),
            AudioChunker(
                chunk_duration_sec=config.chunk_duration_sec,
                sample_rate=config.sample_rate,
                channels=config.channels,
            ),
            TranscriptionOrchestrator.from_config(config, primary, fallback),
            SummarizationOrchestrator.from_config(config, client),
        )

    async def process_meeting(
        self,
        audio_bytes: bytes,
        *,
        on_stage: StageCallback | None = None,
    ) -> ProcessingResult:
        """Run the full pipeline over *audio_bytes*.

        Args:
            audio_bytes: Raw recording in any container/codec ffmpeg can decode.
            on_stage: Optional callback invoked with every stage entered.

        Returns:
            A :class:`ProcessingResult`. Failed audio chunks appear as
            ``[CHUNK FAILED]`` markers and exhausted summarisation yields a
            labeled fallback document; neither raises.

        Raises:
            AudioProcessingError: The audio could not be saved, decoded,
                cleaned or segmented. The pipeline ends in ``FAILED``.
        """
        stages = StageTracker(on_stage)
        scratch = ScratchSpace()
        try:
            chunks = await self._prepare_audio(audio_bytes, scratch, stages)

            stages.advance(PipelineStage.TRANSCRIBING)
            transcript = await self.transcriber.transcribe_chunks(chunks)
            stages.advance(PipelineStage.TRANSCRIPT_READY)

            stages.advance(PipelineStage.SUMMARIZING)
            summary = await self.summarizer.summarize(transcript)
            stages.advance(PipelineStage.MINUTES_READY)
        finally:
            scratch.cleanup()

        return ProcessingResult(
            transcript=transcript.text,
            markdown=summary.markdown,
            stage=stages.stage,
            failed_chunks=transcript.failed_indices,
            used_fallback_summary=summary.used_fallback,
        )

    async def _prepare_audio(
        self,
        audio_bytes: bytes,
        scratch: ScratchSpace,
        stages: StageTracker,
    ) -> list[AudioChunk]:
        """Save, clean and segment the upload; any fault here is fatal."""
        try:
            scratch.open()
            asset = AudioAsset(data=audio_bytes, path=scratch.path(UPLOAD_FILENAME))
            asset.path.write_bytes(asset.data)
            logger.info("Saved upload (%d bytes)", asset.size_bytes)

            # ffmpeg runs as a blocking subprocess; keep it off the event loop
            cleaned = await asyncio.to_thread(
                self.preprocessor.preprocess, asset.path, scratch.path(CLEANED_FILENAME)
            )
            stages.advance(PipelineStage.PREPROCESSED)

            chunks = await asyncio.to_thread(self.chunker.chunk, cleaned, scratch.path(CHUNK_DIRNAME))
            stages.advance(PipelineStage.CHUNKED)
            return chunks
        except OSError as exc:
            logger.exception("Scratch file error while preparing audio")
            stages.advance(PipelineStage.FAILED)
            raise AudioProcessingError(f"Scratch file error: {exc}") from exc
        except AudioProcessingError:
            logger.exception("Audio preparation failed")
            stages.advance(PipelineStage.FAILED)
            raise


def build_processor(config: PipelineConfig | None = None, settings: Settings | None = None) -> MeetingProcessor:
    """Wire the default providers (AssemblyAI, Whisper, Claude) from settings.

    Whisper is optional; without ``OPENAI_API_KEY`` chunks get no fallback call.

    Raises:
        ProviderNotConfiguredError: The primary STT or summarisation key is missing.
    """
    settings = settings or get_settings()
    config = config or PipelineConfig.from_settings(settings)

    missing = [
        name
        for name, value in (
            ("ASSEMBLYAI_API_KEY", settings.assemblyai_api_key),
            ("ANTHROPIC_API_KEY", settings.anthropic_api_key),
        )
        if not value
    ]
    if missing:
        raise ProviderNotConfiguredError(f"Missing configuration: {', '.join(missing)}")

    primary = AssemblyAIProvider(
        settings.assemblyai_api_key,
        speech_model=config.primary_speech_model,
        http_timeout=config.request_timeout_sec,
    )
    fallback: SpeechToTextProvider | None = None
    if settings.openai_api_key:
        fallback = WhisperProvider(
            settings.openai_api_key,
            model=config.fallback_speech_model,
            prompt=config.transcription_prompt,
            temperature=config.transcription_temperature,
            timeout=config.request_timeout_sec,
        )
    else:
        logger.warning("OPENAI_API_KEY not set; transcription runs without a fallback provider")

    client = AnthropicCompletionClient(
        settings.anthropic_api_key,
        max_tokens=config.summarization_max_output_tokens,
        timeout=config.request_timeout_sec,
    )
    return MeetingProcessor.from_config(config, primary, fallback, client)
