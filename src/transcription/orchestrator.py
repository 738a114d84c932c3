"""Per-chunk transcription with retry, provider fallback and sentinel substitution."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import partial

from src.audio.models import AudioChunk
from src.pipeline.errors import RetryExhaustedError
from src.pipeline_config import Language, PipelineConfig
from src.resilience import attempt_with_retry_and_fallback, bounded_gather
from src.transcription.models import Transcript, TranscriptSegment
from src.transcription.normalize import normalize_response
from src.transcription.providers import SpeechToTextProvider

logger = logging.getLogger(__name__)


class TranscriptionOrchestrator:
    """Transcribe audio chunks into one ordered :class:`Transcript`.

    A chunk that fails every primary attempt and the single fallback call is
    recorded as ``[CHUNK FAILED]``; the rest of the recording is kept.
    """

    def __init__(
        self,
        primary: SpeechToTextProvider,
        fallback: SpeechToTextProvider | None = None,
        *,
        language: Language | str = Language.PERSIAN,
        diarize: bool = True,
        max_retries: int = 3,
        timeout: float | None = 120.0,
        base_delay: float = 1.0,
        max_concurrency: int = 1,
        min_interval: float = 0.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.language = Language(language)
        self.diarize = diarize
        self.max_retries = max_retries
        self.timeout = timeout
        self.base_delay = base_delay
        self.max_concurrency = max_concurrency
        self.min_interval = min_interval

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        primary: SpeechToTextProvider,
        fallback: SpeechToTextProvider | None = None,
    ) -> TranscriptionOrchestrator:
        return cls(
            primary,
            fallback,
            language=config.language,
            diarize=config.diarize,
            max_retries=config.transcription_max_retries,
            timeout=config.request_timeout_sec,
            base_delay=config.retry_base_delay_sec,
            max_concurrency=config.max_concurrency,
            min_interval=config.min_call_interval_sec,
        )

    async def transcribe_chunk(self, chunk: AudioChunk) -> TranscriptSegment:
        """Transcribe one chunk; never raises for provider or read failures."""
        label = f"transcribe chunk {chunk.index}"
        try:
            audio = chunk.read_bytes()
        except OSError:
            logger.exception("Could not read audio chunk %d (%s)", chunk.index, chunk.path.name)
            return TranscriptSegment.failed(chunk.index)

        options = {"language": self.language.value, "diarize": self.diarize}
        primary = partial(self.primary.transcribe, audio, **options)
        fallback = partial(self.fallback.transcribe, audio, **options) if self.fallback else None

        try:
            result = await attempt_with_retry_and_fallback(
                primary,
                fallback,
                max_retries=self.max_retries,
                timeout=self.timeout,
                base_delay=self.base_delay,
                label=label,
            )
        except RetryExhaustedError as exc:
            logger.error("Chunk %d failed after %d attempts: %s", chunk.index, exc.attempts, exc.last_error)
            return TranscriptSegment.failed(chunk.index, attempts=exc.attempts)

        provider = self.fallback.name if result.used_fallback and self.fallback else self.primary.name
        text = normalize_response(result.value)
        logger.info("Chunk %d transcribed by %s (%d chars)", chunk.index, provider, len(text))
        return TranscriptSegment(index=chunk.index, text=text, provider=provider, attempts=result.attempts)

    async def transcribe_chunks(self, chunks: Sequence[AudioChunk]) -> Transcript:
        """Transcribe every chunk and concatenate the results in chunk order."""
        ordered = sorted(chunks, key=lambda c: c.index)
        logger.info("Transcribing %d chunks (concurrency=%d)", len(ordered), self.max_concurrency)
        segments = await bounded_gather(
            ordered,
            self.transcribe_chunk,
            max_concurrency=self.max_concurrency,
            min_interval=self.min_interval,
        )
        transcript = Transcript(segments=segments, language=self.language)
        if transcript.failed_indices:
            logger.warning("Chunks failed transcription: %s", transcript.failed_indices)
        return transcript
