"""Speech-to-text providers: AssemblyAI (primary) and OpenAI Whisper (fallback)."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, Protocol

from openai import AsyncOpenAI

from src.pipeline_config import Language

logger = logging.getLogger(__name__)


class SpeechToTextProvider(Protocol):
    """``transcribe(audio_bytes, language, diarize) -> text | structured result``."""

    name: str

    async def transcribe(self, audio: bytes, *, language: str, diarize: bool = True) -> Any: ...


class TranscriptionFailedError(RuntimeError):
    """The provider accepted the request but reported a transcription error."""


class AssemblyAIProvider:
    """AssemblyAI transcription with speaker labels.

    The SDK is synchronous, so each HTTP request (upload and submit, then one
    status lookup per poll) runs in a worker thread and is bounded by
    *http_timeout*. Waiting between polls happens on the event loop, so a
    timeout or cancellation stops polling at the next await. The result is
    returned as an AssemblyAI-style ``{"text", "utterances"}`` dict.
    """

    name = "assemblyai"

    def __init__(
        self,
        api_key: str,
        speech_model: str = "universal",
        http_timeout: float | None = None,
        poll_interval: float = 3.0,
    ) -> None:
        self.api_key = api_key
        self.speech_model = speech_model
        self.http_timeout = http_timeout
        self.poll_interval = poll_interval

    async def transcribe(self, audio: bytes, *, language: str, diarize: bool = True) -> dict[str, Any]:
        import assemblyai as aai  # type: ignore[import-untyped]  # no stubs; import inside function

        aai.settings.api_key = self.api_key
        if self.http_timeout is not None:
            aai.settings.http_timeout = self.http_timeout
        config = aai.TranscriptionConfig(
            speech_models=[self.speech_model],
            language_code=language,
            speaker_labels=diarize,
        )

        # submit() returns once the job is queued; the SDK's own transcribe()
        # would block a thread until the job finishes.
        transcript = await asyncio.to_thread(aai.Transcriber().submit, io.BytesIO(audio), config=config)
        logger.debug("AssemblyAI job %s submitted", transcript.id)
        done = (aai.TranscriptStatus.completed, aai.TranscriptStatus.error)
        while transcript.status not in done:
            await asyncio.sleep(self.poll_interval)
            transcript = await asyncio.to_thread(aai.Transcript.get_by_id, transcript.id)

        if transcript.status == aai.TranscriptStatus.error:
            raise TranscriptionFailedError(f"AssemblyAI transcription failed: {transcript.error}")

        utterances = transcript.utterances or []
        return {
            "text": transcript.text or "",
            "utterances": [
                {"speaker": u.speaker, "text": u.text, "start": u.start, "end": u.end}
                for u in utterances
            ],
        }


class WhisperProvider:
    """OpenAI Whisper transcription (no diarization)."""

    name = "openai-whisper"

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        prompt: str = "",
        temperature: float = 0.41,
        timeout: float | None = None,
    ) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.prompt = prompt
        self.temperature = temperature
        self.timeout = timeout

    async def transcribe(self, audio: bytes, *, language: str, diarize: bool = True) -> Any:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": ("chunk.wav", audio, "audio/wav"),
            "language": Language(language).value,
            "temperature": self.temperature,
            "response_format": "json",
        }
        if self.prompt:
            kwargs["prompt"] = self.prompt
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return await self.client.audio.transcriptions.create(**kwargs)
