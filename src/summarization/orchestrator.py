"""Summarisation with model selection, one-step escalation and a metadata fallback."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from functools import partial

from src.pipeline.errors import RetryExhaustedError
from src.pipeline_config import Language, PipelineConfig
from src.resilience import attempt_with_retry_and_fallback, bounded_gather
from src.summarization.budget import check_token_limits, escalate_model, fits_model, select_model
from src.summarization.chunking import chunk_transcript
from src.summarization.client import CompletionClient
from src.summarization.merger import merge_summaries
from src.summarization.models import (
    DEFAULT_CHUNKING_STRATEGY,
    ChunkingStrategy,
    SummaryChunk,
    SummaryResult,
    TranscriptChunk,
)
from src.summarization.prompts import build_system_prompt, build_user_prompt
from src.tokens import estimate_tokens
from src.transcription.models import CHUNK_FAILED_SENTINEL, Transcript

logger = logging.getLogger(__name__)

SPEAKING_WORDS_PER_MINUTE = 130

_CHUNK_ERRORS: dict[Language, str] = {
    Language.PERSIAN: "_[خلاصه‌سازی بخش {n} ناموفق بود]_",
    Language.ENGLISH: "_[Summary failed for part {n}]_",
}

_FAILED_PARTS_NOTICES: dict[Language, str] = {
    Language.PERSIAN: "> ⚠️ خلاصه این بخش‌ها تولید نشد: {parts}",
    Language.ENGLISH: "> ⚠️ Summaries could not be generated for part(s): {parts}",
}

_FALLBACK_TEMPLATES: dict[Language, str] = {
    Language.PERSIAN: (
        "### ⚠️ خلاصه خودکار در دسترس نیست\n\n"
        "تهیه صورتجلسه به صورت خودکار ممکن نشد. متن کامل رونویسی همچنان در دسترس است.\n\n"
        "- **طول رونویسی:** {chars} نویسه (حدود {tokens} توکن)\n"
        "- **مدت تقریبی صحبت:** حدود {minutes} دقیقه\n"
        "- **بخش‌های صوتی رونویسی‌نشده:** {failed}\n\n"
        "---\n"
        "*این اطلاعیه جایگزین فقط بر اساس مشخصات رونویسی تولید شده است.*"
    ),
    Language.ENGLISH: (
        "### ⚠️ Automatic summary unavailable\n\n"
        "The meeting minutes could not be generated automatically. The full transcript "
        "is still available.\n\n"
        "- **Transcript length:** {chars} characters (~{tokens} tokens)\n"
        "- **Estimated speaking duration:** ~{minutes} minutes\n"
        "- **Untranscribed audio chunks:** {failed}\n\n"
        "---\n"
        "*This fallback notice was generated from transcript metadata only.*"
    ),
}


def estimate_speaking_minutes(text: str) -> int:
    """Rough speaking time of *text* at a conversational words-per-minute rate."""
    words = len(text.replace(CHUNK_FAILED_SENTINEL, " ").split())
    return math.ceil(words / SPEAKING_WORDS_PER_MINUTE) if words else 0


def build_fallback_summary(text: str, language: Language | str = Language.PERSIAN) -> str:
    """Clearly labeled minutes stand-in built from transcript metadata alone."""
    language = Language(language)
    return _FALLBACK_TEMPLATES[language].format(
        chars=len(text),
        tokens=estimate_tokens(text, language),
        minutes=estimate_speaking_minutes(text),
        failed=text.count(CHUNK_FAILED_SENTINEL),
    )


def has_spoken_content(text: str) -> bool:
    return bool(text.replace(CHUNK_FAILED_SENTINEL, "").strip())


class SummarizationOrchestrator:
    """Summarise a transcript in one call when it fits, otherwise chunk by chunk.

    Each call is tried once against its model and once more against the next
    higher-capacity model. Per-chunk failures become inline error strings; if
    nothing succeeds a metadata-only fallback summary is returned.
    """

    def __init__(
        self,
        client: CompletionClient,
        *,
        model: str = "claude-sonnet-4-20250514",
        language: Language | str = Language.PERSIAN,
        temperature: float = 0.1,
        strategy: ChunkingStrategy = DEFAULT_CHUNKING_STRATEGY,
        template: str | None = None,
        topics: tuple[str, ...] = (),
        timeout: float | None = 120.0,
        max_concurrency: int = 1,
        min_interval: float = 0.0,
    ) -> None:
        self.client = client
        self.model = model
        self.language = Language(language)
        self.temperature = temperature
        self.strategy = strategy
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.min_interval = min_interval
        self.system_prompt = build_system_prompt(self.language, template, topics)

    @classmethod
    def from_config(cls, config: PipelineConfig, client: CompletionClient) -> SummarizationOrchestrator:
        strategy = replace(
            DEFAULT_CHUNKING_STRATEGY,
            max_tokens_per_chunk=config.max_tokens_per_chunk,
            overlap_tokens=config.overlap_tokens,
        )
        return cls(
            client,
            model=config.summarization_model,
            language=config.language,
            temperature=config.summarization_temperature,
            strategy=strategy,
            template=config.template,
            topics=config.topics,
            timeout=config.request_timeout_sec,
            max_concurrency=config.max_concurrency,
            min_interval=config.min_call_interval_sec,
        )

    async def _complete(self, user_prompt: str, model: str, label: str) -> tuple[str, str]:
        """Call *model*, then its escalation once; return ``(text, model_used)``."""
        fallback_model = escalate_model(model) or model
        result = await attempt_with_retry_and_fallback(
            partial(self.client.complete, self.system_prompt, user_prompt, model, self.temperature),
            partial(self.client.complete, self.system_prompt, user_prompt, fallback_model, self.temperature),
            max_retries=1,
            timeout=self.timeout,
            label=label,
        )
        return result.value, fallback_model if result.used_fallback else model

    def _fallback(self, text: str, chunks: list[SummaryChunk] | None = None, chunked: bool = False) -> SummaryResult:
        logger.warning("Summarisation exhausted; returning metadata fallback summary")
        return SummaryResult(
            markdown=build_fallback_summary(text, self.language),
            chunks=chunks or [],
            chunked=chunked,
            used_fallback=True,
        )

    async def summarize(self, transcript: Transcript | str) -> SummaryResult:
        """Produce meeting-minutes markdown; never raises for provider failures."""
        text = transcript.text if isinstance(transcript, Transcript) else transcript
        if not has_spoken_content(text):
            return self._fallback(text)

        user_prompt = build_user_prompt(text, self.language)
        estimate = check_token_limits(self.system_prompt, user_prompt, self.model, self.language)
        logger.info(
            "Transcript ~%d tokens with prompt, model %s: %s",
            estimate.estimated_tokens,
            self.model,
            estimate.recommended_action,
        )
        if estimate.is_within_limit:
            return await self._summarize_whole(text, user_prompt)
        return await self._summarize_chunked(text)

    async def _summarize_whole(self, text: str, user_prompt: str) -> SummaryResult:
        try:
            markdown, model = await self._complete(user_prompt, self.model, "summarize transcript")
        except RetryExhaustedError:
            return self._fallback(text)
        chunk = SummaryChunk(id=0, content=markdown, source_chunk_id=0, model=model)
        return SummaryResult(markdown=markdown, chunks=[chunk])

    def _model_for(self, tokens: int) -> str:
        return self.model if fits_model(tokens, self.model) else select_model(tokens)

    async def _summarize_chunk(self, chunk: TranscriptChunk, total: int) -> SummaryChunk:
        user_prompt = build_user_prompt(chunk.content, self.language, part=chunk.id + 1, total=total)
        tokens = estimate_tokens(self.system_prompt, self.language) + estimate_tokens(user_prompt, self.language)
        model = self._model_for(tokens)
        logger.info("Summarising chunk %d/%d (~%d tokens) with %s", chunk.id + 1, total, tokens, model)
        try:
            markdown, used = await self._complete(user_prompt, model, f"summarize chunk {chunk.id}")
        except RetryExhaustedError as exc:
            logger.error("Chunk %d summary failed: %s", chunk.id, exc.last_error)
            return SummaryChunk(
                id=chunk.id,
                content=_CHUNK_ERRORS[self.language].format(n=chunk.id + 1),
                source_chunk_id=chunk.id,
                model=model,
                success=False,
            )
        return SummaryChunk(id=chunk.id, content=markdown, source_chunk_id=chunk.id, model=used)

    async def _summarize_chunked(self, text: str) -> SummaryResult:
        chunks = chunk_transcript(text, self.strategy, self.language)
        total = len(chunks)
        summaries = await bounded_gather(
            chunks,
            lambda chunk: self._summarize_chunk(chunk, total),
            max_concurrency=self.max_concurrency,
            min_interval=self.min_interval,
        )

        succeeded = [s for s in summaries if s.success]
        if not succeeded:
            return self._fallback(text, summaries, chunked=True)

        markdown = merge_summaries([s.content for s in succeeded], self.language)
        failed = [s.id + 1 for s in summaries if not s.success]
        if failed:
            notice = _FAILED_PARTS_NOTICES[self.language].format(parts=", ".join(map(str, failed)))
            markdown = f"{markdown}\n\n{notice}"
        return SummaryResult(markdown=markdown, chunks=summaries, chunked=True)
