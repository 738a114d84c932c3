"""Token-budgeted chunking of long transcripts for summarisation.

Chunks break on sentence (and paragraph) boundaries where possible and repeat
up to ``overlap_tokens`` of the previous chunk's tail at their head, so the
summariser keeps context across boundaries.
"""

from __future__ import annotations

import logging
import re

from src.pipeline_config import Language
from src.summarization.models import DEFAULT_CHUNKING_STRATEGY, ChunkingStrategy, TranscriptChunk
from src.tokens import estimate_tokens, max_chars_for_tokens

logger = logging.getLogger(__name__)

_SENTENCE_RE: dict[Language, str] = {
    Language.PERSIAN: r"[.!?؟]+\s+",
    Language.ENGLISH: r"[.!?]+\s+",
}
_PARAGRAPH_RE = r"\n\s*\n"
_WORD_RE = r"\s+"


def _boundary_pattern(strategy: ChunkingStrategy, language: Language) -> re.Pattern[str]:
    parts: list[str] = []
    if strategy.preserve_sentences:
        parts.append(_SENTENCE_RE[language])
    else:
        parts.append(_WORD_RE)
    if strategy.preserve_paragraphs:
        parts.append(_PARAGRAPH_RE)
    return re.compile("|".join(f"(?:{p})" for p in parts))


def _hard_split(text: str, start: int, end: int, max_chars: int) -> list[tuple[int, int]]:
    """Split ``text[start:end]`` into pieces of at most *max_chars*, preferring whitespace."""
    pieces: list[tuple[int, int]] = []
    pos = start
    while end - pos > max_chars:
        limit = pos + max_chars
        cut = limit
        for i in range(limit - 1, pos, -1):
            if text[i].isspace():
                cut = i + 1
                break
        pieces.append((pos, cut))
        pos = cut
    if end > pos:
        pieces.append((pos, end))
    return pieces


def split_units(
    text: str,
    strategy: ChunkingStrategy = DEFAULT_CHUNKING_STRATEGY,
    language: Language | str = Language.PERSIAN,
) -> list[tuple[int, int]]:
    """Return ``(start, end)`` spans that tile *text* exactly.

    Each span ends at a sentence/paragraph boundary (delimiter and trailing
    whitespace included) unless it had to be hard-split to fit one chunk.
    """
    if not text:
        return []
    language = Language(language)
    pattern = _boundary_pattern(strategy, language)
    max_chars = max(1, max_chars_for_tokens(strategy.max_tokens_per_chunk, language))

    boundaries = sorted({m.end() for m in pattern.finditer(text) if 0 < m.end() < len(text)})
    boundaries.append(len(text))

    spans: list[tuple[int, int]] = []
    start = 0
    for end in boundaries:
        if end <= start:
            continue
        spans.extend(_hard_split(text, start, end, max_chars))
        start = end
    return spans


def _overlap_start(
    text: str,
    body_starts: list[int],
    end: int,
    overlap_tokens: int,
    language: Language,
) -> int:
    """Start offset of the trailing context carried into the next chunk.

    Prefers whole units; falls back to the last ``overlap_tokens`` worth of
    characters (snapped forward to a word start) when the last unit is too long.
    """
    if overlap_tokens <= 0 or not body_starts:
        return end
    for start in body_starts:
        if estimate_tokens(text[start:end], language) <= overlap_tokens:
            return start

    body_start = body_starts[0]
    pos = max(body_start, end - max_chars_for_tokens(overlap_tokens, language))
    if pos > 0 and not text[pos - 1].isspace():
        for i in range(pos, end):
            if text[i].isspace():
                return i + 1
    return pos


def chunk_transcript(
    transcript: str,
    strategy: ChunkingStrategy = DEFAULT_CHUNKING_STRATEGY,
    language: Language | str = Language.PERSIAN,
) -> list[TranscriptChunk]:
    """Split *transcript* into chunks of at most ``strategy.max_tokens_per_chunk``.

    Never raises: empty or delimiter-free input that fits the budget yields a
    single chunk spanning the whole text. Delimiter-free input over the budget
    is hard-split on whitespace instead of kept whole, so no chunk exceeds it.

    Args:
        transcript: Full transcript text.
        strategy: Chunk size, overlap and boundary preferences.
        language: Selects sentence delimiters and the token heuristic.

    Returns:
        Ordered :class:`TranscriptChunk` list. Removing each chunk's
        ``overlap_chars`` head and concatenating reconstructs the transcript.
    """
    language = Language(language)
    max_tokens = max(1, strategy.max_tokens_per_chunk)
    overlap_tokens = max(0, min(strategy.overlap_tokens, max_tokens // 2))

    def make(chunk_id: int, content_start: int, core_start: int, end: int) -> TranscriptChunk:
        content = transcript[content_start:end]
        return TranscriptChunk(
            id=chunk_id,
            content=content,
            start_index=content_start,
            end_index=end,
            estimated_tokens=estimate_tokens(content, language),
            overlap_chars=core_start - content_start,
        )

    chunks: list[TranscriptChunk] = []
    content_start = core_start = end = 0
    body_starts: list[int] = []

    for span_start, span_end in split_units(transcript, strategy, language):
        if end > core_start and estimate_tokens(transcript[content_start:span_end], language) > max_tokens:
            chunks.append(make(len(chunks), content_start, core_start, end))
            content_start = _overlap_start(transcript, body_starts, end, overlap_tokens, language)
            core_start = end
            body_starts = []
            if estimate_tokens(transcript[content_start:span_end], language) > max_tokens:
                content_start = core_start
        body_starts.append(span_start)
        end = span_end

    chunks.append(make(len(chunks), content_start, core_start, end))

    logger.info(
        "Chunked %d chars (~%d tokens) into %d chunks (max=%d, overlap=%d)",
        len(transcript),
        estimate_tokens(transcript, language),
        len(chunks),
        max_tokens,
        overlap_tokens,
    )
    return chunks
