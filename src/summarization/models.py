"""Data models for transcript chunking, partial summaries and merged minutes."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ChunkingStrategy:
    """How :func:`chunk_transcript` slices a transcript."""

    max_tokens_per_chunk: int = 8000  # Safe limit for most models
    overlap_tokens: int = 500  # Trailing context repeated at the next chunk's head
    preserve_sentences: bool = True
    preserve_paragraphs: bool = True


DEFAULT_CHUNKING_STRATEGY = ChunkingStrategy()


@dataclass
class TranscriptChunk:
    """A token-budgeted slice of the transcript.

    ``content == transcript[start_index:end_index]``; the first ``overlap_chars``
    characters repeat the tail of the previous chunk.
    """

    id: int
    content: str
    start_index: int
    end_index: int
    estimated_tokens: int
    overlap_chars: int = 0

    @property
    def overlap_text(self) -> str:
        return self.content[: self.overlap_chars]

    @property
    def body(self) -> str:
        """Content without the overlap carried over from the previous chunk."""
        return self.content[self.overlap_chars :]


@dataclass
class SummaryChunk:
    """Markdown summary of one transcript chunk."""

    id: int
    content: str
    source_chunk_id: int
    model: str | None = None
    success: bool = True


@dataclass
class MeetingMinutes:
    """Sections collected from partial summaries, deduplicated in first-seen order."""

    decisions: list[str] = field(default_factory=list)
    action_items: list[str] = field(default_factory=list)
    follow_ups: list[str] = field(default_factory=list)
    source_count: int = 0

    def is_empty(self) -> bool:
        return not (self.decisions or self.action_items or self.follow_ups)


@dataclass
class SummaryResult:
    """Outcome of summarisation: always carries usable markdown."""

    markdown: str
    chunks: list[SummaryChunk] = field(default_factory=list)
    chunked: bool = False
    used_fallback: bool = False

    @property
    def failed_chunk_ids(self) -> list[int]:
        return [chunk.id for chunk in self.chunks if not chunk.success]
