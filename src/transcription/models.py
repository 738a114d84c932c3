"""Data models for transcription: provider response shapes and transcript assembly."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.pipeline_config import Language
from src.tokens import estimate_tokens

CHUNK_FAILED_SENTINEL = "[CHUNK FAILED]"
SEGMENT_SEPARATOR = "\n\n"


# ---------------------------------------------------------------------------
# Provider response variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlainTextResponse:
    """Provider returned a bare string."""

    text: str


@dataclass(frozen=True)
class TextFieldResponse:
    """Provider returned an object carrying an explicit text field."""

    text: str


@dataclass(frozen=True)
class SpeakerTurn:
    """One utterance/segment/word with an optional speaker label."""

    text: str
    speaker: str | None = None


@dataclass(frozen=True)
class DiarizedResponse:
    """Provider returned only a ``segments``/``utterances``/``words`` array."""

    turns: tuple[SpeakerTurn, ...]
    # Word arrays that include explicit spacing entries are joined without separators
    joiner: str = " "


@dataclass(frozen=True)
class UnrecognizedResponse:
    """Anything else; normalised by serialisation, never by raising."""

    raw: Any


ProviderResponse = PlainTextResponse | TextFieldResponse | DiarizedResponse | UnrecognizedResponse


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


@dataclass
class TranscriptSegment:
    """Text for one audio chunk. Failed chunks carry the sentinel, never nothing."""

    index: int
    text: str
    success: bool = True
    provider: str | None = None
    attempts: int = 0

    @classmethod
    def failed(cls, index: int, attempts: int = 0) -> TranscriptSegment:
        return cls(index=index, text=CHUNK_FAILED_SENTINEL, success=False, attempts=attempts)


@dataclass
class Transcript:
    """Ordered concatenation of all chunk segments, separated by blank lines."""

    segments: list[TranscriptSegment] = field(default_factory=list)
    language: Language = Language.PERSIAN

    def __post_init__(self) -> None:
        self.segments = sorted(self.segments, key=lambda s: s.index)

    @classmethod
    def from_text(cls, text: str, language: Language | str = Language.PERSIAN) -> Transcript:
        """Wrap already-transcribed text as a single-segment transcript."""
        return cls(segments=[TranscriptSegment(index=0, text=text)], language=Language(language))

    @property
    def text(self) -> str:
        return SEGMENT_SEPARATOR.join(segment.text for segment in self.segments)

    @property
    def char_length(self) -> int:
        return len(self.text)

    @property
    def estimated_tokens(self) -> int:
        return estimate_tokens(self.text, self.language)

    @property
    def failed_indices(self) -> list[int]:
        return [segment.index for segment in self.segments if not segment.success]

    @property
    def chunk_count(self) -> int:
        return len(self.segments)
