"""Model capability table, token-limit checks and model escalation."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Literal

from src.pipeline_config import Language
from src.summarization.models import DEFAULT_CHUNKING_STRATEGY, ChunkingStrategy
from src.tokens import chars_per_token, estimate_tokens

RecommendedAction = Literal["proceed", "truncate", "chunk", "error"]


@dataclass(frozen=True)
class ModelCapability:
    """Token ceilings the summariser must respect for one model."""

    name: str
    tokens_per_minute: int
    tokens_per_request: int
    safety_buffer: int

    @property
    def available_tokens(self) -> int:
        """Per-minute budget minus the safety buffer."""
        return self.tokens_per_minute - self.safety_buffer


# Ordered by capacity, smallest first. Escalation walks down this list.
MODEL_CAPABILITIES: tuple[ModelCapability, ...] = (
    ModelCapability("claude-sonnet-4-20250514", 8000, 32000, 1000),
    ModelCapability("claude-3-7-sonnet-latest", 15000, 32000, 1000),
    ModelCapability("claude-3-5-sonnet-latest", 20000, 32000, 1000),
    ModelCapability("claude-3-5-haiku-latest", 25000, 32000, 1000),
)

DEFAULT_MODEL = MODEL_CAPABILITIES[0].name

_BY_NAME = {capability.name: capability for capability in MODEL_CAPABILITIES}

# Prompts at most this far over the per-minute budget are trimmed rather than chunked
TRUNCATE_TOLERANCE = 1.2


@dataclass(frozen=True)
class TokenEstimate:
    estimated_tokens: int
    is_within_limit: bool
    recommended_action: RecommendedAction


def get_capability(model: str) -> ModelCapability:
    """Capability entry for *model*; unknown models get the default model's limits."""
    return _BY_NAME.get(model) or _BY_NAME[DEFAULT_MODEL]


def fits_model(estimated_tokens: int, model: str) -> bool:
    capability = get_capability(model)
    return estimated_tokens <= capability.available_tokens and estimated_tokens <= capability.tokens_per_request


def check_token_limits(
    system_prompt: str,
    user_prompt: str,
    model: str,
    language: Language | str = Language.PERSIAN,
) -> TokenEstimate:
    """Estimate whether a system+user prompt pair fits *model*'s budget."""
    total = estimate_tokens(system_prompt, language) + estimate_tokens(user_prompt, language)
    capability = get_capability(model)
    available = capability.available_tokens

    action: RecommendedAction = "proceed"
    if total > available:
        if total > capability.tokens_per_request:
            action = "error"
        elif total <= available * TRUNCATE_TOLERANCE:
            action = "truncate"
        else:
            action = "chunk"

    return TokenEstimate(
        estimated_tokens=total,
        is_within_limit=total <= available,
        recommended_action=action,
    )


def select_model(estimated_tokens: int) -> str:
    """Smallest-capacity model whose budget fits, else the largest one."""
    for capability in MODEL_CAPABILITIES:
        if fits_model(estimated_tokens, capability.name):
            return capability.name
    return MODEL_CAPABILITIES[-1].name


def escalate_model(model: str) -> str | None:
    """Next higher-capacity model than *model*, or ``None`` at the top.

    Models missing from the table escalate to the smallest listed model.
    """
    names = [capability.name for capability in MODEL_CAPABILITIES]
    if model not in names:
        return names[0]
    position = names.index(model)
    return names[position + 1] if position + 1 < len(names) else None


@dataclass(frozen=True)
class ChunkingRecommendation:
    strategy: ChunkingStrategy
    estimated_chunks: int
    estimated_tokens: int


def get_chunking_recommendations(
    transcript_length: int,
    language: Language | str = Language.PERSIAN,
) -> ChunkingRecommendation:
    """Recommend a chunk size for a transcript of *transcript_length* characters."""
    estimated = math.ceil(transcript_length / chars_per_token(language))
    tiers = ((8000, None), (15000, 12000), (25000, 15000))

    for ceiling, chunk_tokens in tiers:
        if estimated <= ceiling:
            if chunk_tokens is None:
                strategy = replace(DEFAULT_CHUNKING_STRATEGY, max_tokens_per_chunk=max(estimated, 1))
                return ChunkingRecommendation(strategy, 1, estimated)
            strategy = replace(DEFAULT_CHUNKING_STRATEGY, max_tokens_per_chunk=chunk_tokens)
            return ChunkingRecommendation(strategy, math.ceil(estimated / chunk_tokens), estimated)

    strategy = replace(DEFAULT_CHUNKING_STRATEGY, max_tokens_per_chunk=20000)
    return ChunkingRecommendation(strategy, math.ceil(estimated / 20000), estimated)
