"""Character-ratio token estimation.

The ratios are uncalibrated approximations, not tokenizer output. They are
rounded towards overestimating so budgets derived from them stay conservative.
"""

from __future__ import annotations

import math

from src.pipeline_config import Language

# Characters per token. Persian text tokenises denser than English.
CHARS_PER_TOKEN: dict[Language, float] = {
    Language.PERSIAN: 3.5,
    Language.ENGLISH: 4.0,
}


def chars_per_token(language: Language | str = Language.PERSIAN) -> float:
    """Return the heuristic characters-per-token ratio for *language*."""
    return CHARS_PER_TOKEN[Language(language)]


def estimate_tokens(text: str, language: Language | str = Language.PERSIAN) -> int:
    """Estimate the token count of *text*: ``ceil(len(text) / ratio)``."""
    return math.ceil(len(text) / chars_per_token(language))


def max_chars_for_tokens(tokens: int, language: Language | str = Language.PERSIAN) -> int:
    """Largest character count whose estimate does not exceed *tokens*."""
    return max(0, math.floor(tokens * chars_per_token(language)))
