"""Chat-completion client used by the summariser."""

from __future__ import annotations

from typing import Protocol

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock


class CompletionClient(Protocol):
    """``complete(system_prompt, user_prompt, model, temperature) -> text``."""

    async def complete(self, system_prompt: str, user_prompt: str, model: str, temperature: float) -> str: ...


class AnthropicCompletionClient:
    """Claude Messages API returning the first text block of the reply."""

    def __init__(self, api_key: str, max_tokens: int = 2000, timeout: float | None = None) -> None:
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout) if timeout else AsyncAnthropic(api_key=api_key)
        self.max_tokens = max_tokens
        self.timeout = timeout

    async def complete(self, system_prompt: str, user_prompt: str, model: str, temperature: float) -> str:
        response = await self.client.messages.create(
            model=model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )

        # We always request plain text, so the first block should be a TextBlock.
        block = response.content[0] if response.content else None
        if not isinstance(block, TextBlock):
            raise ValueError(f"Expected TextBlock from Claude, got {type(block).__name__}")
        if not block.text.strip():
            raise ValueError("Claude returned an empty summary")
        return block.text
