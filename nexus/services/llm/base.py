"""
Shared contract for language-model backends.

Both providers expose one capability: generate text for a prompt, and
report the usage that call consumed.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class LLMUsage:
    tokens: int
    cost: float


@dataclass(slots=True, frozen=True)
class LLMResponse:
    text: str
    usage: LLMUsage
    provider: str


class LLMBackend(Protocol):
    """Capability every model backend provides."""

    provider: str

    async def generate(
        self, prompt: str, wants_json: bool = True, system_instruction: str | None = None
    ) -> LLMResponse: ...
