"""
Common provider contract.

Every responder exposes the same async ``respond`` signature so the
fallback chain never needs to know which backend it is talking to.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass
class AiResponse:
    """Transient result of one provider call."""
    provider: str
    model: str
    text: str
    confidence: Optional[float] = None
    reasoning_summary: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    cost_usd: Optional[float] = None
    latency_ms: float = 0.0


@runtime_checkable
class AiResponder(Protocol):
    """Protocol implemented by every provider variant."""

    name: str

    def is_enabled(self) -> bool:
        """False when credentials are missing or malformed."""
        ...

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        """Generate a reply or raise AiError."""
        ...
