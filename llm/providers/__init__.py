"""
LLM Provider implementations.
"""

from .base import AiResponder, AiResponse
from .bedrock import BedrockProvider
from .heuristic import HeuristicResponder
from .openai_provider import OpenAIProvider
from .openrouter_provider import OpenRouterProvider

__all__ = [
    "AiResponder",
    "AiResponse",
    "BedrockProvider",
    "HeuristicResponder",
    "OpenAIProvider",
    "OpenRouterProvider",
]
