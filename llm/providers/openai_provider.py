"""
OpenAI LLM Provider.
"""

import logging
import time
from typing import Dict, Optional, Tuple

import openai
from openai import AsyncOpenAI

from ..errors import AiError, AiErrorKind
from .base import AiResponse

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """
    OpenAI LLM provider.

    Supports GPT-4o family models through the async client.
    """

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"
    KEY_PREFIX = "sk-"

    # USD per 1K tokens (input, output)
    PRICING: Dict[str, Tuple[float, float]] = {
        "gpt-4o-mini": (0.00015, 0.0006),
        "gpt-4o": (0.0025, 0.01),
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = DEFAULT_MODEL,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model_id: Model ID
            max_tokens: Maximum tokens
            temperature: Generation temperature
            timeout: Client-side request timeout in seconds
            client: Pre-built async client (tests)
        """
        self.api_key = (api_key or "").strip()
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

        self._client = client
        if self._client is None and self.is_enabled():
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=timeout, max_retries=0)

        if self.is_enabled():
            logger.info(f"OpenAI provider initialized: {model_id}")
        else:
            logger.warning("OpenAI provider disabled: API key missing or malformed")

    def is_enabled(self) -> bool:
        """Key must be present and look like an OpenAI key."""
        return bool(self.api_key) and self.api_key.startswith(self.KEY_PREFIX) and not self.api_key.startswith("sk-or-")

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        """
        Generate response from prompt.

        Args:
            prompt: User prompt (ticket context)
            system: System prompt

        Returns:
            AiResponse

        Raises:
            AiError: on any provider failure
        """
        if not self.is_enabled() or self._client is None:
            raise AiError(AiErrorKind.UNAUTHORIZED, "OpenAI is not configured", provider=self.name)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start = time.time()
        try:
            response = await self._client.chat.completions.create(
                model=self.model_id,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AiError(AiErrorKind.UNAUTHORIZED, str(e), provider=self.name) from e
        except openai.RateLimitError as e:
            raise AiError(AiErrorKind.RATE_LIMITED, str(e), provider=self.name) from e
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise AiError(AiErrorKind.UNREACHABLE, str(e), provider=self.name) from e
        except openai.APIStatusError as e:
            kind = AiErrorKind.UNREACHABLE if e.status_code >= 500 else AiErrorKind.UNKNOWN
            raise AiError(kind, str(e), provider=self.name) from e
        except openai.OpenAIError as e:
            raise AiError(AiErrorKind.UNKNOWN, str(e), provider=self.name) from e

        if not response.choices or not (response.choices[0].message.content or "").strip():
            raise AiError(AiErrorKind.EMPTY_RESPONSE, "OpenAI returned no content", provider=self.name)

        text = response.choices[0].message.content.strip()
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else None
        output_tokens = usage.completion_tokens if usage else None

        logger.info(f"OpenAI responded: model={self.model_id} tokens={usage.total_tokens if usage else 0}")

        return AiResponse(
            provider=self.name,
            model=self.model_id,
            text=text,
            confidence=0.95,
            reasoning_summary=f"Resposta gerada por {self.model_id} via OpenAI",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=self._estimate_cost(input_tokens, output_tokens),
            latency_ms=round((time.time() - start) * 1000, 2),
        )

    def _estimate_cost(self, input_tokens: Optional[int], output_tokens: Optional[int]) -> Optional[float]:
        prices = self.PRICING.get(self.model_id)
        if not prices or input_tokens is None or output_tokens is None:
            return None
        return round(input_tokens / 1000 * prices[0] + output_tokens / 1000 * prices[1], 6)
