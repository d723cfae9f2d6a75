"""
OpenRouter LLM Provider.

Talks to the OpenAI-compatible chat-completions endpoint over httpx.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..errors import AiError, AiErrorKind
from .base import AiResponse

logger = logging.getLogger(__name__)


class OpenRouterProvider:
    """
    OpenRouter LLM provider.

    Primary provider of the fallback chain.
    """

    name = "openrouter"
    DEFAULT_MODEL = "openai/gpt-4o-mini"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
    KEY_PREFIX = "sk-or-"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        referer: str = "https://techdesk.local",
        app_title: str = "TechDesk",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key
            model_id: Model routed by OpenRouter
            base_url: API base URL
            referer: HTTP-Referer header sent for attribution
            app_title: X-Title header
            max_tokens: Maximum tokens
            temperature: Generation temperature
            timeout: Client-side request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.api_key = (api_key or "").strip()
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": referer,
            "X-Title": app_title,
        }

        if self.is_enabled():
            logger.info(f"OpenRouter provider initialized: {model_id} via {self.base_url}")
        else:
            logger.warning("OpenRouter provider disabled: API key missing or malformed")

    def is_enabled(self) -> bool:
        return bool(self.api_key) and self.api_key.startswith(self.KEY_PREFIX)

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        """
        Generate response from prompt.

        Raises:
            AiError: on transport errors, non-2xx responses or empty completions
        """
        if not self.is_enabled():
            raise AiError(AiErrorKind.UNAUTHORIZED, "OpenRouter is not configured", provider=self.name)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model_id,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        logger.info(f"Sending prompt to OpenRouter: model={self.model_id} prompt_len={len(prompt)}")
        start = time.time()

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise AiError(AiErrorKind.UNREACHABLE, f"timeout: {e}", provider=self.name) from e
        except httpx.TransportError as e:
            raise AiError(AiErrorKind.UNREACHABLE, str(e), provider=self.name) from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise AiError(AiErrorKind.UNKNOWN, "invalid JSON body", provider=self.name) from e

        text = self._extract_text(data)
        if not text:
            raise AiError(AiErrorKind.EMPTY_RESPONSE, "OpenRouter returned no content", provider=self.name)

        usage = data.get("usage") or {}
        logger.info(f"OpenRouter responded: model={self.model_id} tokens={usage.get('total_tokens', 0)}")

        return AiResponse(
            provider=self.name,
            model=data.get("model") or self.model_id,
            text=text,
            confidence=0.95,
            reasoning_summary=f"Resposta gerada por {self.model_id} via OpenRouter",
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
            cost_usd=usage.get("cost"),
            latency_ms=round((time.time() - start) * 1000, 2),
        )

    def _raise_for_status(self, response: httpx.Response):
        status = response.status_code
        if 200 <= status < 300:
            return
        detail = response.text[:200]
        if status in (401, 403):
            kind = AiErrorKind.UNAUTHORIZED
        elif status == 429:
            kind = AiErrorKind.RATE_LIMITED
        elif status >= 500:
            kind = AiErrorKind.UNREACHABLE
        else:
            kind = AiErrorKind.UNKNOWN
        raise AiError(kind, f"HTTP {status}: {detail}", provider=self.name)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return (message.get("content") or "").strip()
