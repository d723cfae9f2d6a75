"""
AWS Bedrock LLM Provider.
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..errors import AiError, AiErrorKind
from .base import AiResponse

logger = logging.getLogger(__name__)


class BedrockProvider:
    """
    AWS Bedrock LLM provider.

    Supports Claude models via Bedrock.
    """

    name = "bedrock"
    DEFAULT_MODEL = "us.anthropic.claude-sonnet-4-20250514-v1:0"

    UNAUTHORIZED_CODES = {
        "AccessDeniedException", "UnrecognizedClientException",
        "ExpiredTokenException", "InvalidSignatureException",
    }
    RATE_LIMITED_CODES = {"ThrottlingException", "TooManyRequestsException"}
    UNREACHABLE_CODES = {"ServiceUnavailableException", "ModelNotReadyException", "InternalServerException"}

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        region: str = "us-east-1",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        client: Optional[Any] = None,
    ):
        """
        Initialize Bedrock provider.

        Args:
            model_id: Bedrock model ID
            region: AWS region
            max_tokens: Maximum tokens for response
            temperature: Generation temperature
            client: Pre-built bedrock-runtime client (tests)
        """
        self.model_id = model_id
        self.region = region
        self.max_tokens = max_tokens
        self.temperature = temperature

        if client is not None:
            self._client = client
            self._enabled = True
        else:
            session = boto3.Session(region_name=region)
            self._enabled = session.get_credentials() is not None
            self._client = session.client("bedrock-runtime") if self._enabled else None

        if self._enabled:
            logger.info(f"Bedrock provider initialized: {model_id} in {region}")
        else:
            logger.warning("Bedrock provider disabled: no AWS credentials found")

    def is_enabled(self) -> bool:
        return self._enabled and self._client is not None

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        """
        Generate response from prompt.

        boto3 has no native async, so the call runs in a worker thread.
        """
        if not self.is_enabled():
            raise AiError(AiErrorKind.UNAUTHORIZED, "Bedrock is not configured", provider=self.name)

        start = time.time()
        body = await asyncio.to_thread(self._invoke, prompt, system)

        content = body.get("content") or []
        text = content[0].get("text", "").strip() if content else ""
        if not text:
            logger.warning("Empty response from Bedrock")
            raise AiError(AiErrorKind.EMPTY_RESPONSE, "Bedrock returned no content", provider=self.name)

        usage = body.get("usage") or {}
        return AiResponse(
            provider=self.name,
            model=self.model_id,
            text=text,
            confidence=0.9,
            reasoning_summary=f"Resposta gerada por {self.model_id} via Bedrock",
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            latency_ms=round((time.time() - start) * 1000, 2),
        )

    def _invoke(self, prompt: str, system: Optional[str]) -> dict:
        request = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": prompt}]
                }
            ]
        }
        if system:
            request["system"] = system

        try:
            response = self._client.invoke_model(
                modelId=self.model_id,
                body=json.dumps(request),
                contentType="application/json",
                accept="application/json",
            )
            return json.loads(response["body"].read())
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"Bedrock API error: {code}")
            raise AiError(self._classify(code), str(e), provider=self.name) from e
        except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
            raise AiError(AiErrorKind.UNREACHABLE, str(e), provider=self.name) from e
        except BotoCoreError as e:
            raise AiError(AiErrorKind.UNKNOWN, str(e), provider=self.name) from e
        except ValueError as e:
            raise AiError(AiErrorKind.UNKNOWN, f"invalid response body: {e}", provider=self.name) from e

    def _classify(self, code: str) -> AiErrorKind:
        if code in self.UNAUTHORIZED_CODES:
            return AiErrorKind.UNAUTHORIZED
        if code in self.RATE_LIMITED_CODES:
            return AiErrorKind.RATE_LIMITED
        if code in self.UNREACHABLE_CODES:
            return AiErrorKind.UNREACHABLE
        return AiErrorKind.UNKNOWN
