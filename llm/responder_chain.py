"""
Provider fallback chain.

Tries each configured responder in priority order. Disabled providers
are skipped, every attempt is bounded by a client-side timeout, and any
AiError falls through to the next provider.
"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence, Tuple

from .errors import AiError, AiErrorKind, AiProvidersExhaustedError
from .metrics import record_provider_call
from .providers.base import AiResponder, AiResponse

logger = logging.getLogger(__name__)


class ResponderChain:
    """
    Ordered list of AI responders with fallback.

    The order is fixed at construction. The chain itself satisfies the
    AiResponder contract, so callers never see which backend answered
    except through ``AiResponse.provider``.
    """

    name = "chain"

    def __init__(self, providers: Sequence[AiResponder], timeout_seconds: float = 30.0):
        self.providers = list(providers)
        self.timeout_seconds = timeout_seconds

    def is_enabled(self) -> bool:
        return any(p.is_enabled() for p in self.providers)

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        """
        Ask each enabled provider in turn.

        Raises:
            AiProvidersExhaustedError: every provider failed or was disabled
        """
        failures: List[Tuple[str, AiError]] = []

        for provider in self.providers:
            if not provider.is_enabled():
                logger.debug(f"Skipping disabled provider: {provider.name}")
                continue

            start = time.time()
            try:
                response = await asyncio.wait_for(
                    provider.respond(prompt, system=system),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                error = AiError(
                    AiErrorKind.UNREACHABLE,
                    f"no reply within {self.timeout_seconds}s",
                    provider=provider.name,
                )
            except AiError as e:
                error = e
            else:
                elapsed = time.time() - start
                if not response.latency_ms:
                    response.latency_ms = round(elapsed * 1000, 2)
                record_provider_call(provider.name, "ok", elapsed)
                if failures:
                    logger.info(
                        f"Provider {provider.name} answered after {len(failures)} failure(s)"
                    )
                return response

            record_provider_call(provider.name, error.kind.value)
            logger.warning(f"Provider {provider.name} failed ({error.kind.value}): {error}")
            failures.append((provider.name, error))

        logger.error(f"All AI providers failed: {[name for name, _ in failures]}")
        raise AiProvidersExhaustedError(failures)
