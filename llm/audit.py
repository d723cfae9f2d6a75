"""
AI run audit log.

Every AI invocation made by the triage engine leaves one AuditEntry
(provider, model, prompt hash, token counts, latency, cost). Recording is
best effort: a failing sink is logged and never affects the turn.
"""

import hashlib
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.repositories import AiRunLogRepository
from .providers.base import AiResponse

logger = logging.getLogger(__name__)


class AuditOutcome(Enum):
    OK = "ok"
    EXHAUSTED = "exhausted"


def hash_prompt(system: Optional[str], prompt: str) -> str:
    """sha256 of the full prompt, so raw ticket text never lands in the log."""
    digest = hashlib.sha256()
    digest.update((system or "").encode("utf-8"))
    digest.update(b"\x00")
    digest.update(prompt.encode("utf-8"))
    return digest.hexdigest()


@dataclass
class AuditEntry:
    tenant_id: int
    ticket_id: Optional[int]
    prompt_hash: str
    outcome: AuditOutcome
    provider: Optional[str] = None
    model: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    latency_ms: Optional[float] = None
    cost_usd: Optional[float] = None
    confidence: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_response(
        cls, tenant_id: int, ticket_id: Optional[int], prompt_hash: str, response: AiResponse
    ) -> "AuditEntry":
        return cls(
            tenant_id=tenant_id,
            ticket_id=ticket_id,
            prompt_hash=prompt_hash,
            outcome=AuditOutcome.OK,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            latency_ms=response.latency_ms,
            cost_usd=response.cost_usd,
            confidence=response.confidence,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        data["created_at"] = self.created_at.isoformat()
        return data


class AuditSink(Protocol):
    async def write(self, entry: AuditEntry) -> None:
        ...


class LoggingAuditSink:
    """Writes one structured log line per entry."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logging.getLogger("triage.audit")

    async def write(self, entry: AuditEntry) -> None:
        self._log.info(
            f"ai_run tenant={entry.tenant_id} ticket={entry.ticket_id} "
            f"provider={entry.provider} model={entry.model} outcome={entry.outcome.value} "
            f"tokens={entry.input_tokens}/{entry.output_tokens} "
            f"latency_ms={entry.latency_ms} cost_usd={entry.cost_usd} "
            f"prompt={entry.prompt_hash[:12]}"
        )


class DbAuditSink:
    """Persists entries to the ai_run_logs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def write(self, entry: AuditEntry) -> None:
        async with self._session_factory() as session:
            await AiRunLogRepository(session).log(
                tenant_id=entry.tenant_id,
                ticket_id=entry.ticket_id,
                provider=entry.provider,
                model=entry.model,
                prompt_hash=entry.prompt_hash,
                input_tokens=entry.input_tokens,
                output_tokens=entry.output_tokens,
                latency_ms=entry.latency_ms,
                cost_usd=entry.cost_usd,
                confidence=entry.confidence,
                outcome=entry.outcome.value,
                created_at=entry.created_at,
            )
            await session.commit()


class RunAuditLog:
    """Fans an entry out to every sink; never raises."""

    def __init__(self, sinks: Iterable[AuditSink] = ()):
        self.sinks: List[AuditSink] = list(sinks)

    async def record(self, entry: AuditEntry) -> None:
        for sink in self.sinks:
            try:
                await sink.write(entry)
            except Exception as e:
                logger.warning(f"Audit sink {type(sink).__name__} failed: {e}")
